# procurement/services/auth_service.py
from __future__ import annotations

import logging
import re
from datetime import timedelta
from typing import Optional, Tuple

from jose import JWTError
from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from procurement.core.config import Settings
from procurement.core.errors import Forbidden, InvalidInput, InvalidState, NotFound, Unauthenticated
from procurement.core.security import (
    create_access_token,
    decode_token,
    hash_password,
    new_opaque_token,
    verify_password,
)
from procurement.db.transaction import transaction
from procurement.models._time import as_utc, utc_now
from procurement.models.auth import PasswordReset, UserSession
from procurement.models.enums import UserRole
from procurement.models.user import User
from procurement.policies.rbac import Principal
from procurement.schemas.auth import RegisterRequest

logger = logging.getLogger(__name__)

_EMAIL = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_LETTER = re.compile(r"[A-Za-z]")
_DIGIT = re.compile(r"\d")


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def check_password_strength(password: str, min_length: int) -> None:
    if len(password or "") < min_length:
        raise InvalidInput(f"Password must be at least {min_length} characters long.")
    if not _LETTER.search(password) or not _DIGIT.search(password):
        raise InvalidInput("Password must contain at least one letter and one digit.")


class AuthService:
    def __init__(self, settings: Settings):
        self.settings = settings

    def _find_by_email(self, db: Session, email: str) -> Optional[User]:
        return db.execute(
            select(User).where(func.lower(User.email) == normalize_email(email))
        ).scalar_one_or_none()

    # ───────────────────────── register ─────────────────────────

    def register(self, db: Session, *, payload: RegisterRequest) -> User:
        """Self-service sign-up; every new account starts as a requester."""
        username = (payload.username or "").strip()
        email = normalize_email(payload.email)
        if not username:
            raise InvalidInput("Username is required.")
        if not _EMAIL.match(email):
            raise InvalidInput("A valid email address is required.")
        check_password_strength(payload.password, self.settings.min_password_length)

        with transaction(db, operation="register"):
            if self._find_by_email(db, email) is not None:
                raise InvalidState("An account with this email already exists.")
            if db.execute(select(User.id).where(User.username == username)).first() is not None:
                raise InvalidState("This username is already taken.")

            user = User(
                username=username,
                email=email,
                password_hash=hash_password(payload.password),
                role=UserRole.REQUESTER.value,
                department=payload.department,
                contact_number=payload.contact_number,
                is_active=True,
            )
            db.add(user)
            db.flush()

        logger.info("user registered", extra={"user_id": user.id, "role": user.role})
        return user

    # ───────────────────────── login / logout ─────────────────────────

    def login(
        self,
        db: Session,
        *,
        email: str,
        password: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Tuple[str, User]:
        user = self._find_by_email(db, email)
        if user is None or not verify_password(password, user.password_hash):
            logger.info("login failed", extra={"email": normalize_email(email)})
            raise Unauthenticated("Invalid email or password.")
        if not user.is_active:
            raise Forbidden("Account is deactivated.")

        minutes = self.settings.jwt_access_token_minutes
        with transaction(db, operation="login"):
            session_row = UserSession(
                user_id=user.id,
                token=new_opaque_token(),
                expires_at=utc_now() + timedelta(minutes=minutes),
                ip_address=ip_address,
                user_agent=(user_agent or "")[:256] or None,
                is_valid=True,
            )
            db.add(session_row)
            db.flush()

        token = create_access_token(
            self.settings,
            subject=str(user.id),
            claims={"role": user.role, "sid": session_row.token},
            expires_minutes=minutes,
        )
        logger.info("user logged in", extra={"user_id": user.id, "session_id": session_row.id})
        return token, user

    def logout(self, db: Session, *, session_token: str) -> None:
        with transaction(db, operation="logout"):
            db.execute(
                update(UserSession)
                .where(UserSession.token == session_token)
                .values(is_valid=False)
            )

    def _invalidate_sessions(self, db: Session, user_id: int) -> None:
        db.execute(
            update(UserSession)
            .where(UserSession.user_id == user_id, UserSession.is_valid.is_(True))
            .values(is_valid=False)
        )

    # ───────────────────────── passwords ─────────────────────────

    def change_password(
        self,
        db: Session,
        *,
        user_id: int,
        current_password: str,
        new_password: str,
    ) -> None:
        user = db.get(User, user_id)
        if user is None:
            raise NotFound("User not found.")
        if not verify_password(current_password, user.password_hash):
            raise InvalidInput("Current password is incorrect.")
        check_password_strength(new_password, self.settings.min_password_length)

        with transaction(db, operation="change_password"):
            user.password_hash = hash_password(new_password)
            # every token issued under the old password stops working
            self._invalidate_sessions(db, user.id)
        logger.info("password changed", extra={"user_id": user_id})

    def request_password_reset(self, db: Session, *, email: str) -> Optional[str]:
        """
        Returns the reset token (None for unknown emails). Delivery is not
        wired up; the issuance is logged.
        """
        user = self._find_by_email(db, email)
        if user is None or not user.is_active:
            logger.info("password reset requested for unknown account")
            return None

        token = new_opaque_token()
        with transaction(db, operation="request_password_reset"):
            db.add(
                PasswordReset(
                    user_id=user.id,
                    token=token,
                    expires_at=utc_now() + timedelta(minutes=self.settings.password_reset_minutes),
                )
            )
        logger.info("password reset token issued", extra={"user_id": user.id})
        return token

    def confirm_password_reset(self, db: Session, *, token: str, new_password: str) -> None:
        check_password_strength(new_password, self.settings.min_password_length)

        with transaction(db, operation="confirm_password_reset"):
            reset = db.execute(
                select(PasswordReset).where(PasswordReset.token == token).with_for_update()
            ).scalar_one_or_none()
            if reset is None or reset.used_at is not None or as_utc(reset.expires_at) <= utc_now():
                raise InvalidInput("Reset token is invalid or has expired.")

            user = db.get(User, reset.user_id)
            if user is None:
                raise InvalidInput("Reset token is invalid or has expired.")

            user.password_hash = hash_password(new_password)
            reset.used_at = utc_now()
            self._invalidate_sessions(db, user.id)

        logger.info("password reset completed", extra={"user_id": reset.user_id})

    # ───────────────────────── bearer tokens ─────────────────────────

    def authenticate_token(self, db: Session, token: str) -> Tuple[Principal, str]:
        """
        Bearer token -> (Principal, session token). Every failure is
        Unauthenticated; the role comes from the user row, not the claim.
        """
        try:
            payload = decode_token(self.settings, token)
        except JWTError:
            raise Unauthenticated("Invalid or expired token.")

        sub = payload.get("sub")
        sid = payload.get("sid")
        if not sub or not sid:
            raise Unauthenticated("Token missing required claims.")

        session_row = db.execute(
            select(UserSession).where(UserSession.token == sid)
        ).scalar_one_or_none()
        if (
            session_row is None
            or not session_row.is_valid
            or str(session_row.user_id) != str(sub)
            or as_utc(session_row.expires_at) <= utc_now()
        ):
            raise Unauthenticated("Session is no longer valid.")

        user = db.get(User, session_row.user_id)
        if user is None or not user.is_active:
            raise Unauthenticated("Account is not active.")

        try:
            role = UserRole.parse(user.role)
        except ValueError:
            raise Unauthenticated("Account has an unknown role.")

        return Principal(user_id=user.id, role=role, email=user.email), sid
