# procurement/api/v1/auth.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from procurement.core.auth_deps import get_current_principal
from procurement.core.errors import NotFound
from procurement.db.session import get_db
from procurement.models.user import User
from procurement.policies.rbac import Principal
from procurement.schemas.auth import (
    LoginRequest,
    PasswordChangeRequest,
    PasswordResetConfirm,
    PasswordResetRequest,
    RegisterRequest,
    TokenResponse,
    UserOut,
)
from procurement.services.auth_service import AuthService

router = APIRouter(prefix="/auth")


def _service(request: Request) -> AuthService:
    return AuthService(request.app.state.settings)


@router.post("/register", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def register(req: RegisterRequest, request: Request, db: Session = Depends(get_db)):
    return _service(request).register(db, payload=req)


@router.post("/login", response_model=TokenResponse)
def login(req: LoginRequest, request: Request, db: Session = Depends(get_db)):
    token, user = _service(request).login(
        db,
        email=req.email,
        password=req.password,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
    return TokenResponse(access_token=token, user=UserOut.model_validate(user))


@router.post("/logout")
def logout(
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    _service(request).logout(db, session_token=request.state.session_id)
    return {"status": "logged out"}


@router.post("/password/change")
def change_password(
    req: PasswordChangeRequest,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    _service(request).change_password(
        db,
        user_id=principal.user_id,
        current_password=req.current_password,
        new_password=req.new_password,
    )
    return {"status": "password changed"}


@router.post("/password/reset/request")
def request_password_reset(req: PasswordResetRequest, request: Request, db: Session = Depends(get_db)):
    # same answer whether or not the email is known
    _service(request).request_password_reset(db, email=req.email)
    return {"status": "if the account exists, a reset link has been sent"}


@router.post("/password/reset/confirm")
def confirm_password_reset(req: PasswordResetConfirm, request: Request, db: Session = Depends(get_db)):
    _service(request).confirm_password_reset(db, token=req.token, new_password=req.new_password)
    return {"status": "password reset"}


@router.get("/me", response_model=UserOut)
def get_me(db: Session = Depends(get_db), principal: Principal = Depends(get_current_principal)):
    user = db.get(User, principal.user_id)
    if user is None:
        raise NotFound("User not found.")
    return user
