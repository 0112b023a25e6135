# procurement/core/auth_deps.py
from __future__ import annotations

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from procurement.core.errors import Unauthenticated
from procurement.db.session import get_db
from procurement.policies.rbac import Principal
from procurement.services.auth_service import AuthService

bearer = HTTPBearer(auto_error=False)


def get_current_principal(
    request: Request,
    creds: HTTPAuthorizationCredentials | None = Depends(bearer),
    db: Session = Depends(get_db),
) -> Principal:
    """
    The single authentication dependency.

    Guarantees:
    - JWT is valid and carries sub + sid
    - the referenced session is valid and unexpired
    - the account is active and its role is a known UserRole
    """
    if creds is None or not creds.credentials:
        raise Unauthenticated("Not authenticated.")

    service = AuthService(request.app.state.settings)
    principal, sid = service.authenticate_token(db, creds.credentials)

    # downstream handlers (logout) need the session id
    request.state.principal = principal
    request.state.session_id = sid
    return principal
