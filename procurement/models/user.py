#procurement/models/user.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from procurement.db.base import Base
from procurement.models._time import utc_now
from procurement.models.enums import UserRole


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    username: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    email: Mapped[str] = mapped_column(String(256), nullable=False, unique=True)

    # 🔐 AUTH
    password_hash: Mapped[str] = mapped_column(String(256), nullable=False)

    role: Mapped[str] = mapped_column(
        String(32), nullable=False, server_default=text(f"'{UserRole.REQUESTER.value}'")
    )
    department: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    contact_number: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )

    __table_args__ = (Index("ix_users_role", "role"),)
