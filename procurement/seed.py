import logging

from sqlalchemy import select

from procurement.core.config import get_settings
from procurement.core.logging import configure_logging
from procurement.core.security import hash_password
from procurement.db.session import Database
from procurement.models.enums import UserRole
from procurement.models.user import User

logger = logging.getLogger(__name__)

DEMO_PASSWORD = "Password123"


def seed(database: Database) -> int:
    """Demo account per role (<role>@example.com). Existing accounts are left alone."""
    database.create_schema()
    created = 0

    with database.session() as db:
        for role in UserRole:
            email = f"{role.value}@example.com"
            if db.execute(select(User.id).where(User.email == email)).first():
                continue
            db.add(
                User(
                    username=role.value,
                    email=email,
                    password_hash=hash_password(DEMO_PASSWORD),
                    role=role.value,
                    department="Demo",
                    is_active=True,
                )
            )
            created += 1
        db.commit()

    logger.info("seed complete", extra={"users_created": created})
    return created


if __name__ == "__main__":
    settings = get_settings()
    configure_logging(settings)
    db = Database(settings)
    try:
        seed(db)
    finally:
        db.dispose()
