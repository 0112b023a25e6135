# procurement/db/transaction.py
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from procurement.core.errors import InvalidState, StorageFailure

logger = logging.getLogger(__name__)


@contextmanager
def transaction(db: Session, *, operation: str) -> Iterator[Session]:
    """
    One unit of work: commit on clean exit, roll back on ANY exception.

    - optimistic version conflicts  -> InvalidState
    - other SQLAlchemy/driver errors -> StorageFailure (driver text is logged, not returned)
    - everything else (domain errors, crashes) propagates unchanged after rollback
    """
    try:
        yield db
        db.commit()
    except StaleDataError as exc:
        db.rollback()
        logger.warning("concurrent modification", extra={"operation": operation, "error": str(exc)})
        raise InvalidState("The record was modified concurrently; reload and retry.") from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("transaction rolled back", extra={"operation": operation, "error": str(exc)})
        raise StorageFailure(f"Storage failure during {operation}.") from exc
    except BaseException:
        db.rollback()
        logger.info("transaction rolled back", extra={"operation": operation})
        raise
