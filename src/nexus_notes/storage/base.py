"""Base class for repositories backed by the shared storage engine."""
import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from nexus_notes.exceptions import ErrorCode, StorageError
from nexus_notes.storage.engine import StorageEngine

logger = logging.getLogger(__name__)


class Repository:
    """Common plumbing for repositories.

    Every public operation runs inside ``transaction()``, so a
    multi-statement operation either commits as a whole or is rolled
    back, and SQLAlchemy failures surface as StorageError.
    """

    def __init__(self, storage: StorageEngine):
        """Initialize the repository.

        Args:
            storage: Open storage engine shared by all repositories.
        """
        self.storage = storage

    @property
    def session_factory(self):
        return self.storage.session_factory

    @contextmanager
    def transaction(self, operation: str, write: bool = False) -> Iterator[Session]:
        """Yield a session, committing on success and rolling back on error.

        Args:
            operation: Name used in error details and logs.
            write: Whether failures should be reported as write failures.
        """
        with self.session_factory() as session:
            try:
                yield session
                session.commit()
            except IntegrityError as e:
                session.rollback()
                logger.warning(f"Constraint violation in {operation}: {e.orig}")
                raise StorageError(
                    f"Constraint violation during {operation}",
                    operation=operation,
                    code=ErrorCode.CONSTRAINT_VIOLATION,
                    original_error=e,
                ) from e
            except SQLAlchemyError as e:
                session.rollback()
                logger.error(f"Storage failure in {operation}: {e}")
                raise StorageError(
                    f"Storage failure during {operation}",
                    operation=operation,
                    code=(
                        ErrorCode.STORAGE_WRITE_FAILED
                        if write
                        else ErrorCode.STORAGE_READ_FAILED
                    ),
                    original_error=e,
                ) from e
            except Exception:
                session.rollback()
                raise
