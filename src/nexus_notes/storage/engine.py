"""Long-lived storage handle shared by every repository and service."""
import logging
import os
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from nexus_notes.config import NexusNotesConfig, config as default_config
from nexus_notes.exceptions import ErrorCode, StorageError, StorageInitializationError
from nexus_notes.models.db_models import get_session_factory, init_db

logger = logging.getLogger(__name__)


class StorageEngine:
    """Owns the on-disk database file and its connection pool.

    Open once at process start, pass the instance to repositories and
    services, close at shutdown:

        with StorageEngine() as storage:
            notebooks = NotebookRepository(storage)
            ...
    """

    def __init__(self, config: Optional[NexusNotesConfig] = None):
        """Initialize the storage engine.

        Args:
            config: Configuration to use. If None, uses the global config.
        """
        self.config = config or default_config
        self._engine = None
        self._session_factory = None

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    @property
    def engine(self):
        """The SQLAlchemy engine. Raises StorageError if not open."""
        if self._engine is None:
            raise StorageError(
                "Storage engine is not open",
                operation="engine",
                code=ErrorCode.STORAGE_CONNECTION_FAILED,
            )
        return self._engine

    @property
    def session_factory(self):
        """Session factory bound to the engine. Raises StorageError if not open."""
        if self._session_factory is None:
            raise StorageError(
                "Storage engine is not open",
                operation="session",
                code=ErrorCode.STORAGE_CONNECTION_FAILED,
            )
        return self._session_factory

    def open(self) -> "StorageEngine":
        """Resolve the data directory, connect, and ensure schema and seed data.

        Calling open() on an already open engine is a no-op.

        Raises:
            StorageInitializationError: If the data directory cannot be
                resolved or written, or if connection/schema setup fails.
        """
        if self._engine is not None:
            return self

        try:
            db_path = self.config.get_database_path()
        except OSError as e:
            raise StorageInitializationError(
                "Could not create data directory",
                path=str(self.config.data_dir),
                original_error=e,
            ) from e

        if not os.access(db_path.parent, os.W_OK):
            raise StorageInitializationError(
                "Data directory is not writable",
                path=str(db_path.parent),
            )

        logger.info(f"Initializing database at: {db_path}")
        try:
            engine = init_db(
                self.config.get_db_url(),
                pool_size=self.config.pool_size,
                pool_timeout=self.config.pool_timeout,
                seed=self.config.seed_default_data,
            )
        except SQLAlchemyError as e:
            raise StorageInitializationError(
                "Failed to initialize database",
                path=str(db_path),
                original_error=e,
            ) from e

        self._engine = engine
        self._session_factory = get_session_factory(engine)
        logger.info("Database initialized successfully")
        return self

    def close(self) -> None:
        """Dispose of the connection pool. Safe to call more than once."""
        if self._engine is None:
            return
        self._engine.dispose()
        self._engine = None
        self._session_factory = None
        logger.info("Storage engine closed")

    def __enter__(self) -> "StorageEngine":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
