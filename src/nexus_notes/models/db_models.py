"""SQLAlchemy database models for the NexusNotes data layer."""
import logging

from sqlalchemy import (Column, Date, DateTime, ForeignKey, Index, Integer, String,
                        Table, Text, create_engine, event, func, inspect, select, text)
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import QueuePool

from nexus_notes.models.schema import utc_now

logger = logging.getLogger(__name__)

# Create base class for SQLAlchemy models
Base = declarative_base()

# Association table for tags and notes
note_tags = Table(
    "note_tags",
    Base.metadata,
    Column(
        "note_id", String(36), ForeignKey("notes.id", ondelete="CASCADE"), primary_key=True
    ),
    Column(
        "tag_id", String(36), ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True
    ),
    Index("idx_note_tags_note", "note_id"),
)


class DBNotebook(Base):
    """Database model for a notebook."""
    __tablename__ = "notebooks"
    id = Column(String(36), primary_key=True)
    parent_id = Column(
        String(36), ForeignKey("notebooks.id", ondelete="CASCADE"), nullable=True
    )
    title = Column(Text, nullable=False)
    icon = Column(Text, nullable=True)
    sort_order = Column(Integer, default=0, server_default=text("0"), nullable=False)
    created_at = Column(DateTime, default=utc_now, nullable=False)

    def __repr__(self) -> str:
        """Return string representation of notebook."""
        return f"<Notebook(id='{self.id}', title='{self.title}')>"


class DBNote(Base):
    """Database model for a note."""
    __tablename__ = "notes"
    id = Column(String(36), primary_key=True)
    notebook_id = Column(
        String(36), ForeignKey("notebooks.id", ondelete="CASCADE"), nullable=False
    )
    title = Column(Text, nullable=False)
    markdown = Column(Text, default="", server_default=text("''"), nullable=False)
    priority = Column(Integer, default=0, server_default=text("0"), nullable=False)
    date = Column(Date, nullable=True)
    created_at = Column(DateTime, default=utc_now, nullable=False)
    updated_at = Column(DateTime, default=utc_now, nullable=False)

    __table_args__ = (Index("idx_notes_notebook", "notebook_id"),)

    def __repr__(self) -> str:
        """Return string representation of note."""
        return f"<Note(id='{self.id}', title='{self.title}')>"


class DBTag(Base):
    """Database model for a tag."""
    __tablename__ = "tags"
    id = Column(String(36), primary_key=True)
    name = Column(Text, unique=True, nullable=False)

    def __repr__(self) -> str:
        """Return string representation of tag."""
        return f"<Tag(id='{self.id}', name='{self.name}')>"


class DBVersion(Base):
    """Database model for a saved note body."""
    __tablename__ = "versions"
    id = Column(String(36), primary_key=True)
    note_id = Column(
        String(36), ForeignKey("notes.id", ondelete="CASCADE"), nullable=False
    )
    markdown = Column(Text, nullable=False)
    saved_at = Column(DateTime, default=utc_now, nullable=False)

    def __repr__(self) -> str:
        """Return string representation of version."""
        return f"<Version(id='{self.id}', note_id='{self.note_id}')>"


# Starter content inserted into an empty database
SEED_NOTEBOOKS = [
    {"id": "inbox_nb", "parent_id": None, "title": "Inbox", "icon": "📥", "sort_order": 0},
    {"id": "recipes_nb", "parent_id": None, "title": "Recipes", "icon": "🍪", "sort_order": 1},
]

SEED_NOTES = [
    {
        "id": "inbox",
        "notebook_id": "inbox_nb",
        "title": "Inbox",
        "markdown": "Quick-capture goes here…",
    },
    {
        "id": "note1",
        "notebook_id": "inbox_nb",
        "title": "Welcome to NexusNotes",
        "markdown": (
            "# Welcome\n\n"
            "Organise notes in notebooks, tag them, and search across everything.\n"
            "Reference another note by pasting its id, e.g. [tips](note3)."
        ),
    },
    {
        "id": "note2",
        "notebook_id": "recipes_nb",
        "title": "Chocolate Chip Cookies",
        "markdown": (
            "# Chocolate Chip Cookies\n\n"
            "- 225g butter\n- 200g brown sugar\n- 2 eggs\n"
            "- 280g flour\n- 300g chocolate chips\n\n"
            "Bake at 180°C for 10 minutes."
        ),
    },
    {
        "id": "note3",
        "notebook_id": "recipes_nb",
        "title": "Baking Tips",
        "markdown": "Chill the dough for an hour before baking.",
    },
    {
        "id": "note4",
        "notebook_id": "inbox_nb",
        "title": "Weekend Plans",
        "markdown": "Try the ideas in note3 on Saturday.",
    },
]

SEED_TAGS = [{"id": "tag_recipe", "name": "recipe"}]

SEED_NOTE_TAGS = [
    {"note_id": "note2", "tag_id": "tag_recipe"},
    {"note_id": "note3", "tag_id": "tag_recipe"},
]


UNICODE_LOWER_FUNCTION = "py_lower"


def unicode_lower(value):
    """Lowercase with Python's Unicode rules. Registered as ``py_lower``."""
    return value.lower() if value is not None else None


def init_db(
    db_url: str,
    pool_size: int = 1,
    pool_timeout: int = 30,
    seed: bool = True,
):
    """Initialize the database and return the engine.

    Applies SQLite settings for a single embedded writer:
    - foreign_keys=ON so ON DELETE CASCADE is enforced
    - WAL (Write-Ahead Logging) mode for atomic writes
    - NORMAL synchronous mode
    - QueuePool with no overflow, pre-ping to detect stale connections

    Safe to call repeatedly: tables and indexes are created only when
    absent, migrations only add columns, and seeding only happens when
    the notebooks table is empty.
    """
    engine = create_engine(
        db_url,
        poolclass=QueuePool,
        pool_size=pool_size,
        max_overflow=0,
        pool_timeout=pool_timeout,
        pool_pre_ping=True,
        # Pooled connections are handed to whichever thread checks them out
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.close()
        # SQLite's lower() folds ASCII only; search needs full Unicode folding
        dbapi_connection.create_function(
            UNICODE_LOWER_FUNCTION, 1, unicode_lower, deterministic=True
        )

    Base.metadata.create_all(engine)

    # Run migrations for schema updates
    _migrate_add_missing_columns(engine)

    if seed:
        seed_default_data(engine)

    return engine


def _migrate_add_missing_columns(engine) -> int:
    """Migration: add declared columns that an older database lacks.

    SQLite doesn't support IF NOT EXISTS for ADD COLUMN, so we check
    the schema first. Only nullable columns or columns with a server
    default can be added; nothing is ever dropped.

    Returns:
        Number of columns added.
    """
    added = 0
    with engine.connect() as conn:
        # Inspect through the open connection; the pool may hold only one
        inspector = inspect(conn)
        for table in Base.metadata.sorted_tables:
            existing = {col["name"] for col in inspector.get_columns(table.name)}
            for column in table.columns:
                if column.name in existing:
                    continue
                if not column.nullable and column.server_default is None:
                    logger.warning(
                        f"Cannot add NOT NULL column {table.name}.{column.name} "
                        "without a default; skipping"
                    )
                    continue
                ddl = (
                    f"ALTER TABLE {table.name} ADD COLUMN {column.name} "
                    f"{column.type.compile(dialect=engine.dialect)}"
                )
                if not column.nullable:
                    ddl += " NOT NULL"
                if column.server_default is not None:
                    ddl += f" DEFAULT {column.server_default.arg.text}"
                conn.execute(text(ddl))
                logger.info(f"Added column {table.name}.{column.name}")
                added += 1
        conn.commit()

    # Indexes are only emitted by create_all together with a new table
    for table in Base.metadata.sorted_tables:
        for index in table.indexes:
            index.create(engine, checkfirst=True)
    return added


def seed_default_data(engine) -> bool:
    """Insert the Inbox notebook and starter notes into an empty database.

    Returns:
        True if the seed was written, False if notebooks already existed.
    """
    with engine.begin() as conn:
        count = conn.execute(select(func.count()).select_from(DBNotebook)).scalar()
        if count:
            return False

        now = utc_now()
        conn.execute(
            DBNotebook.__table__.insert(),
            [{**nb, "created_at": now} for nb in SEED_NOTEBOOKS],
        )
        conn.execute(
            DBNote.__table__.insert(),
            [
                {**note, "priority": 0, "date": None, "created_at": now, "updated_at": now}
                for note in SEED_NOTES
            ],
        )
        conn.execute(DBTag.__table__.insert(), SEED_TAGS)
        conn.execute(note_tags.insert(), SEED_NOTE_TAGS)

    logger.info(
        f"Seeded default data: {len(SEED_NOTEBOOKS)} notebooks, {len(SEED_NOTES)} notes"
    )
    return True


def get_session_factory(engine):
    """Get a session factory for the database."""
    return sessionmaker(bind=engine)
