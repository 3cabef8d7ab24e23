"""Repository for the notebook hierarchy."""
import logging
from typing import Dict, List, Optional

from sqlalchemy import delete, func, select, update

from nexus_notes.exceptions import ErrorCode, ValidationError
from nexus_notes.models.db_models import DBNotebook
from nexus_notes.models.schema import (
    Notebook,
    NotebookNode,
    ensure_timezone_aware,
    is_blank,
    new_id,
    utc_now,
)
from nexus_notes.storage.base import Repository

logger = logging.getLogger(__name__)


def _require_title(title: Optional[str]) -> None:
    if is_blank(title):
        raise ValidationError(
            "Notebook title cannot be empty.",
            field="title",
            code=ErrorCode.NOTEBOOK_TITLE_REQUIRED,
        )


def notebook_from_db(db_notebook: DBNotebook) -> Notebook:
    """Convert DBNotebook to Notebook model."""
    return Notebook(
        id=db_notebook.id,
        parent_id=db_notebook.parent_id,
        title=db_notebook.title,
        icon=db_notebook.icon,
        sort_order=db_notebook.sort_order,
        created_at=ensure_timezone_aware(db_notebook.created_at),
    )


class NotebookRepository(Repository):
    """Repository for notebook storage and retrieval.

    Notebooks form a tree through ``parent_id``. Deleting a notebook relies
    on ON DELETE CASCADE to remove child notebooks, their notes and the
    notes' tag associations.
    """

    def list(self) -> List[Notebook]:
        """Get all notebooks ordered by sort_order, then creation time."""
        with self.transaction("list_notebooks") as session:
            rows = session.scalars(
                select(DBNotebook).order_by(
                    DBNotebook.sort_order, DBNotebook.created_at
                )
            ).all()
            return [notebook_from_db(row) for row in rows]

    def get(self, id: str) -> Optional[Notebook]:
        """Get a notebook by ID, or None if it does not exist."""
        with self.transaction("get_notebook") as session:
            row = session.get(DBNotebook, id)
            return notebook_from_db(row) if row else None

    def create(
        self,
        title: str,
        parent_id: Optional[str] = None,
        icon: Optional[str] = None,
        id: Optional[str] = None,
    ) -> Notebook:
        """Create a notebook as the last child of ``parent_id``.

        Root notebooks are siblings of one another (``parent_id IS NULL``),
        so a new root is placed after the existing roots instead of always
        receiving sort_order 1. The first child of a notebook gets 1.

        Args:
            title: Notebook title, must not be blank.
            parent_id: Parent notebook ID, None for a root notebook.
            icon: Optional glyph or text.
            id: Explicit ID. A fresh one is generated when omitted.

        Returns:
            The notebook as persisted, with its assigned sort_order.

        Raises:
            ValidationError: If the title is blank.
            StorageError: If the parent does not exist or the ID is taken.
        """
        _require_title(title)
        notebook_id = id or new_id()

        with self.transaction("create_notebook", write=True) as session:
            if parent_id is None:
                siblings = DBNotebook.parent_id.is_(None)
            else:
                siblings = DBNotebook.parent_id == parent_id
            max_order = session.scalar(
                select(func.max(DBNotebook.sort_order)).where(siblings)
            )
            db_notebook = DBNotebook(
                id=notebook_id,
                parent_id=parent_id,
                title=title,
                icon=icon,
                sort_order=(max_order if max_order is not None else 0) + 1,
                created_at=utc_now(),
            )
            session.add(db_notebook)
            session.flush()
            session.refresh(db_notebook)
            notebook = notebook_from_db(db_notebook)

        logger.info(f"Created notebook: {notebook.id}")
        return notebook

    def rename(self, id: str, title: str) -> bool:
        """Rename a notebook.

        Returns:
            True if a notebook was renamed, False if ``id`` does not exist.
        """
        _require_title(title)
        with self.transaction("rename_notebook", write=True) as session:
            result = session.execute(
                update(DBNotebook).where(DBNotebook.id == id).values(title=title)
            )
            return result.rowcount > 0

    def delete(self, id: str) -> bool:
        """Delete a notebook with its descendants and their notes.

        Returns:
            True if a notebook was deleted, False if ``id`` does not exist.
        """
        with self.transaction("delete_notebook", write=True) as session:
            result = session.execute(delete(DBNotebook).where(DBNotebook.id == id))
            deleted = result.rowcount > 0
        if deleted:
            logger.info(f"Deleted notebook: {id}")
        return deleted

    def move(self, id: str, new_parent_id: Optional[str] = None) -> bool:
        """Reparent a notebook. sort_order is left untouched.

        Raises:
            ValidationError: If the move would put the notebook under itself
                or one of its descendants.
            StorageError: If ``new_parent_id`` does not exist.

        Returns:
            True if a notebook was moved, False if ``id`` does not exist.
        """
        with self.transaction("move_notebook", write=True) as session:
            if new_parent_id is not None:
                self._check_not_descendant(session, id, new_parent_id)
            result = session.execute(
                update(DBNotebook)
                .where(DBNotebook.id == id)
                .values(parent_id=new_parent_id)
            )
            return result.rowcount > 0

    def tree(self) -> List[NotebookNode]:
        """Get notebooks as nested nodes, roots first, siblings in list() order.

        Notebooks whose parent is missing are returned as roots.
        """
        notebooks = self.list()
        nodes: Dict[str, NotebookNode] = {
            nb.id: NotebookNode(notebook=nb) for nb in notebooks
        }
        roots = []
        for nb in notebooks:
            if nb.parent_id and nb.parent_id in nodes:
                nodes[nb.parent_id].children.append(nodes[nb.id])
            else:
                roots.append(nodes[nb.id])
        return roots

    @staticmethod
    def _check_not_descendant(session, id: str, new_parent_id: str) -> None:
        """Walk up from the new parent; meeting ``id`` means a cycle."""
        visited = set()
        current: Optional[str] = new_parent_id
        while current is not None and current not in visited:
            if current == id:
                raise ValidationError(
                    f"Moving notebook '{id}' under '{new_parent_id}' would create a cycle",
                    field="new_parent_id",
                    value=new_parent_id,
                    code=ErrorCode.NOTEBOOK_CYCLE,
                )
            visited.add(current)
            current = session.scalar(
                select(DBNotebook.parent_id).where(DBNotebook.id == current)
            )

