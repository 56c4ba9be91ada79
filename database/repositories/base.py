from typing import Any, List, TypeVar

from sqlalchemy import Select
from sqlalchemy.orm import Session

T = TypeVar("T")


class BaseRepository:
    """Repository over a Session owned by the caller's unit of work."""

    def __init__(self, db: Session):
        self.db = db

    def _add(self, record: T) -> T:
        self.db.add(record)
        self.db.flush()
        return record

    def _all(self, stmt: Select) -> List[Any]:
        return list(self.db.execute(stmt).scalars().all())

    def _page(self, stmt: Select, page: int, page_size: int) -> List[Any]:
        """One 1-based page of an ordered statement."""
        return self._all(stmt.offset(max(0, page - 1) * page_size).limit(page_size))
