"""
Page comment storage.

Production: Postgres via asyncpg helpers in `cms.db`.
Dev/test: in-memory fallback when the database is not configured.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from cms.db import execute as db_execute
from cms.db import fetch as db_fetch
from cms.db import fetchrow as db_fetchrow
from cms.db import fetchval as db_fetchval
from cms.db import is_database_configured
from cms.types.comment import PageComment

logger = logging.getLogger(__name__)


class BaseCommentStore(ABC):
    """Abstract base class for comment stores."""

    @abstractmethod
    async def add_comment(self, comment: PageComment) -> PageComment:
        """Save a new comment and return it with its ID and creation time."""

    @abstractmethod
    async def get_comment(self, comment_id: int) -> Optional[PageComment]:
        """Return a comment by ID, or None."""

    @abstractmethod
    async def list_comments(
        self,
        page_id: int,
        start: int = 0,
        limit: int = 10,
        include_spam: bool = False,
    ) -> Tuple[List[PageComment], int]:
        """
        Return one page of comments, newest first, and the total count.
        """

    @abstractmethod
    async def feed_comments(
        self, page_id: Optional[int] = None, limit: int = 10, start: int = 0
    ) -> List[PageComment]:
        """Newest comments that are neither spam nor awaiting moderation."""

    @abstractmethod
    async def set_moderation(self, comment_id: int, needs_moderation: bool) -> bool:
        """Approve or hold a comment. Returns False if it does not exist."""


class InMemoryCommentStore(BaseCommentStore):
    """In-memory comment store for development and testing."""

    def __init__(self) -> None:
        self._comments: List[PageComment] = []
        self._next_id = 1
        logger.info("Initialized in-memory comment store")

    def _newest_first(self, comments: List[PageComment]) -> List[PageComment]:
        return sorted(comments, key=lambda c: (c.created, c.id), reverse=True)

    async def add_comment(self, comment: PageComment) -> PageComment:
        saved = comment.model_copy(update={
            "id": self._next_id,
            "created": comment.created or datetime.now(timezone.utc),
        })
        self._next_id += 1
        self._comments.append(saved)
        logger.info(f"Saved comment {saved.id} on page {saved.parent_id} (spam={saved.is_spam})")
        return saved.model_copy()

    async def get_comment(self, comment_id: int) -> Optional[PageComment]:
        for comment in self._comments:
            if comment.id == comment_id:
                return comment.model_copy()
        return None

    async def list_comments(
        self,
        page_id: int,
        start: int = 0,
        limit: int = 10,
        include_spam: bool = False,
    ) -> Tuple[List[PageComment], int]:
        matching = [
            c for c in self._comments
            if c.parent_id == page_id and (include_spam or not c.is_spam)
        ]
        ordered = self._newest_first(matching)
        return [c.model_copy() for c in ordered[start:start + limit]], len(matching)

    async def feed_comments(
        self, page_id: Optional[int] = None, limit: int = 10, start: int = 0
    ) -> List[PageComment]:
        matching = [
            c for c in self._comments
            if not c.is_spam
            and not c.needs_moderation
            and (page_id is None or c.parent_id == page_id)
        ]
        return [c.model_copy() for c in self._newest_first(matching)[start:start + limit]]

    async def set_moderation(self, comment_id: int, needs_moderation: bool) -> bool:
        for comment in self._comments:
            if comment.id == comment_id:
                comment.needs_moderation = needs_moderation
                return True
        return False


class PostgresCommentStore(BaseCommentStore):
    """Postgres-backed comment store for production."""

    def __init__(self) -> None:
        logger.info("Initialized Postgres comment store")

    @staticmethod
    def _from_row(row) -> PageComment:
        return PageComment(
            id=row["id"],
            parent_id=row["parent_id"],
            name=row["name"],
            comment=row["comment"],
            is_spam=row["is_spam"],
            needs_moderation=row["needs_moderation"],
            created=row["created"],
        )

    async def add_comment(self, comment: PageComment) -> PageComment:
        row = await db_fetchrow(
            """
            INSERT INTO page_comments (parent_id, name, comment, is_spam, needs_moderation)
            VALUES ($1, $2, $3, $4, $5)
            RETURNING *
            """,
            comment.parent_id,
            comment.name,
            comment.comment,
            comment.is_spam,
            comment.needs_moderation,
        )
        if not row:
            raise RuntimeError("Failed to insert comment")
        saved = self._from_row(row)
        logger.info(f"Saved comment {saved.id} on page {saved.parent_id} (spam={saved.is_spam})")
        return saved

    async def get_comment(self, comment_id: int) -> Optional[PageComment]:
        row = await db_fetchrow("SELECT * FROM page_comments WHERE id = $1", comment_id)
        return self._from_row(row) if row else None

    async def list_comments(
        self,
        page_id: int,
        start: int = 0,
        limit: int = 10,
        include_spam: bool = False,
    ) -> Tuple[List[PageComment], int]:
        rows = await db_fetch(
            """
            SELECT *
              FROM page_comments
             WHERE parent_id = $1
               AND ($2 OR is_spam = FALSE)
             ORDER BY created DESC, id DESC
             LIMIT $3 OFFSET $4
            """,
            page_id,
            include_spam,
            limit,
            start,
        )
        total = await db_fetchval(
            """
            SELECT COUNT(*)
              FROM page_comments
             WHERE parent_id = $1
               AND ($2 OR is_spam = FALSE)
            """,
            page_id,
            include_spam,
        )
        return [self._from_row(row) for row in rows], int(total or 0)

    async def feed_comments(
        self, page_id: Optional[int] = None, limit: int = 10, start: int = 0
    ) -> List[PageComment]:
        rows = await db_fetch(
            """
            SELECT *
              FROM page_comments
             WHERE is_spam = FALSE
               AND needs_moderation = FALSE
               AND ($1::INTEGER IS NULL OR parent_id = $1)
             ORDER BY created DESC, id DESC
             LIMIT $2 OFFSET $3
            """,
            page_id,
            limit,
            start,
        )
        return [self._from_row(row) for row in rows]

    async def set_moderation(self, comment_id: int, needs_moderation: bool) -> bool:
        result = await db_execute(
            "UPDATE page_comments SET needs_moderation = $2 WHERE id = $1",
            comment_id,
            needs_moderation,
        )
        return (result or "").endswith(" 1")


class CommentStore:
    """Store factory (Postgres when configured, otherwise in-memory)."""

    _instance: Optional[BaseCommentStore] = None

    @classmethod
    def get_store(cls) -> BaseCommentStore:
        if cls._instance is not None:
            return cls._instance

        if is_database_configured():
            cls._instance = PostgresCommentStore()
            logger.info("Using Postgres storage for comments")
        else:
            cls._instance = InMemoryCommentStore()
            logger.info("DATABASE_URL not configured. Using in-memory comment storage")

        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset the store instance. Useful for testing."""
        cls._instance = None


def get_comment_store() -> BaseCommentStore:
    """Get the comment store instance."""
    return CommentStore.get_store()
