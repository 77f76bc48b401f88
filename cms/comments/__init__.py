"""Page comments with Akismet and math question spam protection."""

from .rss import build_comment_feed
from .service import (
    REMEMBERED_NAME_COOKIE,
    CommentContext,
    CommentOutcome,
    PageCommentInterface,
    parse_comment_start,
)
from .spam import AkismetClient, AkismetError, MathSpamProtection
from .storage import (
    BaseCommentStore,
    CommentStore,
    InMemoryCommentStore,
    PostgresCommentStore,
    get_comment_store,
)

__all__ = [
    "build_comment_feed",
    "REMEMBERED_NAME_COOKIE",
    "CommentContext",
    "CommentOutcome",
    "PageCommentInterface",
    "parse_comment_start",
    "AkismetClient",
    "AkismetError",
    "MathSpamProtection",
    "BaseCommentStore",
    "CommentStore",
    "InMemoryCommentStore",
    "PostgresCommentStore",
    "get_comment_store",
]
