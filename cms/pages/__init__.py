"""Versioned pages: storage, comparison, permissions and history."""

from .diff import compare_html, compare_versions, order_version_pair
from .permissions import Permission, PermissionDenied, can_view, check_permission
from .storage import (
    BasePageStore,
    InMemoryPageStore,
    PageNotFoundError,
    PageStore,
    PageStoreError,
    PostgresPageStore,
    RollbackConflictError,
    VersionNotFoundError,
    get_page_store,
)

__all__ = [
    "compare_html",
    "compare_versions",
    "order_version_pair",
    "Permission",
    "PermissionDenied",
    "can_view",
    "check_permission",
    "BasePageStore",
    "InMemoryPageStore",
    "PostgresPageStore",
    "PageStore",
    "PageStoreError",
    "PageNotFoundError",
    "VersionNotFoundError",
    "RollbackConflictError",
    "get_page_store",
]
