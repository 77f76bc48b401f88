"""
Member authentication with API keys.

Members and the SHA-256 hashes of their API keys live in a JSON file. The
plain-text key is only returned once, when it is created.
"""

import hashlib
import json
import logging
import secrets
from pathlib import Path
from typing import Dict, List, Optional

from fastapi import Depends, Request
from fastapi.security import APIKeyHeader

from app.exceptions import AuthenticationError, ErrorCode
from cms.config import get_settings
from cms.pages.permissions import Permission
from cms.types.member import Member

logger = logging.getLogger(__name__)

API_KEY_HEADER = APIKeyHeader(name="X-API-Key", auto_error=False)

DEV_MEMBER = Member(
    id="dev_admin",
    email="admin@localhost",
    first_name="Development",
    surname="Administrator",
    groups=["administrators"],
    permissions=[Permission.ADMIN.value],
)


class MemberStore:
    """
    File-based member storage with hashed API keys.
    """

    def __init__(self, storage_path: Optional[str] = None):
        self.storage_path = Path(
            storage_path or get_settings().storage.member_storage_path
        )
        self.storage_path.parent.mkdir(parents=True, exist_ok=True)
        self._cache: Dict[str, Dict] = {}  # member_id -> record with key_hash
        self._load()
        logger.info(f"Member storage initialized at: {self.storage_path}")

    def _hash_key(self, api_key: str) -> str:
        return hashlib.sha256(api_key.encode()).hexdigest()

    def _load(self) -> None:
        if self.storage_path.exists():
            try:
                with open(self.storage_path, "r") as f:
                    self._cache = json.load(f)
                logger.info(f"Loaded {len(self._cache)} members from storage")
            except (json.JSONDecodeError, IOError) as e:
                logger.error(f"Error loading members: {e}")
                self._cache = {}
        else:
            self._cache = {}

    def _save(self) -> None:
        try:
            with open(self.storage_path, "w") as f:
                json.dump(self._cache, f, indent=2)
        except IOError as e:
            logger.error(f"Error saving members: {e}")

    def _to_member(self, member_id: str, record: Dict) -> Member:
        return Member(
            id=member_id,
            email=record.get("email"),
            first_name=record.get("first_name"),
            surname=record.get("surname"),
            groups=record.get("groups", []),
            permissions=record.get("permissions", []),
        )

    def create_member(
        self,
        member_id: str,
        email: Optional[str] = None,
        first_name: Optional[str] = None,
        surname: Optional[str] = None,
        groups: Optional[List[str]] = None,
        permissions: Optional[List[str]] = None,
    ) -> str:
        """
        Create (or replace) a member and issue a new API key.

        Returns:
            The plain-text key (only returned once - cannot be retrieved later).
        """
        plain_key = secrets.token_urlsafe(32)
        self._cache[member_id] = {
            "key_hash": self._hash_key(plain_key),
            "email": email,
            "first_name": first_name,
            "surname": surname,
            "groups": list(groups or []),
            "permissions": list(permissions or []),
        }
        self._save()
        logger.info(f"Created member: {member_id}")
        return plain_key

    def get_member(self, member_id: str) -> Optional[Member]:
        record = self._cache.get(member_id)
        return self._to_member(member_id, record) if record else None

    def verify_key(self, api_key: str) -> Optional[Member]:
        """
        Return the member owning an API key, or None.

        Uses constant-time comparison to prevent timing attacks.
        """
        hashed_input = self._hash_key(api_key)
        for member_id, record in self._cache.items():
            if secrets.compare_digest(record.get("key_hash", ""), hashed_input):
                return self._to_member(member_id, record)
        return None

    def revoke_member(self, member_id: str) -> bool:
        if member_id in self._cache:
            del self._cache[member_id]
            self._save()
            logger.info(f"Revoked member: {member_id}")
            return True
        return False


_member_store: Optional[MemberStore] = None


def get_member_store() -> MemberStore:
    global _member_store
    if _member_store is None:
        _member_store = MemberStore()
    return _member_store


def set_member_store(store: Optional[MemberStore]) -> None:
    """Replace the member store. Useful for testing."""
    global _member_store
    _member_store = store


async def get_optional_member(
    request: Request,
    api_key: Optional[str] = Depends(API_KEY_HEADER),
) -> Optional[Member]:
    """
    Resolve the member making the request, or None for anonymous visitors.

    In dev mode every request is made by the development administrator.

    Raises:
        AuthenticationError: If an API key is given but is not valid.
    """
    if get_settings().is_dev_mode:
        member = DEV_MEMBER
    elif not api_key:
        return None
    else:
        member = get_member_store().verify_key(api_key)
        if member is None:
            raise AuthenticationError("Invalid API key", error_code=ErrorCode.INVALID_API_KEY)

    request.state.member_id = member.id
    return member


async def get_current_member(
    member: Optional[Member] = Depends(get_optional_member),
) -> Member:
    """
    Require an authenticated member.

    Raises:
        AuthenticationError: If no API key was given.
    """
    if member is None:
        raise AuthenticationError("Missing API key")
    return member
