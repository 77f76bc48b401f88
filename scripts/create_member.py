"""
Create or reset a CMS member and print its API key.

Usage:
  python scripts/create_member.py --member-id editor --permission CMS_ACCESS_CMSMain
  python scripts/create_member.py --member-id admin --permission ADMIN --reset
"""

from __future__ import annotations

import argparse

from app.auth.members import get_member_store
from cms.pages.permissions import Permission


def main() -> int:
    parser = argparse.ArgumentParser(description="Create or reset a CMS member")
    parser.add_argument("--member-id", default="local_dev", help="Member ID")
    parser.add_argument("--email", default=None, help="Member email address")
    parser.add_argument("--first-name", default=None)
    parser.add_argument("--surname", default=None)
    parser.add_argument(
        "--permission",
        action="append",
        default=[],
        choices=[p.value for p in Permission],
        help="Permission code to grant (repeatable)",
    )
    parser.add_argument(
        "--group",
        action="append",
        default=[],
        help="Group the member belongs to (repeatable)",
    )
    parser.add_argument(
        "--reset",
        action="store_true",
        help="Replace an existing member and issue a new key",
    )
    args = parser.parse_args()

    store = get_member_store()
    if store.get_member(args.member_id) is not None and not args.reset:
        print(
            "Member already exists. "
            "Use --reset to replace it and issue a new key."
        )
        return 1

    key = store.create_member(
        args.member_id,
        email=args.email,
        first_name=args.first_name,
        surname=args.surname,
        groups=args.group,
        permissions=args.permission,
    )
    print(key)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
