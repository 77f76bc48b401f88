"""
Word-level comparison of page versions.

Produces HTML markup where removed words are wrapped in ``<del>`` and added
words in ``<ins>``. Tags of the newer version pass through untouched so the
result still renders as the newer page.
"""

import difflib
import html
import re
from typing import Dict, List, Optional, Tuple

from cms.types.page import PageVersion

# Tags, whitespace runs, or words
TOKEN_PATTERN = re.compile(r"(<[^>]*>)|(\s+)|([^<\s]+)")

# Field name -> whether the value is HTML (not escaped before diffing)
COMPARED_FIELDS: Dict[str, bool] = {
    "title": False,
    "menu_title": False,
    "url_segment": False,
    "content": True,
    "meta_description": False,
}


def tokenize(value: str) -> List[str]:
    """Split markup into tag, whitespace and word tokens."""
    return [match.group(0) for match in TOKEN_PATTERN.finditer(value)]


def _is_tag(token: str) -> bool:
    return token.startswith("<") and token.endswith(">")


def _wrap(tokens: List[str], wrapper: str, keep_tags: bool) -> str:
    """
    Wrap runs of text tokens in ``<wrapper>``.

    Tags break runs; they are emitted as-is when ``keep_tags`` is set and
    dropped otherwise. Whitespace-only runs are emitted without a wrapper.
    """
    out: List[str] = []
    run: List[str] = []

    def flush() -> None:
        if not run:
            return
        text = "".join(run)
        if text.strip():
            out.append(f"<{wrapper}>{text}</{wrapper}>")
        else:
            out.append(text)
        run.clear()

    for token in tokens:
        if _is_tag(token):
            flush()
            if keep_tags:
                out.append(token)
        else:
            run.append(token)
    flush()
    return "".join(out)


def compare_html(
    from_html: Optional[str],
    to_html: Optional[str],
    escape: bool = False,
) -> str:
    """
    Compare two HTML (or plain text) values word by word.

    Args:
        from_html: Older value.
        to_html: Newer value.
        escape: HTML-escape both values first (for plain-text fields).

    Returns:
        Markup of the newer value with ``<ins>``/``<del>`` annotations.
    """
    old = from_html or ""
    new = to_html or ""
    if escape:
        old = html.escape(old, quote=False)
        new = html.escape(new, quote=False)

    old_tokens = tokenize(old)
    new_tokens = tokenize(new)

    matcher = difflib.SequenceMatcher(None, old_tokens, new_tokens, autojunk=False)
    parts: List[str] = []
    for op, i1, i2, j1, j2 in matcher.get_opcodes():
        if op == "equal":
            parts.append("".join(new_tokens[j1:j2]))
        elif op == "delete":
            parts.append(_wrap(old_tokens[i1:i2], "del", keep_tags=False))
        elif op == "insert":
            parts.append(_wrap(new_tokens[j1:j2], "ins", keep_tags=True))
        else:  # replace
            parts.append(_wrap(old_tokens[i1:i2], "del", keep_tags=False))
            parts.append(_wrap(new_tokens[j1:j2], "ins", keep_tags=True))

    return "".join(parts)


def compare_versions(from_version: PageVersion, to_version: PageVersion) -> Dict[str, str]:
    """
    Diff every comparable field between two versions of the same page.

    Returns:
        Mapping of field name to diff markup.
    """
    result: Dict[str, str] = {}
    for field_name, is_html in COMPARED_FIELDS.items():
        result[field_name] = compare_html(
            getattr(from_version, field_name),
            getattr(to_version, field_name),
            escape=not is_html,
        )
    return result


def order_version_pair(
    version_id: Optional[int],
    other_version_id: Optional[int],
) -> Optional[Tuple[int, int]]:
    """
    Order two version numbers as (from, to), the smaller one first.

    Returns:
        The ordered pair, or None when either number is missing or zero.
    """
    first = version_id or 0
    second = other_version_id or 0
    if first > second:
        to_version, from_version = first, second
    else:
        to_version, from_version = second, first

    if not to_version or not from_version:
        return None
    return from_version, to_version
