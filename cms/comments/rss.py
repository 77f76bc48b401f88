"""
RSS 2.0 feed of page comments.
"""

from email.utils import format_datetime
from typing import Dict, List, Optional
from xml.etree import ElementTree as ET

from cms.types.comment import PageComment
from cms.types.page import Page


def build_comment_feed(
    comments: List[PageComment],
    pages: Dict[int, Page],
    site_title: str,
    base_url: str,
    page: Optional[Page] = None,
) -> str:
    """
    Build an RSS 2.0 document.

    Args:
        comments: Comments to include, newest first.
        pages: Pages the comments belong to, keyed by ID.
        site_title: Channel title prefix.
        base_url: Absolute site URL with a trailing slash.
        page: Restrict the channel to this page.

    Returns:
        The XML document as a string.
    """
    rss = ET.Element("rss", version="2.0")
    channel = ET.SubElement(rss, "channel")

    if page is not None:
        ET.SubElement(channel, "title").text = f"{site_title}: comments on {page.title}"
        ET.SubElement(channel, "link").text = f"{base_url}pages/{page.id}"
        ET.SubElement(channel, "description").text = f"Page comments on {page.title}"
    else:
        ET.SubElement(channel, "title").text = f"{site_title}: page comments"
        ET.SubElement(channel, "link").text = base_url
        ET.SubElement(channel, "description").text = "Page comments"

    for comment in comments:
        parent = pages.get(comment.parent_id)
        link = f"{base_url}pages/{comment.parent_id}#PageComment_{comment.id}"

        item = ET.SubElement(channel, "item")
        title = f"Comment by {comment.name}"
        if parent is not None:
            title += f" on {parent.title}"
        ET.SubElement(item, "title").text = title
        ET.SubElement(item, "link").text = link
        ET.SubElement(item, "description").text = comment.comment
        ET.SubElement(item, "guid", isPermaLink="true").text = link
        if comment.created is not None:
            ET.SubElement(item, "pubDate").text = format_datetime(comment.created)

    return ET.tostring(rss, encoding="unicode", xml_declaration=True)
