"""
Page comment interface: listing, the post form and the post flow.

Posting runs the spam checks in order: Akismet, then the math question, then
the comment is saved.
"""

import html
import logging
from typing import Optional

from pydantic import BaseModel, Field

from cms.comments.spam import AkismetClient, AkismetError, MathSpamProtection
from cms.comments.storage import BaseCommentStore
from cms.config import get_settings
from cms.forms import FieldType, Form, FormAction, FormField
from cms.templating import render_template
from cms.types.comment import CommentSubmission, PageComment, PaginatedComments
from cms.types.page import Page

logger = logging.getLogger(__name__)

REMEMBERED_NAME_COOKIE = "PageCommentInterface_Name"
PAGINATION_GET_VAR = "commentStart"

WRONG_ANSWER_HTML = (
    "<div class='BlogError'><p>You got the spam protection question wrong.</p></div>"
)


class CommentContext(BaseModel):
    """Details of the request posting a comment."""

    is_ajax: bool = False
    user_ip: Optional[str] = None
    user_agent: Optional[str] = None
    referrer: Optional[str] = None


class CommentOutcome(BaseModel):
    """
    Result of posting a comment.

    Either ``html`` is set (the response body) or ``redirect_back`` is True.
    """

    status: str = Field(..., description="spam, wrong_answer or saved")
    html: Optional[str] = None
    redirect_back: bool = False
    comment: Optional[PageComment] = None
    remember_name: Optional[str] = None


def parse_comment_start(value: Optional[str]) -> int:
    """Offset from the commentStart query variable; anything non-numeric is 0."""
    try:
        return max(int(value), 0) if value is not None else 0
    except (TypeError, ValueError):
        return 0


def obfuscate_email(email: str) -> str:
    return email.replace("@", " _(at)_")


class PageCommentInterface:
    """Comment listing and posting for one page."""

    def __init__(
        self,
        page: Page,
        store: BaseCommentStore,
        method_name: str = "PageComments",
        math: Optional[MathSpamProtection] = None,
        akismet: Optional[AkismetClient] = None,
    ):
        self.page = page
        self.store = store
        self.method_name = method_name
        self.math = math or MathSpamProtection()
        self.akismet = akismet or AkismetClient()

    def page_link(self) -> str:
        return f"/pages/{self.page.id}"

    def comment_rss_link(self) -> str:
        return f"{get_settings().site.absolute_base_url}PageComment/rss?pageid={self.page.id}"

    async def comments(
        self,
        comment_start: Optional[str] = None,
        show_spam: bool = False,
    ) -> PaginatedComments:
        """One page of comments on the page, newest first."""
        page_length = get_settings().comments.comments_per_page
        start = parse_comment_start(comment_start)

        items, total = await self.store.list_comments(
            self.page.id,
            start=start,
            limit=page_length,
            include_spam=show_spam,
        )
        return PaginatedComments(
            items=items,
            start=start,
            page_length=page_length,
            total=total,
            pagination_get_var=PAGINATION_GET_VAR,
        )

    def post_comment_form(self, remembered_name: Optional[str] = None) -> Form:
        """Form for posting a new comment, name prefilled from the cookie."""
        fields = [
            FormField(name="ParentID", title="ParentID", field_type=FieldType.HIDDEN,
                      value=self.page.id),
            FormField(name="Name", title="Your name"),
        ]
        if self.math.is_enabled:
            question, token = self.math.new_question()
            fields.append(FormField(name="Math", title=f"Spam protection question: {question}"))
            fields.append(FormField(name="MathToken", field_type=FieldType.HIDDEN, value=token))
        fields.append(FormField(name="Comment", title="Comments", field_type=FieldType.TEXTAREA))

        form = Form(
            name=f"{self.method_name}.PostCommentForm",
            fields=fields,
            actions=[FormAction(name="postcomment", title="Post")],
            form_action="/PageComment/postcomment",
        )
        form.load_data_from({"Name": remembered_name})
        return form

    async def render(
        self,
        comment_start: Optional[str] = None,
        show_spam: bool = False,
        remembered_name: Optional[str] = None,
    ) -> str:
        """HTML of the comment listing with the post form."""
        return render_template(
            "comments/interface.html",
            page=self.page,
            comments=await self.comments(comment_start, show_spam),
            form=self.post_comment_form(remembered_name),
            rss_link=self.comment_rss_link(),
            page_link=self.page_link(),
        )

    async def _is_spam(self, data: CommentSubmission, context: CommentContext) -> bool:
        if not self.akismet.is_enabled:
            return False
        try:
            return await self.akismet.is_comment_spam(
                author=data.name,
                content=data.comment,
                user_ip=context.user_ip,
                user_agent=context.user_agent,
                referrer=context.referrer,
                permalink=get_settings().site.absolute_base_url + self.page_link().lstrip("/"),
            )
        except AkismetError as e:
            logger.warning(f"Akismet check failed, continuing without spam check: {e}")
            return False
        except Exception:
            logger.exception("Akismet check raised, continuing without spam check")
            return False

    async def post_comment(self, data: CommentSubmission, context: CommentContext) -> CommentOutcome:
        """
        Handle a posted comment.

        Args:
            data: Validated form submission.
            context: Request details used for spam checks and the response.

        Returns:
            What to answer the visitor with.
        """
        settings = get_settings()

        if await self._is_spam(data, context):
            saved = None
            if self.akismet.save_spam:
                saved = await self.store.add_comment(PageComment(
                    parent_id=self.page.id,
                    name=data.name,
                    comment=data.comment,
                    is_spam=True,
                ))
            logger.info(f"Comment on page {self.page.id} classified as spam")
            body = render_template(
                "comments/spam_detected.html",
                admin_email=obfuscate_email(settings.site.admin_email),
                comment=html.escape(data.comment),
            )
            return CommentOutcome(status="spam", html=body, comment=saved)

        if self.math.is_enabled and not self.math.correct_answer(data.math, data.math_token):
            logger.info(f"Wrong spam protection answer for page {self.page.id}")
            if context.is_ajax:
                return CommentOutcome(status="wrong_answer", html=WRONG_ANSWER_HTML)
            return CommentOutcome(status="wrong_answer", redirect_back=True)

        comment = await self.store.add_comment(PageComment(
            parent_id=self.page.id,
            name=data.name,
            comment=data.comment,
            is_spam=False,
            needs_moderation=settings.comments.comments_moderation_enabled,
        ))

        outcome = CommentOutcome(status="saved", comment=comment, remember_name=data.name)
        if context.is_ajax:
            outcome.html = render_template("comments/single_comment.html", comment=comment)
        else:
            outcome.redirect_back = True
        return outcome
