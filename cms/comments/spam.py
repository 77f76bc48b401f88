"""
Spam protection for page comments.

- MathSpamProtection: a simple "What is x plus y?" question. The operands
  travel with the form in a signed, expiring token so no server-side session
  is needed.
- AkismetClient: asks the Akismet service whether a comment is spam.
"""

import base64
import hashlib
import hmac
import logging
import random
import time
from typing import Optional, Tuple

import httpx

from cms.config import get_settings

logger = logging.getLogger(__name__)

NUMBER_WORDS = (
    "zero", "one", "two", "three", "four", "five", "six", "seven", "eight",
    "nine", "ten", "eleven", "twelve", "thirteen", "fourteen", "fifteen",
    "sixteen", "seventeen", "eighteen",
)

AKISMET_COMMENT_CHECK_URL = "https://{key}.rest.akismet.com/1.1/comment-check"


class MathSpamProtection:
    """
    Math question spam protection.

    Tokens have the form ``<payload>.<signature>`` where the payload is the
    base64url encoding of ``a:b:expires``.
    """

    def __init__(
        self,
        secret: Optional[str] = None,
        enabled: Optional[bool] = None,
        ttl_seconds: Optional[int] = None,
    ):
        comment_settings = get_settings().comments
        self._secret = secret or comment_settings.math_spam_secret.get_secret_value()
        self._enabled = (
            comment_settings.math_spam_protection_enabled if enabled is None else enabled
        )
        self._ttl = ttl_seconds or comment_settings.math_spam_token_ttl

    @property
    def is_enabled(self) -> bool:
        return self._enabled

    @staticmethod
    def digit_to_word(num: int) -> str:
        """
        Spell out a number between 0 and 18.

        Negative numbers are prefixed with "minus". Numbers above eighteen are
        returned as digits.
        """
        if num < 0:
            return "minus " + MathSpamProtection.digit_to_word(-num)
        if num < len(NUMBER_WORDS):
            return NUMBER_WORDS[num]
        return str(num)

    def _sign(self, payload: str) -> str:
        return hmac.new(
            self._secret.encode(),
            payload.encode(),
            hashlib.sha256,
        ).hexdigest()

    def make_token(self, a: int, b: int, now: Optional[float] = None) -> str:
        expires = int((now if now is not None else time.time()) + self._ttl)
        raw = f"{a}:{b}:{expires}"
        payload = base64.urlsafe_b64encode(raw.encode()).decode().rstrip("=")
        return f"{payload}.{self._sign(payload)}"

    def read_token(self, token: Optional[str], now: Optional[float] = None) -> Optional[Tuple[int, int]]:
        """
        Verify a question token.

        Returns:
            The (a, b) operands, or None if the token is invalid or expired.
        """
        if not token:
            return None

        parts = token.rsplit(".", 1)
        if len(parts) != 2:
            return None
        payload, signature = parts

        if not hmac.compare_digest(signature, self._sign(payload)):
            logger.warning("Invalid math question token signature")
            return None

        padding = -len(payload) % 4
        try:
            raw = base64.urlsafe_b64decode(payload + "=" * padding).decode()
            a, b, expires = (int(part) for part in raw.split(":"))
        except ValueError:
            return None

        if (now if now is not None else time.time()) > expires:
            logger.debug("Math question token expired")
            return None

        return a, b

    def new_question(self) -> Tuple[str, str]:
        """
        Create a new question.

        Returns:
            Tuple of (question text, signed token).
        """
        a = random.randint(1, 9)
        b = random.randint(1, 9)
        question = f"What is {self.digit_to_word(a)} plus {self.digit_to_word(b)}?"
        return question, self.make_token(a, b)

    def correct_answer(self, answer: Optional[str], token: Optional[str]) -> bool:
        """Check an answer, given as digits or as the English word."""
        operands = self.read_token(token)
        if operands is None or answer is None:
            return False

        total = sum(operands)
        given = answer.strip().lower()
        return given == str(total) or given == self.digit_to_word(total)


class AkismetError(Exception):
    """Akismet could not classify the comment."""


class AkismetClient:
    """Client for the Akismet comment-check API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        blog_url: Optional[str] = None,
        save_spam: Optional[bool] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        configured_key = settings.akismet.akismet_api_key
        self._api_key = api_key or (configured_key.get_secret_value() if configured_key else None)
        self._blog_url = blog_url or settings.site.absolute_base_url
        self._save_spam = settings.akismet.akismet_save_spam if save_spam is None else save_spam
        self._timeout = timeout or settings.akismet.akismet_timeout
        self._transport = transport

    @property
    def is_enabled(self) -> bool:
        return bool(self._api_key)

    @property
    def save_spam(self) -> bool:
        """Whether comments classified as spam are kept (flagged) rather than dropped."""
        return self._save_spam

    async def is_comment_spam(
        self,
        author: str,
        content: str,
        user_ip: Optional[str] = None,
        user_agent: Optional[str] = None,
        referrer: Optional[str] = None,
        permalink: Optional[str] = None,
    ) -> bool:
        """
        Classify a comment.

        Returns:
            True if Akismet considers the comment spam.

        Raises:
            AkismetError: If Akismet is not configured, unreachable or gives
                an unexpected answer.
        """
        if not self.is_enabled:
            raise AkismetError("Akismet API key is not configured")

        data = {
            "blog": self._blog_url,
            "user_ip": user_ip or "",
            "user_agent": user_agent or "",
            "referrer": referrer or "",
            "permalink": permalink or "",
            "comment_type": "comment",
            "comment_author": author,
            "comment_content": content,
        }

        url = AKISMET_COMMENT_CHECK_URL.format(key=self._api_key)
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(url, data=data)
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise AkismetError(f"Akismet returned HTTP {e.response.status_code}") from e
        except httpx.TimeoutException as e:
            raise AkismetError("Akismet request timed out") from e
        except httpx.HTTPError as e:
            raise AkismetError(f"Akismet request failed: {e}") from e

        verdict = response.text.strip()
        if verdict == "true":
            return True
        if verdict == "false":
            return False

        debug = response.headers.get("X-akismet-debug-help", "")
        raise AkismetError(f"Unexpected Akismet response: {verdict!r} {debug}".strip())
