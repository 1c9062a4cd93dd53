from __future__ import annotations

from enum import Enum
from typing import Optional, Union

from .errors import InvalidUrlError
from .log import get_logger
from .origin import UrlLike
from .whitelist import WhitelistStore

logger = get_logger(__name__)


class ContentKind(str, Enum):
    DOCUMENT = "document"
    STYLESHEET = "stylesheet"
    IMAGE = "image"
    MEDIA = "media"
    FONT = "font"
    SCRIPT = "script"
    TEXTTRACK = "texttrack"
    XHR = "xhr"
    FETCH = "fetch"
    EVENTSOURCE = "eventsource"
    WEBSOCKET = "websocket"
    MANIFEST = "manifest"
    OTHER = "other"

    @classmethod
    def coerce(cls, value: Union["ContentKind", str, None]) -> "ContentKind":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.OTHER


class Decision(str, Enum):
    ALLOW = "allow"
    REJECT = "reject"


class PolicyDecider:
    """Gate script loads on the whitelist; every other load passes."""

    def __init__(self, store: Optional[WhitelistStore]) -> None:
        self.store = store

    def decide(self, content_kind: Union[ContentKind, str], url: UrlLike) -> Decision:
        if ContentKind.coerce(content_kind) is not ContentKind.SCRIPT:
            return Decision.ALLOW
        if self.store is None:
            logger.warning("No whitelist available, rejecting script: %s", url)
            return Decision.REJECT
        try:
            allowed = self.store.allows(url)
        except InvalidUrlError as exc:
            logger.info("Rejecting script with invalid URL: %s", exc)
            return Decision.REJECT
        except Exception:
            logger.exception("Whitelist lookup failed, rejecting script: %s", url)
            return Decision.REJECT
        if allowed:
            return Decision.ALLOW
        logger.info("Rejected script: %s", url)
        return Decision.REJECT
