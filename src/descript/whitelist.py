from __future__ import annotations

import re
import threading
from typing import Optional

from .errors import InvalidUrlError
from .log import get_logger
from .origin import (
    RECOGNIZED_SCHEMES,
    Origin,
    UrlLike,
    host_key,
    is_matchable,
    normalize_host,
    parse_url,
)

logger = get_logger(__name__)

_TOKEN_RE = re.compile(r"\S+")

# scheme -> hosts, dict keys used as an insertion-ordered set
Snapshot = dict[str, dict[str, None]]


def _empty_snapshot() -> Snapshot:
    return {scheme: {} for scheme in RECOGNIZED_SCHEMES}


class WhitelistStore:
    """Allowed origins grouped by scheme; writers swap in a new snapshot."""

    def __init__(self, preference: Optional[str] = None) -> None:
        self._lock = threading.Lock()
        self._snapshot: Snapshot = _empty_snapshot()
        if preference:
            self.load_preference(preference)

    def __len__(self) -> int:
        return sum(len(hosts) for hosts in self._snapshot.values())

    def __contains__(self, url: object) -> bool:
        if not isinstance(url, str):
            return False
        try:
            origin = host_key(url)
        except InvalidUrlError:
            return False
        return self.contains(origin.scheme, origin.host)

    def contains(self, scheme: str, host: str) -> bool:
        hosts = self._snapshot.get(scheme)
        if hosts is None:
            return False
        return normalize_host(scheme, host) in hosts

    def matchable(self, url: UrlLike) -> bool:
        return is_matchable(url)

    def allows(self, url: UrlLike) -> bool:
        parsed = parse_url(url)
        if not is_matchable(parsed):
            return True
        origin = host_key(parsed)
        return self.contains(origin.scheme, origin.host)

    def add(self, url: UrlLike) -> bool:
        """Add the origin of ``url``; returns True if the store changed."""
        parsed = parse_url(url)
        if not is_matchable(parsed):
            logger.debug("Ignoring non-matchable URL: %s", parsed.geturl())
            return False
        origin = host_key(parsed)
        with self._lock:
            hosts = self._snapshot[origin.scheme]
            if origin.host in hosts:
                return False
            updated = dict(hosts)
            updated[origin.host] = None
            self._snapshot = {**self._snapshot, origin.scheme: updated}
        logger.debug("Whitelisted %s", origin.render())
        return True

    def remove(self, url: UrlLike) -> bool:
        parsed = parse_url(url)
        if not is_matchable(parsed):
            return False
        origin = host_key(parsed)
        with self._lock:
            hosts = self._snapshot[origin.scheme]
            if origin.host not in hosts:
                return False
            updated = dict(hosts)
            del updated[origin.host]
            self._snapshot = {**self._snapshot, origin.scheme: updated}
        logger.debug("Removed %s from whitelist", origin.render())
        return True

    def clear(self) -> None:
        with self._lock:
            self._snapshot = _empty_snapshot()

    def load_preference(self, text: Optional[str]) -> None:
        snapshot = _empty_snapshot()
        for token in _TOKEN_RE.findall(text or ""):
            try:
                parsed = parse_url(token)
            except InvalidUrlError as exc:
                logger.warning("Skipping whitelist entry: %s", exc)
                continue
            if not is_matchable(parsed):
                logger.debug("Ignoring non-matchable whitelist entry: %s", token)
                continue
            origin = host_key(parsed)
            snapshot[origin.scheme][origin.host] = None
        with self._lock:
            self._snapshot = snapshot
        logger.debug("Loaded %d whitelist entries", len(self))

    def origins(self) -> list[Origin]:
        snapshot = self._snapshot
        return [
            Origin(scheme, host)
            for scheme in RECOGNIZED_SCHEMES
            for host in snapshot[scheme]
        ]

    def get_preference(self) -> str:
        return " ".join(origin.render() for origin in self.origins())
