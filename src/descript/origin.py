from __future__ import annotations

from typing import NamedTuple, Optional, Union
from urllib.parse import SplitResult, urlsplit

from .errors import InvalidUrlError

# Iteration order here is the serialization order of the whitelist.
RECOGNIZED_SCHEMES = ("https", "http", "file")
HOST_SCHEMES = ("https", "http")

UrlLike = Union[str, SplitResult]


class Origin(NamedTuple):
    scheme: str
    host: str

    def render(self) -> str:
        return render_origin(self)


def parse_url(url: UrlLike) -> SplitResult:
    if isinstance(url, SplitResult):
        return url
    if not isinstance(url, str):
        raise InvalidUrlError(url, "URL must be a string")
    text = url.strip()
    if not text:
        raise InvalidUrlError(url, "empty URL")
    if any(ch.isspace() for ch in text):
        raise InvalidUrlError(url, "URL contains whitespace")
    try:
        parsed = urlsplit(text)
    except ValueError as exc:
        raise InvalidUrlError(url, f"malformed URL ({exc})") from exc
    if not parsed.scheme:
        raise InvalidUrlError(url, "missing scheme")
    if parsed.scheme in HOST_SCHEMES:
        if not parsed.hostname:
            raise InvalidUrlError(url, "missing host")
        try:
            parsed.port
        except ValueError as exc:
            raise InvalidUrlError(url, "invalid port") from exc
    return parsed


def is_matchable(url: UrlLike) -> bool:
    return parse_url(url).scheme in RECOGNIZED_SCHEMES


def normalize_host(scheme: str, host: Optional[str]) -> str:
    # All local files share one bucket.
    if scheme == "file":
        return ""
    return (host or "").lower()


def host_key(url: UrlLike) -> Origin:
    """Return the (scheme, host) identity of ``url``.

    Port, path, query, fragment and user-info are discarded. Raises
    InvalidUrlError for URLs whose scheme the policy does not restrict.
    """
    parsed = parse_url(url)
    if parsed.scheme not in RECOGNIZED_SCHEMES:
        raise InvalidUrlError(url, f"scheme not matchable: {parsed.scheme}")
    return Origin(parsed.scheme, normalize_host(parsed.scheme, parsed.hostname))


def render_origin(origin: Origin) -> str:
    host = origin.host
    if ":" in host:
        host = f"[{host}]"
    return f"{origin.scheme}://{host}/"
