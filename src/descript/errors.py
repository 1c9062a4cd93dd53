from __future__ import annotations

from typing import Any


class DescriptError(Exception):
    pass


class InvalidUrlError(DescriptError, ValueError):
    def __init__(self, url: Any, reason: str = "invalid URL") -> None:
        self.url = url
        self.reason = reason
        super().__init__(f"{reason}: {url!r}")


class PolicyAlreadyActiveError(DescriptError):
    def __init__(self) -> None:
        super().__init__("Domain policy already active.")
