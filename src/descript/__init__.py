from .errors import DescriptError, InvalidUrlError, PolicyAlreadyActiveError
from .origin import RECOGNIZED_SCHEMES, Origin, host_key, is_matchable
from .policy import ContentKind, Decision, PolicyDecider
from .whitelist import WhitelistStore

__all__ = [
    "ContentKind",
    "Decision",
    "DescriptError",
    "InvalidUrlError",
    "Origin",
    "PolicyAlreadyActiveError",
    "PolicyDecider",
    "RECOGNIZED_SCHEMES",
    "WhitelistStore",
    "host_key",
    "is_matchable",
]
