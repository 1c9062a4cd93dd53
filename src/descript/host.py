from __future__ import annotations

import threading
from typing import Optional, Union

from .errors import PolicyAlreadyActiveError
from .log import get_logger
from .origin import UrlLike
from .policy import ContentKind, Decision, PolicyDecider
from .preferences import PreferenceBranch
from .whitelist import WhitelistStore

logger = get_logger(__name__)

WHITELIST_PREF = "whitelist"
SCRIPTS_ENABLED_PREF = "enabled"


class DomainPolicy:
    def __init__(self, manager: "SecurityManager") -> None:
        self._manager = manager
        self.whitelist = WhitelistStore()

    def deactivate(self) -> None:
        self._manager._release(self)


class SecurityManager:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._active: Optional[DomainPolicy] = None

    @property
    def domain_policy_active(self) -> bool:
        return self._active is not None

    def activate_domain_policy(self) -> DomainPolicy:
        with self._lock:
            if self._active is not None:
                raise PolicyAlreadyActiveError()
            self._active = DomainPolicy(self)
            return self._active

    def _release(self, policy: DomainPolicy) -> None:
        with self._lock:
            if self._active is policy:
                self._active = None


class ScriptPolicyHost:
    """Keeps a domain policy in sync with the ``whitelist`` preference."""

    def __init__(
        self,
        security_manager: SecurityManager,
        script_prefs: PreferenceBranch,
        extension_prefs: PreferenceBranch,
        default_whitelist: str = "",
    ) -> None:
        self.security_manager = security_manager
        self.script_prefs = script_prefs
        self.extension_prefs = extension_prefs
        self.default_whitelist = default_whitelist
        self.domain_policy: Optional[DomainPolicy] = None
        self.scripts_initially_enabled: Optional[bool] = None
        self._decider = PolicyDecider(None)
        # held across store mutation and preference write-back
        self._lock = threading.RLock()

    def __enter__(self) -> "ScriptPolicyHost":
        self.startup()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown()

    @property
    def active(self) -> bool:
        return self.domain_policy is not None

    @property
    def whitelist(self) -> Optional[WhitelistStore]:
        if self.domain_policy is None:
            return None
        return self.domain_policy.whitelist

    def startup(self) -> bool:
        self.extension_prefs.set_default(WHITELIST_PREF, self.default_whitelist)

        if self.security_manager.domain_policy_active:
            logger.error("Domain policy already active.")
            return False

        self.scripts_initially_enabled = self.script_prefs.get_bool_pref(
            SCRIPTS_ENABLED_PREF, True
        )
        self.script_prefs.set_bool_pref(SCRIPTS_ENABLED_PREF, False)

        try:
            self.domain_policy = self.security_manager.activate_domain_policy()
        except PolicyAlreadyActiveError:
            logger.error("Domain policy already active.")
            self.script_prefs.set_bool_pref(
                SCRIPTS_ENABLED_PREF, self.scripts_initially_enabled
            )
            return False
        self._decider = PolicyDecider(self.domain_policy.whitelist)
        self.reload_whitelist()

        self.extension_prefs.add_observer(WHITELIST_PREF, self._on_whitelist_changed)
        logger.info("Script policy active with %d origins", len(self.domain_policy.whitelist))
        return True

    def shutdown(self) -> None:
        if not self.domain_policy:
            return

        self.extension_prefs.remove_observer(WHITELIST_PREF, self._on_whitelist_changed)
        self.domain_policy.deactivate()
        self.domain_policy = None
        self._decider = PolicyDecider(None)
        self.script_prefs.set_bool_pref(
            SCRIPTS_ENABLED_PREF, bool(self.scripts_initially_enabled)
        )
        logger.info("Script policy deactivated")

    def _on_whitelist_changed(self, _key: str) -> None:
        self.reload_whitelist()

    def reload_whitelist(self) -> None:
        with self._lock:
            if self.domain_policy is None:
                return
            text = self.extension_prefs.get(WHITELIST_PREF, "")
            if not isinstance(text, str):
                logger.warning("Whitelist preference is not a string: %r", text)
                text = "" if text is None else str(text)
            self.domain_policy.whitelist.load_preference(text)

    def _persist(self) -> None:
        store = self.whitelist
        if store is None:
            return
        self.extension_prefs.set_char_pref(WHITELIST_PREF, store.get_preference())

    def allow(self, url: UrlLike) -> bool:
        with self._lock:
            store = self._require_whitelist()
            changed = store.add(url)
            self._persist()
        return changed

    def revoke(self, url: UrlLike) -> bool:
        with self._lock:
            store = self._require_whitelist()
            changed = store.remove(url)
            self._persist()
        return changed

    def set_preference(self, text: str) -> None:
        with self._lock:
            self._require_whitelist()
            self.extension_prefs.set_char_pref(WHITELIST_PREF, text)
            # observers only fire on change
            self.reload_whitelist()
            self._persist()

    def decide(self, content_kind: Union[ContentKind, str], url: UrlLike) -> Decision:
        return self._decider.decide(content_kind, url)

    def _require_whitelist(self) -> WhitelistStore:
        store = self.whitelist
        if store is None:
            raise RuntimeError("script policy is not active")
        return store
