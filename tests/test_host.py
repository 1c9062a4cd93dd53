import logging
import threading
from typing import Optional

import pytest

from descript.errors import InvalidUrlError, PolicyAlreadyActiveError
from descript.host import ScriptPolicyHost, SecurityManager
from descript.policy import ContentKind, Decision
from descript.preferences import PreferenceBranch


def make_host(manager: Optional[SecurityManager] = None, default: str = "") -> ScriptPolicyHost:
    script_prefs = PreferenceBranch("javascript.")
    script_prefs.set_bool_pref("enabled", True)
    return ScriptPolicyHost(
        manager or SecurityManager(),
        script_prefs,
        PreferenceBranch("extensions.descript."),
        default_whitelist=default,
    )


def test_startup_disables_scripts_and_loads_whitelist() -> None:
    host = make_host(default="https://a.com/")
    assert host.startup() is True
    assert host.active
    assert host.script_prefs.get_bool_pref("enabled") is False
    assert host.extension_prefs.get_char_pref("whitelist") == "https://a.com/"
    assert host.decide(ContentKind.SCRIPT, "https://a.com/x.js") is Decision.ALLOW
    assert host.decide(ContentKind.SCRIPT, "https://b.com/x.js") is Decision.REJECT


def test_shutdown_restores_script_setting() -> None:
    manager = SecurityManager()
    host = make_host(manager)
    host.startup()
    host.shutdown()
    assert not host.active
    assert manager.domain_policy_active is False
    assert host.script_prefs.get_bool_pref("enabled") is True
    assert host.decide(ContentKind.SCRIPT, "https://a.com/") is Decision.REJECT
    host.shutdown()


def test_second_host_refuses_to_start(caplog: pytest.LogCaptureFixture) -> None:
    manager = SecurityManager()
    first = make_host(manager)
    second = make_host(manager)
    assert first.startup() is True
    with caplog.at_level(logging.ERROR, logger="descript"):
        assert second.startup() is False
    assert "already active" in caplog.text
    assert second.script_prefs.get_bool_pref("enabled") is True
    first.shutdown()


def test_activate_twice_raises() -> None:
    manager = SecurityManager()
    policy = manager.activate_domain_policy()
    with pytest.raises(PolicyAlreadyActiveError):
        manager.activate_domain_policy()
    policy.deactivate()
    manager.activate_domain_policy()


def test_allow_and_revoke_persist_preference() -> None:
    with make_host() as host:
        assert host.allow("https://example.com/path") is True
        assert host.extension_prefs.get("whitelist") == "https://example.com/"
        assert host.allow("http://example.com/") is True
        assert host.extension_prefs.get("whitelist") == "https://example.com/ http://example.com/"
        assert host.revoke("https://example.com/") is True
        assert host.extension_prefs.get("whitelist") == "http://example.com/"


def test_allow_invalid_url_raises() -> None:
    with make_host() as host:
        with pytest.raises(InvalidUrlError):
            host.allow("nonsense")
        assert host.extension_prefs.get("whitelist") == ""


def test_external_preference_change_reloads_store() -> None:
    with make_host() as host:
        host.extension_prefs.set_char_pref("whitelist", "https://c.com/ junk")
        assert host.whitelist.allows("https://c.com/") is True


def test_set_preference_canonicalizes() -> None:
    with make_host() as host:
        host.set_preference("https://c.com/page   http://d.com:81/")
        assert host.extension_prefs.get("whitelist") == "https://c.com/ http://d.com/"


def test_observer_removed_after_shutdown() -> None:
    host = make_host()
    host.startup()
    store = host.whitelist
    host.shutdown()
    host.extension_prefs.set_char_pref("whitelist", "https://late.com/")
    assert store.allows("https://late.com/") is False


def test_mutations_require_active_policy() -> None:
    host = make_host()
    with pytest.raises(RuntimeError):
        host.allow("https://a.com/")


def test_concurrent_allows_are_not_lost() -> None:
    with make_host() as host:
        store = host.whitelist
        original = store.get_preference
        paused = threading.Event()
        resume = threading.Event()

        def slow_get_preference() -> str:
            text = original()
            if threading.current_thread().name == "first" and not paused.is_set():
                paused.set()
                resume.wait(timeout=2)
            return text

        store.get_preference = slow_get_preference
        first = threading.Thread(target=host.allow, args=("https://x.com/",), name="first")
        second = threading.Thread(target=host.allow, args=("https://y.com/",), name="second")
        first.start()
        assert paused.wait(timeout=2)
        second.start()
        second.join(timeout=0.2)
        resume.set()
        first.join(timeout=2)
        second.join(timeout=2)

        assert store.allows("https://x.com/") is True
        assert store.allows("https://y.com/") is True
        assert host.extension_prefs.get("whitelist") == "https://x.com/ https://y.com/"


def test_revoke_is_not_undone_by_concurrent_allow() -> None:
    with make_host(default="https://x.com/") as host:
        store = host.whitelist
        original = store.get_preference
        paused = threading.Event()
        resume = threading.Event()

        def slow_get_preference() -> str:
            text = original()
            if threading.current_thread().name == "allow" and not paused.is_set():
                paused.set()
                resume.wait(timeout=2)
            return text

        store.get_preference = slow_get_preference
        allower = threading.Thread(target=host.allow, args=("https://y.com/",), name="allow")
        revoker = threading.Thread(target=host.revoke, args=("https://x.com/",), name="revoke")
        allower.start()
        assert paused.wait(timeout=2)
        revoker.start()
        revoker.join(timeout=0.2)
        resume.set()
        allower.join(timeout=2)
        revoker.join(timeout=2)

        assert store.allows("https://x.com/") is False
        assert host.extension_prefs.get("whitelist") == "https://y.com/"


def test_non_string_whitelist_preference_is_tolerated() -> None:
    host = make_host()
    host.extension_prefs.set("whitelist", 42)
    assert host.startup() is True
    assert len(host.whitelist) == 0
    host.extension_prefs.set("whitelist", None)
    assert len(host.whitelist) == 0
    host.shutdown()
