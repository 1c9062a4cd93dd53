import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

from fastapi import FastAPI, HTTPException

from .config import Settings, load_config
from .errors import InvalidUrlError
from .host import ScriptPolicyHost, SecurityManager
from .log import configure_logging, get_logger
from .models import (
    ChangeResponse,
    CheckResponse,
    DecideRequest,
    DecideResponse,
    OriginEntry,
    PreferenceRequest,
    UrlRequest,
    WhitelistResponse,
)
from .preferences import PreferenceBranch
from .whitelist import WhitelistStore

logger = get_logger(__name__)


def build_host(
    settings: Settings, security_manager: Optional[SecurityManager] = None
) -> ScriptPolicyHost:
    pref_path = Path(settings.preference_path) if settings.preference_path else None
    script_prefs = PreferenceBranch("javascript.", pref_path)
    script_prefs.set_default("enabled", settings.scripts_enabled)
    extension_prefs = PreferenceBranch("extensions.descript.", pref_path)
    return ScriptPolicyHost(
        security_manager or SecurityManager(),
        script_prefs,
        extension_prefs,
        default_whitelist=settings.policy.default_preference(),
    )


def create_app(settings: Settings, host: Optional[ScriptPolicyHost] = None) -> FastAPI:
    configure_logging(settings.log_level)
    policy_host = host or build_host(settings)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        if not policy_host.startup():
            logger.warning("Serving without an active script policy")
        try:
            yield
        finally:
            policy_host.shutdown()

    app = FastAPI(lifespan=lifespan)
    app.state.policy_host = policy_host

    def whitelist() -> WhitelistStore:
        store = policy_host.whitelist
        if store is None:
            raise HTTPException(status_code=503, detail="script policy not active")
        return store

    def change_response(changed: bool) -> ChangeResponse:
        return ChangeResponse(
            status="ok", changed=changed, preference=whitelist().get_preference()
        )

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok", "policy_active": policy_host.active}

    @app.post("/v1/decide", response_model=DecideResponse)
    async def decide(payload: DecideRequest) -> DecideResponse:
        decision = policy_host.decide(payload.content_kind, payload.url)
        return DecideResponse(
            content_kind=payload.content_kind, url=payload.url, decision=decision
        )

    @app.get("/v1/check", response_model=CheckResponse)
    async def check(url: str) -> CheckResponse:
        store = whitelist()
        try:
            return CheckResponse(
                url=url, matchable=store.matchable(url), allowed=store.allows(url)
            )
        except InvalidUrlError as exc:
            raise HTTPException(status_code=400, detail=str(exc))

    @app.get("/v1/whitelist", response_model=WhitelistResponse)
    async def get_whitelist() -> WhitelistResponse:
        store = whitelist()
        return WhitelistResponse(
            preference=store.get_preference(),
            origins=[
                OriginEntry(scheme=o.scheme, host=o.host, origin=o.render())
                for o in store.origins()
            ],
        )

    @app.put("/v1/whitelist", response_model=ChangeResponse)
    def put_whitelist(payload: PreferenceRequest) -> ChangeResponse:
        before = whitelist().get_preference()
        policy_host.set_preference(payload.preference)
        return change_response(whitelist().get_preference() != before)

    @app.post("/v1/whitelist/allow", response_model=ChangeResponse)
    def allow(payload: UrlRequest) -> ChangeResponse:
        whitelist()
        try:
            changed = policy_host.allow(payload.url)
        except InvalidUrlError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        return change_response(changed)

    @app.post("/v1/whitelist/revoke", response_model=ChangeResponse)
    def revoke(payload: UrlRequest) -> ChangeResponse:
        whitelist()
        try:
            changed = policy_host.revoke(payload.url)
        except InvalidUrlError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        return change_response(changed)

    return app


settings = load_config(os.getenv("DESCRIPT_CONFIG"))
app = create_app(settings)
