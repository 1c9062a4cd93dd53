from __future__ import annotations

from typing import Awaitable, Callable, Union

from playwright.async_api import BrowserContext, Page, Route

from .log import get_logger
from .policy import ContentKind, Decision, PolicyDecider

logger = get_logger(__name__)

RouteHandler = Callable[[Route], Awaitable[None]]


def make_route_handler(decider: PolicyDecider) -> RouteHandler:
    async def handle(route: Route) -> None:
        request = route.request
        kind = ContentKind.coerce(request.resource_type)
        decision = decider.decide(kind, request.url)
        if decision is Decision.REJECT:
            logger.debug("Blocking %s load: %s", kind.value, request.url)
            await route.abort("blockedbyclient")
            return
        await route.continue_()

    return handle


async def install_script_policy(
    target: Union[BrowserContext, Page],
    decider: PolicyDecider,
    pattern: str = "**/*",
) -> RouteHandler:
    handler = make_route_handler(decider)
    await target.route(pattern, handler)
    return handler
