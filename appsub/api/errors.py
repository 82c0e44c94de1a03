"""Falcon error handlers for the API layer.

This module holds the Falcon error handler functions that translate
domain exceptions raised by API resources into HTTP responses.

Usage
-----
Register error handlers on the Falcon app::

    from appsub.api.errors import handle_subscription_not_found
    from appsub.errors import SubscriptionNotFoundError

    app.add_error_handler(SubscriptionNotFoundError, handle_subscription_not_found)

"""

from __future__ import annotations

import typing as typ

import falcon

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from appsub.errors import SubscriptionNotFoundError

__all__ = ["handle_subscription_not_found"]


async def handle_subscription_not_found(
    _req: Request,
    resp: Response,
    ex: SubscriptionNotFoundError,
    _params: dict[str, typ.Any],
) -> None:
    """Map ``SubscriptionNotFoundError`` to an HTTP 404 JSON response.

    Parameters
    ----------
    _req
        Falcon request (unused).
    resp
        Falcon response whose status and media are set.
    ex
        The exception naming the unknown subscription.
    _params
        URI template parameters (unused).

    """
    resp.status = falcon.HTTP_404
    resp.media = {
        "title": "Subscription not found",
        "description": str(ex),
    }
