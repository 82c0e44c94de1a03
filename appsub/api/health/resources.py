"""Health probe resources for Kubernetes liveness and readiness checks.

Usage
-----
Register health endpoints on the Falcon app::

    from appsub.api.health.resources import HealthResource, ReadyResource

    app.add_route("/health", HealthResource())
    app.add_route("/ready", ReadyResource(subscriber))

"""

from __future__ import annotations

import typing as typ
from http import HTTPStatus

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from appsub.sync.subscriber import GitSubscriber

__all__ = ["HealthResource", "ReadyResource"]


class HealthResource:
    """Liveness probe resource returning ``{"status": "ok"}``.

    Always responds with HTTP 200 to indicate the process is alive.
    No parameters or request body are expected.

    """

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Handle GET /health requests.

        Parameters
        ----------
        _req
            Falcon request (unused).
        resp
            Falcon response populated with liveness status.

        """
        resp.media = {"status": "ok"}
        resp.status = HTTPStatus.OK


class ReadyResource:
    """Readiness probe resource returning ``{"status": "ready"}``.

    When a subscriber is attached the response also reports how many
    subscriptions currently have a sync loop.

    """

    def __init__(self, subscriber: GitSubscriber | None = None) -> None:
        """Configure the probe with an optional subscriber.

        Parameters
        ----------
        subscriber
            Subscriber whose sync loops are counted in the response.

        """
        self._subscriber = subscriber

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Handle GET /ready requests.

        Parameters
        ----------
        _req
            Falcon request (unused).
        resp
            Falcon response populated with readiness status.

        """
        media: dict[str, typ.Any] = {"status": "ready"}
        if self._subscriber is not None:
            media["subscriptions"] = len(self._subscriber)
        resp.media = media
        resp.status = HTTPStatus.OK
