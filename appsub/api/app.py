"""Application factory for the appsub Falcon ASGI application.

``create_app()`` always registers the health probes. When a subscriber is
supplied it also registers the repository-change webhook.

Usage
-----
Create a probes-only app::

    app = create_app()

Create an app that forwards webhooks to running sync loops::

    from appsub.api.app import AppDependencies, create_app

    app = create_app(AppDependencies(subscriber=subscriber))

"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

import falcon.asgi

from appsub.api.errors import handle_subscription_not_found
from appsub.api.health.resources import HealthResource, ReadyResource
from appsub.api.webhooks.resources import SubscriptionWebhookResource
from appsub.errors import SubscriptionNotFoundError

if typ.TYPE_CHECKING:
    from appsub.sync.subscriber import GitSubscriber

__all__ = ["AppDependencies", "create_app"]


@dc.dataclass(frozen=True, slots=True)
class AppDependencies:
    """Dependencies for the Falcon ASGI application.

    Attributes
    ----------
    subscriber
        Keyed store of sync loops notified by the webhook endpoint.

    """

    subscriber: GitSubscriber | None = None


def create_app(
    dependencies: AppDependencies | None = None,
) -> falcon.asgi.App:
    """Create and configure the Falcon ASGI application.

    Parameters
    ----------
    dependencies
        Optional application dependencies. Without a subscriber only
        ``/health`` and ``/ready`` are available.

    Returns
    -------
    falcon.asgi.App
        Configured Falcon ASGI application.

    """
    subscriber = dependencies.subscriber if dependencies is not None else None
    app = falcon.asgi.App()

    app.add_route("/health", HealthResource())
    app.add_route("/ready", ReadyResource(subscriber))

    if subscriber is not None:
        app.add_route(
            "/webhooks/subscriptions/{namespace}/{name}",
            SubscriptionWebhookResource(subscriber),
        )

    app.add_error_handler(SubscriptionNotFoundError, handle_subscription_not_found)

    return app
