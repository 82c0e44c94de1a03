"""Repository-change webhook for Git subscriptions.

``POST /webhooks/subscriptions/{namespace}/{name}`` wakes the sync loop of
the named subscription so it reconciles without waiting for its next
periodic tick. Subscriptions on the ``off`` tier only reconcile when woken
this way.

Usage
-----
Register the resource on the Falcon app::

    app.add_route(
        "/webhooks/subscriptions/{namespace}/{name}",
        SubscriptionWebhookResource(subscriber),
    )

"""

from __future__ import annotations

import typing as typ

import falcon

from appsub.logging import get_logger, log_info
from appsub.models import SubscriptionKey

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from appsub.sync.subscriber import GitSubscriber

logger = get_logger(__name__)

__all__ = ["SubscriptionWebhookResource"]


class SubscriptionWebhookResource:
    """Resource that forwards change notifications to the subscriber."""

    def __init__(self, subscriber: GitSubscriber) -> None:
        """Configure the resource with the subscriber to notify."""
        self._subscriber = subscriber

    async def on_post(
        self,
        _req: Request,
        resp: Response,
        *,
        namespace: str,
        name: str,
    ) -> None:
        """Handle POST requests signalling a repository change.

        Raises
        ------
        SubscriptionNotFoundError
            If no sync loop exists for the subscription; mapped to 404.

        """
        key = SubscriptionKey(namespace, name)
        self._subscriber.notify_change(key)
        log_info(logger, "Webhook notification accepted for %s", key)
        resp.media = {"subscription": str(key), "status": "accepted"}
        resp.status = falcon.HTTP_202
