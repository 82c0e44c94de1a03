"""Keyed store of subscriber items, one per Git subscription."""

from __future__ import annotations

import typing as typ

from appsub.errors import HookError, SubscriptionNotFoundError
from appsub.logging import get_logger, log_exception, log_info
from appsub.sync.item import SubscriberItem
from appsub.sync.schedule import ReconcileRate

if typ.TYPE_CHECKING:
    from appsub.models import Subscription, SubscriptionKey
    from appsub.sync.item import SyncDependencies

logger = get_logger(__name__)

__all__ = ["GitSubscriber"]


class GitSubscriber:
    """Start, update and stop sync loops as subscriptions come and go.

    The subscriber also keeps the hook registry in step with its items so
    that hooks are registered before an item's first tick.
    """

    def __init__(self, deps: SyncDependencies) -> None:
        """Initialise with the dependencies handed to every item."""
        self._deps = deps
        self._items: dict[SubscriptionKey, SubscriberItem] = {}

    def __contains__(self, key: object) -> bool:
        """Return True when ``key`` has a subscriber item."""
        return key in self._items

    def __len__(self) -> int:
        """Return the number of subscriber items."""
        return len(self._items)

    def get(self, key: SubscriptionKey) -> SubscriberItem | None:
        """Return the item for ``key``, if any."""
        return self._items.get(key)

    async def _register_hooks(self, key: SubscriptionKey) -> None:
        if self._deps.hooks is None:
            return
        try:
            await self._deps.hooks.register_subscription(key)
        except HookError as exc:
            log_exception(logger, f"Hook registration failed for {key}: {exc}", exc)

    async def subscribe(self, subscription: Subscription) -> SubscriberItem:
        """Add or update the item for ``subscription`` and make sure it runs.

        An existing item adopts the new subscription object; its loop is
        restarted when the reconcile-rate tier changed.
        """
        key = subscription.key
        await self._register_hooks(key)

        item = self._items.get(key)
        if item is None:
            item = SubscriberItem(subscription, self._deps)
            self._items[key] = item
            log_info(logger, "Subscribing %s", key)
            item.start()
            return item

        restart = ReconcileRate.of(subscription) is not item.rate
        if restart:
            await item.stop()
            item = SubscriberItem(subscription, self._deps)
            self._items[key] = item
            log_info(logger, "Reconcile rate of %s changed to %s", key, item.rate)
        else:
            item.subscription = subscription
        item.start()
        return item

    async def update(self, subscription: Subscription) -> SubscriberItem:
        """Alias of :meth:`subscribe` for subscription updates."""
        return await self.subscribe(subscription)

    async def unsubscribe(self, key: SubscriptionKey) -> bool:
        """Stop and forget the item for ``key``; return False if unknown."""
        item = self._items.pop(key, None)
        if self._deps.hooks is not None:
            await self._deps.hooks.deregister_subscription(key)
        if item is None:
            return False
        await item.stop()
        log_info(logger, "Unsubscribed %s", key)
        return True

    def notify_change(self, key: SubscriptionKey) -> None:
        """Wake the item for ``key`` after a repository change.

        Raises
        ------
        SubscriptionNotFoundError
            If no item exists for ``key``.

        """
        item = self._items.get(key)
        if item is None:
            raise SubscriptionNotFoundError(str(key))
        item.notify_change()

    async def stop_all(self) -> None:
        """Stop every item's loop."""
        for key in list(self._items):
            await self.unsubscribe(key)
