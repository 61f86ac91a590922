"""Push based live views over the order store.

A subscription watches one key (`shopPhone` or `customerPhone`) and receives
the complete, newest-first result set for that key whenever an order with
that key is written. The store does the querying; the feed only keeps track
of who is listening.
"""
import asyncio
from collections import defaultdict
from enum import Enum
import inspect
import logging
from typing import Awaitable, Callable
import uuid

from domain.errors import RetrievalError
from domain.models import Order


logger = logging.getLogger(__name__)


type OrdersCallback = Callable[[list[Order]], Awaitable[None] | None]
type Fetch = Callable[[], Awaitable[list[Order]]]


class WatchField(Enum):
    shop_phone = "shopPhone"
    customer_phone = "customerPhone"

    def key_of(self, order: Order) -> str:
        match self:
            case WatchField.shop_phone:
                return order.shop_phone
            case WatchField.customer_phone:
                return order.customer_phone


class Subscription:
    def __init__(
        self,
        *,
        feed: "OrderFeed",
        field: WatchField,
        value: str,
        callback: OrdersCallback,
        fetch: Fetch,
    ) -> None:
        self.id = uuid.uuid4().hex
        self.field = field
        self.value = value
        self.callback = callback
        self.fetch = fetch
        self.active = True
        self._feed = feed
        # Set by every write; the running delivery loop re-fetches until clear.
        self._dirty = False
        self._delivering = False

    def __repr__(self) -> str:
        return f"<Subscription({self.field.value}={self.value}, active={self.active})>"

    def cancel(self) -> None:
        if not self.active:
            return
        self.active = False
        self._feed.remove(self)

    async def start(self) -> None:
        """First delivery. A failed fetch cancels the subscription and raises."""
        try:
            await self._run(strict=True)
        except RetrievalError:
            self.cancel()
            raise

    async def deliver(self) -> None:
        """Re-deliver after a write. Never raises into the writer."""
        await self._run(strict=False)

    async def _run(self, *, strict: bool) -> None:
        if not self.active:
            return
        self._dirty = True
        if self._delivering:
            # A delivery is in flight (possibly our own caller); it picks this up.
            return
        self._delivering = True
        try:
            while self._dirty and self.active:
                self._dirty = False
                try:
                    orders = await self.fetch()
                except RetrievalError:
                    if strict:
                        raise
                    logger.exception("Could not refresh %r", self)
                    continue
                strict = False
                if self.active:
                    await self._call(orders)
        finally:
            self._delivering = False

    async def _call(self, orders: list[Order]) -> None:
        try:
            result = self.callback(orders)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Order callback failed for %r", self)


class OrderFeed:
    def __init__(self) -> None:
        self._subscriptions: dict[tuple[WatchField, str], dict[str, Subscription]] = (
            defaultdict(dict)
        )

    def __len__(self) -> int:
        return sum(len(subs) for subs in self._subscriptions.values())

    def add(
        self,
        field: WatchField,
        value: str,
        callback: OrdersCallback,
        fetch: Fetch,
    ) -> Subscription:
        sub = Subscription(
            feed=self, field=field, value=value, callback=callback, fetch=fetch
        )
        self._subscriptions[(field, value)][sub.id] = sub
        logger.debug("Subscribed %r", sub)
        return sub

    def remove(self, sub: Subscription) -> None:
        key = (sub.field, sub.value)
        subs = self._subscriptions.get(key)
        if subs is None:
            return
        subs.pop(sub.id, None)
        if not subs:
            del self._subscriptions[key]
        logger.debug("Unsubscribed %r", sub)

    def watching(self, order: Order) -> list[Subscription]:
        subs: list[Subscription] = []
        for field in WatchField:
            subs.extend(self._subscriptions.get((field, field.key_of(order)), {}).values())
        return subs

    async def publish(self, order: Order) -> None:
        """Re-deliver every result set the order belongs to."""
        await asyncio.gather(*(sub.deliver() for sub in self.watching(order)))
