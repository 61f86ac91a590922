"""Order status machine and who is allowed to drive it.

    pending ──► accepted ──► completed
       │
       └──────► rejected

Customers create orders. The owner of the receiving shop decides, ticks off
items while the order is accepted, and marks it ready. Nothing leaves
`rejected` or `completed`.
"""
import logging
import time
from typing import Callable, Iterable
import uuid

from domain.errors import InvalidTransitionError, OrderItemIndexError, UnauthorizedError
from domain.models import ListType, Order, OrderItem, OrderStatus, Role, Session, Shop
from domain.repository import OrderStore


logger = logging.getLogger(__name__)


TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.pending: frozenset({OrderStatus.accepted, OrderStatus.rejected}),
    OrderStatus.accepted: frozenset({OrderStatus.completed}),
    OrderStatus.rejected: frozenset(),
    OrderStatus.completed: frozenset(),
}


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return target in TRANSITIONS[current]


def now_ms() -> int:
    return int(time.time() * 1000)


class OrderLifecycle:
    def __init__(
        self,
        store: OrderStore,
        *,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.store = store
        self.clock = clock

    async def create_order(
        self,
        session: Session,
        shop: Shop,
        items: list[OrderItem],
        list_type: ListType,
    ) -> Order:
        if session.role != Role.customer:
            raise UnauthorizedError("Only customers can send orders.")
        order = Order(
            id=uuid.uuid4().hex,
            customer_name=session.name,
            customer_phone=session.phone,
            shop_phone=shop.phone,
            shop_name=shop.name,
            items=items,
            list_type=list_type,
            status=OrderStatus.pending,
            created_at=self.clock(),
        )
        order = await self.store.add_order(order)
        logger.info(
            "Order %s sent to %s with %d items", order.id, shop.phone, len(items)
        )
        return order

    async def transition(
        self,
        session: Session,
        order_id: str,
        target: OrderStatus,
    ) -> Order:
        order = await self._owned_order(session, order_id)
        if not can_transition(order.status, target):
            logger.warning(
                "Refused %s -> %s on order %s",
                order.status.value,
                target.value,
                order_id,
            )
            raise InvalidTransitionError(
                f"Cannot move order from {order.status.value} to {target.value}."
            )

        moved = await self.store.compare_and_set_status(
            order_id, expected=order.status, target=target
        )
        if not moved:
            # Someone else moved it first; report against what is there now.
            current = await self.store.get_order(order_id)
            logger.warning(
                "Order %s changed to %s while moving to %s",
                order_id,
                current.status.value,
                target.value,
            )
            raise InvalidTransitionError(
                f"Cannot move order from {current.status.value} to {target.value}."
            )

        logger.info("Order %s is now %s", order_id, target.value)
        return await self.store.get_order(order_id)

    async def set_item_availability(
        self,
        session: Session,
        order_id: str,
        index: int,
        available: bool,
    ) -> Order:
        order = await self._owned_order(session, order_id)
        if order.status != OrderStatus.accepted:
            logger.warning(
                "Refused item update on %s order %s", order.status.value, order_id
            )
            raise InvalidTransitionError(
                f"Items can only be updated on accepted orders, not {order.status.value}."
            )
        if not 0 <= index < len(order.items):
            logger.warning("Item %d out of range on order %s", index, order_id)
            raise OrderItemIndexError(
                f"Order {order_id} has no item {index}."
            )

        updated = await self.store.set_item_available(
            order_id, index, available, required_status=OrderStatus.accepted
        )
        if not updated:
            current = await self.store.get_order(order_id)
            raise InvalidTransitionError(
                f"Items can only be updated on accepted orders, not {current.status.value}."
            )
        return await self.store.get_order(order_id)

    async def _owned_order(self, session: Session, order_id: str) -> Order:
        order = await self.store.get_order(order_id)
        if not session.is_owner or session.phone != order.shop_phone:
            raise UnauthorizedError(
                f"Only the owner of shop {order.shop_phone} can update this order."
            )
        return order


def owner_queue(orders: Iterable[Order]) -> list[Order]:
    """Orders an owner still sees; rejected ones drop out of the queue."""
    return [o for o in orders if o.status != OrderStatus.rejected]


def order_counts(orders: Iterable[Order]) -> dict[str, int]:
    counts = {"pending": 0, "active": 0, "done": 0}
    for order in orders:
        match order.status:
            case OrderStatus.pending:
                counts["pending"] += 1
            case OrderStatus.accepted:
                counts["active"] += 1
            case OrderStatus.completed:
                counts["done"] += 1
            case OrderStatus.rejected:
                pass
    return counts


def latest_order_for_shop(orders: Iterable[Order], shop_phone: str) -> Order | None:
    """The newest order a customer sent to a shop, from a newest-first list."""
    return next((o for o in orders if o.shop_phone == shop_phone), None)
