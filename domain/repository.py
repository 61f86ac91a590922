import contextlib
import logging
import time
from typing import Any, AsyncIterator, Mapping

from databases import Database
from databases.interfaces import Record

from domain.errors import OrderNotFound, PortionPerfectError, RetrievalError, ShopNotFound
from domain.feed import OrderFeed, OrdersCallback, Subscription, WatchField
from domain.models import (
    ListType,
    Order,
    OrderItem,
    OrderStatus,
    Shop,
    ShopCategory,
)


logger = logging.getLogger(__name__)


CREATE_TABLES = (
    """
    CREATE TABLE IF NOT EXISTS shops (
        phone VARCHAR(32) PRIMARY KEY,
        name VARCHAR(256),
        type VARCHAR(64),
        location VARCHAR(512),
        coordinates VARCHAR(64),
        owner_name VARCHAR(256),
        registered_at BIGINT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS orders (
        id VARCHAR(64) PRIMARY KEY,
        customer_name VARCHAR(256),
        customer_phone VARCHAR(32),
        shop_phone VARCHAR(32),
        shop_name VARCHAR(256),
        list_type VARCHAR(16),
        status VARCHAR(16),
        created_at BIGINT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS order_items (
        order_id VARCHAR(64),
        position INTEGER,
        name VARCHAR(256),
        quantity REAL,
        unit VARCHAR(32),
        available BOOLEAN,
        PRIMARY KEY (order_id, position)
    )
    """,
    "CREATE INDEX IF NOT EXISTS orders_shop_phone ON orders (shop_phone)",
    "CREATE INDEX IF NOT EXISTS orders_customer_phone ON orders (customer_phone)",
)


# Re-registering overwrites the details but keeps the first registration
# time, so directory order stays stable.
UPSERT_SHOP = """
INSERT INTO shops (phone, name, type, location, coordinates, owner_name, registered_at)
VALUES (:phone, :name, :type, :location, :coordinates, :owner_name, :registered_at)
ON CONFLICT (phone) DO UPDATE SET
    name = excluded.name,
    type = excluded.type,
    location = excluded.location,
    coordinates = excluded.coordinates,
    owner_name = excluded.owner_name
"""

GET_SHOP = "SELECT * FROM shops WHERE phone = :phone"

LIST_SHOPS = "SELECT * FROM shops ORDER BY registered_at"

CREATE_ORDER = """
INSERT INTO orders (id, customer_name, customer_phone, shop_phone, shop_name, list_type, status, created_at)
VALUES (:id, :customer_name, :customer_phone, :shop_phone, :shop_name, :list_type, :status, :created_at)
"""

CREATE_ORDER_ITEM = """
INSERT INTO order_items (order_id, position, name, quantity, unit, available)
VALUES (:order_id, :position, :name, :quantity, :unit, :available)
"""

GET_ORDER = "SELECT * FROM orders WHERE id = :id"

GET_ORDER_ITEMS = "SELECT * FROM order_items WHERE order_id = :order_id ORDER BY position"

GET_ORDER_STATUS = "SELECT status FROM orders WHERE id = :id"

# Both updates check and write in one statement, so no read lock is held
# across the write. A returned row means the update applied.
SET_ORDER_STATUS = """
UPDATE orders SET status = :target
WHERE id = :id AND status = :expected
RETURNING id
"""

SET_ITEM_AVAILABLE = """
UPDATE order_items SET available = :available
WHERE order_id = :order_id AND position = :position
    AND EXISTS (
        SELECT 1 FROM orders WHERE id = :order_id AND status = :status
    )
RETURNING position
"""

COLUMNS = {
    WatchField.shop_phone: "shop_phone",
    WatchField.customer_phone: "customer_phone",
}


def list_orders_query(field: WatchField) -> str:
    return (
        f"SELECT * FROM orders WHERE {COLUMNS[field]} = :value "
        "ORDER BY created_at DESC"
    )


def list_order_items_query(field: WatchField) -> str:
    return (
        "SELECT i.* FROM order_items i JOIN orders o ON o.id = i.order_id "
        f"WHERE o.{COLUMNS[field]} = :value ORDER BY i.order_id, i.position"
    )


@contextlib.asynccontextmanager
async def retrieving(what: str) -> AsyncIterator[None]:
    try:
        yield
    except PortionPerfectError:
        raise
    except Exception as e:
        logger.error("Could not %s: %r", what, e)
        raise RetrievalError(f"Could not {what}.") from e


def shop_from_record(record: Record | Mapping[str, Any]) -> Shop:
    return Shop(
        phone=record["phone"],
        name=record["name"] or "",
        category=ShopCategory.parse(record["type"]),
        location=record["location"] or "",
        coordinates=record["coordinates"] or "",
        owner_name=record["owner_name"] or "",
    )


def item_from_record(record: Record | Mapping[str, Any]) -> OrderItem:
    quantity = record["quantity"]
    if isinstance(quantity, float) and quantity.is_integer():
        quantity = int(quantity)
    return OrderItem(
        name=record["name"],
        quantity=quantity,
        unit=record["unit"],
        available=bool(record["available"]),
    )


def order_from_record(
    record: Record | Mapping[str, Any], items: list[OrderItem]
) -> Order:
    return Order(
        id=record["id"],
        customer_name=record["customer_name"],
        customer_phone=record["customer_phone"],
        shop_phone=record["shop_phone"],
        shop_name=record["shop_name"],
        items=items,
        list_type=ListType(record["list_type"]),
        status=OrderStatus(record["status"]),
        created_at=int(record["created_at"]),
    )


class OrderStore:
    """Shops and orders, with live views of orders by shop or by customer."""

    def __init__(self, db: Database, *, feed: OrderFeed | None = None) -> None:
        self.db = db
        self.feed = OrderFeed() if feed is None else feed

    async def create_tables(self) -> None:
        async with retrieving("create tables"):
            for statement in CREATE_TABLES:
                await self.db.execute(query=statement)  # pyright: ignore[reportUnknownMemberType]

    # Shops

    async def upsert_shop(self, shop: Shop) -> None:
        values = {
            "phone": shop.phone,
            "name": shop.name,
            "type": shop.category.value,
            "location": shop.location,
            "coordinates": shop.coordinates,
            "owner_name": shop.owner_name,
            "registered_at": int(time.time() * 1000),
        }
        async with retrieving("save shop"):
            await self.db.execute(UPSERT_SHOP, values=values)  # pyright: ignore[reportUnknownMemberType]

    async def get_shop(self, phone: str) -> Shop:
        async with retrieving("read shop"):
            record = await self.db.fetch_one(GET_SHOP, values={"phone": phone})  # pyright: ignore[reportUnknownMemberType]
        if record is None:
            raise ShopNotFound(phone)
        return shop_from_record(record)

    async def list_shops(self) -> list[Shop]:
        async with retrieving("list shops"):
            records = await self.db.fetch_all(LIST_SHOPS)  # pyright: ignore[reportUnknownMemberType]
        return [shop_from_record(r) for r in records]

    # Orders

    async def add_order(self, order: Order) -> Order:
        async with retrieving("save order"):
            async with self.db.transaction():
                await self.db.execute(  # pyright: ignore[reportUnknownMemberType]
                    CREATE_ORDER,
                    values={
                        "id": order.id,
                        "customer_name": order.customer_name,
                        "customer_phone": order.customer_phone,
                        "shop_phone": order.shop_phone,
                        "shop_name": order.shop_name,
                        "list_type": order.list_type.value,
                        "status": order.status.value,
                        "created_at": order.created_at,
                    },
                )
                await self.db.execute_many(  # pyright: ignore[reportUnknownMemberType]
                    CREATE_ORDER_ITEM,
                    values=[
                        {
                            "order_id": order.id,
                            "position": position,
                            "name": item.name,
                            "quantity": item.quantity,
                            "unit": item.unit,
                            "available": item.available,
                        }
                        for position, item in enumerate(order.items)
                    ],
                )
        return await self._published(order.id)

    async def get_order(self, order_id: str) -> Order:
        async with retrieving("read order"):
            record = await self.db.fetch_one(GET_ORDER, values={"id": order_id})  # pyright: ignore[reportUnknownMemberType]
            if record is None:
                raise OrderNotFound(order_id)
            items = await self.db.fetch_all(  # pyright: ignore[reportUnknownMemberType]
                GET_ORDER_ITEMS, values={"order_id": order_id}
            )
        return order_from_record(record, [item_from_record(i) for i in items])

    async def compare_and_set_status(
        self,
        order_id: str,
        *,
        expected: OrderStatus,
        target: OrderStatus,
    ) -> bool:
        """Move the order to `target` only if it is still in `expected`."""
        async with retrieving("update order status"):
            updated = await self.db.fetch_all(  # pyright: ignore[reportUnknownMemberType]
                SET_ORDER_STATUS,
                values={
                    "id": order_id,
                    "expected": expected.value,
                    "target": target.value,
                },
            )
            if not updated:
                await self._status(order_id)
                return False
        await self._published(order_id)
        return True

    async def set_item_available(
        self,
        order_id: str,
        position: int,
        available: bool,
        *,
        required_status: OrderStatus,
    ) -> bool:
        """Flip one item's flag, addressed by its position, and nothing else."""
        async with retrieving("update order item"):
            updated = await self.db.fetch_all(  # pyright: ignore[reportUnknownMemberType]
                SET_ITEM_AVAILABLE,
                values={
                    "order_id": order_id,
                    "position": position,
                    "available": available,
                    "status": required_status.value,
                },
            )
            if not updated:
                await self._status(order_id)
                return False
        await self._published(order_id)
        return True

    async def orders_for_shop(self, phone: str) -> list[Order]:
        return await self._orders_by(WatchField.shop_phone, phone)

    async def orders_for_customer(self, phone: str) -> list[Order]:
        return await self._orders_by(WatchField.customer_phone, phone)

    # Live views

    async def watch_shop_orders(
        self, phone: str, callback: OrdersCallback
    ) -> Subscription:
        return await self._watch(WatchField.shop_phone, phone, callback)

    async def watch_customer_orders(
        self, phone: str, callback: OrdersCallback
    ) -> Subscription:
        return await self._watch(WatchField.customer_phone, phone, callback)

    async def _watch(
        self, field: WatchField, value: str, callback: OrdersCallback
    ) -> Subscription:
        async def fetch() -> list[Order]:
            return await self._orders_by(field, value)

        sub = self.feed.add(field, value, callback, fetch)
        await sub.start()
        return sub

    async def _orders_by(self, field: WatchField, value: str) -> list[Order]:
        async with retrieving("list orders"):
            records = await self.db.fetch_all(  # pyright: ignore[reportUnknownMemberType]
                list_orders_query(field), values={"value": value}
            )
            item_records = await self.db.fetch_all(  # pyright: ignore[reportUnknownMemberType]
                list_order_items_query(field), values={"value": value}
            )
        items: dict[str, list[OrderItem]] = {}
        for r in item_records:
            items.setdefault(r["order_id"], []).append(item_from_record(r))
        return [order_from_record(r, items.get(r["id"], [])) for r in records]

    async def _status(self, order_id: str) -> OrderStatus:
        record = await self.db.fetch_one(GET_ORDER_STATUS, values={"id": order_id})  # pyright: ignore[reportUnknownMemberType]
        if record is None:
            raise OrderNotFound(order_id)
        return OrderStatus(record["status"])

    async def _published(self, order_id: str) -> Order:
        order = await self.get_order(order_id)
        await self.feed.publish(order)
        return order
