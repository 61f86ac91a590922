import asyncio

import pytest

from domain.errors import (
    InvalidTransitionError,
    OrderItemIndexError,
    OrderNotFound,
    UnauthorizedError,
)
from domain.lifecycle import (
    OrderLifecycle,
    can_transition,
    latest_order_for_shop,
    order_counts,
    owner_queue,
)
from domain.models import (
    ListType,
    Order,
    OrderItem,
    OrderStatus,
    Role,
    Session,
    Shop,
)
from domain.repository import OrderStore


PENDING, ACCEPTED, REJECTED, COMPLETED = (
    OrderStatus.pending,
    OrderStatus.accepted,
    OrderStatus.rejected,
    OrderStatus.completed,
)

LEGAL = {(PENDING, ACCEPTED), (PENDING, REJECTED), (ACCEPTED, COMPLETED)}

# How to walk an order from pending into each status.
PATHS = {
    PENDING: [],
    ACCEPTED: [ACCEPTED],
    REJECTED: [REJECTED],
    COMPLETED: [ACCEPTED, COMPLETED],
}


async def order_in(
    status: OrderStatus,
    lifecycle: OrderLifecycle,
    customer: Session,
    owner: Session,
    shop: Shop,
    items: list[OrderItem],
) -> Order:
    order = await lifecycle.create_order(customer, shop, items, ListType.vegetable)
    for step in PATHS[status]:
        order = await lifecycle.transition(owner, order.id, step)
    assert order.status == status
    return order


@pytest.mark.parametrize("current", list(OrderStatus))
@pytest.mark.parametrize("target", list(OrderStatus))
def test_transition_graph(current: OrderStatus, target: OrderStatus) -> None:
    assert can_transition(current, target) == ((current, target) in LEGAL)


@pytest.mark.asyncio
async def test_create_order(
    lifecycle: OrderLifecycle,
    store: OrderStore,
    customer: Session,
    shop: Shop,
    tomato: list[OrderItem],
) -> None:
    order = await lifecycle.create_order(customer, shop, tomato, ListType.vegetable)
    assert order.status == PENDING
    assert order.customer_name == "Asha"
    assert order.customer_phone == customer.phone
    assert order.shop_phone == order.shop_id == shop.phone
    assert order.shop_name == "Ravi Vegetables"
    assert order.created_at == 1_700_000_000_000
    assert [i.to_dict() for i in order.items] == [
        {"name": "Tomato", "quantity": 500, "unit": "g", "available": False}
    ]

    stored = await store.get_order(order.id)
    assert stored.to_dict() == order.to_dict()


@pytest.mark.asyncio
async def test_create_order_ids_are_unique(
    lifecycle: OrderLifecycle, customer: Session, shop: Shop, tomato: list[OrderItem]
) -> None:
    a = await lifecycle.create_order(customer, shop, tomato, ListType.vegetable)
    b = await lifecycle.create_order(customer, shop, tomato, ListType.vegetable)
    assert a.id != b.id
    assert b.created_at > a.created_at


@pytest.mark.asyncio
async def test_owners_cannot_create_orders(
    lifecycle: OrderLifecycle, owner: Session, shop: Shop, tomato: list[OrderItem]
) -> None:
    with pytest.raises(UnauthorizedError):
        await lifecycle.create_order(owner, shop, tomato, ListType.vegetable)


@pytest.mark.parametrize("current", list(OrderStatus))
@pytest.mark.parametrize("target", list(OrderStatus))
@pytest.mark.asyncio
async def test_transition(
    current: OrderStatus,
    target: OrderStatus,
    lifecycle: OrderLifecycle,
    store: OrderStore,
    customer: Session,
    owner: Session,
    shop: Shop,
    tomato: list[OrderItem],
) -> None:
    order = await order_in(current, lifecycle, customer, owner, shop, tomato)

    if (current, target) in LEGAL:
        moved = await lifecycle.transition(owner, order.id, target)
        assert moved.status == target
    else:
        with pytest.raises(InvalidTransitionError):
            await lifecycle.transition(owner, order.id, target)

    stored = await store.get_order(order.id)
    expected = target if (current, target) in LEGAL else current
    assert stored.status == expected


@pytest.mark.asyncio
async def test_only_the_shop_owner_can_transition(
    lifecycle: OrderLifecycle,
    store: OrderStore,
    customer: Session,
    shop: Shop,
    tomato: list[OrderItem],
) -> None:
    order = await lifecycle.create_order(customer, shop, tomato, ListType.vegetable)
    other_owner = Session(name="Meera", phone="9000000000", role=Role.owner)

    with pytest.raises(UnauthorizedError):
        await lifecycle.transition(customer, order.id, ACCEPTED)
    with pytest.raises(UnauthorizedError):
        await lifecycle.transition(other_owner, order.id, ACCEPTED)
    with pytest.raises(UnauthorizedError):
        await lifecycle.set_item_availability(other_owner, order.id, 0, True)

    assert (await store.get_order(order.id)).status == PENDING


@pytest.mark.asyncio
async def test_unknown_order(lifecycle: OrderLifecycle, owner: Session) -> None:
    with pytest.raises(OrderNotFound):
        await lifecycle.transition(owner, "missing", ACCEPTED)


@pytest.mark.parametrize("status", (PENDING, REJECTED, COMPLETED))
@pytest.mark.asyncio
async def test_availability_needs_accepted(
    status: OrderStatus,
    lifecycle: OrderLifecycle,
    store: OrderStore,
    customer: Session,
    owner: Session,
    shop: Shop,
    tomato: list[OrderItem],
) -> None:
    order = await order_in(status, lifecycle, customer, owner, shop, tomato)
    with pytest.raises(InvalidTransitionError):
        await lifecycle.set_item_availability(owner, order.id, 0, True)
    assert (await store.get_order(order.id)).items[0].available is False


@pytest.mark.asyncio
async def test_availability_touches_one_item(
    lifecycle: OrderLifecycle,
    customer: Session,
    owner: Session,
    shop: Shop,
) -> None:
    items = [
        OrderItem(name="Tomato", quantity=500, unit="g"),
        OrderItem(name="Coriander", quantity=100, unit="g"),
        OrderItem(name="Lemon", quantity=0.25, unit="kg"),
    ]
    order = await order_in(ACCEPTED, lifecycle, customer, owner, shop, items)
    before = order.to_dict()

    updated = await lifecycle.set_item_availability(owner, order.id, 1, True)

    after = updated.to_dict()
    assert [i["available"] for i in after["items"]] == [False, True, False]
    after["items"][1]["available"] = False
    assert after == before
    assert updated.available_count == 1


@pytest.mark.parametrize("index", (-1, 1, 5))
@pytest.mark.asyncio
async def test_availability_index_out_of_range(
    index: int,
    lifecycle: OrderLifecycle,
    customer: Session,
    owner: Session,
    shop: Shop,
    tomato: list[OrderItem],
) -> None:
    order = await order_in(ACCEPTED, lifecycle, customer, owner, shop, tomato)
    with pytest.raises(IndexError):
        await lifecycle.set_item_availability(owner, order.id, index, True)
    with pytest.raises(OrderItemIndexError):
        await lifecycle.set_item_availability(owner, order.id, index, True)


@pytest.mark.asyncio
async def test_tomato_order_end_to_end(
    lifecycle: OrderLifecycle,
    store: OrderStore,
    customer: Session,
    owner: Session,
    shop: Shop,
    tomato: list[OrderItem],
) -> None:
    order = await lifecycle.create_order(customer, shop, tomato, ListType.vegetable)
    assert order.status == PENDING

    order = await lifecycle.transition(owner, order.id, ACCEPTED)
    assert order.status == ACCEPTED

    order = await lifecycle.set_item_availability(owner, order.id, 0, True)
    assert order.items[0].to_dict() == {
        "name": "Tomato",
        "quantity": 500,
        "unit": "g",
        "available": True,
    }
    assert order.status == ACCEPTED

    order = await lifecycle.transition(owner, order.id, COMPLETED)
    assert order.status == COMPLETED

    with pytest.raises(InvalidTransitionError):
        await lifecycle.set_item_availability(owner, order.id, 0, False)
    assert (await store.get_order(order.id)).items[0].available is True


@pytest.mark.asyncio
async def test_status_changed_underneath(
    lifecycle: OrderLifecycle,
    store: OrderStore,
    customer: Session,
    owner: Session,
    shop: Shop,
    tomato: list[OrderItem],
) -> None:
    order = await lifecycle.create_order(customer, shop, tomato, ListType.vegetable)
    assert await store.compare_and_set_status(order.id, expected=PENDING, target=REJECTED)
    assert not await store.compare_and_set_status(
        order.id, expected=PENDING, target=ACCEPTED
    )
    assert not await store.set_item_available(
        order.id, 0, True, required_status=ACCEPTED
    )
    assert (await store.get_order(order.id)).status == REJECTED


def make_order(id: str, status: OrderStatus, shop_phone: str = "1") -> Order:
    return Order(
        id=id,
        customer_name="Asha",
        customer_phone="9876543210",
        shop_phone=shop_phone,
        shop_name="Shop",
        items=[],
        list_type=ListType.mixed,
        status=status,
        created_at=0,
    )


def test_owner_queue_hides_rejected() -> None:
    orders = [
        make_order("a", PENDING),
        make_order("b", REJECTED),
        make_order("c", ACCEPTED),
        make_order("d", COMPLETED),
    ]
    assert [o.id for o in owner_queue(orders)] == ["a", "c", "d"]
    assert order_counts(orders) == {"pending": 1, "active": 1, "done": 1}


def test_latest_order_for_shop() -> None:
    orders = [
        make_order("new", PENDING, shop_phone="2"),
        make_order("mid", ACCEPTED, shop_phone="1"),
        make_order("old", COMPLETED, shop_phone="1"),
    ]
    latest = latest_order_for_shop(orders, "1")
    assert latest is not None and latest.id == "mid"
    assert latest_order_for_shop(orders, "3") is None


@pytest.mark.asyncio
async def test_concurrent_availability_updates_all_land(
    lifecycle: OrderLifecycle,
    store: OrderStore,
    customer: Session,
    owner: Session,
    shop: Shop,
) -> None:
    items = [
        OrderItem(name=name, quantity=100, unit="g")
        for name in ("Tomato", "Coriander", "Ginger", "Lemon")
    ]
    order = await order_in(ACCEPTED, lifecycle, customer, owner, shop, items)

    await asyncio.gather(
        *(
            lifecycle.set_item_availability(owner, order.id, index, True)
            for index in range(len(items))
        )
    )

    stored = await store.get_order(order.id)
    assert [i.available for i in stored.items] == [True, True, True, True]
    assert stored.status == ACCEPTED


@pytest.mark.asyncio
async def test_concurrent_decisions_have_one_winner(
    lifecycle: OrderLifecycle,
    store: OrderStore,
    customer: Session,
    owner: Session,
    shop: Shop,
    tomato: list[OrderItem],
) -> None:
    order = await lifecycle.create_order(customer, shop, tomato, ListType.vegetable)

    results = await asyncio.gather(
        lifecycle.transition(owner, order.id, ACCEPTED),
        lifecycle.transition(owner, order.id, REJECTED),
        return_exceptions=True,
    )

    winners = [r for r in results if isinstance(r, Order)]
    losers = [r for r in results if isinstance(r, InvalidTransitionError)]
    assert len(winners) == 1 and len(losers) == 1
    assert (await store.get_order(order.id)).status == winners[0].status


@pytest.mark.asyncio
async def test_store_updates_on_a_missing_order(store: OrderStore) -> None:
    with pytest.raises(OrderNotFound):
        await store.compare_and_set_status("missing", expected=PENDING, target=ACCEPTED)
    with pytest.raises(OrderNotFound):
        await store.set_item_available("missing", 0, True, required_status=ACCEPTED)
