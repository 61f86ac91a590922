import itertools
import json
from pathlib import Path
from types import SimpleNamespace
from typing import Any, AsyncIterator, Callable

from databases import Database
import pytest
import pytest_asyncio

from domain.lifecycle import OrderLifecycle
from domain.llm_service import LLMService
from domain.models import (
    Ingredient,
    OrderItem,
    Role,
    Session,
    Shop,
    ShopCategory,
    ShoppingList,
)
from domain.repository import OrderStore
from domain.shops import ShopDirectory


@pytest_asyncio.fixture
async def store(tmp_path: Path) -> AsyncIterator[OrderStore]:
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'orders.db'}")
    await db.connect()
    store = OrderStore(db)
    await store.create_tables()
    yield store
    await db.disconnect()


@pytest.fixture
def clock() -> Callable[[], int]:
    ticks = itertools.count(1_700_000_000_000, 1000)
    return lambda: next(ticks)


@pytest.fixture
def lifecycle(store: OrderStore, clock: Callable[[], int]) -> OrderLifecycle:
    return OrderLifecycle(store, clock=clock)


@pytest.fixture
def directory(store: OrderStore) -> ShopDirectory:
    return ShopDirectory(store)


@pytest.fixture
def customer() -> Session:
    return Session(
        name="Asha",
        phone="9876543210",
        role=Role.customer,
        location="Bandra, Mumbai",
        coordinates="19.0596, 72.8295",
    )


@pytest.fixture
def owner() -> Session:
    return Session(
        name="Ravi",
        phone="9123456780",
        role=Role.owner,
        shop_name="Ravi Vegetables",
        shop_category=ShopCategory.vegetable_shop,
        location="Khar, Mumbai",
        coordinates="19.0728, 72.8826",
    )


@pytest.fixture
def shop(owner: Session) -> Shop:
    return Shop(
        phone=owner.phone,
        name=owner.shop_name or "",
        category=ShopCategory.vegetable_shop,
        location="Khar, Mumbai",
        coordinates="19.0728, 72.8826",
        owner_name=owner.name,
    )


@pytest.fixture
def tomato() -> list[OrderItem]:
    return [OrderItem(name="Tomato", quantity=500, unit="g", available=False)]


@pytest.fixture
def shopping_list() -> ShoppingList:
    return ShoppingList(
        vegetable_shop=[
            Ingredient(name="Tomato", quantity=500, unit="g"),
            Ingredient(name="Coriander", quantity=100, unit="g"),
        ],
        grocery_shop=[
            Ingredient(name="Besan", quantity=250, unit="g"),
        ],
    )


RECIPE = {
    "recipeTitle": "Besan Chilla",
    "cookTime": "25 mins",
    "nutrition": {"calories": 220, "protein": 11, "carbs": 28, "fat": 7.5},
    "ingredients": [
        {"name": "Besan", "amount": "1 cup"},
        {"name": "Tomato", "amount": "1 large"},
    ],
    "steps": ["Whisk the batter.", "Cook on a hot tawa."],
    "substitutions": [],
    "shoppingList": {
        "VegetableShop": [{"name": "Tomato", "quantity": 100, "unit": "g"}],
        "GroceryShop": [{"name": "Besan", "quantity": 250, "unit": "g"}],
    },
}


class FakeCompletions:
    """Stands in for `client.chat.completions`, replying with canned content."""

    def __init__(self, content: str | None) -> None:
        self.content = content
        self.calls: list[dict[str, Any]] = []

    async def create(self, **kwargs: Any) -> SimpleNamespace:
        self.calls.append(kwargs)
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def fake_openai(content: str | None) -> Any:
    return SimpleNamespace(chat=SimpleNamespace(completions=FakeCompletions(content)))


@pytest.fixture
def llm() -> LLMService:
    return LLMService(fake_openai(json.dumps(RECIPE)))
