from enum import Enum
from typing import Any, Self

import markdown2  # pyright: ignore[reportMissingTypeStubs]


class ShopCategory(Enum):
    vegetable_shop = "Vegetable Shop"
    grocery_store = "Grocery Store"
    supermarket = "Supermarket"
    bakery = "Bakery"
    general_store = "General Store"

    @classmethod
    def parse(cls, value: str | None) -> Self:
        """Unknown or missing categories fall back to a general store."""
        try:
            return cls(value)
        except ValueError:
            return cls.general_store


class ListType(Enum):
    vegetable = "Vegetable"
    grocery = "Grocery"
    mixed = "Mixed"


class OrderStatus(Enum):
    pending = "pending"
    accepted = "accepted"
    rejected = "rejected"
    completed = "completed"


class Role(Enum):
    customer = "customer"
    owner = "owner"


class Bucket(Enum):
    vegetable_shop = "VegetableShop"
    grocery_shop = "GroceryShop"


class Ingredient:
    def __init__(self, *, name: str, quantity: float, unit: str) -> None:
        self.name = name
        self.quantity = quantity
        self.unit = unit

    def __repr__(self) -> str:
        return f"<Ingredient({self.name}, {self.quantity} {self.unit})>"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Ingredient):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        return cls(
            name=str(data["name"]),
            quantity=data.get("quantity", 0),
            unit=str(data.get("unit", "")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "quantity": self.quantity, "unit": self.unit}


class OrderItem(Ingredient):
    def __init__(
        self,
        *,
        name: str,
        quantity: float,
        unit: str,
        available: bool = False,
    ) -> None:
        super().__init__(name=name, quantity=quantity, unit=unit)
        self.available = available

    def __repr__(self) -> str:
        flag = "x" if self.available else " "
        return f"<OrderItem([{flag}] {self.name}, {self.quantity} {self.unit})>"

    @classmethod
    def from_ingredient(cls, ingredient: Ingredient) -> Self:
        # Availability is always reset, whatever the source carried.
        return cls(
            name=ingredient.name,
            quantity=ingredient.quantity,
            unit=ingredient.unit,
            available=False,
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        return cls(
            name=str(data["name"]),
            quantity=data.get("quantity", 0),
            unit=str(data.get("unit", "")),
            available=bool(data.get("available", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        return super().to_dict() | {"available": self.available}


class ShoppingList:
    """The two buckets of a shopping list with the edits a user makes to it."""

    def __init__(
        self,
        *,
        vegetable_shop: list[Ingredient] | None = None,
        grocery_shop: list[Ingredient] | None = None,
    ) -> None:
        self.vegetable_shop = [] if vegetable_shop is None else vegetable_shop
        self.grocery_shop = [] if grocery_shop is None else grocery_shop

    def bucket(self, bucket: Bucket) -> list[Ingredient]:
        match bucket:
            case Bucket.vegetable_shop:
                return self.vegetable_shop
            case Bucket.grocery_shop:
                return self.grocery_shop

    @property
    def is_empty(self) -> bool:
        return not (self.vegetable_shop or self.grocery_shop)

    def add(self, bucket: Bucket, item: Ingredient) -> None:
        if not item.name.strip():
            raise ValueError("An item needs a name.")
        item.name = item.name.strip()
        item.unit = item.unit.strip() or "g"
        item.quantity = item.quantity if item.quantity > 0 else 0
        self.bucket(bucket).append(item)

    def update_quantity(self, bucket: Bucket, index: int, quantity: float) -> None:
        # NaN fails every comparison, so it lands on 0 too.
        self.bucket(bucket)[index].quantity = quantity if quantity > 0 else 0

    def remove(self, bucket: Bucket, index: int) -> Ingredient:
        """Remove an item, returning it so the removal can be undone."""
        return self.bucket(bucket).pop(index)

    def restore(self, bucket: Bucket, index: int, item: Ingredient) -> None:
        self.bucket(bucket).insert(index, item)

    def to_text(self) -> str:
        text = "🛒 Shopping List (PortionPerfect)\n\n"
        if self.vegetable_shop:
            text += "🥦 Vegetable Shop:\n"
            for item in self.vegetable_shop:
                text += f"• {item.name}: {item.quantity} {item.unit}\n"
            text += "\n"
        if self.grocery_shop:
            text += "🏪 Grocery Shop:\n"
            for item in self.grocery_shop:
                text += f"• {item.name}: {item.quantity} {item.unit}\n"
        return text

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        return cls(
            vegetable_shop=[
                Ingredient.from_dict(i) for i in data.get(Bucket.vegetable_shop.value, [])
            ],
            grocery_shop=[
                Ingredient.from_dict(i) for i in data.get(Bucket.grocery_shop.value, [])
            ],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            Bucket.vegetable_shop.value: [i.to_dict() for i in self.vegetable_shop],
            Bucket.grocery_shop.value: [i.to_dict() for i in self.grocery_shop],
        }


class Nutrition:
    def __init__(
        self, *, calories: float, protein: float, carbs: float, fat: float
    ) -> None:
        self.calories = calories
        self.protein = protein
        self.carbs = carbs
        self.fat = fat

    def to_dict(self) -> dict[str, float]:
        return {
            "calories": self.calories,
            "protein": self.protein,
            "carbs": self.carbs,
            "fat": self.fat,
        }


class RecipeIngredient:
    def __init__(self, *, name: str, amount: str) -> None:
        self.name = name
        self.amount = amount

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "amount": self.amount}


class Recipe:
    def __init__(
        self,
        *,
        title: str,
        cook_time: str,
        nutrition: Nutrition,
        ingredients: list[RecipeIngredient],
        steps: list[str],
        substitutions: list[str],
        shopping_list: ShoppingList,
    ) -> None:
        self.title = title
        self.cook_time = cook_time
        self.nutrition = nutrition
        self.ingredients = ingredients
        self.steps = steps
        self.substitutions = substitutions
        self.shopping_list = shopping_list

    def __repr__(self) -> str:
        return f"<Recipe(title={self.title})>"

    @property
    def markdown(self) -> str:
        n = self.nutrition
        lines = [
            f"### {self.title}",
            "",
            f"⏰ Cook time: {self.cook_time}",
            "",
            (
                f"🔥 {n.calories:g} kcal · {n.protein:g} g protein · "
                f"{n.carbs:g} g carbs · {n.fat:g} g fat"
            ),
            "",
            "#### 📝 Ingredients",
            "",
        ]
        lines += [f"- {i.name} ({i.amount})" for i in self.ingredients]
        lines += ["", "#### ✅ Instructions", ""]
        lines += [f"{i}. {step}" for i, step in enumerate(self.steps, start=1)]
        if self.substitutions:
            lines += ["", "#### 🔁 Substitutions", ""]
            lines += [f"- {s}" for s in self.substitutions]
        return "\n".join(lines) + "\n"

    @property
    def html(self) -> str:
        return markdown2.markdown(  # pyright: ignore[reportUnknownVariableType, reportUnknownMemberType]
            self.markdown
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        nutrition = data.get("nutrition", {})
        return cls(
            title=data["recipeTitle"],
            cook_time=data.get("cookTime", ""),
            nutrition=Nutrition(
                calories=nutrition.get("calories", 0),
                protein=nutrition.get("protein", 0),
                carbs=nutrition.get("carbs", 0),
                fat=nutrition.get("fat", 0),
            ),
            ingredients=[
                RecipeIngredient(name=i["name"], amount=i["amount"])
                for i in data.get("ingredients", [])
            ],
            steps=list(data.get("steps", [])),
            substitutions=list(data.get("substitutions", [])),
            shopping_list=ShoppingList.from_dict(data.get("shoppingList", {})),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "recipeTitle": self.title,
            "cookTime": self.cook_time,
            "nutrition": self.nutrition.to_dict(),
            "ingredients": [i.to_dict() for i in self.ingredients],
            "steps": self.steps,
            "substitutions": self.substitutions,
            "shoppingList": self.shopping_list.to_dict(),
        }


class Shop:
    def __init__(
        self,
        *,
        phone: str,
        name: str,
        category: ShopCategory = ShopCategory.general_store,
        location: str = "",
        coordinates: str = "",
        owner_name: str = "",
    ) -> None:
        self.phone = phone
        self.name = name
        self.category = category
        self.location = location
        self.coordinates = coordinates
        self.owner_name = owner_name

    def __repr__(self) -> str:
        return f"<Shop(phone={self.phone}, name={self.name})>"

    def to_dict(self) -> dict[str, str]:
        return {
            "phone": self.phone,
            "name": self.name,
            "type": self.category.value,
            "location": self.location,
            "coordinates": self.coordinates,
            "ownerName": self.owner_name,
        }


class NearbyShop:
    def __init__(self, *, shop: Shop, distance_km: float, distance_label: str) -> None:
        self.shop = shop
        self.distance_km = distance_km
        self.distance_label = distance_label

    def __repr__(self) -> str:
        return f"<NearbyShop({self.shop.name}, {self.distance_label})>"

    def to_dict(self) -> dict[str, str]:
        return self.shop.to_dict() | {"distance": self.distance_label}


class Order:
    def __init__(
        self,
        *,
        id: str,
        customer_name: str,
        customer_phone: str,
        shop_phone: str,
        shop_name: str,
        items: list[OrderItem],
        list_type: ListType,
        status: OrderStatus = OrderStatus.pending,
        created_at: int,
    ) -> None:
        self.id = id
        self.customer_name = customer_name
        self.customer_phone = customer_phone
        self.shop_phone = shop_phone
        self.shop_name = shop_name
        self.items = items
        self.list_type = list_type
        self.status = status
        self.created_at = created_at

    def __repr__(self) -> str:
        return f"<Order(id={self.id}, status={self.status.value})>"

    @property
    def shop_id(self) -> str:
        return self.shop_phone

    @property
    def available_count(self) -> int:
        return sum(1 for i in self.items if i.available)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        return cls(
            id=data["id"],
            customer_name=data["customerName"],
            customer_phone=data["customerPhone"],
            shop_phone=data["shopPhone"],
            shop_name=data.get("shopName", ""),
            items=[OrderItem.from_dict(i) for i in data.get("items", [])],
            list_type=ListType(data["listType"]),
            status=OrderStatus(data.get("status", OrderStatus.pending.value)),
            created_at=int(data["createdAt"]),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "customerName": self.customer_name,
            "customerPhone": self.customer_phone,
            "shopPhone": self.shop_phone,
            "shopId": self.shop_id,
            "shopName": self.shop_name,
            "items": [i.to_dict() for i in self.items],
            "listType": self.list_type.value,
            "status": self.status.value,
            "createdAt": self.created_at,
        }


class Session:
    """An already authenticated profile, handed to the core explicitly."""

    def __init__(
        self,
        *,
        name: str,
        phone: str,
        role: Role,
        shop_name: str | None = None,
        shop_category: ShopCategory | None = None,
        location: str | None = None,
        coordinates: str | None = None,
    ) -> None:
        self.name = name
        self.phone = phone
        self.role = role
        self.shop_name = shop_name
        self.shop_category = shop_category
        self.location = location
        self.coordinates = coordinates

    def __repr__(self) -> str:
        return f"<Session(phone={self.phone}, role={self.role.value})>"

    @property
    def is_owner(self) -> bool:
        return self.role == Role.owner

    def to_dict(self) -> dict[str, str | None]:
        return {
            "name": self.name,
            "phone": self.phone,
            "role": self.role.value,
            "shopName": self.shop_name,
            "shopType": None if self.shop_category is None else self.shop_category.value,
            "location": self.location,
            "coordinates": self.coordinates,
        }
