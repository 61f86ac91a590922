import logging

from domain.errors import EmptyListError
from domain.models import ListType, OrderItem, ShopCategory, ShoppingList


logger = logging.getLogger(__name__)


def route_list(
    shopping_list: ShoppingList,
    shop_category: ShopCategory | None,
) -> tuple[list[OrderItem], ListType]:
    """Pick the part of a shopping list a shop of this category can fill."""
    match shop_category:
        case ShopCategory.vegetable_shop:
            ingredients, list_type = shopping_list.vegetable_shop, ListType.vegetable
        case ShopCategory.grocery_store | ShopCategory.bakery:
            ingredients, list_type = shopping_list.grocery_shop, ListType.grocery
        case _:
            ingredients = shopping_list.vegetable_shop + shopping_list.grocery_shop
            list_type = ListType.mixed

    if not ingredients:
        logger.info("Nothing to route for %s list", list_type.value)
        raise EmptyListError(
            f"Your {list_type.value} list is empty, nothing to send!"
        )

    return [OrderItem.from_ingredient(i) for i in ingredients], list_type
