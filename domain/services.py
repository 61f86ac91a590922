import logging
import re

from domain.geo import is_coordinates, parse_coordinates
from domain.geocoding import Geocoder
from domain.lifecycle import OrderLifecycle
from domain.llm_service import LLMService
from domain.models import (
    NearbyShop,
    Order,
    Recipe,
    Role,
    Session,
    ShopCategory,
    ShoppingList,
)
from domain.routing import route_list
from domain.shops import ShopDirectory


logger = logging.getLogger(__name__)


PHONE_PATTERN = re.compile(r"^\d{10}$")


async def sign_in(
    *,
    name: str,
    phone: str,
    role: Role,
    location: str,
    coordinates: str = "",
    shop_name: str = "",
    shop_type: str = "",
    geocoder: Geocoder,
    directory: ShopDirectory,
) -> Session:
    """Build a session from a sign in form, registering the shop for owners.

    A blank location with GPS coordinates gets a label from reverse geocoding.
    """
    phone = re.sub(r"\D", "", phone)
    coordinates = coordinates.strip()
    point = parse_coordinates(coordinates)
    if not name.strip():
        raise ValueError("Name is required.")
    if not PHONE_PATTERN.match(phone):
        raise ValueError("Phone number must have 10 digits.")
    if not location.strip() and point is None:
        raise ValueError("Location is required.")
    if role == Role.owner and not shop_name.strip():
        raise ValueError("Shop name is required.")

    if not location.strip() and point is not None:
        location = await geocoder.reverse(*point)
    if not coordinates:
        coordinates = await geocoder.resolve(location)

    session = Session(
        name=name.strip(),
        phone=phone,
        role=role,
        location=location.strip(),
        coordinates=coordinates,
    )
    if role == Role.owner:
        session.shop_name = shop_name.strip()
        session.shop_category = ShopCategory.parse(shop_type or None)
        await directory.register_shop(session)
    return session


def search_point(session: Session) -> str | None:
    if session.coordinates:
        return session.coordinates
    if is_coordinates(session.location):
        return session.location
    return None


async def plan_meal(
    session: Session,
    *,
    dish_name: str,
    people_count: int,
    restrictions: str = "",
    llm: LLMService,
    directory: ShopDirectory,
) -> tuple[Recipe, list[NearbyShop]]:
    recipe = await llm.generate_recipe(
        dish_name=dish_name,
        people_count=people_count,
        restrictions=restrictions,
    )
    shops = await directory.list_shops_near(search_point(session))
    return recipe, shops


async def send_shopping_list(
    session: Session,
    *,
    shop_phone: str,
    shopping_list: ShoppingList,
    directory: ShopDirectory,
    lifecycle: OrderLifecycle,
) -> Order:
    shop = await directory.get_shop(shop_phone)
    items, list_type = route_list(shopping_list, shop.category)
    return await lifecycle.create_order(session, shop, items, list_type)
