import logging
from typing import Iterable

from domain.errors import UnauthorizedError
from domain.geo import distance, format_distance, parse_coordinates
from domain.models import NearbyShop, Session, Shop, ShopCategory
from domain.repository import OrderStore


logger = logging.getLogger(__name__)


UNKNOWN_DISTANCE = "Unknown"
UNKNOWN_DISTANCE_KM = 99999.0


def rank_shops(shops: Iterable[Shop], point: str | None) -> list[NearbyShop]:
    """Annotate shops with their distance from `point`, nearest first.

    Shops whose distance cannot be worked out sort last. `sorted` is stable,
    so equal distances keep retrieval order.
    """
    origin = parse_coordinates(point)
    nearby: list[NearbyShop] = []
    for shop in shops:
        target = parse_coordinates(shop.coordinates)
        if origin is None or target is None:
            km, label = UNKNOWN_DISTANCE_KM, UNKNOWN_DISTANCE
        else:
            km = distance(*origin, *target)
            label = format_distance(km)
        nearby.append(NearbyShop(shop=shop, distance_km=km, distance_label=label))
    return sorted(nearby, key=lambda n: n.distance_km)


class ShopDirectory:
    def __init__(self, store: OrderStore) -> None:
        self.store = store

    async def register_shop(self, session: Session) -> Shop:
        """Register or refresh the owner's shop, keyed by their phone."""
        if not session.is_owner:
            raise UnauthorizedError("Only shop owners can register a shop.")
        shop = Shop(
            phone=session.phone,
            name=session.shop_name or "",
            category=session.shop_category or ShopCategory.general_store,
            location=session.location or "",
            coordinates=session.coordinates or "",
            owner_name=session.name,
        )
        await self.store.upsert_shop(shop)
        logger.info("Registered shop %s (%s)", shop.name, shop.phone)
        return shop

    async def get_shop(self, phone: str) -> Shop:
        return await self.store.get_shop(phone)

    async def list_shops_near(self, point: str | None = None) -> list[NearbyShop]:
        shops = await self.store.list_shops()
        return rank_shops(shops, point)
