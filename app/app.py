import asyncio
import contextlib
import functools
import logging
from typing import Any, Awaitable, Callable, Mapping

from databases import Database
from rich.logging import RichHandler
from starlette.applications import Starlette
from starlette.exceptions import HTTPException
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route, WebSocketRoute
from starlette.websockets import WebSocket

from app import config
from domain.errors import (
    EmptyListError,
    InvalidTransitionError,
    OrderItemIndexError,
    OrderNotFound,
    RecipeGenerationError,
    RetrievalError,
    ShopNotFound,
    UnauthorizedError,
)
from domain.geocoding import Geocoder
from domain.lifecycle import OrderLifecycle, order_counts, owner_queue
from domain.llm_service import LLMService
from domain.models import Order, OrderStatus, Role, Session, ShopCategory, ShoppingList
from domain.repository import OrderStore
from domain.services import plan_meal, search_point, send_shopping_list, sign_in
from domain.shops import ShopDirectory


logger = logging.getLogger(__name__)


type JSON = dict[str, Any] | list[Any]


def aJSONResponse(route: Callable[..., Awaitable[JSON | tuple[JSON, int]]]):
    @functools.wraps(route)
    async def wrapper(*args: Any, **kwargs: Any) -> JSONResponse:
        resp = await route(*args, **kwargs)
        if not isinstance(resp, tuple):
            body, code = resp, 200
        else:
            body, code = resp
        return JSONResponse(body, status_code=code)

    return wrapper


def session_from_headers(headers: Mapping[str, str]) -> Session:
    """The caller's profile, as vouched for by whatever sits in front of us."""
    name = headers.get("x-user-name")
    phone = headers.get("x-user-phone")
    role = headers.get("x-user-role")
    if not (name and phone and role):
        raise HTTPException(401, "Sign in first.")
    try:
        parsed_role = Role(role)
    except ValueError:
        raise HTTPException(401, f"Unknown role {role}.")
    shop_type = headers.get("x-shop-type")
    return Session(
        name=name,
        phone=phone,
        role=parsed_role,
        shop_name=headers.get("x-shop-name"),
        shop_category=ShopCategory.parse(shop_type) if shop_type else None,
        location=headers.get("x-user-location"),
        coordinates=headers.get("x-user-coordinates"),
    )


def services(request: Request | WebSocket) -> tuple[OrderStore, ShopDirectory, OrderLifecycle]:
    state = request.app.state
    return state.store, state.directory, state.lifecycle


@aJSONResponse
async def health(request: Request) -> JSON:
    return {"status": "active", "system": "PortionPerfect"}


@aJSONResponse
async def create_session(request: Request) -> JSON:
    data = await request.json()
    _, directory, _ = services(request)
    session = await sign_in(
        name=data.get("name", ""),
        phone=data.get("phone", ""),
        role=Role(data.get("role", Role.customer.value)),
        location=data.get("location", ""),
        coordinates=data.get("coordinates") or "",
        shop_name=data.get("shopName", ""),
        shop_type=data.get("shopType", ""),
        geocoder=request.app.state.geocoder,
        directory=directory,
    )
    return session.to_dict()


@aJSONResponse
async def recipes(request: Request) -> JSON:
    session = session_from_headers(request.headers)
    data = await request.json()
    _, directory, _ = services(request)
    recipe, shops = await plan_meal(
        session,
        dish_name=data.get("dishName", ""),
        people_count=int(data.get("peopleCount", 1)),
        restrictions=data.get("restrictions", ""),
        llm=request.app.state.llm,
        directory=directory,
    )
    return {
        "recipe": recipe.to_dict(),
        "html": recipe.html,
        "shoppingListText": recipe.shopping_list.to_text(),
        "shops": [s.to_dict() for s in shops],
    }


@aJSONResponse
async def shops(request: Request) -> JSON:
    _, directory, _ = services(request)
    point = request.query_params.get("near")
    if point is None and "x-user-phone" in request.headers:
        point = search_point(session_from_headers(request.headers))
    nearby = await directory.list_shops_near(point)
    return [s.to_dict() for s in nearby]


@aJSONResponse
async def send_order(request: Request) -> tuple[JSON, int]:
    session = session_from_headers(request.headers)
    data = await request.json()
    _, directory, lifecycle = services(request)
    order = await send_shopping_list(
        session,
        shop_phone=request.path_params["phone"],
        shopping_list=ShoppingList.from_dict(data["shoppingList"]),
        directory=directory,
        lifecycle=lifecycle,
    )
    return order.to_dict(), 201


@aJSONResponse
async def orders(request: Request) -> JSON:
    session = session_from_headers(request.headers)
    store, _, _ = services(request)
    if session.is_owner:
        found = await store.orders_for_shop(session.phone)
        return {
            "orders": [o.to_dict() for o in owner_queue(found)],
            "counts": order_counts(found),
        }
    found = await store.orders_for_customer(session.phone)
    return {"orders": [o.to_dict() for o in found]}


@aJSONResponse
async def order_status(request: Request) -> JSON:
    session = session_from_headers(request.headers)
    data = await request.json()
    _, _, lifecycle = services(request)
    order = await lifecycle.transition(
        session, request.path_params["id"], OrderStatus(data["status"])
    )
    return order.to_dict()


@aJSONResponse
async def order_item(request: Request) -> JSON:
    session = session_from_headers(request.headers)
    data = await request.json()
    available = data.get("available")
    if not isinstance(available, bool):
        raise ValueError("available must be true or false.")
    _, _, lifecycle = services(request)
    order = await lifecycle.set_item_availability(
        session,
        request.path_params["id"],
        request.path_params["index"],
        available,
    )
    return order.to_dict()


async def order_stream(ws: WebSocket) -> None:
    """Live order snapshots: the shop's orders for owners, own orders otherwise."""
    try:
        session = session_from_headers(ws.headers)
    except HTTPException:
        await ws.close(code=1008)
        return
    await ws.accept()

    store, _, _ = services(ws)
    snapshots: asyncio.Queue[list[Order]] = asyncio.Queue()
    watch = store.watch_shop_orders if session.is_owner else store.watch_customer_orders
    sub = await watch(session.phone, snapshots.put_nowait)

    async def pump() -> None:
        while True:
            found = await snapshots.get()
            await ws.send_json({"orders": [o.to_dict() for o in found]})

    pumping = asyncio.create_task(pump())
    try:
        while True:
            message = await ws.receive()
            if message["type"] == "websocket.disconnect":
                break
    finally:
        sub.cancel()
        pumping.cancel()


def error_handler(code: int) -> Callable[[Request, Exception], Awaitable[JSONResponse]]:
    async def handler(request: Request, exc: Exception) -> JSONResponse:
        if code >= 500:
            logger.error("%s %s failed: %r", request.method, request.url.path, exc)
        return JSONResponse({"error": str(exc)}, status_code=code)

    return handler


async def http_error(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, HTTPException)
    return JSONResponse({"error": exc.detail}, status_code=exc.status_code)


EXCEPTION_HANDLERS = {
    HTTPException: http_error,
    ValueError: error_handler(400),
    KeyError: error_handler(400),
    EmptyListError: error_handler(400),
    UnauthorizedError: error_handler(403),
    OrderNotFound: error_handler(404),
    ShopNotFound: error_handler(404),
    InvalidTransitionError: error_handler(409),
    OrderItemIndexError: error_handler(422),
    RetrievalError: error_handler(502),
    RecipeGenerationError: error_handler(502),
}


def create_app(
    conf: config.Config | None = None,
    *,
    llm: LLMService | None = None,
    geocoder: Geocoder | None = None,
) -> Starlette:
    conf = config.Config() if conf is None else conf
    logging.basicConfig(
        level=conf.log_level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True)],
    )

    db = Database(conf.db_url)
    store = OrderStore(db)
    geocoder = Geocoder(base_url=conf.geocoder_url) if geocoder is None else geocoder

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette):
        await db.connect()
        await store.create_tables()
        yield
        await geocoder.close()
        await db.disconnect()

    app = Starlette(
        debug=True if conf.env == config.Env.local else False,
        routes=[
            Route("/", health),
            Route("/session", create_session, methods=["POST"]),
            Route("/recipes", recipes, methods=["POST"]),
            Route("/shops", shops),
            Route("/shops/{phone}/orders", send_order, methods=["POST"]),
            Route("/orders", orders),
            Route("/orders/{id}/status", order_status, methods=["POST"]),
            Route("/orders/{id}/items/{index:int}", order_item, methods=["POST"]),
            WebSocketRoute("/ws/orders", order_stream),
        ],
        exception_handlers=EXCEPTION_HANDLERS,  # pyright: ignore[reportArgumentType]
        lifespan=lifespan,
    )

    app.state.store = store
    app.state.directory = ShopDirectory(store)
    app.state.lifecycle = OrderLifecycle(store)
    app.state.geocoder = geocoder
    app.state.llm = LLMService(model=conf.core_model) if llm is None else llm
    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(create_app(), host="0.0.0.0", port=8000)
