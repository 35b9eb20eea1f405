import logging
from datetime import datetime, timezone
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Request, status
from prometheus_client import Counter

from .auth import require_api_key
from .notifications import WhatsAppNotifier, format_order_message, get_notifier
from .schemas import (
    DraftOrderResult,
    HealthStatus,
    Money,
    OrderCreated,
    OrderRequest,
    PriceQuote,
    ProductList,
    StockLevel,
)
from .shopify_client import (
    ShopifyClient,
    ShopifyHTTPError,
    get_shopify_client,
    normalize_variant_gid,
)

logger = logging.getLogger(__name__)

DRAFT_ORDERS_CREATED_TOTAL = Counter(
    "clickdeal_draft_orders_created_total",
    "Total number of draft orders created in Shopify",
)

DRAFT_ORDER_NOTE = "Created by ClickDeal GPT"
DRAFT_ORDER_TAGS = ["gpt", "clickdeal-assistant"]
DEFAULT_LAST_NAME = "Customer"

ShopifyDep = Annotated[ShopifyClient, Depends(get_shopify_client)]
NotifierDep = Annotated[WhatsAppNotifier, Depends(get_notifier)]


def _error(status_code: int, error: str, **extra: Any) -> HTTPException:
    return HTTPException(status_code=status_code, detail={"error": error, **extra})


def _no_variant() -> HTTPException:
    return _error(status.HTTP_404_NOT_FOUND, "Product not found or has no variants")


monitoring_router = APIRouter(prefix="/api", tags=["Monitoring"])


@monitoring_router.get("/health", response_model=HealthStatus)
def health_check() -> HealthStatus:
    return HealthStatus(ok=True, ts=datetime.now(timezone.utc))


catalog_router = APIRouter(
    prefix="/api",
    tags=["Catalog"],
    dependencies=[Depends(require_api_key)],
)


@catalog_router.get("/products", response_model=ProductList)
def list_products(shopify: ShopifyDep) -> ProductList:
    try:
        products = shopify.list_products()
    except ShopifyHTTPError as e:
        logger.exception("Shopify rejected the product listing: %s", e)
        raise _error(status.HTTP_502_BAD_GATEWAY, "Shopify error", detail=e.body) from e
    except Exception as e:
        logger.exception("Failed to fetch products: %s", e)
        raise _error(
            status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to fetch products", detail=str(e)
        ) from e
    return ProductList(count=len(products), products=products)


@catalog_router.get("/price/{handle}", response_model=PriceQuote)
def get_price(handle: str, shopify: ShopifyDep) -> PriceQuote:
    try:
        found = shopify.first_variant(handle)
        if found is None:
            raise _no_variant()
        product, variant = found
        return PriceQuote(
            product_handle=handle,
            product_title=product.get("title"),
            variant_id=variant["id"],
            variant_title=variant.get("title"),
            price=Money.model_validate(variant["price"]),
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Price lookup failed for %s: %s", handle, e)
        raise _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(e)) from e


@catalog_router.get("/stock/{variant_id:path}", response_model=StockLevel)
def get_stock(variant_id: str, shopify: ShopifyDep) -> StockLevel:
    try:
        variant = shopify.variant_stock(variant_id)
        if not variant:
            raise _error(status.HTTP_404_NOT_FOUND, "Variant not found")
        tracked = (variant.get("inventoryItem") or {}).get("tracked")
        return StockLevel(
            variant_id=variant["id"],
            quantity=variant.get("inventoryQuantity"),
            tracked=True if tracked is None else tracked,
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Stock lookup failed for %s: %s", variant_id, e)
        raise _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(e)) from e


order_router = APIRouter(
    prefix="/api",
    tags=["Orders"],
    dependencies=[Depends(require_api_key)],
)


def split_customer_name(name: str) -> tuple[str, str]:
    parts = name.split(" ")
    first = parts[0] or name
    last = " ".join(parts[1:]) or DEFAULT_LAST_NAME
    return first, last


def build_draft_order_input(order: OrderRequest, variant_id: str) -> dict:
    first_name, last_name = split_customer_name(order.name)
    return {
        "lineItems": [{"variantId": variant_id, "quantity": order.quantity}],
        "shippingAddress": {
            "address1": order.address,
            "city": order.city,
            "firstName": first_name,
            "lastName": last_name,
            "phone": order.phone,
        },
        "note": DRAFT_ORDER_NOTE,
        "tags": DRAFT_ORDER_TAGS,
    }


def resolve_variant_id(order: OrderRequest, shopify: ShopifyClient) -> str:
    """Use the caller's variant when given, else the product's first variant."""
    if order.variant_id:
        return normalize_variant_gid(str(order.variant_id))
    found = shopify.first_variant(order.product_handle)
    if found is None:
        raise _no_variant()
    return found[1]["id"]


def create_draft_order(order: OrderRequest, variant_id: str, shopify: ShopifyClient) -> DraftOrderResult:
    result = shopify.create_draft_order(build_draft_order_input(order, variant_id))
    draft = result.get("draftOrder")
    if not draft:
        user_errors = result.get("userErrors")
        logger.error("Draft order for %s was rejected: %s", order.product_handle, user_errors)
        raise _error(
            status.HTTP_500_INTERNAL_SERVER_ERROR, "Draft order failed", details=user_errors
        )
    return DraftOrderResult.model_validate(draft)


async def read_order_request(request: Request) -> OrderRequest:
    """Decode and validate the order body; runs after the router's auth dependency."""
    try:
        return OrderRequest.model_validate(await request.json())
    except ValueError as e:
        raise _error(status.HTTP_400_BAD_REQUEST, "Missing or invalid fields") from e


def notify_order(order: OrderRequest, draft: DraftOrderResult, notifier: WhatsAppNotifier) -> None:
    try:
        notifier.notify(format_order_message(order, draft.invoice_url))
    except Exception as e:
        logger.exception("Notification for draft order %s failed: %s", draft.id, e)


@order_router.post("/orders", response_model=OrderCreated, status_code=status.HTTP_201_CREATED)
def create_order(
    order: Annotated[OrderRequest, Depends(read_order_request)],
    shopify: ShopifyDep,
    notifier: NotifierDep,
) -> OrderCreated:
    """
    Place a draft order for an assistant-collected customer.

    Resolve the variant -> create the draft order in Shopify -> notify the
    WhatsApp recipients (best-effort; never affects the response).
    """
    try:
        variant_id = resolve_variant_id(order, shopify)
        draft = create_draft_order(order, variant_id, shopify)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Failed to create order for %s: %s", order.product_handle, e)
        raise _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(e)) from e

    DRAFT_ORDERS_CREATED_TOTAL.inc()
    logger.info("Created draft order %s (%s) for %s", draft.id, draft.name, order.product_handle)

    notify_order(order, draft, notifier)

    return OrderCreated(draft_order_id=draft.id, invoice_url=draft.invoice_url)
