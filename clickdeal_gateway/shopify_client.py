import json
import logging
from functools import lru_cache
from typing import Any

import httpx
from prometheus_client import Counter

from .config import Settings, get_settings
from .schemas import ProductSummary, VariantSummary

logger = logging.getLogger(__name__)

SHOPIFY_REQUESTS_TOTAL = Counter(
    "clickdeal_shopify_requests_total",
    "Total number of calls made to the Shopify APIs",
    ["surface", "outcome"],
)

VARIANT_GID_PREFIX = "gid://shopify/ProductVariant/"
PRODUCT_LIST_FIELDS = "id,title,handle,variants"

FIRST_VARIANT_QUERY = """#graphql
query($handle: String!) {
  product(handle: $handle) {
    id
    title
    variants(first: 1) {
      nodes {
        id
        title
        price { amount currencyCode }
      }
    }
  }
}"""

VARIANT_STOCK_QUERY = """#graphql
query($id: ID!) {
  productVariant(id: $id) {
    id
    inventoryQuantity
    inventoryItem { tracked }
  }
}"""

DRAFT_ORDER_CREATE_MUTATION = """#graphql
mutation CreateDraft($input: DraftOrderInput!) {
  draftOrderCreate(input: $input) {
    draftOrder { id invoiceUrl name }
    userErrors { field message }
  }
}"""


class ShopifyServiceError(Exception):
    pass


class ShopifyHTTPError(ShopifyServiceError):
    def __init__(self, surface: str, status_code: int, body: str = "") -> None:
        self.surface = surface
        self.status_code = status_code
        self.body = body
        super().__init__(f"Shopify {surface.capitalize()} error: {status_code}")


class ShopifyGraphQLError(ShopifyServiceError):
    def __init__(self, errors: Any) -> None:
        self.errors = errors
        super().__init__(json.dumps(errors))


def normalize_variant_gid(variant_id: str) -> str:
    """Qualify a bare numeric variant id; qualified ids pass through untouched."""
    if variant_id.startswith("gid://"):
        return variant_id
    return f"{VARIANT_GID_PREFIX}{variant_id}"


def project_rest_product(product: dict) -> ProductSummary:
    variants = []
    for variant in product.get("variants") or []:
        gid = variant.get("admin_graphql_api_id") or normalize_variant_gid(str(variant.get("id")))
        variants.append(
            VariantSummary(
                id=gid,
                title=variant.get("title"),
                price=variant.get("price"),
                inventory_quantity=variant.get("inventory_quantity"),
            )
        )
    return ProductSummary(title=product.get("title"), handle=product.get("handle"), variants=variants)


class ShopifyClient:
    """Admin and Storefront access for one store.

    Every call is a single attempt. HTTP failures raise ShopifyHTTPError, GraphQL
    ``errors`` arrays raise ShopifyGraphQLError and transport problems raise
    ShopifyServiceError.
    """

    def __init__(self, settings: Settings, http: httpx.Client | None = None) -> None:
        self.settings = settings
        self.http = http or httpx.Client(timeout=settings.HTTP_TIMEOUT_SECONDS)

    @property
    def admin_base_url(self) -> str:
        return f"https://{self.settings.SHOPIFY_STORE_DOMAIN}/admin/api/{self.settings.SHOPIFY_API_VERSION}"

    @property
    def storefront_url(self) -> str:
        return f"https://{self.settings.SHOPIFY_STORE_DOMAIN}/api/{self.settings.SHOPIFY_API_VERSION}/graphql.json"

    def _admin_headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "X-Shopify-Access-Token": self.settings.SHOPIFY_ADMIN_TOKEN,
        }

    def _storefront_headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "X-Shopify-Storefront-Access-Token": self.settings.SHOPIFY_STOREFRONT_TOKEN,
        }

    def _send(self, surface: str, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self.http.request(method, url, **kwargs)
        except httpx.RequestError as e:
            SHOPIFY_REQUESTS_TOTAL.labels(surface=surface, outcome="unavailable").inc()
            logger.warning("Shopify %s request to %s failed: %s", surface, url, e)
            msg = f"Shopify {surface} request failed: {e}"
            raise ShopifyServiceError(msg) from e

        if response.is_success:
            SHOPIFY_REQUESTS_TOTAL.labels(surface=surface, outcome="ok").inc()
            return response

        SHOPIFY_REQUESTS_TOTAL.labels(surface=surface, outcome="http_error").inc()
        logger.warning("Shopify %s responded %s for %s", surface, response.status_code, url)
        raise ShopifyHTTPError(surface, response.status_code, response.text)

    def _graphql(self, surface: str, url: str, headers: dict, query: str, variables: dict | None) -> dict:
        response = self._send(
            surface,
            "POST",
            url,
            headers=headers,
            json={"query": query, "variables": variables or {}},
        )
        payload = response.json()
        if "errors" in payload:
            raise ShopifyGraphQLError(payload["errors"])
        return payload.get("data") or {}

    def admin_graphql(self, query: str, variables: dict | None = None) -> dict:
        return self._graphql(
            "admin", f"{self.admin_base_url}/graphql.json", self._admin_headers(), query, variables
        )

    def storefront_graphql(self, query: str, variables: dict | None = None) -> dict:
        return self._graphql(
            "storefront", self.storefront_url, self._storefront_headers(), query, variables
        )

    def list_products(self, limit: int = 50) -> list[ProductSummary]:
        """First page of active, published products from the Admin REST API."""
        response = self._send(
            "rest",
            "GET",
            f"{self.admin_base_url}/products.json",
            headers=self._admin_headers(),
            params={
                "limit": limit,
                "status": "active",
                "published_status": "published",
                "fields": PRODUCT_LIST_FIELDS,
            },
        )
        return [project_rest_product(p) for p in response.json().get("products") or []]

    def first_variant(self, handle: str) -> tuple[dict, dict] | None:
        """Return ``(product, variant)`` for the handle's first variant, or None."""
        data = self.storefront_graphql(FIRST_VARIANT_QUERY, {"handle": handle})
        product = data.get("product")
        if not product:
            return None
        nodes = (product.get("variants") or {}).get("nodes") or []
        if not nodes:
            return None
        return product, nodes[0]

    def variant_stock(self, variant_id: str) -> dict | None:
        data = self.admin_graphql(VARIANT_STOCK_QUERY, {"id": normalize_variant_gid(variant_id)})
        return data.get("productVariant")

    def create_draft_order(self, draft_input: dict) -> dict:
        data = self.admin_graphql(DRAFT_ORDER_CREATE_MUTATION, {"input": draft_input})
        return data.get("draftOrderCreate") or {}

    def close(self) -> None:
        self.http.close()


@lru_cache
def get_shopify_client() -> ShopifyClient:
    return ShopifyClient(get_settings())
