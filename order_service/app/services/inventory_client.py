"""
API clients for the Inventory and Product services.
Order creation uses them to validate stock and to snapshot product name and
price into the order items.
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Sequence

import httpx

from ..core.setting import get_settings
from ..utils.logging import setup_order_logging as setup_logging
from .exceptions import InfrastructureError, OrderValidationError

logger = setup_logging("order_service.inventory_client")


@dataclass
class StockCheckResult:
    all_available: bool
    unavailable: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class ProductDetails:
    id: str
    name: str
    price: Decimal
    image_url: Optional[str] = None


class InventoryClient:
    """Client for checking stock via Inventory Service API"""

    def __init__(
        self,
        inventory_service_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        settings = get_settings()
        self.base_url = (inventory_service_url or settings.INVENTORY_SERVICE_URL).rstrip("/")
        self.timeout = timeout or settings.HTTP_CLIENT_TIMEOUT
        self.client = client or httpx.AsyncClient(timeout=self.timeout)

    async def check_stock(self, items: Sequence[Dict[str, Any]]) -> StockCheckResult:
        """Check that every ``{product_id, quantity}`` line can be served"""
        payload = {
            "items": [
                {"product_id": item["product_id"], "quantity": item["quantity"]}
                for item in items
            ]
        }
        logger.info(
            f"Validating stock for {len(payload['items'])} products",
            extra={"operation": "check_stock"},
        )

        try:
            response = await self.client.post(
                f"{self.base_url}/api/v1/inventory/check-stock", json=payload
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(
                f"Stock validation failed: {e}", extra={"operation": "check_stock"}
            )
            raise InfrastructureError("Error al validar stock") from e

        unavailable = [
            {
                "productId": str(entry.get("product_id", entry.get("productId"))),
                "requested": entry.get("requested"),
                "available": entry.get("available"),
            }
            for entry in data.get("unavailable", [])
        ]
        all_available = data.get("all_available", data.get("allAvailable"))
        if all_available is None:
            logger.error(
                "Stock validation response without availability flag",
                extra={"operation": "check_stock"},
            )
            raise InfrastructureError("Error al validar stock")

        return StockCheckResult(
            all_available=bool(all_available) and not unavailable,
            unavailable=unavailable,
        )

    async def close(self) -> None:
        """Close the HTTP client"""
        await self.client.aclose()


class ProductCatalog:
    """Client for product name/price lookups via Product Service API"""

    def __init__(
        self,
        product_service_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        settings = get_settings()
        self.base_url = (product_service_url or settings.PRODUCT_SERVICE_URL).rstrip("/")
        self.timeout = timeout or settings.HTTP_CLIENT_TIMEOUT
        self.client = client or httpx.AsyncClient(timeout=self.timeout)

    async def get_product(self, product_id: str) -> ProductDetails:
        logger.info(
            f"Fetching product details for {product_id}",
            extra={"product_id": product_id, "operation": "get_product"},
        )
        try:
            response = await self.client.get(
                f"{self.base_url}/api/v1/products/{product_id}"
            )
        except httpx.HTTPError as e:
            logger.error(
                f"Product lookup failed: {e}", extra={"product_id": product_id}
            )
            raise InfrastructureError("Error al obtener detalles del producto") from e

        if response.status_code == 404:
            raise OrderValidationError(
                f"Producto con ID {product_id} no encontrado",
                details={"product_id": product_id},
            )
        if response.status_code != 200:
            logger.error(
                f"Product lookup failed: HTTP {response.status_code}",
                extra={"product_id": product_id, "status_code": response.status_code},
            )
            raise InfrastructureError("Error al obtener detalles del producto")

        data = response.json()
        try:
            price = Decimal(str(data["price"]))
        except (KeyError, InvalidOperation) as e:
            raise InfrastructureError(
                f"Producto {product_id} sin precio válido",
                details={"product_id": product_id},
            ) from e

        images = data.get("images") or []
        return ProductDetails(
            id=str(data.get("id", product_id)),
            name=data.get("name", ""),
            price=price,
            image_url=data.get("image_url") or (images[0] if images else None),
        )

    async def close(self) -> None:
        """Close the HTTP client"""
        await self.client.aclose()
