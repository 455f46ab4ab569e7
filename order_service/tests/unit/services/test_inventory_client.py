"""
Unit tests for the inventory and product catalog clients.
"""

import json
from decimal import Decimal

import httpx
import pytest

from order_service.app.services.exceptions import (
    InfrastructureError,
    OrderValidationError,
)
from order_service.app.services.inventory_client import InventoryClient, ProductCatalog


def http_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestInventoryClient:
    @pytest.mark.asyncio
    async def test_check_stock_all_available(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={"all_available": True, "unavailable": []})

        client = InventoryClient("http://inventory:8000/", client=http_client(handler))

        result = await client.check_stock(
            [{"product_id": "p1", "quantity": 2, "extra": "ignored"}]
        )

        assert result.all_available is True
        assert result.unavailable == []
        assert str(requests[0].url) == "http://inventory:8000/api/v1/inventory/check-stock"
        assert json.loads(requests[0].content) == {
            "items": [{"product_id": "p1", "quantity": 2}]
        }
        await client.close()

    @pytest.mark.asyncio
    async def test_check_stock_reports_unavailable_products(self):
        def handler(request):
            return httpx.Response(
                200,
                json={
                    "all_available": False,
                    "unavailable": [{"product_id": "p2", "requested": 5, "available": 1}],
                },
            )

        client = InventoryClient("http://inventory:8000", client=http_client(handler))

        result = await client.check_stock([{"product_id": "p2", "quantity": 5}])

        assert result.all_available is False
        assert result.unavailable == [
            {"productId": "p2", "requested": 5, "available": 1}
        ]
        await client.close()

    @pytest.mark.asyncio
    async def test_check_stock_reads_camel_case_flag(self):
        client = InventoryClient(
            "http://inventory:8000",
            client=http_client(
                lambda request: httpx.Response(
                    200, json={"allAvailable": False, "unavailable": []}
                )
            ),
        )

        result = await client.check_stock([{"product_id": "p1", "quantity": 1}])

        assert result.all_available is False
        await client.close()

    @pytest.mark.asyncio
    async def test_check_stock_without_flag_is_infrastructure(self):
        client = InventoryClient(
            "http://inventory:8000",
            client=http_client(
                lambda request: httpx.Response(200, json={"unavailable": []})
            ),
        )

        with pytest.raises(InfrastructureError):
            await client.check_stock([{"product_id": "p1", "quantity": 1}])
        await client.close()

    @pytest.mark.asyncio
    async def test_check_stock_service_error_is_infrastructure(self):
        client = InventoryClient(
            "http://inventory:8000",
            client=http_client(lambda request: httpx.Response(503)),
        )

        with pytest.raises(InfrastructureError):
            await client.check_stock([{"product_id": "p1", "quantity": 1}])
        await client.close()

    @pytest.mark.asyncio
    async def test_check_stock_unreachable_is_infrastructure(self):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        client = InventoryClient("http://inventory:8000", client=http_client(handler))

        with pytest.raises(InfrastructureError):
            await client.check_stock([{"product_id": "p1", "quantity": 1}])
        await client.close()


class TestProductCatalog:
    @pytest.mark.asyncio
    async def test_get_product(self):
        def handler(request):
            assert request.url.path == "/api/v1/products/p1"
            return httpx.Response(
                200,
                json={
                    "id": "p1",
                    "name": "Teclado",
                    "price": 1000.5,
                    "images": ["http://cdn/p1.png"],
                },
            )

        catalog = ProductCatalog("http://products:8000", client=http_client(handler))

        product = await catalog.get_product("p1")

        assert product.name == "Teclado"
        assert product.price == Decimal("1000.5")
        assert product.image_url == "http://cdn/p1.png"
        await catalog.close()

    @pytest.mark.asyncio
    async def test_unknown_product_is_validation_error(self):
        catalog = ProductCatalog(
            "http://products:8000",
            client=http_client(lambda request: httpx.Response(404)),
        )

        with pytest.raises(OrderValidationError) as exc_info:
            await catalog.get_product("missing")

        assert exc_info.value.details == {"product_id": "missing"}
        await catalog.close()

    @pytest.mark.asyncio
    async def test_service_error_is_infrastructure(self):
        catalog = ProductCatalog(
            "http://products:8000",
            client=http_client(lambda request: httpx.Response(500)),
        )

        with pytest.raises(InfrastructureError):
            await catalog.get_product("p1")
        await catalog.close()

    @pytest.mark.asyncio
    async def test_missing_price_is_infrastructure(self):
        catalog = ProductCatalog(
            "http://products:8000",
            client=http_client(
                lambda request: httpx.Response(200, json={"id": "p1", "name": "X"})
            ),
        )

        with pytest.raises(InfrastructureError):
            await catalog.get_product("p1")
        await catalog.close()
