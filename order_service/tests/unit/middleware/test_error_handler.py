"""
Unit tests for Order Service Error Handler.
"""

import pytest
from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient
from pydantic import BaseModel

from order_service.app.middleware.error.error_handler import (
    INTERNAL_ERROR_MESSAGE,
    setup_order_error_handling,
    status_code_for,
)
from order_service.app.services.exceptions import (
    AccessDeniedError,
    BrokerUnavailableError,
    CancellationNotAllowedError,
    ConcurrentModificationError,
    InsufficientStockError,
    InvalidTransitionError,
    MissingTrackingNumberError,
    OrderNotFoundError,
    OrderServiceError,
    OrderValidationError,
)


class Payload(BaseModel):
    quantity: int


@pytest.fixture
def client():
    app = FastAPI()
    setup_order_error_handling(app)

    @app.get("/not-found")
    async def not_found():
        raise OrderNotFoundError("o-1")

    @app.get("/transition")
    async def transition():
        raise InvalidTransitionError("entregado", "pendiente")

    @app.get("/broker")
    async def broker():
        raise BrokerUnavailableError("kafka at localhost:9092 is down")

    @app.get("/http")
    async def http():
        raise HTTPException(status_code=418, detail="teapot")

    @app.get("/boom")
    async def boom():
        raise RuntimeError("secret connection string")

    @app.post("/validate")
    async def validate(payload: Payload):
        return payload

    return TestClient(app, raise_server_exceptions=False)


@pytest.mark.parametrize(
    "exc,status_code",
    [
        (OrderValidationError("bad"), 400),
        (InvalidTransitionError("pendiente", "entregado"), 400),
        (MissingTrackingNumberError(), 400),
        (AccessDeniedError("no"), 403),
        (OrderNotFoundError("o-1"), 404),
        (InsufficientStockError([]), 409),
        (CancellationNotAllowedError("entregado"), 409),
        (ConcurrentModificationError("o-1"), 409),
        (BrokerUnavailableError("down"), 500),
        (OrderServiceError("unknown"), 500),
    ],
)
def test_status_code_for(exc, status_code):
    assert status_code_for(exc) == status_code


class TestErrorResponses:
    def test_not_found_response(self, client):
        response = client.get("/not-found", headers={"X-Correlation-ID": "ignored"})

        assert response.status_code == 404
        error = response.json()["error"]
        assert error["type"] == "not_found"
        assert error["message"] == "Pedido con ID o-1 no encontrado"
        assert error["details"] == {"order_id": "o-1"}
        assert error["user_id"] == "anonymous"
        assert "timestamp" in error

    def test_invalid_transition_is_bad_request(self, client):
        response = client.get("/transition")

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["type"] == "invalid_transition"
        assert error["details"]["current_status"] == "entregado"

    def test_infrastructure_error_is_opaque(self, client):
        response = client.get("/broker")

        assert response.status_code == 500
        error = response.json()["error"]
        assert error["message"] == INTERNAL_ERROR_MESSAGE
        assert error["details"] == {}
        assert "localhost" not in response.text

    def test_http_exception(self, client):
        response = client.get("/http")

        assert response.status_code == 418
        assert response.json()["error"]["type"] == "http_error"

    def test_request_validation_is_bad_request(self, client):
        response = client.post("/validate", json={"quantity": "many"})

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["type"] == "validation_error"
        fields = [item["field"] for item in error["details"]["validation_errors"]]
        assert "body.quantity" in fields

    def test_unhandled_exception_is_opaque(self, client):
        response = client.get("/boom")

        assert response.status_code == 500
        error = response.json()["error"]
        assert error["type"] == "internal_server_error"
        assert error["message"] == INTERNAL_ERROR_MESSAGE
        assert "secret" not in response.text
