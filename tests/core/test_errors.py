"""Tests for error types and exception handlers"""
import json

import pytest
from fastapi import HTTPException
from fastapi.exceptions import RequestValidationError
from unittest.mock import MagicMock, patch

from variant_engine.core.errors import (
    ErrorResponse,
    InsufficientStock,
    NoVariantAttributesSelected,
    PersistenceFailure,
    UnsatisfiableConstraint,
    error_response_handler,
    http_exception_handler,
    validation_exception_handler,
)


@pytest.fixture
def request_mock():
    request = MagicMock()
    request.url = "http://test/api/inventory/abc/reserve"
    request.method = "POST"
    return request


def test_error_defaults():
    error = ErrorResponse("bad")
    assert error.status_code == 400
    assert error.code == "error"
    assert error.details == {}


def test_subclass_status_and_code():
    assert InsufficientStock("short").status_code == 409
    assert UnsatisfiableConstraint("none").code == "unsatisfiable_constraint"
    assert NoVariantAttributesSelected().message == "No variant-generating attributes selected"
    assert PersistenceFailure("dup", status_code=409).status_code == 409


@pytest.mark.asyncio
async def test_error_response_handler_renders_code_and_details(request_mock):
    with patch("variant_engine.core.errors.logger") as mock_logger:
        response = await error_response_handler(
            request_mock, InsufficientStock("Insufficient stock", details={"available_stock": 1})
        )

    assert response.status_code == 409
    assert json.loads(response.body) == {
        "error": "Insufficient stock",
        "code": "insufficient_stock",
        "details": {"available_stock": 1},
    }
    mock_logger.warning.assert_called_once()
    mock_logger.error.assert_not_called()


@pytest.mark.asyncio
async def test_server_errors_are_logged_as_errors(request_mock):
    with patch("variant_engine.core.errors.logger") as mock_logger:
        response = await error_response_handler(request_mock, PersistenceFailure("boom"))

    assert response.status_code == 500
    mock_logger.error.assert_called_once()


@pytest.mark.asyncio
async def test_http_exception_handler(request_mock):
    with patch("variant_engine.core.errors.logger"):
        response = await http_exception_handler(request_mock, HTTPException(status_code=404, detail="Not Found"))

    assert response.status_code == 404
    assert json.loads(response.body) == {"error": "Not Found"}


@pytest.mark.asyncio
async def test_validation_exception_handler(request_mock):
    exc = RequestValidationError([{"loc": ("body", "quantity"), "msg": "must be > 0", "type": "greater_than"}])
    with patch("variant_engine.core.errors.logger"):
        response = await validation_exception_handler(request_mock, exc)

    body = json.loads(response.body)
    assert response.status_code == 422
    assert body["code"] == "validation_error"
    assert body["details"][0]["loc"] == ["body", "quantity"]
