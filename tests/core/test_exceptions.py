"""Tests for the exception hierarchy and error sanitization."""

import pytest

from cellsync.core.circuit_breaker import CircuitBreakerOpen
from cellsync.core.exceptions import (
    CellSyncException,
    CRMFetchError,
    CRMReauthRequiredError,
    CRMSyncError,
    DatabaseError,
    ExternalServiceError,
    IntegrationNotConnectedError,
    NotFoundError,
    ValidationError,
    sanitize_error,
)


@pytest.mark.parametrize(
    ("exc", "status_code", "code"),
    [
        (NotFoundError("Cell", "cell-1"), 404, "NOT_FOUND"),
        (ValidationError("bad", field="crm_type"), 400, "VALIDATION_ERROR"),
        (DatabaseError(), 500, "DATABASE_ERROR"),
        (ExternalServiceError("Composio"), 502, "EXTERNAL_SERVICE_ERROR"),
        (IntegrationNotConnectedError("HubSpot"), 400, "INTEGRATION_NOT_CONNECTED"),
        (CRMReauthRequiredError("HubSpot"), 401, "CRM_REAUTH_REQUIRED"),
        (CRMFetchError("HubSpot"), 500, "CRM_FETCH_ERROR"),
        (CRMSyncError("boom", provider="HubSpot"), 500, "CRM_SYNC_ERROR"),
    ],
)
def test_status_and_code(exc: CellSyncException, status_code: int, code: str) -> None:
    assert isinstance(exc, CellSyncException)
    assert exc.status_code == status_code
    assert exc.code == code


def test_not_found_message_includes_id() -> None:
    assert NotFoundError("Cell", "cell-1").message == "Cell with ID 'cell-1' not found"
    assert NotFoundError("Zoho integration").message == "Zoho integration not found"


def test_validation_error_records_field() -> None:
    assert ValidationError("bad", field="cell_id").details == {"field": "cell_id"}


def test_fetch_error_keeps_upstream_message() -> None:
    exc = CRMFetchError("Attio", "rate limited")

    assert exc.message == "Failed to fetch contacts from Attio"
    assert exc.details == {"provider": "Attio", "upstream": "rate limited"}


def test_sync_error_message() -> None:
    assert CRMSyncError("boom").message == "Failed to sync contacts: boom"
    assert CRMSyncError("boom").details == {}


def test_sanitize_known_types() -> None:
    assert sanitize_error(DatabaseError("relation does not exist")) == (
        "A database error occurred. Please try again."
    )
    assert "temporarily unavailable" in sanitize_error(CircuitBreakerOpen("supabase"))


def test_sanitize_unknown_type_uses_default() -> None:
    assert sanitize_error(RuntimeError("secret stack")) == "An error occurred. Please try again."


def test_sanitize_walks_mro() -> None:
    class CustomValueError(ValueError):
        pass

    assert sanitize_error(CustomValueError("x")) == "The provided value is invalid."
