"""Tests for error types, the transaction helper and the HTTP error handlers."""
import json
from unittest.mock import MagicMock, patch

import pytest
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import IntegrityError

from app.config.database import transaction
from app.schemas.base import parse_command
from app.schemas.payments import PaymentPostingCreate
from app.utils.errors import (
    AppError,
    ExternalServiceError,
    ForbiddenError,
    ForbiddenRoleError,
    NotFoundError,
    PersistenceError,
    RemittanceParseError,
    StateConflictError,
    UnauthorizedError,
    ValidationError,
    app_error_handler,
    general_exception_handler,
    validation_error_handler,
)


@pytest.mark.unit
class TestErrorTypes:
    def test_app_error_defaults(self):
        error = AppError("Test error message")

        assert error.status_code == 500
        assert error.code == "APP_ERROR"
        assert error.details == {}
        assert str(error) == "Test error message"

    @pytest.mark.parametrize(
        "error, status_code, code",
        [
            (ValidationError("bad"), 400, "VALIDATION_ERROR"),
            (NotFoundError("Claim", "1"), 404, "NOT_FOUND"),
            (StateConflictError("nope"), 409, "STATE_CONFLICT"),
            (ForbiddenRoleError("VIEWER", ["ADMIN"]), 409, "FORBIDDEN_ROLE"),
            (ExternalServiceError("Clearinghouse", "timed out"), 502, "EXTERNAL_FAILURE"),
            (RemittanceParseError("Malformed record"), 422, "PARSE_FAILURE"),
            (PersistenceError(), 500, "PERSISTENCE_FAILURE"),
            (UnauthorizedError(), 401, "UNAUTHORIZED"),
            (ForbiddenError(), 403, "FORBIDDEN"),
        ],
    )
    def test_status_and_code(self, error, status_code, code):
        assert error.status_code == status_code
        assert error.code == code

    def test_not_found_message(self):
        error = NotFoundError("Denial", "12")

        assert error.message == "Denial not found (id: 12)"
        assert error.details == {"resource": "Denial", "identifier": "12"}

    def test_parse_error_carries_line_number(self):
        error = RemittanceParseError("Invalid amount", line_number=7, segment="CLP")

        assert error.message == "Invalid amount (line 7)"
        assert error.details == {"line_number": 7, "segment": "CLP"}

    def test_forbidden_role_details(self):
        error = ForbiddenRoleError("VIEWER", ["ADMIN", "BILLER"])

        assert error.details == {"role": "VIEWER", "allowed_roles": ["ADMIN", "BILLER"]}


@pytest.mark.unit
class TestTransaction:
    def test_commits_on_success(self):
        db = MagicMock()

        with transaction(db):
            pass

        db.commit.assert_called_once()
        db.rollback.assert_not_called()

    def test_app_errors_roll_back_and_propagate(self):
        db = MagicMock()

        with pytest.raises(StateConflictError):
            with transaction(db):
                raise StateConflictError("conflict")

        db.rollback.assert_called_once()
        db.commit.assert_not_called()

    def test_sqlalchemy_errors_become_persistence_errors(self):
        db = MagicMock()
        db.commit.side_effect = IntegrityError("INSERT", {}, Exception("unique"))

        with pytest.raises(PersistenceError):
            with transaction(db):
                pass

        db.rollback.assert_called_once()


@pytest.mark.unit
class TestParseCommand:
    def test_dict_input(self):
        data = parse_command(
            PaymentPostingCreate,
            {"payment_type": "PATIENT", "payment_method": "CASH", "amount": "20", "payment_date": "2024-01-01"},
        )

        assert data.payment_type.value == "PATIENT"

    def test_failure_lists_fields(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_command(PaymentPostingCreate, {"payment_type": "BARTER"})

        fields = {e["field"] for e in exc_info.value.details["errors"]}
        assert {"payment_type", "payment_method", "amount", "payment_date"} <= fields


@pytest.mark.unit
class TestErrorHandlers:
    """Tests for the FastAPI exception handlers."""

    @pytest.fixture
    def mock_request(self):
        request = MagicMock(spec=Request)
        request.url.path = "/api/v1/test"
        request.method = "GET"
        return request

    @pytest.mark.asyncio
    async def test_app_error_handler_client_error(self, mock_request):
        error = NotFoundError("Claim", "5")

        with patch("app.utils.errors.add_breadcrumb") as mock_breadcrumb, \
             patch("app.utils.errors.capture_exception") as mock_capture, \
             patch("app.utils.errors.settings") as mock_settings:
            mock_settings.enable_alerts = True
            mock_settings.alert_on_errors = False

            response = await app_error_handler(mock_request, error)

        assert response.status_code == 404
        body = json.loads(response.body)
        assert body == {
            "error": "NOT_FOUND",
            "message": "Claim not found (id: 5)",
            "details": {"resource": "Claim", "identifier": "5"},
        }
        mock_breadcrumb.assert_called_once()
        mock_capture.assert_not_called()

    @pytest.mark.asyncio
    async def test_app_error_handler_server_error_alerts(self, mock_request):
        with patch("app.utils.errors.add_breadcrumb"), \
             patch("app.utils.errors.capture_exception") as mock_capture, \
             patch("app.utils.errors.settings") as mock_settings:
            mock_settings.enable_alerts = True
            mock_settings.alert_on_errors = False

            response = await app_error_handler(mock_request, PersistenceError())

        assert response.status_code == 500
        mock_capture.assert_called_once()

    @pytest.mark.asyncio
    async def test_app_error_handler_alerts_disabled(self, mock_request):
        with patch("app.utils.errors.add_breadcrumb"), \
             patch("app.utils.errors.capture_exception") as mock_capture, \
             patch("app.utils.errors.settings") as mock_settings:
            mock_settings.enable_alerts = False

            await app_error_handler(mock_request, PersistenceError())

        mock_capture.assert_not_called()

    @pytest.mark.asyncio
    async def test_validation_error_handler(self, mock_request):
        exc = RequestValidationError(
            [{"loc": ("body", "amount"), "msg": "Input should be greater than or equal to 0", "type": "greater_than_equal"}]
        )

        with patch("app.utils.errors.add_breadcrumb"), patch("app.utils.errors.settings") as mock_settings:
            mock_settings.enable_alerts = False
            response = await validation_error_handler(mock_request, exc)

        assert response.status_code == 422
        body = json.loads(response.body)
        assert body["error"] == "VALIDATION_ERROR"
        assert body["details"][0]["loc"] == ["body", "amount"]

    @pytest.mark.asyncio
    async def test_general_exception_handler_hides_details(self, mock_request):
        with patch("app.utils.errors.add_breadcrumb"), \
             patch("app.utils.errors.capture_exception") as mock_capture, \
             patch("app.utils.errors.settings") as mock_settings:
            mock_settings.enable_alerts = True

            response = await general_exception_handler(mock_request, RuntimeError("secret internals"))

        assert response.status_code == 500
        body = json.loads(response.body)
        assert body == {"error": "INTERNAL_ERROR", "message": "An unexpected error occurred"}
        mock_capture.assert_called_once()
