"""Tests for security configuration."""
import os
from datetime import timedelta
from unittest.mock import patch

import pytest

from app.api.middleware.auth import create_access_token
from app.config import security
from app.config.security import (
    DEFAULT_JWT_SECRET,
    MIN_ENTROPY_JWT_SECRET,
    SecuritySettings,
    calculate_entropy,
    get_cors_origins,
    validate_security_settings,
)
from app.utils.errors import AppError

STRONG_SECRET = "kR7#pX2$vN9@mQ4&wL6*zT8!bH3^cF5%"


def settings_with(**overrides):
    values = {"jwt_secret_key": STRONG_SECRET, "cors_origins": "http://localhost:3000"}
    values.update(overrides)
    return SecuritySettings(**values)


@pytest.mark.unit
class TestEntropy:
    def test_empty(self):
        assert calculate_entropy("") == 0.0

    def test_repeated_character(self):
        assert calculate_entropy("aaaaaaaa") == 0.0

    def test_strong_secret(self):
        assert calculate_entropy(STRONG_SECRET) >= MIN_ENTROPY_JWT_SECRET


@pytest.mark.unit
class TestSecuritySettings:
    def test_rejects_asymmetric_algorithm(self):
        with pytest.raises(ValueError):
            SecuritySettings(jwt_algorithm="RS256")

    def test_cors_origins_split_and_trimmed(self):
        with patch.object(security, "settings", settings_with(cors_origins=" https://a.example , https://b.example,")):
            assert get_cors_origins() == ["https://a.example", "https://b.example"]


@pytest.mark.unit
class TestValidateSecuritySettings:
    def test_strong_settings_pass(self):
        with patch.object(security, "settings", settings_with()):
            validate_security_settings()

    @pytest.mark.parametrize(
        "secret",
        [DEFAULT_JWT_SECRET, "short-secret", "a" * 40],
    )
    def test_weak_secrets_rejected(self, secret):
        with patch.object(security, "settings", settings_with(jwt_secret_key=secret)):
            with pytest.raises(AppError) as exc_info:
                validate_security_settings()

        assert exc_info.value.code == "SECURITY_CONFIGURATION_ERROR"
        assert len(exc_info.value.details["errors"]) == 1

    def test_wildcard_origin_rejected(self):
        with patch.object(security, "settings", settings_with(cors_origins="*")):
            with pytest.raises(AppError):
                validate_security_settings()

    def test_production_requires_https(self):
        with patch.object(security, "settings", settings_with(cors_origins="http://app.example")), \
             patch.dict(os.environ, {"ENVIRONMENT": "production"}):
            with pytest.raises(AppError) as exc_info:
                validate_security_settings()

        assert "HTTPS" in exc_info.value.details["errors"][0]


@pytest.mark.api
class TestBearerTokens:
    def test_expired_token_rejected(self, client, biller_user):
        token = create_access_token({"sub": biller_user.id}, expires_delta=timedelta(minutes=-1))

        response = client.get("/api/v1/claims", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401

    def test_inactive_user_rejected(self, client, auth_headers, biller_user, db_session):
        biller_user.is_active = False
        db_session.commit()

        response = client.get("/api/v1/claims", headers=auth_headers(biller_user))

        assert response.status_code == 401

    def test_token_without_subject_rejected(self, client):
        token = create_access_token({"role": "ADMIN"})

        response = client.get("/api/v1/claims", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
