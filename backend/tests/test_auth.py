"""
Tests for authentication helpers and the account service.

Tests: password hashing, JWT issue/decode, bearer parsing, registration,
login status checks, change-password.
"""
import os, sys
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from config import settings
from domain.errors import DomainError, UnauthorizedError, ValidationError, PermissionDeniedError
from middleware.auth import (
    hash_password, verify_password, issue_access_token, decode_access_token,
    parse_bearer_token, require_token_payload,
)
from services import auth_service


class TestPasswords:

    @pytest.mark.unit
    def test_hash_and_verify(self):
        hashed = hash_password("secret123")
        assert hashed != "secret123"
        assert verify_password("secret123", hashed) is True
        assert verify_password("wrong", hashed) is False

    @pytest.mark.unit
    def test_malformed_hash_is_rejected(self):
        """A corrupt stored hash fails verification instead of crashing."""
        assert verify_password("secret123", "not-a-bcrypt-hash") is False


class TestTokens:

    @pytest.mark.unit
    def test_round_trip_claims(self):
        token = issue_access_token(user_id="abc123", role="vendor")
        claims = decode_access_token(token)
        assert claims["sub"] == "abc123"
        assert claims["role"] == "vendor"
        assert claims["iss"] == settings.jwt_issuer

    @pytest.mark.unit
    def test_expired_token(self):
        past = datetime.now(timezone.utc) - timedelta(hours=2)
        token = jwt.encode(
            {
                "iss": settings.jwt_issuer,
                "sub": "abc123",
                "role": "customer",
                "iat": int(past.timestamp()),
                "exp": int((past + timedelta(minutes=5)).timestamp()),
            },
            settings.jwt_secret,
            algorithm="HS256",
        )
        with pytest.raises(UnauthorizedError) as exc_info:
            decode_access_token(token)
        assert "expired" in exc_info.value.message

    @pytest.mark.unit
    def test_wrong_secret(self):
        token = jwt.encode(
            {"iss": settings.jwt_issuer, "sub": "x", "iat": 0, "exp": 9999999999},
            "some-other-secret",
            algorithm="HS256",
        )
        with pytest.raises(UnauthorizedError):
            decode_access_token(token)

    @pytest.mark.unit
    def test_missing_secret_is_server_error(self, monkeypatch):
        monkeypatch.setattr(settings, "jwt_secret", "")
        with pytest.raises(DomainError) as exc_info:
            issue_access_token(user_id="x", role="customer")
        assert exc_info.value.status_code == 500


class TestBearerParsing:

    @pytest.mark.unit
    @pytest.mark.parametrize("header,expected", [
        ("Bearer abc.def", "abc.def"),
        ("bearer abc.def", "abc.def"),
        ("Token abc.def", None),
        ("Bearer ", None),
        ("", None),
        (None, None),
    ])
    def test_parse(self, header, expected):
        assert parse_bearer_token(header) == expected

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_header_raises_401(self):
        with pytest.raises(UnauthorizedError) as exc_info:
            await require_token_payload(authorization=None)
        assert exc_info.value.status_code == 401
        assert "Authentication required" in exc_info.value.message


class TestRegistration:

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_customer_starts_pending(self, db_session):
        user = await auth_service.register_user(
            db_session,
            first_name="Chidi",
            last_name="Eze",
            email="Chidi@Example.com",
            password="secret123",
            phone="+2348011112222",
        )
        assert user.role == "customer"
        assert user.status == "pending"
        assert user.email == "chidi@example.com"
        assert user.vendor is None

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_vendor_gets_default_profile(self, db_session):
        user = await auth_service.register_user(
            db_session,
            first_name="Jane",
            last_name="Smith",
            email="jane@citygas.test",
            password="secret123",
            phone="+2348011113333",
            role="vendor",
            business_name="City Gas Station",
            business_address="45 Ikeja Road",
        )
        vendor = user.vendor
        assert vendor.business_name == "City Gas Station"
        assert vendor.city == "Lagos"
        assert vendor.fuel_types == ["PMS", "DIESEL"]
        assert (vendor.opening_time, vendor.closing_time) == ("06:00", "22:00")
        assert len(vendor.operating_days) == 7
        assert vendor.verification_status == "pending"

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_vendor_requires_business_fields(self, db_session):
        with pytest.raises(ValidationError) as exc_info:
            await auth_service.register_user(
                db_session,
                first_name="Jane",
                last_name="Smith",
                email="jane@citygas.test",
                password="secret123",
                phone="+2348011113333",
                role="vendor",
            )
        assert "businessName" in exc_info.value.details["required"]

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_driver_gets_offline_profile(self, db_session):
        user = await auth_service.register_user(
            db_session,
            first_name="Musa",
            last_name="Bello",
            email="musa@drivers.test",
            password="secret123",
            phone="+2348011114444",
            role="driver",
            license_number="LIC-42",
            vehicle_type="van",
            vehicle_plate="abc-123",
        )
        assert user.driver.status == "offline"
        assert user.driver.vehicle_plate == "ABC-123"
        assert user.driver.vendor_id is None

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_admin_cannot_self_register(self, db_session):
        with pytest.raises(ValidationError):
            await auth_service.register_user(
                db_session,
                first_name="Eve",
                last_name="Root",
                email="eve@fuelgo.test",
                password="secret123",
                phone="+2348011115555",
                role="admin",
            )

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_duplicate_email_and_phone(self, db_session, customer_user):
        with pytest.raises(ValidationError) as exc_info:
            await auth_service.register_user(
                db_session,
                first_name="Ada",
                last_name="Again",
                email="ADA@fuelgo.test",
                password="secret123",
                phone="+2348099999999",
            )
        assert exc_info.value.message == "User with this email already exists"

        with pytest.raises(ValidationError) as exc_info:
            await auth_service.register_user(
                db_session,
                first_name="Ada",
                last_name="Again",
                email="other@fuelgo.test",
                password="secret123",
                phone=customer_user.phone_number,
            )
        assert exc_info.value.message == "User with this phone number already exists"

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_short_password(self, db_session):
        with pytest.raises(ValidationError):
            await auth_service.register_user(
                db_session,
                first_name="Short",
                last_name="Pw",
                email="short@fuelgo.test",
                password="abc",
                phone="+2348011116666",
            )


class TestLogin:

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_active_user_logs_in(self, db_session, customer_user):
        user = await auth_service.authenticate(db_session, email="Ada@FuelGo.test", password="secret123")
        assert user.id == customer_user.id
        assert user.last_login is not None

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_wrong_password(self, db_session, customer_user):
        with pytest.raises(ValidationError) as exc_info:
            await auth_service.authenticate(db_session, email=customer_user.email, password="nope")
        assert exc_info.value.message == "Invalid credentials"

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_unknown_email(self, db_session):
        with pytest.raises(ValidationError) as exc_info:
            await auth_service.authenticate(db_session, email="ghost@fuelgo.test", password="secret123")
        assert exc_info.value.message == "Invalid credentials"

    @pytest.mark.integration
    @pytest.mark.asyncio
    @pytest.mark.parametrize("status,message", [
        ("pending", "Account pending approval"),
        ("rejected", "Account has been rejected"),
        ("suspended", "Account has been suspended"),
    ])
    async def test_blocked_statuses(self, db_session, customer_user, status, message):
        customer_user.status = status
        await db_session.commit()
        with pytest.raises(PermissionDeniedError) as exc_info:
            await auth_service.authenticate(db_session, email=customer_user.email, password="secret123")
        assert exc_info.value.message == message


class TestChangePassword:

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_change_password(self, db_session, customer_user):
        await auth_service.change_password(
            db_session, user=customer_user, current_password="secret123", new_password="newsecret456",
        )
        assert verify_password("newsecret456", customer_user.password_hash)

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_wrong_current_password(self, db_session, customer_user):
        with pytest.raises(ValidationError) as exc_info:
            await auth_service.change_password(
                db_session, user=customer_user, current_password="bad", new_password="newsecret456",
            )
        assert exc_info.value.details["field"] == "currentPassword"
