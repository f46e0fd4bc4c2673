"""
Tests for user administration.

Tests: listing/search, stats, export, approval queue, status/role changes,
profile edits, deletion rules, bulk actions.
"""
import os, sys
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

import csv
import io
import json

import pytest

from domain.errors import ValidationError, ConflictError, NotFoundError, PermissionDeniedError
from services import auth_service, user_service
from tests.conftest import create_account


@pytest.fixture
async def pending_vendor(db_session):
    return await create_account(
        db_session,
        role="vendor",
        email="jane@citygas.test",
        phone="+2348000000010",
        status="pending",
        first_name="Jane",
        last_name="Smith",
        vendor=auth_service.build_default_vendor("City Gas Station", "45 Ikeja Road"),
    )


class TestListing:

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_filters_and_search(self, db_session, admin_user, customer_user, pending_vendor):
        _, total = await user_service.list_users(db_session)
        assert total == 3
        users, total = await user_service.list_users(db_session, status="pending")
        assert total == 1 and users[0].id == pending_vendor.id
        _, total = await user_service.list_users(db_session, role="customer")
        assert total == 1
        users, _ = await user_service.list_users(db_session, search="obi")
        assert [u.id for u in users] == [customer_user.id]

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_stats(self, db_session, admin_user, customer_user, pending_vendor):
        stats = await user_service.user_stats(db_session)
        assert stats["totalUsers"] == 3
        assert stats["pendingApprovals"] == 1
        assert stats["activeUsers"] == 2
        assert stats["usersByRole"] == {"customer": 1, "vendor": 1, "driver": 0, "admin": 1}
        assert stats["recentRegistrations"] == 3

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_csv_export(self, db_session, customer_user):
        body, media_type = await user_service.export_users(db_session, format="csv")
        assert media_type == "text/csv"
        lines = body.splitlines()
        assert lines[0] == '"ID","First Name","Last Name","Email","Phone Number","Role","Status","Created At","Updated At"'
        rows = list(csv.reader(io.StringIO(body)))
        assert rows[1][3] == "ada@fuelgo.test"

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_json_export(self, db_session, customer_user):
        body, media_type = await user_service.export_users(db_session, format="json", role="customer")
        assert media_type == "application/json"
        rows = json.loads(body)
        assert rows[0]["Email"] == "ada@fuelgo.test"

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_unknown_export_format(self, db_session):
        with pytest.raises(ValidationError):
            await user_service.export_users(db_session, format="xlsx")


class TestApproval:

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_approve_verifies_vendor(self, db_session, pending_vendor):
        user = await user_service.approve(db_session, pending_vendor.id)
        assert user.status == "active"
        assert user.vendor.verification_status == "verified"

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_approve_twice(self, db_session, pending_vendor):
        await user_service.approve(db_session, pending_vendor.id)
        with pytest.raises(ValidationError) as exc_info:
            await user_service.approve(db_session, pending_vendor.id)
        assert exc_info.value.message == "User is not pending approval"

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_reject_needs_reason(self, db_session, pending_vendor):
        with pytest.raises(ValidationError) as exc_info:
            await user_service.reject(db_session, pending_vendor.id, "  ")
        assert exc_info.value.message == "Rejection reason is required"

        user = await user_service.reject(db_session, pending_vendor.id, "Incomplete documents")
        assert user.status == "rejected"
        assert user.rejection_reason == "Incomplete documents"
        assert user.vendor.verification_status == "rejected"

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_unknown_user(self, db_session):
        with pytest.raises(NotFoundError):
            await user_service.approve(db_session, "missing")


class TestStatusAndRole:

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_suspend_and_reactivate(self, db_session, admin_user, customer_user):
        user = await user_service.set_status(db_session, admin=admin_user, user_id=customer_user.id, status="suspended")
        assert user.status == "suspended"
        user = await user_service.set_status(db_session, admin=admin_user, user_id=customer_user.id, status="active")
        assert user.status == "active"

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_pending_is_not_settable(self, db_session, admin_user, customer_user):
        with pytest.raises(ValidationError):
            await user_service.set_status(db_session, admin=admin_user, user_id=customer_user.id, status="pending")

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_cannot_change_own_account(self, db_session, admin_user):
        with pytest.raises(PermissionDeniedError):
            await user_service.set_status(db_session, admin=admin_user, user_id=admin_user.id, status="suspended")
        with pytest.raises(PermissionDeniedError):
            await user_service.set_role(db_session, admin=admin_user, user_id=admin_user.id, role="customer")

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_role_needs_profile(self, db_session, admin_user, customer_user):
        with pytest.raises(ConflictError):
            await user_service.set_role(db_session, admin=admin_user, user_id=customer_user.id, role="vendor")
        user = await user_service.set_role(db_session, admin=admin_user, user_id=customer_user.id, role="admin")
        assert user.role == "admin"

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_update_user(self, db_session, customer_user, admin_user):
        user = await user_service.update_user(
            db_session, user_id=customer_user.id, first_name="Adaeze", email="ADAEZE@fuelgo.test",
        )
        assert user.first_name == "Adaeze"
        assert user.email == "adaeze@fuelgo.test"
        with pytest.raises(ValidationError):
            await user_service.update_user(db_session, user_id=customer_user.id, phone=admin_user.phone_number)


class TestDeletion:

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_delete_plain_user(self, db_session, customer_user):
        await user_service.delete_user(db_session, customer_user.id)
        with pytest.raises(NotFoundError):
            await user_service.get_user(db_session, customer_user.id)

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_admin_is_protected(self, db_session, admin_user):
        with pytest.raises(PermissionDeniedError):
            await user_service.delete_user(db_session, admin_user.id)

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_order_history_blocks_delete(self, db_session, customer_user, place_order):
        await place_order()
        assert await user_service.order_count(db_session, customer_user) == 1
        with pytest.raises(ConflictError):
            await user_service.delete_user(db_session, customer_user.id)


class TestBulk:

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_suspend_skips_admins(self, db_session, admin_user, customer_user, pending_vendor):
        result = await user_service.bulk_action(
            db_session, user_ids=[admin_user.id, customer_user.id, pending_vendor.id], action="suspend",
        )
        assert result == {"updatedCount": 2}
        assert admin_user.status == "active"
        assert customer_user.status == "suspended"

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_approve(self, db_session, pending_vendor):
        result = await user_service.bulk_action(db_session, user_ids=[pending_vendor.id], action="approve")
        assert result == {"updatedCount": 1}
        assert pending_vendor.vendor.verification_status == "verified"

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_reject_needs_reason(self, db_session, pending_vendor):
        with pytest.raises(ValidationError):
            await user_service.bulk_action(db_session, user_ids=[pending_vendor.id], action="reject")

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_delete_skips_order_history(self, db_session, customer_user, pending_vendor, place_order):
        await place_order()
        result = await user_service.bulk_action(
            db_session, user_ids=[customer_user.id, pending_vendor.id], action="delete",
        )
        assert result == {"deletedCount": 1}
        await user_service.get_user(db_session, customer_user.id)

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_invalid_action_and_empty_selection(self, db_session, customer_user):
        with pytest.raises(ValidationError):
            await user_service.bulk_action(db_session, user_ids=[customer_user.id], action="promote")
        with pytest.raises(ValidationError):
            await user_service.bulk_action(db_session, user_ids=[], action="suspend")
