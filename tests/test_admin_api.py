"""Tests for administrator overrides and the admin router's access gate."""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import HTTPException

from studio.services import admin_service
from studio.services.account_store import AccountRecord, synthesize_admin
from studio.services.admin_service import PlanUpdateRequest
from studio.services.auth_service import create_access_token
from studio.services.session_service import SessionStore


ADMIN_ID = synthesize_admin().identifier
USER = "member@example.com"


def _account(**overrides) -> AccountRecord:
    fields = {
        "identifier": USER,
        "display_name": "member",
        "created_at": datetime(2026, 1, 1, tzinfo=timezone.utc),
        "balance": 4,
        "generation_count": 3,
        "edit_count": 2,
    }
    fields.update(overrides)
    return AccountRecord(**fields)


async def _headers(fake_redis, account) -> dict:
    session = await SessionStore(fake_redis).create(account)
    return {"Authorization": f"Bearer {create_access_token(session)}"}


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_update_plan_overwrites_fields_and_audits(mock_db):
    request = PlanUpdateRequest(plan_group="pro", max_generations=50, max_edits=20)

    with patch(
        "studio.services.admin_service.account_store.get_account",
        new=AsyncMock(return_value=_account()),
    ), patch(
        "studio.services.admin_service.account_store.patch_account",
        new=AsyncMock(return_value=True),
    ) as mock_patch, patch("studio.services.admin_service.audit") as mock_audit:
        updated = await admin_service.update_plan(mock_db, ADMIN_ID, USER, request)

    assert updated.plan_group == "pro"
    assert updated.max_generations == 50
    assert updated.balance == 4
    mock_patch.assert_awaited_once_with(
        mock_db, USER, {"plan_group": "pro", "max_generations": 50, "max_edits": 20},
    )
    mock_audit.log_admin_action.assert_called_once()
    assert mock_audit.log_admin_action.call_args[0][:3] == (ADMIN_ID, "update_plan", USER)


@pytest.mark.asyncio
async def test_reset_usage_zeroes_counters_only(mock_db):
    with patch(
        "studio.services.admin_service.account_store.get_account",
        new=AsyncMock(return_value=_account()),
    ), patch(
        "studio.services.admin_service.account_store.patch_account",
        new=AsyncMock(return_value=True),
    ) as mock_patch:
        updated = await admin_service.reset_usage(mock_db, ADMIN_ID, USER)

    assert updated.generation_count == 0
    assert updated.edit_count == 0
    assert updated.balance == 4
    assert mock_patch.call_args[0][2] == {"generation_count": 0, "edit_count": 0}


@pytest.mark.asyncio
async def test_update_plan_for_missing_account_is_404(mock_db):
    request = PlanUpdateRequest(plan_group="pro", max_generations=1, max_edits=1)

    with patch(
        "studio.services.admin_service.account_store.get_account",
        new=AsyncMock(return_value=None),
    ):
        with pytest.raises(HTTPException) as exc_info:
            await admin_service.update_plan(mock_db, ADMIN_ID, USER, request)

    assert exc_info.value.status_code == 404


@pytest.mark.asyncio
async def test_delete_account_removes_row_only(mock_db):
    result = MagicMock()
    result.rowcount = 1
    mock_db.execute.return_value = result

    await admin_service.delete_account(mock_db, ADMIN_ID, USER)

    assert mock_db.execute.await_count == 1
    assert "DELETE FROM accounts" in str(mock_db.execute.call_args[0][0])
    mock_db.commit.assert_awaited_once()


# ---------------------------------------------------------------------------
# Router gate
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_standard_account_is_forbidden(client, fake_redis, ledger):
    headers = await _headers(fake_redis, ledger.add(USER))

    response = await client.get("/api/v1/admin/accounts", headers=headers)

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_admin_lists_accounts(client, fake_redis):
    headers = await _headers(fake_redis, synthesize_admin())

    with patch(
        "studio.services.admin_service.account_store.scan_accounts",
        new=AsyncMock(return_value=[_account()]),
    ):
        response = await client.get("/api/v1/admin/accounts", headers=headers)

    assert response.status_code == 200, response.text
    assert [a["identifier"] for a in response.json()] == [USER]


@pytest.mark.asyncio
async def test_admin_reply_is_sent_as_administrator(client, fake_redis, mock_db):
    headers = await _headers(fake_redis, synthesize_admin())

    response = await client.post(
        f"/api/v1/admin/messages/{USER}", json={"body": "on it"}, headers=headers,
    )

    assert response.status_code == 201, response.text
    data = response.json()
    assert data["sender_role"] == "administrator"
    assert data["recipient_identifier"] == USER
    mock_db.commit.assert_awaited()
