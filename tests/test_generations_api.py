"""End-to-end tests for the credit-consuming generation and edit endpoints.

Account rows live in the in-memory ledger; the image API and artifact
storage are mocked.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from studio.api.dependencies import get_gemini_client
from studio.integrations.gemini_client import GeneratedImage, GenerationTimeoutError
from studio.main import app
from studio.services.account_store import synthesize_admin
from studio.services.artifact_service import SaveResult, StoredArtifact
from studio.services.auth_service import create_access_token
from studio.services.session_service import SessionStore


USER = "member@example.com"
PNG = b"\x89PNG fake bytes"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def _sign_in(fake_redis, account) -> tuple[dict, str]:
    session = await SessionStore(fake_redis).create(account)
    token = create_access_token(session)
    return {"Authorization": f"Bearer {token}"}, session.session_id


@pytest.fixture
def gemini():
    fake = MagicMock()
    fake.generate = AsyncMock(return_value=GeneratedImage(data=PNG))
    fake.edit = AsyncMock(return_value=GeneratedImage(data=PNG))
    app.dependency_overrides[get_gemini_client] = lambda: fake
    yield fake
    app.dependency_overrides.pop(get_gemini_client, None)


@pytest.fixture
def saved():
    result = SaveResult(artifact_id=uuid.uuid4())
    with patch(
        "studio.api.generations.save_artifact", new=AsyncMock(return_value=result),
    ) as mock_save:
        yield mock_save


def _stored(owner: str = USER, mode: str = "brand_sheet") -> StoredArtifact:
    return StoredArtifact(
        artifact_id=uuid.uuid4(),
        owner_identifier=owner,
        mime_type="image/png",
        prompt="a cute cat",
        mode=mode,
        created_at=datetime(2026, 3, 1, tzinfo=timezone.utc),
        image_data=PNG,
    )


# ---------------------------------------------------------------------------
# Generation scenarios
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_last_credit_is_spent_then_top_up_is_offered(
    client, fake_redis, ledger, gemini, saved,
):
    account = ledger.add(USER, balance=1)
    headers, session_id = await _sign_in(fake_redis, account)

    first = await client.post(
        "/api/v1/generations", json={"prompt": "a cute cat"}, headers=headers,
    )

    assert first.status_code == 200, first.text
    body = first.json()
    assert body["balance"] == 0
    assert body["charged"] is True
    stored = ledger.record(USER)
    assert stored.balance == 0
    assert stored.generation_count == 1
    snapshot = await SessionStore(fake_redis).load(session_id)
    assert snapshot.account.balance == 0
    assert snapshot.account.generation_count == 1

    second = await client.post(
        "/api/v1/generations", json={"prompt": "another cat"}, headers=headers,
    )

    assert second.status_code == 402
    assert second.json()["admitted"] is False
    assert second.json()["top_up_url"] == "/api/v1/credits/packs"
    assert gemini.generate.await_count == 1
    assert ledger.record(USER).balance == 0


@pytest.mark.asyncio
async def test_admission_reads_fresh_balance(client, fake_redis, ledger, gemini, saved):
    account = ledger.add(USER, balance=1)
    headers, _ = await _sign_in(fake_redis, account)
    # Another session spent the last credit; this snapshot still shows 1.
    ledger.accounts[USER]["balance"] = 0

    response = await client.post(
        "/api/v1/generations", json={"prompt": "cat"}, headers=headers,
    )

    assert response.status_code == 402
    gemini.generate.assert_not_awaited()


@pytest.mark.asyncio
async def test_failed_generation_is_not_charged(client, fake_redis, ledger, gemini, saved):
    account = ledger.add(USER, balance=2)
    headers, _ = await _sign_in(fake_redis, account)
    gemini.generate.side_effect = GenerationTimeoutError("slow")

    response = await client.post(
        "/api/v1/generations", json={"prompt": "cat"}, headers=headers,
    )

    assert response.status_code == 502
    saved.assert_not_awaited()
    stored = ledger.record(USER)
    assert stored.balance == 2
    assert stored.generation_count == 0


@pytest.mark.asyncio
async def test_premium_mode_requires_a_purchase(client, fake_redis, ledger, gemini, saved):
    account = ledger.add(USER, balance=2)
    headers, _ = await _sign_in(fake_redis, account)

    response = await client.post(
        "/api/v1/generations", json={"prompt": "cat", "mode": "goods"}, headers=headers,
    )

    assert response.status_code == 403
    gemini.generate.assert_not_awaited()
    assert ledger.record(USER).balance == 2


@pytest.mark.asyncio
async def test_premium_mode_without_reference_asks_for_brand_sheet(
    client, fake_redis, ledger, gemini, saved,
):
    account = ledger.add(USER, balance=5, has_ever_purchased=True)
    headers, _ = await _sign_in(fake_redis, account)

    response = await client.post(
        "/api/v1/generations", json={"prompt": "x", "mode": "goods"}, headers=headers,
    )

    assert response.status_code == 403
    assert "brand sheet first" in response.json()["detail"]
    gemini.generate.assert_not_awaited()
    saved.assert_not_awaited()
    assert ledger.record(USER).balance == 5


@pytest.mark.asyncio
async def test_premium_mode_rejects_non_brand_sheet_reference(
    client, fake_redis, ledger, gemini, saved,
):
    account = ledger.add(USER, balance=5, has_ever_purchased=True)
    headers, _ = await _sign_in(fake_redis, account)
    artifact = _stored(mode="emoticon")

    with patch(
        "studio.api.generations.get_artifact", new=AsyncMock(return_value=artifact),
    ):
        response = await client.post(
            "/api/v1/generations",
            json={
                "prompt": "x",
                "mode": "goods",
                "reference_artifact_id": str(artifact.artifact_id),
            },
            headers=headers,
        )

    assert response.status_code == 403
    gemini.generate.assert_not_awaited()
    assert ledger.record(USER).balance == 5


@pytest.mark.asyncio
async def test_premium_mode_uses_brand_sheet_as_reference(
    client, fake_redis, ledger, gemini, saved,
):
    account = ledger.add(USER, balance=5, has_ever_purchased=True)
    headers, _ = await _sign_in(fake_redis, account)
    sheet = _stored()

    with patch(
        "studio.api.generations.get_artifact", new=AsyncMock(return_value=sheet),
    ):
        response = await client.post(
            "/api/v1/generations",
            json={
                "prompt": "x",
                "mode": "goods",
                "reference_artifact_id": str(sheet.artifact_id),
            },
            headers=headers,
        )

    assert response.status_code == 200, response.text
    _, mode, reference = gemini.generate.await_args[0]
    assert mode.value == "goods"
    assert reference.data == PNG
    assert ledger.record(USER).balance == 4


@pytest.mark.asyncio
async def test_administrator_is_admitted_and_never_charged(
    client, fake_redis, ledger, gemini, saved,
):
    headers, _ = await _sign_in(fake_redis, synthesize_admin())

    response = await client.post(
        "/api/v1/generations", json={"prompt": "cat", "mode": "emoticon"}, headers=headers,
    )

    assert response.status_code == 200, response.text
    assert response.json()["balance"] == 0
    assert response.json()["charged"] is False
    assert ledger.accounts == {}


@pytest.mark.asyncio
async def test_eviction_warning_is_returned(client, fake_redis, ledger, gemini, saved):
    account = ledger.add(USER, balance=3)
    headers, _ = await _sign_in(fake_redis, account)
    saved.return_value = SaveResult(artifact_id=uuid.uuid4(), evicted=1)

    response = await client.post(
        "/api/v1/generations", json={"prompt": "cat"}, headers=headers,
    )

    assert response.status_code == 200
    assert "oldest" in response.json()["warning"]


@pytest.mark.asyncio
async def test_deleted_account_cannot_generate(client, fake_redis, ledger, gemini, saved):
    account = ledger.add(USER, balance=3)
    headers, _ = await _sign_in(fake_redis, account)
    del ledger.accounts[USER]

    response = await client.post(
        "/api/v1/generations", json={"prompt": "cat"}, headers=headers,
    )

    assert response.status_code == 401
    gemini.generate.assert_not_awaited()


@pytest.mark.asyncio
async def test_generation_requires_sign_in(client, gemini):
    response = await client.post("/api/v1/generations", json={"prompt": "cat"})
    assert response.status_code == 401


# ---------------------------------------------------------------------------
# Edits
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_edit_charges_and_counts_edit(client, fake_redis, ledger, gemini, saved):
    account = ledger.add(USER, balance=2)
    headers, _ = await _sign_in(fake_redis, account)
    artifact = _stored()

    with patch(
        "studio.api.generations.get_artifact", new=AsyncMock(return_value=artifact),
    ):
        response = await client.post(
            "/api/v1/generations/edit",
            json={"artifact_id": str(artifact.artifact_id), "prompt": "add a hat"},
            headers=headers,
        )

    assert response.status_code == 200, response.text
    assert response.json()["prompt"] == "a cute cat (Edited)"
    stored = ledger.record(USER)
    assert stored.balance == 1
    assert stored.edit_count == 1
    assert stored.generation_count == 0
    current, prompt, mode = gemini.edit.await_args[0]
    assert current.data == PNG
    assert prompt == "add a hat"
    assert mode.value == "brand_sheet"


@pytest.mark.asyncio
async def test_edit_out_of_credits_skips_api(client, fake_redis, ledger, gemini, saved):
    account = ledger.add(USER, balance=0)
    headers, _ = await _sign_in(fake_redis, account)

    response = await client.post(
        "/api/v1/generations/edit",
        json={"artifact_id": str(uuid.uuid4()), "prompt": "add a hat"},
        headers=headers,
    )

    assert response.status_code == 402
    gemini.edit.assert_not_awaited()
