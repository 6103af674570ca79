"""
Tests for shared_lib.identity_client — async identity provider client.

Uses respx to mock httpx requests so no live provider is required.
All tests require @pytest.mark.asyncio (asyncio_mode = strict).
"""

import pytest
import httpx
import respx

from shared_lib.identity_client import (
    IdentityClient,
    IdentityConnectionError,
    IdentityProviderError,
    IdentityQueryError,
    IdentityRecord,
)

# ---------------------------------------------------------------------------
# Shared test data
# ---------------------------------------------------------------------------

BASE_URL = "https://identity.test"
BY_ID_URL = f"{BASE_URL}/api/user_data_by_account_ids.json"


def about_url(username: str) -> str:
    return f"{BASE_URL}/user/{username}/about.json"


BY_ID_RESPONSE = {
    "t2_abc": {
        "name": "alice",
        "created_utc": 1500000000.0,
        "link_karma": 10,
        "comment_karma": 20,
    }
}

ABOUT_RESPONSE = {
    "kind": "t2",
    "data": {
        "id": "abc",
        "name": "alice",
        "is_suspended": False,
    },
}


async def _call(method: str, key: str):
    client = IdentityClient(BASE_URL, user_agent="test-agent/1.0")
    try:
        return await getattr(client, method)(key)
    finally:
        await client.close()


# ---------------------------------------------------------------------------
# exists_by_id
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_exists_by_id_present():
    """A known ID returns a typed IdentityRecord."""
    with respx.mock:
        route = respx.get(BY_ID_URL, params={"ids": "t2_abc"}).mock(
            return_value=httpx.Response(200, json=BY_ID_RESPONSE)
        )
        record = await _call("exists_by_id", "t2_abc")

    assert isinstance(record, IdentityRecord)
    assert record.id == "t2_abc"
    assert record.name == "alice"
    assert route.calls.last.request.headers["User-Agent"] == "test-agent/1.0"


@pytest.mark.asyncio
async def test_exists_by_id_missing_from_body_is_deleted():
    with respx.mock:
        respx.get(BY_ID_URL).mock(return_value=httpx.Response(200, json={}))
        record = await _call("exists_by_id", "t2_gone")

    assert record is None


@pytest.mark.asyncio
async def test_exists_by_id_404_is_deleted():
    with respx.mock:
        respx.get(BY_ID_URL).mock(
            return_value=httpx.Response(404, json={"message": "Not Found", "error": 404})
        )
        record = await _call("exists_by_id", "t2_gone")

    assert record is None


# ---------------------------------------------------------------------------
# exists_by_name
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_exists_by_name_present():
    with respx.mock:
        respx.get(about_url("alice")).mock(
            return_value=httpx.Response(200, json=ABOUT_RESPONSE)
        )
        record = await _call("exists_by_name", "alice")

    assert record.id == "t2_abc"
    assert record.name == "alice"
    assert record.is_suspended is False


@pytest.mark.asyncio
async def test_exists_by_name_suspended_still_exists():
    """Suspended accounts are not deleted accounts."""
    body = {"kind": "t2", "data": {"name": "bob", "is_suspended": True}}
    with respx.mock:
        respx.get(about_url("bob")).mock(return_value=httpx.Response(200, json=body))
        record = await _call("exists_by_name", "bob")

    assert record is not None
    assert record.is_suspended is True
    assert record.id is None


@pytest.mark.asyncio
async def test_exists_by_name_404_is_deleted():
    with respx.mock:
        respx.get(about_url("ghost")).mock(return_value=httpx.Response(404))
        record = await _call("exists_by_name", "ghost")

    assert record is None


@pytest.mark.asyncio
async def test_exists_by_name_without_data_raises():
    with respx.mock:
        respx.get(about_url("odd")).mock(return_value=httpx.Response(200, json={"kind": "t2"}))
        with pytest.raises(IdentityQueryError):
            await _call("exists_by_name", "odd")


# ---------------------------------------------------------------------------
# Failures are never reported as deletions
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("status", [403, 429, 500, 503])
@pytest.mark.asyncio
async def test_error_status_raises_query_error(status):
    with respx.mock:
        respx.get(about_url("alice")).mock(return_value=httpx.Response(status))
        with pytest.raises(IdentityQueryError, match=str(status)):
            await _call("exists_by_name", "alice")


@pytest.mark.asyncio
async def test_connect_error_raises_connection_error():
    with respx.mock:
        respx.get(BY_ID_URL).mock(side_effect=httpx.ConnectError("Connection refused"))
        with pytest.raises(IdentityConnectionError, match="Cannot connect"):
            await _call("exists_by_id", "t2_abc")


@pytest.mark.asyncio
async def test_timeout_raises_connection_error():
    with respx.mock:
        respx.get(BY_ID_URL).mock(side_effect=httpx.ReadTimeout("timed out"))
        with pytest.raises(IdentityConnectionError, match="timed out"):
            await _call("exists_by_id", "t2_abc")


@pytest.mark.asyncio
async def test_invalid_json_raises_query_error():
    with respx.mock:
        respx.get(BY_ID_URL).mock(return_value=httpx.Response(200, content=b"<html>"))
        with pytest.raises(IdentityQueryError):
            await _call("exists_by_id", "t2_abc")


def test_error_hierarchy():
    assert issubclass(IdentityConnectionError, IdentityProviderError)
    assert issubclass(IdentityQueryError, IdentityProviderError)
