"""Tests for the Supabase-backed store with a mocked client."""

from unittest.mock import MagicMock

import pytest

from data_source import AlreadyResolvedError, DataSourceError, NotFoundError
from models import OAuthToken
from supabase_client import SupabaseDataSource, decrypt_token, encrypt_token

SECRET = "test-secret"


@pytest.fixture
def client():
    return MagicMock()


@pytest.fixture
def source(client):
    return SupabaseDataSource(client=client, secret_key=SECRET)


def test_tokens_are_encrypted_at_rest():
    encrypted = encrypt_token("ya29.token", SECRET)

    assert encrypted != "ya29.token"
    assert decrypt_token(encrypted, SECRET) == "ya29.token"


async def test_store_oauth_token_encrypts(source, client):
    await source.store_oauth_token(OAuthToken(user_id="u1", provider="google", access_token="secret-access"))

    payload = client.table.return_value.upsert.call_args.args[0]
    assert payload["access_token"] != "secret-access"
    assert decrypt_token(payload["access_token"], SECRET) == "secret-access"
    assert payload["refresh_token"] is None


async def test_get_oauth_token_decrypts(source, client):
    client.table.return_value.select.return_value.eq.return_value.eq.return_value.execute.return_value.data = [{
        "user_id": "u1",
        "provider": "google",
        "access_token": encrypt_token("access", SECRET),
        "refresh_token": encrypt_token("refresh", SECRET),
        "expires_at": None,
    }]

    token = await source.get_oauth_token("u1", "google")

    assert token.access_token == "access"
    assert token.refresh_token == "refresh"


async def test_client_failures_become_data_source_errors(source, client):
    client.table.return_value.select.return_value.eq.return_value.execute.side_effect = RuntimeError("connection reset")

    with pytest.raises(DataSourceError):
        await source.get_user("u1")


async def test_resolving_missing_flag(source, client):
    update = client.table.return_value.update.return_value.eq.return_value.eq.return_value.eq.return_value.eq.return_value
    update.execute.return_value.data = []
    lookup = client.table.return_value.select.return_value.eq.return_value.eq.return_value.eq.return_value
    lookup.execute.return_value.data = []

    with pytest.raises(NotFoundError):
        await source.resolve_flag("u1", "m1", "f1")


async def test_resolving_flag_twice(source, client):
    update = client.table.return_value.update.return_value.eq.return_value.eq.return_value.eq.return_value.eq.return_value
    update.execute.return_value.data = []
    lookup = client.table.return_value.select.return_value.eq.return_value.eq.return_value.eq.return_value
    lookup.execute.return_value.data = [{"id": "f1"}]

    with pytest.raises(AlreadyResolvedError):
        await source.resolve_flag("u1", "m1", "f1")

    client.table.return_value.update.return_value.eq.return_value.eq.return_value.eq.return_value.eq.assert_called_with(
        "resolved", False
    )
