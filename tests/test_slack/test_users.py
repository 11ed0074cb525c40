"""Tests for Slack user name resolution."""

from unittest.mock import AsyncMock

import pytest
from slack_sdk.errors import SlackApiError

from decision_hub.slack.users import resolve_user_name


@pytest.mark.parametrize(
    ("user", "expected"),
    [
        ({"real_name": "Ana Lima", "name": "ana", "profile": {"display_name": "Ana L"}}, "Ana Lima"),
        ({"name": "ana", "profile": {"display_name": "Ana L"}}, "Ana L"),
        ({"name": "ana", "profile": {}}, "ana"),
        ({}, "U_ANA"),
    ],
)
async def test_name_preference(user: dict, expected: str):
    client = AsyncMock()
    client.users_info.return_value = {"ok": True, "user": user}

    assert await resolve_user_name(client, "U_ANA") == expected


async def test_name_cached():
    client = AsyncMock()
    client.users_info.return_value = {"ok": True, "user": {"real_name": "Ana Lima"}}

    await resolve_user_name(client, "U_ANA")
    await resolve_user_name(client, "U_ANA")

    client.users_info.assert_awaited_once_with(user="U_ANA")


async def test_failure_falls_back_to_id_and_retries():
    client = AsyncMock()
    client.users_info.side_effect = [
        SlackApiError("user_not_found", {"ok": False, "error": "user_not_found"}),
        {"ok": True, "user": {"real_name": "Ana Lima"}},
    ]

    assert await resolve_user_name(client, "U_ANA") == "U_ANA"
    assert await resolve_user_name(client, "U_ANA") == "Ana Lima"


async def test_missing_user_id():
    client = AsyncMock()

    assert await resolve_user_name(client, None) is None
    client.users_info.assert_not_called()
