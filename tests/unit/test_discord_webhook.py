"""Tests for the Discord interactions endpoint."""

import json
from unittest.mock import AsyncMock, patch

import pytest
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat
from fastapi import FastAPI
from fastapi.testclient import TestClient

from kaibot.core import message_templates
from kaibot.core.config import settings
from kaibot.core.errors import SheetsError
from kaibot.interface import discord_webhook
from kaibot.interface.discord_webhook import DiscordCommand, parse_command


TIMESTAMP = "1766192400"


@pytest.fixture
def private_key(monkeypatch) -> Ed25519PrivateKey:
    key = Ed25519PrivateKey.generate()
    public_hex = key.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw).hex()
    monkeypatch.setattr(settings, "discord_public_key", public_hex)
    return key


@pytest.fixture
def client(private_key) -> TestClient:
    app = FastAPI()
    app.include_router(discord_webhook.router)
    return TestClient(app)


def signed_post(client: TestClient, key: Ed25519PrivateKey, payload: dict):
    body = json.dumps(payload).encode()
    signature = key.sign(TIMESTAMP.encode() + body).hex()
    return client.post(
        "/discord/interactions",
        content=body,
        headers={"X-Signature-Ed25519": signature, "X-Signature-Timestamp": TIMESTAMP},
    )


def command_payload(text: str) -> dict:
    return {
        "type": 2,
        "application_id": "app1",
        "token": "interaction-token",
        "channel_id": "chan1",
        "member": {"user": {"id": "user1"}},
        "data": {"name": "kai", "options": [{"name": "text", "type": 3, "value": text}]},
    }


@pytest.mark.unit
class TestReceiveInteraction:
    """Signature check, PING and deferral."""

    def test_ping(self, client, private_key):
        response = signed_post(client, private_key, {"type": 1})

        assert response.status_code == 200
        assert response.json() == {"type": 1}

    def test_bad_signature(self, client):
        response = client.post(
            "/discord/interactions",
            content=b'{"type": 1}',
            headers={"X-Signature-Ed25519": "00" * 64, "X-Signature-Timestamp": TIMESTAMP},
        )
        assert response.status_code == 401

    def test_command_deferred(self, client, private_key):
        with patch("kaibot.interface.discord_webhook.process_interaction", new_callable=AsyncMock) as mock_process:
            response = signed_post(client, private_key, command_payload("タスク一覧"))

        assert response.status_code == 200
        assert response.json() == {"type": 5}
        command = mock_process.await_args.args[0]
        assert command.text == "タスク一覧"
        assert command.channel_id == "chan1"

    def test_unsupported_type(self, client, private_key):
        response = signed_post(client, private_key, {"type": 3})
        assert response.status_code == 400

    def test_command_without_token(self, client, private_key):
        payload = command_payload("x")
        del payload["token"]
        response = signed_post(client, private_key, payload)
        assert response.status_code == 400


@pytest.mark.unit
class TestParseCommand:
    """Payload extraction."""

    def test_guild_member(self):
        command = parse_command(command_payload("一覧"))
        assert command == DiscordCommand(
            application_id="app1", token="interaction-token", channel_id="chan1", user_id="user1", text="一覧"
        )

    def test_direct_message_user(self):
        payload = command_payload("一覧")
        del payload["member"]
        payload["user"] = {"id": "dm-user"}
        assert parse_command(payload).user_id == "dm-user"

    def test_missing_text_option(self):
        payload = command_payload("一覧")
        payload["data"]["options"] = []
        assert parse_command(payload).text == ""


@pytest.mark.unit
class TestProcessInteraction:
    """Pipeline run and follow-up delivery."""

    @pytest.mark.asyncio
    async def test_reply_sent_as_followup(self, patched_sheets, state):
        command = parse_command(command_payload("タスク一覧"))
        with patch(
            "kaibot.interface.discord_webhook.discord_sender.send_followup", new_callable=AsyncMock
        ) as mock_send:
            await discord_webhook.process_interaction(command, state)

        mock_send.assert_awaited_once_with(
            interaction_token="interaction-token", text=message_templates.NO_TASKS, application_id="app1"
        )

    @pytest.mark.asyncio
    async def test_error_reported_as_followup(self, patched_sheets, state):
        command = parse_command(command_payload("タスク一覧"))
        with (
            patch(
                "kaibot.interface.discord_webhook.conversation_service.handle_text",
                new=AsyncMock(side_effect=SheetsError("boom")),
            ),
            patch("kaibot.interface.discord_webhook.discord_sender.send_followup", new_callable=AsyncMock) as mock_send,
        ):
            await discord_webhook.process_interaction(command, state)

        assert mock_send.await_args.kwargs["text"].startswith("スプレッドシートの読み書きに失敗しました。")
