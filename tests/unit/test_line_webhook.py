"""Tests for the LINE webhook endpoint and event processing."""

import base64
import hashlib
import hmac
import json
from unittest.mock import AsyncMock, patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from kaibot.core import message_templates
from kaibot.core.config import settings
from kaibot.core.errors import SheetsError
from kaibot.interface import line_webhook
from kaibot.interface.line_parser import LineEvent
from tests.unit.mocks import SPACE_ID, USER_ID


SECRET = "line-secret"


@pytest.fixture
def client(monkeypatch) -> TestClient:
    monkeypatch.setattr(settings, "line_channel_secret", SECRET)
    app = FastAPI()
    app.include_router(line_webhook.router)
    return TestClient(app)


@pytest.fixture
def sender():
    """Patch every outbound LINE call."""
    with (
        patch("kaibot.interface.line_webhook.line_sender.reply", new_callable=AsyncMock) as mock_reply,
        patch("kaibot.interface.line_webhook.line_sender.push", new_callable=AsyncMock) as mock_push,
        patch(
            "kaibot.interface.line_webhook.line_sender.get_display_name",
            new=AsyncMock(return_value="Taro"),
        ),
    ):
        yield mock_reply, mock_push


def sign(body: bytes) -> str:
    return base64.b64encode(hmac.new(SECRET.encode(), body, hashlib.sha256).digest()).decode()


def message_event(text: str, reply_token: str | None = "rt", **extra) -> LineEvent:
    return LineEvent(
        event_type="message",
        source_type="group",
        group_id=SPACE_ID,
        user_id=USER_ID,
        reply_token=reply_token,
        timestamp_ms=1766192400000,
        text=text,
        **extra,
    )


def sent_texts(mock_call) -> list[str]:
    return [message.get("text") for message in mock_call.kwargs["messages"]]


@pytest.mark.unit
class TestReceiveLineWebhook:
    """Signature check and immediate acknowledgement."""

    def test_bad_signature_rejected(self, client):
        with patch("kaibot.interface.line_webhook.process_line_events", new_callable=AsyncMock) as mock_process:
            response = client.post("/line/webhook", content=b"{}", headers={"X-Line-Signature": "bogus"})

        assert response.status_code == 401
        mock_process.assert_not_called()

    def test_missing_signature_rejected(self, client):
        response = client.post("/line/webhook", content=b"{}")
        assert response.status_code == 401

    def test_valid_request_queues_events(self, client):
        body = json.dumps(
            {
                "destination": "Ubot",
                "events": [
                    {
                        "type": "message",
                        "replyToken": "rt",
                        "source": {"type": "group", "groupId": SPACE_ID, "userId": USER_ID},
                        "message": {"type": "text", "id": "1", "text": "@KAI bot タスク一覧"},
                    }
                ],
            }
        ).encode()

        with patch("kaibot.interface.line_webhook.process_line_events", new_callable=AsyncMock) as mock_process:
            response = client.post("/line/webhook", content=body, headers={"X-Line-Signature": sign(body)})

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}
        mock_process.assert_awaited_once()
        events = mock_process.await_args.args[0]
        assert events[0].text == "@KAI bot タスク一覧"

    def test_verification_request_without_events(self, client):
        body = b'{"destination": "Ubot", "events": []}'
        with patch("kaibot.interface.line_webhook.process_line_events", new_callable=AsyncMock) as mock_process:
            response = client.post("/line/webhook", content=body, headers={"X-Line-Signature": sign(body)})

        assert response.status_code == 200
        mock_process.assert_not_called()

    def test_invalid_json(self, client):
        body = b"not json"
        response = client.post("/line/webhook", content=body, headers={"X-Line-Signature": sign(body)})
        assert response.status_code == 400


@pytest.mark.unit
class TestProcessLineEvents:
    """Background processing of parsed events."""

    @pytest.mark.asyncio
    async def test_text_reply_uses_reply_token(self, patched_sheets, state, sender):
        mock_reply, mock_push = sender

        await line_webhook.process_line_events([message_event("@KAI bot タスク一覧")], state)

        mock_reply.assert_awaited_once()
        assert mock_reply.await_args.kwargs["reply_token"] == "rt"
        assert sent_texts(mock_reply.await_args) == [message_templates.NO_TASKS]
        mock_push.assert_not_called()

    @pytest.mark.asyncio
    async def test_push_when_no_reply_token(self, patched_sheets, state, sender):
        mock_reply, mock_push = sender

        await line_webhook.process_line_events([message_event("@KAI bot タスク一覧", reply_token=None)], state)

        mock_reply.assert_not_called()
        assert mock_push.await_args.kwargs["to"] == SPACE_ID

    @pytest.mark.asyncio
    async def test_untriggered_message_gets_no_reply(self, patched_sheets, state, sender):
        mock_reply, mock_push = sender

        await line_webhook.process_line_events([message_event("おはよう")], state)

        mock_reply.assert_not_called()
        mock_push.assert_not_called()

    @pytest.mark.asyncio
    async def test_bot_mention_is_implicit_trigger(self, patched_sheets, state, sender):
        mock_reply, _ = sender

        await line_webhook.process_line_events([message_event("タスク一覧", mentions_bot=True)], state)

        assert sent_texts(mock_reply.await_args) == [message_templates.NO_TASKS]

    @pytest.mark.asyncio
    async def test_help_attaches_menu(self, patched_sheets, state, sender):
        mock_reply, _ = sender

        await line_webhook.process_line_events([message_event("@KAI bot ヘルプ")], state)

        messages = mock_reply.await_args.kwargs["messages"]
        assert messages[0]["type"] == "text"
        assert messages[1]["type"] == "flex"

    @pytest.mark.asyncio
    async def test_error_reported_and_next_event_processed(self, patched_sheets, state, sender):
        mock_reply, mock_push = sender
        failing = AsyncMock(side_effect=[SheetsError("boom", sheet="Tasks"), None])

        with patch("kaibot.interface.line_webhook.conversation_service.handle_text", new=failing):
            await line_webhook.process_line_events(
                [message_event("@KAI bot 一覧"), message_event("@KAI bot 一覧")], state
            )

        assert failing.await_count == 2
        error_text = sent_texts(mock_push.await_args)[0]
        assert error_text.startswith("スプレッドシートの読み書きに失敗しました。")

    @pytest.mark.asyncio
    async def test_postback_task_list(self, patched_sheets, state, sender):
        mock_reply, mock_push = sender
        event = LineEvent(
            event_type="postback",
            group_id=SPACE_ID,
            user_id=USER_ID,
            reply_token="rt",
            postback_data={"a": "task_list"},
        )

        await line_webhook.process_line_events([event], state)

        assert sent_texts(mock_reply.await_args) == [message_templates.POSTBACK_ACK]
        pushed = [sent_texts(call)[0] for call in mock_push.await_args_list]
        assert pushed == [message_templates.operator_notice(display_name="Taro"), message_templates.NO_TASKS]

    @pytest.mark.asyncio
    async def test_postback_unknown_action_pushes_menu(self, patched_sheets, state, sender):
        _, mock_push = sender
        event = LineEvent(event_type="postback", group_id=SPACE_ID, user_id=USER_ID, postback_data={"a": "?"})

        await line_webhook.process_line_events([event], state)

        assert mock_push.await_args_list[-1].kwargs["messages"][0]["type"] == "flex"
