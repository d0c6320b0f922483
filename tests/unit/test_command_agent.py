"""Tests for the LLM fallback parser."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from kaibot.agents import agent_instance
from kaibot.agents.command_agent import extract_json_object, normalize_llm_slots, parse_with_llm
from kaibot.agents.prompt import COMMAND_PARSER_INSTRUCTIONS, build_user_prompt
from kaibot.core.config import settings
from kaibot.domain.command import SLOT_NAMES, CommandAction


@pytest.fixture
def llm_enabled(monkeypatch):
    monkeypatch.setattr(settings, "gcp_project_id", "test-project")


def _agent_returning(output: str) -> MagicMock:
    agent = MagicMock()
    agent.run = AsyncMock(return_value=MagicMock(output=output))
    return agent


@pytest.mark.unit
class TestExtractJsonObject:
    """Balanced-brace JSON extraction from free text."""

    def test_plain_object(self):
        assert extract_json_object('{"action": "help"}') == {"action": "help"}

    def test_surrounded_by_prose_and_fences(self):
        text = '了解です。\n```json\n{"action": "list_tasks", "title": ""}\n```'
        assert extract_json_object(text) == {"action": "list_tasks", "title": ""}

    def test_braces_inside_strings(self):
        assert extract_json_object('{"title": "a } b {", "action": "create_task"}') == {
            "title": "a } b {",
            "action": "create_task",
        }

    def test_nested_object(self):
        assert extract_json_object('x {"a": {"b": 1}} y') == {"a": {"b": 1}}

    def test_no_object(self):
        assert extract_json_object("no json here") is None

    def test_unbalanced(self):
        assert extract_json_object('{"action": "help"') is None

    def test_invalid_json(self):
        assert extract_json_object("{action: help}") is None


@pytest.mark.unit
def test_normalize_llm_slots_fills_every_slot():
    slots = normalize_llm_slots({"action": "CREATE_TASK", "title": " 議事録 ", "due_at": None, "status": ["x"]})

    assert slots["action"] == "create_task"
    assert slots["title"] == "議事録"
    assert slots["due_at"] == ""
    assert slots["status"] == ""
    assert set(SLOT_NAMES) <= set(slots)


@pytest.mark.unit
class TestParseWithLlm:
    """Gemini fallback mapped onto Command."""

    @pytest.mark.asyncio
    async def test_disabled_returns_unknown(self, now):
        with patch("kaibot.agents.command_agent.get_agent") as mock_get_agent:
            command = await parse_with_llm("なにか", now)

        assert command.action is CommandAction.UNKNOWN
        mock_get_agent.assert_not_called()

    @pytest.mark.asyncio
    async def test_parses_reply(self, now, llm_enabled):
        reply = '{"action": "create_task", "title": "議事録作成", "due_at": "", "status": "", "next_action": ""}'
        agent = _agent_returning(reply)
        with patch("kaibot.agents.command_agent.get_agent", return_value=agent):
            command = await parse_with_llm("議事録作成お願い", now)

        assert command.action is CommandAction.CREATE_TASK
        assert command.title == "議事録作成"
        assert command.source == "llm"
        agent.run.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_due_date_reparsed_from_utterance(self, now, llm_enabled):
        agent = _agent_returning('{"action": "create_task", "title": "議事録", "due_at": "1999-01-01 00:00"}')
        with patch("kaibot.agents.command_agent.get_agent", return_value=agent):
            command = await parse_with_llm("議事録を明日までにお願い", now)

        assert command.due_at == "2025-12-21 18:00"

    @pytest.mark.asyncio
    async def test_ask_user_next_action(self, now, llm_enabled):
        agent = _agent_returning(
            '{"action": "ask_user", "question": "どのタスクですか？", "next_action": "complete_task"}'
        )
        with patch("kaibot.agents.command_agent.get_agent", return_value=agent):
            command = await parse_with_llm("あれ終わった", now)

        assert command.action is CommandAction.ASK_USER
        assert command.question == "どのタスクですか？"
        assert command.next_action is CommandAction.COMPLETE_TASK

    @pytest.mark.asyncio
    async def test_unknown_action_value(self, now, llm_enabled):
        agent = _agent_returning('{"action": "launch_rocket"}')
        with patch("kaibot.agents.command_agent.get_agent", return_value=agent):
            command = await parse_with_llm("ロケット", now)

        assert command.action is CommandAction.UNKNOWN

    @pytest.mark.asyncio
    async def test_unparseable_reply(self, now, llm_enabled):
        with patch("kaibot.agents.command_agent.get_agent", return_value=_agent_returning("わかりません")):
            command = await parse_with_llm("???", now)

        assert command.action is CommandAction.UNKNOWN

    @pytest.mark.asyncio
    async def test_transport_error_returns_unknown(self, now, llm_enabled):
        agent = MagicMock()
        agent.run = AsyncMock(side_effect=RuntimeError("vertex unavailable"))
        with patch("kaibot.agents.command_agent.get_agent", return_value=agent):
            command = await parse_with_llm("何か", now)

        assert command.action is CommandAction.UNKNOWN


@pytest.mark.unit
class TestAgentInstance:
    """Lazy singleton creation."""

    def test_get_agent_is_cached(self):
        sentinel = MagicMock()
        agent_instance.reset_agent()
        try:
            with patch("kaibot.agents.agent_instance._create_agent", return_value=sentinel) as mock_create:
                assert agent_instance.get_agent() is sentinel
                assert agent_instance.get_agent() is sentinel
            mock_create.assert_called_once()
        finally:
            agent_instance.reset_agent()

    def test_create_agent_requires_project(self):
        agent_instance.reset_agent()
        with pytest.raises(ValueError, match="Vertex AI credential not configured"):
            agent_instance.get_agent()


@pytest.mark.unit
def test_prompt_lists_actions_and_carries_time(now):
    assert "create_task" in COMMAND_PARSER_INSTRUCTIONS
    assert "next_action" in COMMAND_PARSER_INSTRUCTIONS
    prompt = build_user_prompt("議事録", now)
    assert "2025-12-20 10:00" in prompt
    assert prompt.endswith("発言: 議事録")
