"""Lazily created pydantic-ai Agent backed by Gemini on Vertex AI."""

import logging

from pydantic_ai import Agent
from pydantic_ai.models.google import GoogleModel
from pydantic_ai.providers.google import GoogleProvider
from pydantic_ai.settings import ModelSettings

from kaibot.agents.prompt import COMMAND_PARSER_INSTRUCTIONS
from kaibot.core.config import constants, settings


logger = logging.getLogger(__name__)


class _AgentState:
    """Singleton state for agent instance."""

    instance: Agent[None, str] | None = None


def _create_agent() -> Agent[None, str]:
    """Create the agent instance (called once, on first LLM fallback)."""
    project = settings.require_credential("gcp_project_id", "Vertex AI")
    provider = GoogleProvider(vertexai=True, project=project, location=settings.gcp_location)
    model = GoogleModel(settings.model_id, provider=provider)

    logger.info(
        "Created command parser agent",
        extra={"model_id": settings.model_id, "location": settings.gcp_location},
    )
    # The caller maps any failure to "unknown", so model retries stay off.
    return Agent(
        model=model,
        output_type=str,
        instructions=COMMAND_PARSER_INSTRUCTIONS,
        model_settings=ModelSettings(
            temperature=constants.LLM_TEMPERATURE,
            max_tokens=constants.LLM_MAX_OUTPUT_TOKENS,
        ),
        retries=0,
    )


def get_agent() -> Agent[None, str]:
    """Get or create the agent instance."""
    if _AgentState.instance is None:
        _AgentState.instance = _create_agent()
    return _AgentState.instance


def reset_agent() -> None:
    """Forget the cached agent (settings changes, tests)."""
    _AgentState.instance = None
