"""Discord interaction follow-up sender."""

import logging

import httpx

from kaibot.core.config import constants, settings
from kaibot.core.errors import DiscordApiError


logger = logging.getLogger(__name__)

# Discord rejects message content longer than this.
MAX_CONTENT_LENGTH = 2000


async def send_followup(*, interaction_token: str, text: str, application_id: str | None = None) -> None:
    """Deliver the result of a deferred interaction.

    Args:
        interaction_token: Token from the interaction payload (valid for 15 minutes)
        text: Message content
        application_id: Overrides DISCORD_APPLICATION_ID (the payload carries it too)

    Raises:
        DiscordApiError: On a non-2xx response
        ValueError: If no application id is available
    """
    app_id = application_id or settings.require_credential("discord_application_id", "Discord")
    url = f"{settings.discord_api_base_url}/webhooks/{app_id}/{interaction_token}"

    async with httpx.AsyncClient(timeout=constants.API_TIMEOUT_SECONDS) as client:
        response = await client.post(url, json={"content": text[:MAX_CONTENT_LENGTH]})

    if not response.is_success:
        logger.error("discord_followup_failed", extra={"status_code": response.status_code})
        raise DiscordApiError(response.status_code, response.text)
    logger.info("discord_followup_sent", extra={"application_id": app_id})
