"""LINE Messaging API sender: reply, push and profile lookup."""

import logging
from typing import Any

import httpx

from kaibot.core.config import constants, settings
from kaibot.core.errors import LineApiError
from kaibot.core.logging import mask_user_id
from kaibot.core.rate_limiter import RateLimiter


logger = logging.getLogger(__name__)

# LINE rejects text messages longer than this.
MAX_TEXT_LENGTH = 5000


def text_message(text: str) -> dict[str, Any]:
    return {"type": "text", "text": text[:MAX_TEXT_LENGTH]}


def _headers() -> dict[str, str]:
    token = settings.require_credential("line_channel_access_token", "LINE")
    return {"Authorization": f"Bearer {token}", "Content-Type": "application/json"}


async def _line_api(method: str, path: str, payload: dict[str, Any] | None = None) -> dict[str, Any]:
    """Call the LINE API; non-2xx raises LineApiError. No retries."""
    url = f"{settings.line_api_base_url}{path}"
    async with httpx.AsyncClient(timeout=constants.API_TIMEOUT_SECONDS) as client:
        response = await client.request(method, url, json=payload, headers=_headers())

    if not response.is_success:
        logger.error("line_api_failed", extra={"path": path, "status_code": response.status_code})
        raise LineApiError(response.status_code, response.text)
    return response.json() if response.content else {}


async def reply(*, reply_token: str, messages: list[dict[str, Any]]) -> None:
    """Answer an event with its one-time reply token."""
    await _line_api("POST", "/v2/bot/message/reply", {"replyToken": reply_token, "messages": messages[:5]})
    logger.info("line_reply_sent", extra={"message_count": len(messages)})


async def push(*, to: str, messages: list[dict[str, Any]], throttle: RateLimiter | None = None) -> bool:
    """Push messages to a group/room/user.

    Args:
        to: Target id
        messages: LINE message objects (at most 5 are sent)
        throttle: Optional per-target limiter; over the limit the push is dropped

    Returns:
        False if the throttle dropped the push
    """
    if throttle is not None and not await throttle.allow("line_push", to, constants.MAX_PUSHES_PER_MINUTE):
        logger.warning("line_push_throttled", extra={"target": to})
        return False

    await _line_api("POST", "/v2/bot/message/push", {"to": to, "messages": messages[:5]})
    logger.info("line_push_sent", extra={"target": to, "message_count": len(messages)})
    return True


def _profile_path(user_id: str, group_id: str | None, room_id: str | None) -> str:
    if group_id:
        return f"/v2/bot/group/{group_id}/member/{user_id}"
    if room_id:
        return f"/v2/bot/room/{room_id}/member/{user_id}"
    return f"/v2/bot/profile/{user_id}"


async def get_display_name(*, user_id: str | None, group_id: str | None = None, room_id: str | None = None) -> str:
    """Best-effort display name; any failure degrades to the masked user id."""
    if not user_id:
        return mask_user_id(user_id)
    try:
        profile = await _line_api("GET", _profile_path(user_id, group_id, room_id))
    except (httpx.HTTPError, LineApiError, ValueError) as e:
        logger.info("line_profile_unavailable", extra={"user": mask_user_id(user_id), "error": str(e)})
        return mask_user_id(user_id)
    return str(profile.get("displayName") or mask_user_id(user_id))
