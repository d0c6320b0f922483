from kaibot.services import (
    command_executor,
    conversation_service,
    entity_service,
    pending_action_service,
    template_service,
)


__all__ = [
    "command_executor",
    "conversation_service",
    "entity_service",
    "pending_action_service",
    "template_service",
]
