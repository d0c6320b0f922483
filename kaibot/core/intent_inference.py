"""Best-effort keyword classification for utterances nothing else understood.

The result is never executed. It only decides between a clarification
prompt and a "here's what I guessed" reply.
"""

import re
from enum import StrEnum
from typing import NamedTuple

from kaibot.core.config import constants
from kaibot.core.date_parser import strip_datetime_phrases
from kaibot.core.intent_rules import PROJECT_WORDS, TASK_WORDS, clean_phrase
from kaibot.core.text import keyword_pattern
from kaibot.domain.command import CommandAction
from kaibot.domain.task import EntityKind


class InferredAction(StrEnum):
    """Coarse action guessed from keywords."""

    DELETE = "delete"
    COMPLETE = "complete"
    REOPEN = "reopen"
    UPDATE = "update"
    CREATE = "create"
    LIST = "list"

    @property
    def needs_target(self) -> bool:
        return self in (InferredAction.DELETE, InferredAction.COMPLETE, InferredAction.REOPEN, InferredAction.UPDATE)

    def to_command_action(self, kind: EntityKind) -> CommandAction:
        """Map to the concrete action for a target type (project complete/reopen become updates)."""
        if kind is EntityKind.PROJECT:
            if self in (InferredAction.COMPLETE, InferredAction.REOPEN):
                return CommandAction.UPDATE_PROJECT
            suffix = "projects" if self is InferredAction.LIST else "project"
        else:
            suffix = "tasks" if self is InferredAction.LIST else "task"
        return CommandAction(f"{self.value}_{suffix}")


def _keywords(japanese: str, latin: str) -> re.Pattern[str]:
    """Japanese alternatives match anywhere; latin ones only as whole words."""
    return re.compile(rf"{japanese}|(?<![A-Za-z])(?:{latin})(?![A-Za-z])", re.IGNORECASE)


# Evaluated in priority order: delete > complete > reopen > update > create > list.
INFERENCE_KEYWORDS: tuple[tuple[InferredAction, re.Pattern[str]], ...] = (
    (InferredAction.DELETE, _keywords(r"削除|消して|消す|消しといて|取り消", r"delete|remove")),
    (
        InferredAction.COMPLETE,
        _keywords(r"(?<!未)完了|終わ|済み|できた", r"done|finish(?:ed)?|complete[ds]?"),
    ),
    (InferredAction.REOPEN, _keywords(r"再開|戻して|戻す|未完了|やり直", r"reopen")),
    (
        InferredAction.UPDATE,
        _keywords(r"変更|更新|修正|変えて|直して|期限|締切|ステータス", r"update|edit|rename|change"),
    ),
    (InferredAction.CREATE, _keywords(r"追加|登録|作って|作成|新規", r"add|create|new")),
    (InferredAction.LIST, _keywords(r"一覧|リスト|見せて|表示|確認", r"list|show")),
)

_PROJECT_RE = keyword_pattern(PROJECT_WORDS)
_TASK_RE = keyword_pattern(TASK_WORDS)


class InferredIntent(NamedTuple):
    """Outcome of keyword inference."""

    action: InferredAction | None
    target: EntityKind | None
    query: str
    missing_target: bool

    @property
    def command_action(self) -> CommandAction | None:
        if self.action is None:
            return None
        return self.action.to_command_action(self.target or EntityKind.TASK)

    def missing_slots(self) -> list[str]:
        """Japanese names of the pieces the user did not supply."""
        missing = []
        if self.action is None:
            missing.append("操作（追加・完了・削除など）")
        if self.missing_target:
            missing.append("対象の名前")
        elif self.action is InferredAction.CREATE and not self.query:
            missing.append("名前")
        return missing


def infer_intent(text: str) -> InferredIntent:
    """Classify an utterance by keyword presence and extract a residual query.

    Args:
        text: Normalized utterance with the trigger removed

    Returns:
        InferredIntent; ``query`` is empty when the residue is too short to be meaningful
    """
    action = next((candidate for candidate, pattern in INFERENCE_KEYWORDS if pattern.search(text)), None)

    if _PROJECT_RE.search(text):
        target: EntityKind | None = EntityKind.PROJECT
    elif _TASK_RE.search(text):
        target = EntityKind.TASK
    else:
        target = None

    residue = strip_datetime_phrases(text)
    for _, pattern in INFERENCE_KEYWORDS:
        residue = pattern.sub(" ", residue)
    query = clean_phrase(residue, TASK_WORDS + PROJECT_WORDS)
    if len(query) < constants.MIN_RESIDUAL_QUERY_LENGTH:
        query = ""

    missing_target = bool(action and action.needs_target and not query)
    return InferredIntent(action=action, target=target, query=query, missing_target=missing_target)
