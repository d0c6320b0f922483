"""Regex fast path: ordered (predicate, extractor) rules over a stripped utterance.

Rules are evaluated top to bottom and the first match wins:
list -> project status ops -> task status ops -> delete -> labeled create ->
natural create -> update -> relocate. The keyword tuples below are tuned
phrase lists; changing them changes which phrasings are understood.
"""

import re
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import NamedTuple

from kaibot.core.date_parser import parse_due_at, strip_datetime_phrases
from kaibot.core.text import collapse_whitespace, contains_keyword, keyword_pattern
from kaibot.domain.command import Command, CommandAction
from kaibot.domain.task import TaskStatus, normalize_status


TASK_WORDS: tuple[str, ...] = ("タスク", "やること", "todo", "tasks", "task")
PROJECT_WORDS: tuple[str, ...] = ("プロジェクト", "projects", "project", "pj")
HELP_WORDS: tuple[str, ...] = ("help", "ヘルプ", "使い方", "メニュー", "menu", "?")
COMPLETE_WORDS: tuple[str, ...] = (
    "完了",
    "終わった",
    "終わりました",
    "終わり",
    "済み",
    "できた",
    "finished",
    "completed",
    "finish",
    "complete",
    "done",
)
REOPEN_WORDS: tuple[str, ...] = ("未完了に戻", "再開", "戻して", "戻す", "やり直し", "reopen")
DELETE_WORDS: tuple[str, ...] = ("削除", "消して", "消す", "取り消し", "delete", "remove")
CREATE_WORDS: tuple[str, ...] = ("追加", "登録", "作って", "新規", "add", "create")
UPDATE_WORDS: tuple[str, ...] = ("変更", "更新", "修正", "変えて", "直して", "update", "rename", "edit")
RELOCATE_WORDS: tuple[str, ...] = ("移動", "移して", "紐づけ", "紐付け", "入れて", "move")

# Labeled "field: value / field: value" creation.
LABELS: dict[str, tuple[str, ...]] = {
    "title": ("タスク", "task", "タイトル", "title", "件名", "名前"),
    "project": ("プロジェクト", "project", "pj"),
    "due_at": ("期限", "締切", "due", "deadline"),
    "status": ("ステータス", "status", "状態"),
    "description": ("説明", "詳細", "メモ", "description", "memo", "note"),
}
_ALL_LABELS = sorted((label for labels in LABELS.values() for label in labels), key=len, reverse=True)
_LABEL_ALT = "|".join(map(re.escape, _ALL_LABELS))
_LABEL_START_RE = re.compile(rf"(?:^|(?<=[\s/\n]))(?:{_LABEL_ALT})\s*:", re.IGNORECASE)
_LABEL_SPLIT_RE = re.compile(rf"\s*(?:/|\n)\s*(?=(?:{_LABEL_ALT})\s*:)", re.IGNORECASE)
_TITLE_LABEL_RE = re.compile(
    rf"(?:^|(?<=[\s/\n]))(?:{'|'.join(map(re.escape, LABELS['title'] + LABELS['project']))})\s*:\s*\S",
    re.IGNORECASE,
)

_QUOTE_RE = re.compile(r"「([^」]+)」|『([^』]+)』|\"([^\"]+)\"|“([^”]+)”")
ENTITY_ID_RE = re.compile(r"(?<![A-Za-z0-9_])([tp]_\d{14}[0-9a-f]{4})(?![0-9a-f])")

_LIST_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(
        r"(?:(?P<kind>タスク|やること|todo|tasks?|プロジェクト|projects?|pj)\s*(?:の)?\s*)?"
        r"(?:一覧|リスト|list|ls)"
        r"(?:\s*(?:を)?\s*"
        r"(?:見せて|表示して|表示|出して|教えて|ください|下さい|お願い|します)*)"
        r"[\s。.!！?？]*",
        re.IGNORECASE,
    ),
    re.compile(r"(?:list|show)\s+(?:all\s+)?(?:my\s+)?(?P<kind>tasks?|projects?|todos?)[\s.!?]*", re.IGNORECASE),
    re.compile(
        r"(?P<kind>タスク|やること|プロジェクト)\s*(?:を)?\s*(?:見せて|表示して|教えて|確認)"
        r"(?:\s*(?:ください|下さい|お願い))?[\s。.!！?？]*",
        re.IGNORECASE,
    ),
)

_TITLE_CHANGE_RE = re.compile(
    r"(?:タイトル|名前|名称|件名)\s*(?:を|は)?\s*(?:「(?P<q>[^」]+)」|(?P<v>.+?))\s*(?:に|へ)\s*"
    r"(?:変更|変えて|して|する|更新|修正|直して)"
)
_DESCRIPTION_CHANGE_RE = re.compile(
    r"(?:説明|詳細|メモ)\s*(?:を|は)?\s*(?:「(?P<q>[^」]+)」|(?P<v>.+?))\s*(?:に|へ)\s*"
    r"(?:変更|変えて|して|する|更新|修正)"
)
_STATUS_FIELD = r"(?:ステータス|状態|(?<![A-Za-z])status(?![A-Za-z]))"
_STATUS_FIELD_RE = re.compile(_STATUS_FIELD, re.IGNORECASE)
_STATUS_CHANGE_RE = re.compile(rf"{_STATUS_FIELD}\s*(?:を|は|:)?\s*(?P<v>[^\s]+?)\s*(?:に|へ|$)", re.I)
_BARE_STATUS_RE = re.compile(
    r"(?P<v>進行中|作業中|対応中|着手中|未着手|未完了|完了|done|doing|open)\s*(?:に|へ)\s*"
    r"(?:変更|変えて|して|する|更新)",
    re.IGNORECASE,
)
_RENAME_EN_RE = re.compile(r"rename\s+(?P<old>.+?)\s+to\s+(?P<new>.+)", re.IGNORECASE)
_FIELD_PREFIX_RE = re.compile(
    r"^(?P<target>.+?)\s*の\s*(?:タイトル|名前|名称|件名|期限|締切|説明|詳細|メモ|ステータス|状態)"
)
_FIELD_KEYWORD_RE = re.compile(
    r"期限|締切|ステータス|状態|タイトル|名前|名称|件名|説明|詳細|メモ"
    r"|(?<![A-Za-z])(?:due|status)(?![A-Za-z])",
    re.IGNORECASE,
)
_DUE_KEYWORD_RE = re.compile(r"期限|締切|日時|日付|(?<![A-Za-z])(?:due|deadline)(?![A-Za-z])", re.IGNORECASE)

_RELOCATE_RE = re.compile(
    r"^(?:タスク\s*)?(?:「(?P<tq>[^」]+)」|(?P<t>.+?))\s*を\s*"
    r"(?:プロジェクト\s*)?(?:「(?P<pq>[^」]+)」|(?P<p>.+?))\s*"
    r"(?:プロジェクト|project|pj)?\s*(?:に|へ)\s*"
    r"(?:移動|移して|紐づけ|紐付け|入れて)",
    re.IGNORECASE,
)
_RELOCATE_EN_RE = re.compile(r"move\s+(?P<t>.+?)\s+(?:to|into)\s+(?:project\s+)?(?P<p>.+?)(?:\s+project)?$", re.I)
_PROJECT_REF_RE = re.compile(
    r"(?:「(?P<q>[^」]+)」|(?P<v>[^\s「」を]+?))\s*(?:プロジェクト|project|pj)\s*(?:に|へ)", re.IGNORECASE
)

_EDGE_PUNCTUATION = "、,。.!！?？:：・/ "
_TRAILING_PARTICLES = ("を", "は", "が", "に", "へ", "で", "も")
_LEADING_PARTICLES = ("を", "は", "が", "の", "に", "へ", "で", "も", "と")
_TRAILING_FILLERS: tuple[str, ...] = (
    "してください",
    "して下さい",
    "しておいて",
    "しといて",
    "お願いします",
    "おねがい",
    "お願い",
    "ください",
    "下さい",
    "しました",
    "します",
    "にして",
    "して",
    "する",
    "please",
    "pls",
)


@dataclass
class Utterance:
    """A stripped utterance plus the pieces every rule looks at."""

    text: str
    now: datetime
    lowered: str = field(init=False)
    quotes: list[str] = field(init=False)
    ids: list[str] = field(init=False)

    def __post_init__(self) -> None:
        self.lowered = self.text.lower()
        self.quotes = extract_quotes(self.text)
        self.ids = ENTITY_ID_RE.findall(self.text)

    def has_any(self, words: tuple[str, ...]) -> bool:
        return contains_keyword(self.text, words)


class Rule(NamedTuple):
    """One fast-path rule."""

    name: str
    predicate: Callable[[Utterance], bool]
    extractor: Callable[[Utterance], Command | None]


def extract_quotes(text: str) -> list[str]:
    """Return quoted substrings (「」『』"" “”) in order of appearance."""
    return [next(group for group in match.groups() if group is not None).strip() for match in _QUOTE_RE.finditer(text)]


def clean_phrase(text: str, remove: tuple[str, ...] = ()) -> str:
    """Strip keywords, fillers, particles and punctuation from a phrase edge.

    Args:
        text: Phrase to clean
        remove: Keywords removed anywhere in the phrase (case-insensitive)

    Returns:
        The residual phrase
    """
    cleaned = collapse_whitespace(keyword_pattern(tuple(remove)).sub(" ", text))

    changed = True
    while changed and cleaned:
        changed = False
        stripped = cleaned.strip(_EDGE_PUNCTUATION)
        if stripped != cleaned:
            cleaned, changed = stripped, True
            continue
        for filler in _TRAILING_FILLERS:
            if cleaned.lower().endswith(filler):
                cleaned, changed = cleaned[: -len(filler)].rstrip(), True
                break
        if changed:
            continue
        if len(cleaned) > 1 and cleaned.endswith(_TRAILING_PARTICLES):
            cleaned, changed = cleaned[:-1].rstrip(), True
            continue
        head, _, rest = cleaned.partition(" ")
        if rest and head in _LEADING_PARTICLES:
            cleaned, changed = rest, True
    return cleaned


def _query_from(utt: Utterance, remove: tuple[str, ...]) -> str:
    """Prefer explicit ids, then quotes, then the keyword-stripped remainder."""
    if utt.ids:
        return "、".join(utt.ids)
    if utt.quotes:
        return "、".join(utt.quotes)
    return clean_phrase(utt.text, remove)


# --- predicates / extractors -------------------------------------------------


def _is_help(utt: Utterance) -> bool:
    return not utt.text or utt.lowered.strip(" 。.!！？") in HELP_WORDS or utt.lowered in HELP_WORDS


def _extract_help(_utt: Utterance) -> Command:
    return Command(action=CommandAction.HELP)


def _match_list(utt: Utterance) -> re.Match[str] | None:
    for pattern in _LIST_PATTERNS:
        match = pattern.fullmatch(utt.text)
        if match:
            return match
    return None


def _is_list(utt: Utterance) -> bool:
    return _match_list(utt) is not None


def _extract_list(utt: Utterance) -> Command:
    match = _match_list(utt)
    kind = ((match.group("kind") if match else None) or "").lower()
    if kind in {"プロジェクト", "project", "projects", "pj"}:
        return Command(action=CommandAction.LIST_PROJECTS)
    return Command(action=CommandAction.LIST_TASKS)


def _is_field_change(utt: Utterance) -> bool:
    """An update verb or a named status field hands the utterance to the update rule."""
    return utt.has_any(UPDATE_WORDS) or bool(_STATUS_FIELD_RE.search(utt.text))


def _status_words(utt: Utterance) -> bool:
    return (
        utt.has_any(COMPLETE_WORDS) or utt.has_any(REOPEN_WORDS) or utt.has_any(DELETE_WORDS)
    ) and not _is_field_change(utt)


def _is_project_status_op(utt: Utterance) -> bool:
    return utt.has_any(PROJECT_WORDS) and _status_words(utt)


def _extract_project_status_op(utt: Utterance) -> Command:
    noise = PROJECT_WORDS + COMPLETE_WORDS + REOPEN_WORDS + DELETE_WORDS
    query = _query_from(utt, noise)
    if utt.has_any(DELETE_WORDS):
        return Command(action=CommandAction.DELETE_PROJECT, query=query or None)
    status = TaskStatus.OPEN if utt.has_any(REOPEN_WORDS) else TaskStatus.DONE
    return Command(action=CommandAction.UPDATE_PROJECT, query=query or None, status=status)


def _is_task_status_op(utt: Utterance) -> bool:
    return (utt.has_any(COMPLETE_WORDS) or utt.has_any(REOPEN_WORDS)) and not _is_field_change(utt)


def _extract_task_status_op(utt: Utterance) -> Command:
    query = _query_from(utt, TASK_WORDS + REOPEN_WORDS + COMPLETE_WORDS)
    # 未完了に戻す contains 完了, so reopen is checked first.
    action = CommandAction.REOPEN_TASK if utt.has_any(REOPEN_WORDS) else CommandAction.COMPLETE_TASK
    return Command(action=action, query=query or None)


def _is_delete(utt: Utterance) -> bool:
    return utt.has_any(DELETE_WORDS)


def _extract_delete(utt: Utterance) -> Command:
    query = _query_from(utt, TASK_WORDS + DELETE_WORDS)
    return Command(action=CommandAction.DELETE_TASK, query=query or None)


def _is_labeled_create(utt: Utterance) -> bool:
    return bool(_TITLE_LABEL_RE.search(utt.text))


def _label_field(label: str) -> str | None:
    lowered = label.strip().lower()
    for field_name, labels in LABELS.items():
        if lowered in (item.lower() for item in labels):
            return field_name
    return None


def _extract_labeled_create(utt: Utterance) -> Command | None:
    start = _LABEL_START_RE.search(utt.text)
    if not start:
        return None
    fields: dict[str, str] = {}
    first_field: str | None = None
    for segment in _LABEL_SPLIT_RE.split(utt.text[start.start() :]):
        label, sep, value = segment.partition(":")
        field_name = _label_field(label)
        if not sep or field_name is None:
            continue
        first_field = first_field or field_name
        fields.setdefault(field_name, value.strip())

    status = normalize_status(fields.get("status")) or TaskStatus.OPEN
    if first_field == "project":
        return Command(
            action=CommandAction.CREATE_PROJECT,
            title=fields.get("project") or None,
            description=fields.get("description") or None,
            due_at=fields.get("due_at") or None,
            status=status,
        )
    return Command(
        action=CommandAction.CREATE_TASK,
        title=fields.get("title") or None,
        project_title=fields.get("project") or None,
        description=fields.get("description") or None,
        due_at=fields.get("due_at") or None,
        status=status,
    )


def _is_natural_create(utt: Utterance) -> bool:
    if utt.has_any(CREATE_WORDS):
        return True
    return bool(re.search(r"を\s*作成(?:して|する|お願い)?[\s。!！]*$", utt.text))


def _extract_natural_create(utt: Utterance) -> Command:
    noise = CREATE_WORDS + TASK_WORDS + ("を作成", "作成して")
    project_ref = _PROJECT_REF_RE.search(utt.text)
    # "XをYプロジェクトに追加": anything left before the project reference is the task.
    leading = clean_phrase(strip_datetime_phrases(utt.text[: project_ref.start()]), noise) if project_ref else ""
    if project_ref and (utt.quotes or utt.has_any(TASK_WORDS) or leading):
        project_title = project_ref.group("q") or project_ref.group("v")
        remainder = utt.text[: project_ref.start()] + " " + utt.text[project_ref.end() :]
        quotes = [quote for quote in utt.quotes if quote != project_title]
        title = quotes[0] if quotes else clean_phrase(strip_datetime_phrases(remainder), noise)
        return Command(action=CommandAction.CREATE_TASK, title=title or None, project_title=project_title)

    if utt.has_any(PROJECT_WORDS):
        title = utt.quotes[0] if utt.quotes else clean_phrase(strip_datetime_phrases(utt.text), noise + PROJECT_WORDS)
        return Command(action=CommandAction.CREATE_PROJECT, title=title or None)

    title = utt.quotes[0] if utt.quotes else clean_phrase(strip_datetime_phrases(utt.text), noise)
    return Command(action=CommandAction.CREATE_TASK, title=title or None)


def _is_update(utt: Utterance) -> bool:
    if utt.has_any(UPDATE_WORDS):
        return True
    return bool(_FIELD_KEYWORD_RE.search(utt.text)) and bool(re.search(r"(?:に|へ)\s*(?:して|する)", utt.text))


def _group_value(match: re.Match[str] | None) -> str | None:
    if not match:
        return None
    value = match.group("q") or match.group("v")
    return value.strip() if value else None


def _extract_update(utt: Utterance) -> Command:
    is_project = utt.has_any(PROJECT_WORDS)
    action = CommandAction.UPDATE_PROJECT if is_project else CommandAction.UPDATE_TASK

    rename = _RENAME_EN_RE.search(utt.text)
    if rename:
        return Command(action=action, query=rename.group("old").strip(), new_title=rename.group("new").strip())

    new_title = _group_value(_TITLE_CHANGE_RE.search(utt.text))
    description = _group_value(_DESCRIPTION_CHANGE_RE.search(utt.text))
    status_match = _STATUS_CHANGE_RE.search(utt.text) or _BARE_STATUS_RE.search(utt.text)
    status = normalize_status(status_match.group("v")) if status_match else None
    due_at = parse_due_at(utt.text, utt.now) if _DUE_KEYWORD_RE.search(utt.text) else ""

    used = {value for value in (new_title, description) if value}
    quotes = [quote for quote in utt.quotes if quote not in used]
    if not new_title and not description and len(utt.quotes) >= 2:
        quotes, new_title = [utt.quotes[0]], utt.quotes[1]

    if utt.ids:
        query = utt.ids[0]
    elif quotes:
        query = quotes[0]
    else:
        prefix = _FIELD_PREFIX_RE.search(utt.text)
        base = prefix.group("target") if prefix else utt.text.split("を", 1)[0]
        query = clean_phrase(base, TASK_WORDS + PROJECT_WORDS + UPDATE_WORDS)

    return Command(
        action=action,
        query=query or None,
        new_title=new_title,
        description=description,
        status=status,
        due_at=due_at or None,
    )


def _is_relocate(utt: Utterance) -> bool:
    return utt.has_any(RELOCATE_WORDS)


def _extract_relocate(utt: Utterance) -> Command | None:
    match = _RELOCATE_RE.search(utt.text)
    if match:
        task = match.group("tq") or match.group("t") or ""
        project = match.group("pq") or match.group("p") or ""
    else:
        match = _RELOCATE_EN_RE.search(utt.text)
        if not match:
            return None
        task, project = match.group("t"), match.group("p")
    task = clean_phrase(task, TASK_WORDS)
    project = clean_phrase(project, PROJECT_WORDS)
    if not task or not project:
        return None
    return Command(action=CommandAction.UPDATE_TASK, query=task, project_title=project)


RULES: tuple[Rule, ...] = (
    Rule("help", _is_help, _extract_help),
    Rule("list", _is_list, _extract_list),
    Rule("project_status", _is_project_status_op, _extract_project_status_op),
    Rule("task_status", _is_task_status_op, _extract_task_status_op),
    Rule("delete", _is_delete, _extract_delete),
    Rule("labeled_create", _is_labeled_create, _extract_labeled_create),
    Rule("natural_create", _is_natural_create, _extract_natural_create),
    Rule("update", _is_update, _extract_update),
    Rule("relocate", _is_relocate, _extract_relocate),
)


def override_due_at(command: Command, text: str, now: datetime) -> Command:
    """Replace the due date with whatever the date parser finds in the whole utterance.

    Applies to create/update commands only. When the parser finds nothing the
    existing value (e.g. a labeled ``期限:`` field) is kept as-is.
    """
    if not (command.action.is_create or command.action in (CommandAction.UPDATE_TASK, CommandAction.UPDATE_PROJECT)):
        return command
    parsed = parse_due_at(text, now)
    if not parsed:
        return command
    return command.model_copy(update={"due_at": parsed})


def match_rules(text: str, now: datetime) -> Command | None:
    """Run the ordered rule table; None means "try the next stage".

    Args:
        text: Normalized utterance with the trigger removed
        now: Reference instant for due-date parsing

    Returns:
        First matching rule's command with the due date re-parsed, or None
    """
    utt = Utterance(text=text, now=now)
    for rule in RULES:
        if not rule.predicate(utt):
            continue
        command = rule.extractor(utt)
        if command is None:
            continue
        command.source = f"rule:{rule.name}"
        return override_due_at(command, text, now)
    return None
