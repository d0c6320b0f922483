"""Centralized reply strings for LINE and Discord.

All user-facing text lives here so wording can be changed in one place.
"""

from kaibot.core.config import constants
from kaibot.domain.command import CommandAction
from kaibot.domain.task import EntityKind, Project, Task


NO_TASKS = "このグループのタスクはまだありません。"
NO_PROJECTS = "このグループのプロジェクトはまだありません。"
CANCELLED = "キャンセルしました。"
NOTHING_PENDING_TO_CANCEL = "キャンセルする操作はありません。"
POSTBACK_ACK = "受け付けました。反映します…"
SETTINGS_NOT_READY = "設定UIは次で実装します（notify/quota/powerusers）。"
MENU_TITLE = "メニュー"

ACTION_VERBS: dict[CommandAction, str] = {
    CommandAction.COMPLETE_TASK: "完了に",
    CommandAction.REOPEN_TASK: "未完了に戻",
    CommandAction.DELETE_TASK: "削除",
    CommandAction.UPDATE_TASK: "変更",
    CommandAction.UPDATE_PROJECT: "変更",
    CommandAction.DELETE_PROJECT: "削除",
}

ACTION_LABELS: dict[CommandAction, str] = {
    CommandAction.CREATE_TASK: "タスク追加",
    CommandAction.UPDATE_TASK: "タスク変更",
    CommandAction.DELETE_TASK: "タスク削除",
    CommandAction.COMPLETE_TASK: "タスク完了",
    CommandAction.REOPEN_TASK: "タスク再開",
    CommandAction.LIST_TASKS: "タスク一覧",
    CommandAction.CREATE_PROJECT: "プロジェクト追加",
    CommandAction.UPDATE_PROJECT: "プロジェクト変更",
    CommandAction.DELETE_PROJECT: "プロジェクト削除",
    CommandAction.LIST_PROJECTS: "プロジェクト一覧",
}


def help_text(*, bot_name: str) -> str:
    return (
        f"{bot_name} の使い方\n"
        f"・追加: @{bot_name} 議事録作成を明日18時までに追加\n"
        f"・一覧: @{bot_name} タスク一覧 / プロジェクト一覧\n"
        f"・完了: @{bot_name} 議事録作成 完了\n"
        f"・再開: @{bot_name} 議事録作成を再開\n"
        f"・変更: @{bot_name} 議事録作成の期限を1/15 18:00に変更\n"
        f"・削除: @{bot_name} 議事録作成を削除\n"
        f"・プロジェクト: @{bot_name} 新歓プロジェクトを追加"
    )


def trigger_footer(*, bot_name: str) -> str:
    return f"呼び出し: @{bot_name}（文中OK） / ボット・ぼっと・おーい（文頭のみ）"


def task_new_usage(*, bot_name: str) -> str:
    return (
        "タスク追加（現状は定型入力）:\n"
        f"例: @{bot_name} タスク: 議事録作成 / 期限: 2026-01-10 18:00 / status: open"
    )


def operator_notice(*, display_name: str) -> str:
    return f"操作者: {display_name}\n処理中…（連打しないでOK）"


def task_list(tasks: list[Task]) -> str:
    """Numbered task list, or the fixed empty-list message."""
    if not tasks:
        return NO_TASKS
    lines = []
    for position, task in enumerate(tasks, start=1):
        due = f"期限: {task.due_at}" if task.due_at else "期限: なし"
        status = f"status: {task.status.value}" if task.status else "status: (未設定)"
        lines.append(f"{position}. {task.title} / {due} / {status}")
    return "\n".join(lines)


def project_list(projects: list[Project]) -> str:
    if not projects:
        return NO_PROJECTS
    lines = []
    for position, project in enumerate(projects, start=1):
        due = f"期限: {project.due_at}" if project.due_at else "期限: なし"
        lines.append(f"{position}. {project.title} / {due} / status: {project.status.value}")
    return "\n".join(lines)


def created(*, kind: EntityKind, title: str, entity_id: str, due_at: str = "", project_title: str = "") -> str:
    message = f"{kind.label}「{title}」を追加しました。（ID: {entity_id}）"
    if due_at:
        message += f"\n期限: {due_at}"
    if project_title:
        message += f"\nプロジェクト: {project_title}"
    return message


def project_unresolved(*, project_title: str) -> str:
    return f"※ プロジェクト「{project_title}」が見つからなかったため、紐づけていません。"


def ask_title(*, kind: EntityKind) -> str:
    return f"追加する{kind.label}の名前を送ってください。（やめる場合は「キャンセル」）"


def ask_target(*, action: CommandAction) -> str:
    kind = action.kind or EntityKind.TASK
    verb = ACTION_VERBS.get(action, "操作")
    return (
        f"どの{kind.label}を{verb}しますか？名前かIDを送ってください。"
        "（やめる場合は「キャンセル」）"
    )


def ask_patch(*, kind: EntityKind, title: str) -> str:
    return f"{kind.label}「{title}」の何を変更しますか？\n（タイトル・説明・期限・ステータス）"


def not_found(*, kind: EntityKind, query: str) -> str:
    return f"「{query}」に一致する{kind.label}が見つかりませんでした。"


def ambiguous(*, kind: EntityKind, query: str, candidates: list[tuple[str, str]]) -> str:
    """Disambiguation prompt listing up to the display limit of (id, title) pairs."""
    shown = candidates[: constants.DISAMBIGUATION_DISPLAY_LIMIT]
    lines = [f"「{query}」に一致する{kind.label}が{len(candidates)}件あります。"]
    lines.extend(f"・{title}（ID: {entity_id}）" for entity_id, title in shown)
    if len(candidates) > len(shown):
        lines.append(f"…ほか{len(candidates) - len(shown)}件")
    lines.append("名前をもう少し詳しく、またはIDで指定してください。")
    return "\n".join(lines)


def completed(*, kind: EntityKind, title: str) -> str:
    return f"{kind.label}「{title}」を完了にしました。"


def reopened(*, kind: EntityKind, title: str) -> str:
    return f"{kind.label}「{title}」を未完了に戻しました。"


def deleted(*, kind: EntityKind, title: str) -> str:
    return f"{kind.label}「{title}」を削除しました。"


def already_in_status(*, kind: EntityKind, title: str, status: str) -> str:
    return f"{kind.label}「{title}」はすでに {status} です。"


def updated(*, kind: EntityKind, title: str, changes: list[str]) -> str:
    return f"{kind.label}「{title}」を更新しました。\n" + "\n".join(f"・{change}" for change in changes)


def guessed(*, action_label: str | None, kind: EntityKind | None, query: str, missing: list[str]) -> str:
    """Fallback reply listing what was guessed and what is missing."""
    lines = ["うまく理解できませんでした。"]
    lines.append(f"推測した操作: {action_label or '不明'}")
    lines.append(f"対象: {kind.label if kind else '不明'}")
    lines.append(f"名前: {query or '(なし)'}")
    if missing:
        lines.append(f"足りない情報: {'、'.join(missing)}")
    lines.append("「ヘルプ」で使い方を表示します。")
    return "\n".join(lines)
