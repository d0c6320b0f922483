"""Fixed prompt for the LLM command parser."""

from datetime import datetime

from kaibot.core.date_parser import format_local
from kaibot.domain.command import SLOT_NAMES, CommandAction


_ACTIONS = ", ".join(action.value for action in CommandAction)
_SLOTS = ", ".join(f'"{name}": ""' for name in SLOT_NAMES)

COMMAND_PARSER_INSTRUCTIONS = f"""
あなたはLINE/Discordのグループで使われるタスク管理ボットのコマンド解析器です。
ユーザーの発言を、次のJSONオブジェクト1つだけに変換してください。
説明文やコードブロックは不要です。

{{"action": "", {_SLOTS}}}

## action（必ず次のいずれか）
{_ACTIONS}

## スロットのルール
- すべてのキーを必ず出力し、値がないものは空文字 "" にする
- title: 新しく作るタスク/プロジェクトの名前
- query: 既存のタスク/プロジェクトを特定する名前またはID（t_… / p_…）
- new_title: 名前を変更する場合の新しい名前
- due_at: "YYYY-MM-DD HH:MM"（日本時間）。時刻がなければ 18:00
- status: open / doing / done のいずれか
- project_title: タスクを紐づけるプロジェクト名
- 意図が曖昧で聞き返す必要があるときは action を "ask_user" にする。
  question に質問文、next_action に続けて実行する action を入れる
- どれにも当てはまらないときは action を "unknown" にする
""".strip()


def build_user_prompt(text: str, now: datetime) -> str:
    """Per-call prompt carrying the reference time and the utterance."""
    return f"現在日時（日本時間）: {format_local(now)}\n発言: {text}"
