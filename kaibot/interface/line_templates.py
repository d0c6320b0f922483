"""LINE Flex message builders."""

from typing import Any

from kaibot.core import message_templates


MENU_BUTTONS: tuple[tuple[str, str, str], ...] = (
    ("タスク追加", "a=task_new", "primary"),
    ("タスク一覧", "a=task_list", "secondary"),
    ("プロジェクト一覧", "a=project_list", "secondary"),
    ("設定", "a=settings", "secondary"),
)


def _postback_button(label: str, data: str, style: str) -> dict[str, Any]:
    return {"type": "button", "style": style, "action": {"type": "postback", "label": label, "data": data}}


def build_menu_flex(bot_name: str) -> dict[str, Any]:
    """Quick menu bubble with postback buttons and the trigger hint footer."""
    title = f"{bot_name} {message_templates.MENU_TITLE}"
    return {
        "type": "flex",
        "altText": title,
        "contents": {
            "type": "bubble",
            "header": {
                "type": "box",
                "layout": "vertical",
                "contents": [{"type": "text", "text": title, "weight": "bold", "size": "lg"}],
            },
            "body": {
                "type": "box",
                "layout": "vertical",
                "spacing": "md",
                "contents": [_postback_button(label, data, style) for label, data, style in MENU_BUTTONS],
            },
            "footer": {
                "type": "box",
                "layout": "vertical",
                "contents": [
                    {
                        "type": "text",
                        "text": message_templates.trigger_footer(bot_name=bot_name),
                        "size": "sm",
                        "color": "#666666",
                        "wrap": True,
                    }
                ],
            },
        },
    }
