"""Prompt for short spoken reminders.

The reminder is voiced by a Japanese TTS engine, so the prompt and the output
are Japanese. Model name kept as a constant for easy upgrades.
"""

from task_purge.generation.schemas import ReminderRequest
from task_purge.models.task import TaskPriority

GEMINI_MODEL = "gemini-2.5-flash"
MAX_OUTPUT_TOKENS = 100
MAX_MESSAGE_CHARS = 50

_PROMPT_TEMPLATE = """\
タスクリマインダーです。以下のタスクを緊急感を持って{max_chars}文字以内で伝えてください。
面白く、でも失礼なく。語尾は「ですよ！」「ください！」など。
{overdue_note}
ボード名（案件）: {board_name}
タスク名: {task_name}
優先度: {priority}
期限: {deadline}

メッセージのみを出力してください。"""


def build_reminder_prompt(request: ReminderRequest) -> str:
    """Assemble the generation prompt; tone follows priority and overdue status."""
    priority = "緊急" if request.priority == TaskPriority.CRITICAL else "高優先度"
    deadline = "期限切れ（過ぎています！）" if request.is_overdue else "今日"
    overdue_note = (
        "【重要】期限切れなので特に急いでいることを強調してください。\n"
        if request.is_overdue
        else ""
    )
    return _PROMPT_TEMPLATE.format(
        max_chars=MAX_MESSAGE_CHARS,
        overdue_note=overdue_note,
        board_name=request.board_name or "不明",
        task_name=request.task_name,
        priority=priority,
        deadline=deadline,
    )
