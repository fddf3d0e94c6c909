"""系统提示词加载工具。

按任务类型从 prompts/<locale> 目录读取对应的 system prompt 文本，
用于构造 ChatMessage(role="system")。目前只提供 en 版本。
"""

from pathlib import Path

from context_core.domain.exceptions import ValidationError


PROMPTS_DIR = Path(__file__).resolve().parent

# 任务名 -> 提示词文件名
TASK_PROMPTS = {
    "chat": "chat_system.md",
    "explain": "explain_system.md",
    "refactor": "refactor_system.md",
    "unit-test": "unit_test_system.md",
}


def load_system_prompt(task: str = "chat", locale: str = "en") -> str:
    """根据任务类型和语言加载系统提示词文本。

    未知任务抛出 ValidationError。
    """

    fname = TASK_PROMPTS.get(task)
    if fname is None:
        raise ValidationError(
            code="UNKNOWN_TASK",
            message=f"Unknown task: {task}",
            supported=sorted(TASK_PROMPTS),
        )
    return (PROMPTS_DIR / locale / fname).read_text(encoding="utf-8").strip()
