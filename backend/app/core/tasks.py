import re
from dataclasses import dataclass
from typing import List

# Markdown checkboxes: "- [ ] Task" or "* [x] Task"
_CHECKBOX = re.compile(r"^\s*[-*]\s*\[([ xX])\]\s*(.+)$")
# Numbered items: "1. Create the workflow"
_NUMBERED = re.compile(r"^\s*\d+\.\s*(.+)$")

# Words that make a numbered line look like an actionable step.
TASK_KEYWORDS = (
    "crear", "implementar", "modificar", "añadir", "agregar", "configurar",
    "actualizar", "eliminar", "refactorizar", "integrar", "instalar", "probar",
    "build", "setup", "create", "implement", "modify", "add", "update",
    "delete", "refactor", "install", "test",
)

MIN_TASKS = 2


@dataclass
class ParsedTask:
    title: str
    completed: bool = False


def parse_tasks(content: str) -> List[ParsedTask]:
    """
    Extracts a task list from a chat message.

    A checkbox item always counts as a task. A numbered item counts when it
    contains a task keyword, or when it continues a block of tasks that is
    already open; a blank line closes the block. Fewer than two tasks means
    the message is not a task list and an empty list is returned.

    Args:
        content (str): Raw message text (markdown).

    Returns:
        List[ParsedTask]: Tasks in message order, checked boxes marked completed.
    """
    if not content:
        return []

    tasks: List[ParsedTask] = []
    in_block = False

    for line in content.split("\n"):
        checkbox = _CHECKBOX.match(line)
        if checkbox:
            tasks.append(ParsedTask(title=checkbox.group(2).strip(), completed=checkbox.group(1).lower() == "x"))
            in_block = True
            continue

        numbered = _NUMBERED.match(line)
        if numbered:
            text = numbered.group(1).strip()
            lowered = text.lower()
            if in_block or any(keyword in lowered for keyword in TASK_KEYWORDS):
                tasks.append(ParsedTask(title=text))
                in_block = True
                continue

        if in_block and not line.strip():
            in_block = False

    if len(tasks) < MIN_TASKS:
        return []
    return tasks
