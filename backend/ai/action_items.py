"""Parse free-text action item lists into structured items."""

import re

from models import ActionItem

# "Person: Task (Due date)" or "- Person - Task"
_PERSON_TASK = re.compile(r"^[-•*]?\s*([^:]+)[:|-]\s*(.+)$")
_TRAILING_DUE = re.compile(r"^(.*)\(([^)]+)\)$")


def parse_action_items(text: str) -> list[ActionItem]:
    items = []
    for raw in text.splitlines():
        line = raw.strip()
        if not line:
            continue

        match = _PERSON_TASK.match(line)
        if match:
            assignee = match.group(1).strip()
            task = match.group(2).strip()
            due_date = None

            due = _TRAILING_DUE.match(task)
            if due:
                task = due.group(1).strip()
                due_date = due.group(2).strip()

            items.append(ActionItem(assignee=assignee, task=task, due_date=due_date))
        elif len(line) > 10:
            # Looks like a task even without an owner
            items.append(ActionItem(assignee="Unassigned", task=line))

    return items
