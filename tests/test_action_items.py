"""Tests for action item parsing."""

from ai.action_items import parse_action_items


def test_person_task_due():
    items = parse_action_items("John: Complete API documentation (Friday)")

    assert len(items) == 1
    assert items[0].assignee == "John"
    assert items[0].task == "Complete API documentation"
    assert items[0].due_date == "Friday"


def test_bullets_and_blank_lines():
    text = """
    - Sarah: Send the budget draft

    • Mike: Book the venue (next week)
    """

    items = parse_action_items(text)

    assert [(i.assignee, i.task, i.due_date) for i in items] == [
        ("Sarah", "Send the budget draft", None),
        ("Mike", "Book the venue", "next week"),
    ]


def test_unassigned_line():
    items = parse_action_items("Review the onboarding checklist")

    assert items[0].assignee == "Unassigned"
    assert items[0].task == "Review the onboarding checklist"


def test_short_noise_is_dropped():
    assert parse_action_items("ok\nthanks") == []
