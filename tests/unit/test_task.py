"""Tests for task/project status words and id generation."""

from datetime import datetime

import pytest

from kaibot.domain.task import EntityKind, TaskStatus, generate_entity_id, normalize_status


@pytest.mark.unit
class TestNormalizeStatus:
    """Status synonyms."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("未着手", TaskStatus.OPEN),
            ("未完了", TaskStatus.OPEN),
            ("着手", TaskStatus.DOING),
            ("着手中", TaskStatus.DOING),
            ("進行中", TaskStatus.DOING),
            ("完了", TaskStatus.DONE),
            ("Done", TaskStatus.DONE),
            ("in progress", TaskStatus.DOING),
            ("open", TaskStatus.OPEN),
        ],
    )
    def test_synonyms(self, value, expected):
        assert normalize_status(value) is expected

    @pytest.mark.parametrize("value", ["undone", "opened-ish", "", None, "deleted"])
    def test_unrecognized(self, value):
        assert normalize_status(value) is None


@pytest.mark.unit
def test_generate_entity_id():
    entity_id = generate_entity_id(EntityKind.TASK, datetime(2025, 12, 20, 10, 0, 5))
    assert entity_id.startswith("t_20251220100005")
    assert len(entity_id) == len("t_20251220100005") + 4
