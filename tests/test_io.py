"""Tests for plancraft.tasks.io: YAML task files."""

from __future__ import annotations

from pathlib import Path

import pytest

from plancraft.errors import ValidationError
from plancraft.tasks.io import dump_tasks, load_task_file, parse_tasks, save_task_file, task_from_mapping
from plancraft.tasks.model import Task


SAMPLE = """\
tasks:
  - id: schema
    title: Design schema
    estimatedHours: 3
    priority: 9
    category: database
  - id: api
    title: Build REST API
    estimatedHours: 12
    priority: 7
    category: backend
    dependsOn: [schema]
"""


class TestParseTasks:
    """Tests for parse_tasks() and task_from_mapping()."""

    def test_tasks_mapping(self):
        tasks = parse_tasks(SAMPLE)
        assert [t.id for t in tasks] == ["schema", "api"]
        api = tasks[1]
        assert api.estimated_hours == 12.0
        assert api.priority == 7
        assert api.category == "backend"
        assert api.dependencies == ["schema"]

    def test_bare_list(self):
        tasks = parse_tasks("- id: a\n- id: b\n  depends_on: a\n")
        assert tasks[1].dependencies == ["a"]
        assert tasks[0].title == "a"

    def test_field_aliases(self):
        task = task_from_mapping({"id": "x", "name": "Named", "hours": 2, "dependencies": ["y"]})
        assert task.title == "Named"
        assert task.estimated_hours == 2.0
        assert task.dependencies == ["y"]

    def test_empty_document(self):
        assert parse_tasks("") == []
        assert parse_tasks("tasks:\n") == []

    def test_invalid_yaml(self):
        with pytest.raises(ValidationError, match="Invalid YAML"):
            parse_tasks("tasks: [unclosed")

    def test_wrong_shape(self):
        with pytest.raises(ValidationError):
            parse_tasks("tasks: just a string")

    def test_non_mapping_entry(self):
        with pytest.raises(ValidationError, match="#2"):
            parse_tasks("- id: a\n- plain\n")

    def test_bad_field_value(self):
        with pytest.raises(ValidationError):
            parse_tasks("- id: a\n  estimatedHours: -1\n")

    def test_missing_id(self):
        with pytest.raises(ValidationError):
            parse_tasks("- title: nameless\n")


class TestTaskFiles:
    """Tests for load_task_file() / save_task_file()."""

    def test_load(self, tmp_path: Path):
        path = tmp_path / "tasks.yaml"
        path.write_text(SAMPLE, encoding="utf-8")
        assert len(load_task_file(path)) == 2

    def test_save_then_load_keeps_fields(self, tmp_path: Path):
        tasks = [
            Task(id="a", title="Alpha", description="first", estimated_hours=1.5, priority=3, category="setup"),
            Task(id="b", estimated_hours=4, dependencies=["a"]),
        ]
        path = tmp_path / "out.yaml"
        save_task_file(path, tasks)
        loaded = load_task_file(path)
        assert [t.to_dict() for t in loaded] == [t.to_dict() for t in tasks]

    def test_dump_uses_file_layout_keys(self):
        text = dump_tasks([Task(id="a", dependencies=[])])
        assert text.startswith("tasks:")
        assert "estimatedHours: 1.0" in text
        assert "dependsOn: []" in text
