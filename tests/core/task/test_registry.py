# tests/core/task/test_registry.py
import pytest

from atlas_taskflow.core.exceptions import ConfigurationError
from atlas_taskflow.core.task.registry import DuplicateTaskNameError, TaskRegistry
from atlas_taskflow.core.task.task import TaskDef


def _noop(ctx):
    ctx.save(None)


def test_registry_preserves_order_and_is_idempotent():
    a = TaskDef(name="a", run=_noop)
    b = TaskDef(name="b", run=_noop)

    reg = TaskRegistry()
    reg.add(b)
    reg.add(a)
    reg.add(b)

    assert [t.name for t in reg.list()] == ["b", "a"]
    assert "a" in reg
    assert reg.get("a") is a


def test_registry_rejects_distinct_definitions_with_same_name():
    reg = TaskRegistry()
    reg.add(TaskDef(name="a", run=_noop))

    with pytest.raises(DuplicateTaskNameError):
        reg.add(TaskDef(name="a", run=_noop))


def test_registry_unknown_name_raises():
    with pytest.raises(ConfigurationError) as exc:
        TaskRegistry().get("missing")
    assert exc.value.details["task"] == "missing"
