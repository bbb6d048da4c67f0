# tests/core/engine/test_invalidate.py
"""
Testes do Invalidator.

Cenário base (A depende de B e S; B depende de C):

        C ── B ──┐
                 A
        S ───────┘

Os testes asseguram que:
- invalidar C (sem cascade) faz a próxima run reexecutar C, B e A, mas não S
- com cascade, os dependentes são removidos imediatamente (via grafo ou lineage)
- nós sem caminho até a task invalidada nunca são tocados
"""

import pytest

from atlas_taskflow.core.engine.engine import Engine
from atlas_taskflow.core.engine.graph import build_graph
from atlas_taskflow.core.engine.invalidate import invalidate
from atlas_taskflow.core.exceptions import ConfigurationError
from atlas_taskflow.core.task.params import int_param


@pytest.fixture
def diamond(make_task):
    c = make_task("C", params=(int_param("p", 0),))
    b = make_task("B", requires=lambda inst: c())
    s = make_task("S")
    a = make_task("A", requires=lambda inst: [b(), s()])
    return a, b, c, s


def _run(store, task, ctx=None):
    return Engine(store=store, ctx=ctx).run(task)


def test_invalidate_without_cascade_reruns_dependents(memory_store, diamond, calls):
    a, b, c, s = diamond
    _run(memory_store, a())

    removed = invalidate(memory_store, c())

    assert removed == [c().identity]
    assert memory_store.exists(b().identity)

    result = _run(memory_store, a())
    assert result.executed_tasks() == ["C", "B", "A"]
    assert [r.task for r in result.cached] == ["S"]
    assert calls == {"C": 2, "B": 2, "A": 2, "S": 1}


def test_invalidate_cascade_with_graph(memory_store, diamond):
    a, b, c, s = diamond
    _run(memory_store, a())
    graph = build_graph(a())

    removed = invalidate(memory_store, "C", cascade=True, graph=graph)

    assert [i.name for i in removed] == ["C", "B", "A"]
    assert [i.name for i in memory_store.keys()] == ["S"]


def test_invalidate_cascade_with_store_lineage(memory_store, diamond):
    a, b, c, s = diamond
    _run(memory_store, a())

    removed = invalidate(memory_store, c(), cascade=True)

    assert [i.name for i in removed] == ["C", "B", "A"]
    assert memory_store.exists(s().identity)


def test_invalidate_leaf_leaves_dependencies_alone(memory_store, diamond, calls):
    a, b, c, s = diamond
    _run(memory_store, a())

    assert invalidate(memory_store, a, cascade=True) == [a().identity]

    result = _run(memory_store, a())
    assert result.executed_tasks() == ["A"]


def test_invalidate_missing_artifact_returns_empty(memory_store, diamond):
    _, _, c, _ = diamond
    assert invalidate(memory_store, c(p=99)) == []


def test_invalidate_logs_and_records_manifest_event(dummy_ctx, memory_store, diamond):
    a, _, c, _ = diamond
    _run(memory_store, a(), ctx=dummy_ctx)

    invalidate(memory_store, c(), ctx=dummy_ctx)

    events = dummy_ctx.manifest.events_of("artifact_invalidated")
    assert [e["node"] for e in events] == [c().key]
    assert dummy_ctx.events_for(c().key)[-1]["message"] == "artifact invalidated"


def test_invalidate_by_name_requires_graph(memory_store):
    with pytest.raises(ConfigurationError):
        invalidate(memory_store, "C")


def test_invalidate_cascade_reaches_dependents_outside_the_graph(memory_store, diamond):
    a, b, c, s = diamond
    _run(memory_store, a())
    graph = build_graph(c())

    removed = invalidate(memory_store, c(), cascade=True, graph=graph)

    assert [i.name for i in removed] == ["C", "B", "A"]
    assert [i.name for i in memory_store.keys()] == ["S"]
