# tests/core/engine/test_engine.py
"""
Testes do Scheduler (Engine).

Os testes asseguram que:
- uma segunda run sem mudanças não executa nenhum nó (idempotência)
- mudar um parâmetro executa apenas os nós afetados (isolamento)
- valores herdados chegam às dependências durante a execução
- nós compartilhados executam uma única vez
- falhas viram payloads; dependentes são SKIPPED e ramos independentes seguem
- fail_fast e request_stop cancelam nós ainda não iniciados
- `forced` reexecuta o nó e seus dependentes
- ramos independentes executam em paralelo com max_workers > 1
- o Manifest registra os eventos canônicos da run

Limites explícitos:
    - Não valida o formato físico do store (ver tests/persistence)
"""

import threading

import pytest

from atlas_taskflow.core.engine.engine import Engine, cache_state
from atlas_taskflow.core.errors import (
    DEPENDENCY_FAILED,
    RUN_CANCELLED,
    STORE_IO_ERROR,
    TASK_EXECUTION_ERROR,
)
from atlas_taskflow.core.exceptions import (
    ConfigurationError,
    CyclicDependencyError,
    TaskExecutionError,
)
from atlas_taskflow.core.task.params import float_param, int_param
from atlas_taskflow.core.task.task import Inherit, TaskDef
from atlas_taskflow.core.task.types import CacheStatus, NodeStatus
from atlas_taskflow.core.traceability.manifest import load_manifest
from atlas_taskflow.persistence.artifact_store import InMemoryArtifactStore


@pytest.fixture
def pipeline(make_task):
    """prepare(seed) → train(lr, seed herdado) → evaluate(herda tudo de train)."""
    prepare = make_task("prepare", params=(int_param("seed", 0),))
    train = make_task(
        "train",
        params=(float_param("lr", 0.1),),
        inherits=(Inherit(prepare, ("seed",)),),
        requires=lambda inst: prepare(),
    )
    evaluate = make_task(
        "evaluate",
        inherits=(Inherit(train),),
        requires=lambda inst: train(),
    )
    return prepare, train, evaluate


def _engine(store, **kwargs):
    return Engine(store=store, **kwargs)


# -----------------------------
# Cache
# -----------------------------

def test_first_run_executes_every_node(memory_store, pipeline, calls):
    _, _, evaluate = pipeline

    result = _engine(memory_store).run(evaluate())

    assert result.ok
    assert result.executed_tasks() == ["prepare", "train", "evaluate"]
    assert calls == {"prepare": 1, "train": 1, "evaluate": 1}
    assert len(memory_store) == 3


def test_second_run_is_idempotent(memory_store, pipeline, calls):
    _, _, evaluate = pipeline

    _engine(memory_store).run(evaluate())
    result = _engine(memory_store).run(evaluate())

    assert result.ok
    assert result.executed == []
    assert [r.task for r in result.cached] == ["prepare", "train", "evaluate"]
    assert calls == {"prepare": 1, "train": 1, "evaluate": 1}


def test_parameter_change_is_isolated(memory_store, pipeline, calls):
    _, _, evaluate = pipeline

    _engine(memory_store).run(evaluate(lr=0.1))
    result = _engine(memory_store).run(evaluate(lr=0.2))

    assert result.executed_tasks() == ["train", "evaluate"]
    assert [r.task for r in result.cached] == ["prepare"]
    assert calls["prepare"] == 1
    assert len(memory_store) == 5


def test_inherited_value_reaches_dependency(memory_store, pipeline):
    prepare, train, evaluate = pipeline

    result = _engine(memory_store).run(evaluate(seed=5))

    assert result.ok
    assert memory_store.exists(prepare(seed=5).identity)
    assert not memory_store.exists(prepare().identity)
    out = memory_store.load(evaluate(seed=5).identity)
    assert out["inputs"]["inputs"]["params"] == {"seed": 5}


def test_shared_dependency_runs_once(memory_store, make_task, calls):
    shared = make_task("shared", params=(int_param("p", 0),))
    left = make_task("left", requires=lambda inst: shared(p=1))
    right = make_task("right", requires=lambda inst: shared(p=1))
    top = make_task("top", requires=lambda inst: {"l": left(), "r": right()})

    result = _engine(memory_store).run(top())

    assert result.ok
    assert calls["shared"] == 1
    value = memory_store.load(top().identity)
    assert set(value["inputs"]) == {"l", "r"}


def test_inputs_are_lazy(memory_store, make_task):
    seen = {}

    dep = make_task("dep", value=lambda ctx: [1, 2, 3])

    def _peek(ctx):
        seen["before"] = ctx.inputs.loaded
        seen["value"] = ctx.inputs.load()
        return sum(seen["value"])

    top = make_task("top", requires=lambda inst: dep(), value=_peek)

    _engine(memory_store).run(top())

    assert seen == {"before": False, "value": [1, 2, 3]}
    assert memory_store.load(top().identity) == 6


def test_cache_state_uses_upstream_revisions(memory_store, pipeline):
    prepare, train, _ = pipeline
    result = _engine(memory_store).run(train())

    prep_rev = result.nodes[prepare().key].revision
    identity = train().identity

    assert cache_state(memory_store, identity, {prepare().key: prep_rev})[0] == CacheStatus.SATISFIED
    assert cache_state(memory_store, identity, {prepare().key: "other"})[0] == CacheStatus.STALE
    assert cache_state(memory_store, identity, {prepare().key: None})[0] == CacheStatus.STALE
    assert cache_state(memory_store, train(lr=9.0).identity, {})[0] == CacheStatus.MISSING


# -----------------------------
# Forced
# -----------------------------

def test_forced_reruns_node_and_dependents(memory_store, pipeline, calls):
    _, _, evaluate = pipeline

    _engine(memory_store).run(evaluate())
    result = _engine(memory_store).run(evaluate(), forced=["train"])

    assert result.executed_tasks() == ["train", "evaluate"]
    assert [r.task for r in result.cached] == ["prepare"]
    assert calls == {"prepare": 1, "train": 2, "evaluate": 2}


def test_forced_unknown_reference_raises(memory_store, pipeline, calls):
    _, _, evaluate = pipeline

    with pytest.raises(ConfigurationError):
        _engine(memory_store).run(evaluate(), forced=["nope"])
    assert sum(calls.values()) == 0


# -----------------------------
# Falhas
# -----------------------------

def _boom(ctx):
    raise ValueError("bad data")


def test_failure_skips_dependents_but_not_independent_branches(memory_store, make_task, calls):
    broken = TaskDef(name="broken", run=_boom)
    after = make_task("after", requires=lambda inst: broken())
    sibling = make_task("sibling")
    top = make_task("top", requires=lambda inst: [after(), sibling()])

    result = _engine(memory_store).run(top())

    assert not result.ok
    assert [r.task for r in result.failed] == ["broken"]
    assert sorted(r.task for r in result.skipped) == ["after", "top"]
    assert result.executed_tasks() == ["sibling"]
    assert calls["after"] == 0

    failed = result.nodes[broken().key]
    assert failed.error["type"] == TASK_EXECUTION_ERROR
    assert failed.error["details"]["identity"] == broken().key
    assert failed.error["details"]["exc_type"] == "ValueError"
    assert "Traceback" not in failed.summary
    assert not memory_store.exists(broken().identity)

    skipped = result.nodes[after().key]
    assert skipped.error["type"] == DEPENDENCY_FAILED
    assert skipped.error["details"]["failed_dependencies"] == [broken().key]


def test_failed_node_can_succeed_on_next_run(memory_store, make_task, calls):
    state = {"fail": True}

    def _flaky(ctx):
        if state["fail"]:
            raise RuntimeError("transient")
        return "ok"

    flaky = make_task("flaky", value=_flaky)
    sibling = make_task("sibling")
    top = make_task("top", requires=lambda inst: [flaky(), sibling()])

    _engine(memory_store).run(top())
    state["fail"] = False
    result = _engine(memory_store).run(top())

    assert result.ok
    assert result.executed_tasks() == ["flaky", "top"]
    assert calls["sibling"] == 1


def test_fail_fast_cancels_unstarted_nodes(memory_store, make_task, calls):
    a_fail = TaskDef(name="a_fail", run=_boom)
    b_ok = make_task("b_ok")
    top = make_task("top", requires=lambda inst: [a_fail(), b_ok()])

    result = _engine(memory_store, fail_fast=True).run(top())

    assert [r.task for r in result.failed] == ["a_fail"]
    assert sorted(r.task for r in result.cancelled) == ["b_ok", "top"]
    assert calls["b_ok"] == 0
    assert result.nodes[b_ok().key].error["type"] == RUN_CANCELLED


def test_missing_save_is_a_failure(memory_store):
    silent = TaskDef(name="silent", run=lambda ctx: None)

    result = _engine(memory_store).run(silent())

    assert result.root_result.status == NodeStatus.FAILED
    assert result.root_result.error["type"] == TASK_EXECUTION_ERROR
    assert not memory_store.exists(silent().identity)


def test_double_save_is_a_failure(memory_store):
    def _twice(ctx):
        ctx.save(1)
        ctx.save(2)

    twice = TaskDef(name="twice", run=_twice)

    result = _engine(memory_store).run(twice())

    assert result.root_result.status == NodeStatus.FAILED
    assert not memory_store.exists(twice().identity)


def test_store_failure_is_reported_as_store_error(make_task):
    class _BrokenStore(InMemoryArtifactStore):
        def save(self, identity, value, *, upstream=None):
            raise OSError("disk full")

    result = _engine(_BrokenStore()).run(make_task("solo")())

    assert result.root_result.status == NodeStatus.FAILED
    assert result.root_result.error["type"] == STORE_IO_ERROR


def test_raise_for_failures(memory_store):
    result = _engine(memory_store).run(TaskDef(name="broken", run=_boom)())

    with pytest.raises(TaskExecutionError) as exc:
        result.raise_for_failures()
    assert exc.value.details["failed"] == [result.root.key]


def test_graph_errors_abort_before_execution(memory_store, make_task, calls):
    a = make_task("a", requires=lambda inst: b())
    b = make_task("b", requires=lambda inst: a())

    with pytest.raises(CyclicDependencyError):
        _engine(memory_store).run(a())
    assert sum(calls.values()) == 0


def test_invalid_max_workers():
    with pytest.raises(ConfigurationError):
        Engine(store=InMemoryArtifactStore(), max_workers=0)


# -----------------------------
# Concorrência / stop
# -----------------------------

def test_independent_branches_run_concurrently(memory_store, make_task, calls):
    barrier = threading.Barrier(2, timeout=10)

    def _meet(ctx):
        barrier.wait()
        return threading.current_thread().name

    left = make_task("left", value=_meet)
    right = make_task("right", value=_meet)
    top = make_task("top", requires=lambda inst: [left(), right()])

    result = _engine(memory_store, max_workers=2).run(top())

    assert result.ok, result.summary()
    assert calls == {"left": 1, "right": 1, "top": 1}
    assert result.executed_tasks()[-1] == "top"


def test_parallel_run_matches_sequential_outcome(pipeline):
    _, _, evaluate = pipeline
    seq = _engine(InMemoryArtifactStore()).run(evaluate(seed=2))
    par = _engine(InMemoryArtifactStore(), max_workers=4).run(evaluate(seed=2))

    assert list(seq.nodes) == list(par.nodes)
    assert [r.status for r in seq.nodes.values()] == [r.status for r in par.nodes.values()]


def test_request_stop_cancels_unstarted_nodes(memory_store, make_task, calls):
    engine = _engine(memory_store)

    def _stop(ctx):
        engine.request_stop()
        return "stopping"

    a_stop = make_task("a_stop", value=_stop)
    b_next = make_task("b_next")
    top = make_task("top", requires=lambda inst: [a_stop(), b_next()])

    result = engine.run(top())

    assert engine.stop_requested
    assert result.executed_tasks() == ["a_stop"]
    assert sorted(r.task for r in result.cancelled) == ["b_next", "top"]
    assert calls["b_next"] == 0
    assert memory_store.exists(a_stop().identity)


# -----------------------------
# Rastreabilidade
# -----------------------------

def test_manifest_records_run_events(dummy_ctx, memory_store, pipeline, tmp_path):
    _, train, _ = pipeline

    result = Engine(store=memory_store, ctx=dummy_ctx, manifest_dir=tmp_path).run(train())
    manifest = result.manifest

    types = [e["event_type"] for e in manifest.events]
    assert types[0] == "run_started"
    assert types[-1] == "run_finished"
    assert types.count("node_started") == 2
    assert types.count("node_finished") == 2
    assert types.count("artifact_saved") == 2
    assert manifest.run["run_id"] == "run-test-001"
    assert manifest.nodes[train().key]["status"] == "executed"
    assert dummy_ctx.manifest is manifest

    persisted = load_manifest(tmp_path / "run-test-001.json")
    assert persisted.to_dict() == manifest.to_dict()


def test_manifest_records_cached_nodes(memory_store, pipeline):
    _, train, _ = pipeline
    _engine(memory_store).run(train())

    result = _engine(memory_store).run(train())

    assert len(result.manifest.events_of("node_cached")) == 2
    assert result.manifest.events_of("node_started") == []


def test_structured_logs_and_warnings(dummy_ctx, memory_store, make_task):
    def _noisy(ctx):
        ctx.log("halfway", level="DEBUG", rows=10)
        ctx.warn("few rows")
        return 1

    noisy = make_task("noisy", value=_noisy)

    result = Engine(store=memory_store, ctx=dummy_ctx).run(noisy())

    key = noisy().key
    assert result.nodes[key].warnings == ["few rows"]
    messages = [e["message"] for e in dummy_ctx.events_for(key)]
    assert messages == ["node started", "halfway", "node executed"]
    assert all(e["run_id"] == "run-test-001" for e in dummy_ctx.events)


def test_summary_and_to_dict(memory_store, pipeline):
    _, train, _ = pipeline

    result = _engine(memory_store).run(train())
    payload = result.to_dict()

    assert payload["ok"] is True
    assert [n["task"] for n in payload["nodes"]] == ["prepare", "train"]
    assert "2 executed" in result.summary()
