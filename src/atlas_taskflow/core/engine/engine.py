# src/atlas_taskflow/core/engine/engine.py
"""
Scheduler / Runner do Atlas TaskFlow.

O Engine percorre o grafo em ordem topológica e decide, por nó, entre
reutilizar o artefato persistido ou executar a task.

Regras de cache:
    - Um nó está *satisfeito* quando o store possui seu artefato e as
      revisões upstream registradas no artefato coincidem com as revisões
      vigentes das dependências nesta run
    - Caso contrário (artefato ausente, dependência reexecutada ou
      invalidada), o nó é executado
    - Nós em `forced` (e todos os seus dependentes) sempre executam

Execução de um nó:
    - `run(ctx)` recebe um `TaskContext` com `ctx.inputs` espelhando o
      formato de `requires()` (loaders preguiçosos) e `ctx.params`
    - `ctx.save(valor)` deve ser chamado exatamente uma vez
    - O valor só é comprometido no store depois que `run()` retorna
    - Exceções viram `TaskflowErrorPayload` (nunca stack trace cru)

Políticas de falha:
    - `fail_fast=False` (default): dependentes de um nó que falhou são
      SKIPPED; ramos independentes continuam
    - `fail_fast=True`: nenhum nó novo inicia após uma falha; os nós
      restantes ficam CANCELLED
    - `request_stop()`: nós em andamento terminam, nenhum nó novo inicia

Concorrência:
    - `max_workers == 1`: execução sequencial na thread chamadora
    - `max_workers > 1`: nós prontos e independentes executam em um
      ThreadPoolExecutor; a prontidão é controlada por contadores de
      dependências pendentes mantidos pelo loop de escalonamento
    - Manifest e resultados são atualizados apenas pelo loop de escalonamento

Limites explícitos:
    - Não realiza retries automáticos
    - Não conhece o formato físico do store
"""

from __future__ import annotations

import contextlib
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import (
    Any,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Set,
    Tuple,
    Union,
)

from atlas_taskflow._version import __version__
from atlas_taskflow.core.config.hashing import compute_config_hash
from atlas_taskflow.core.errors import (
    TaskflowErrorPayload,
    dependency_failed,
    from_exception,
    run_cancelled,
    task_execution_error,
)
from atlas_taskflow.core.exceptions import (
    ConfigurationError,
    StoreIOError,
    TaskExecutionError,
    TaskflowException,
)
from atlas_taskflow.core.task.context import LazyArtifact, RunContext, TaskContext
from atlas_taskflow.core.task.task import TaskDef, TaskIdentity, TaskInstance
from atlas_taskflow.core.task.types import CacheStatus, NodeResult, NodeStatus
from atlas_taskflow.core.traceability.manifest import (
    RunManifest,
    add_event,
    create_manifest,
    node_failed,
    node_finished,
    node_started,
    node_state,
    save_manifest,
)
from atlas_taskflow.persistence.artifact_store import ArtifactMeta, ArtifactStore

from .graph import TaskGraph, TaskNode, TaskRef, build_graph


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------

def cache_state(
    store: ArtifactStore,
    identity: TaskIdentity,
    upstream: Mapping[str, Optional[str]],
) -> Tuple[CacheStatus, Optional[ArtifactMeta]]:
    """
    Estado de cache de um nó dadas as revisões vigentes das dependências.

    `upstream` mapeia a chave de cada dependência para sua revisão vigente
    (None quando a dependência não possui artefato / será reexecutada).
    Somente operações de leitura do store são usadas.
    """
    meta = store.describe(identity)
    if meta is None or not store.exists(identity):
        return CacheStatus.MISSING, None
    if any(rev is None for rev in upstream.values()):
        return CacheStatus.STALE, meta
    if dict(meta.upstream) != dict(upstream):
        return CacheStatus.STALE, meta
    return CacheStatus.SATISFIED, meta


def resolve_forced(graph: TaskGraph, forced: Optional[Iterable[TaskRef]]) -> Set[TaskIdentity]:
    """Identidades forçadas mais todos os seus dependentes transitivos."""
    if not forced:
        return set()
    seeds: Set[TaskIdentity] = set()
    for ref in forced:
        seeds.update(graph.resolve(ref))
    return seeds | graph.downstream(seeds)


# ---------------------------------------------------------------------------
# Resultado agregado
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RunResult:
    """Resultado agregado de uma run (nós em ordem topológica)."""

    run_id: str
    root: TaskIdentity
    nodes: Dict[str, NodeResult] = field(default_factory=dict)
    manifest: Optional[RunManifest] = field(default=None, repr=False, compare=False)

    def _with(self, status: NodeStatus) -> List[NodeResult]:
        return [r for r in self.nodes.values() if r.status == status]

    @property
    def executed(self) -> List[NodeResult]:
        return self._with(NodeStatus.EXECUTED)

    @property
    def cached(self) -> List[NodeResult]:
        return self._with(NodeStatus.CACHED)

    @property
    def failed(self) -> List[NodeResult]:
        return self._with(NodeStatus.FAILED)

    @property
    def skipped(self) -> List[NodeResult]:
        return self._with(NodeStatus.SKIPPED)

    @property
    def cancelled(self) -> List[NodeResult]:
        return self._with(NodeStatus.CANCELLED)

    @property
    def ok(self) -> bool:
        return all(r.status.satisfied for r in self.nodes.values())

    @property
    def root_result(self) -> NodeResult:
        return self.nodes[self.root.key]

    def executed_tasks(self) -> List[str]:
        """Nomes das tasks executadas, em ordem topológica."""
        return [r.task for r in self.executed]

    def summary(self) -> str:
        counts = ", ".join(
            f"{len(self._with(status))} {status.value}" for status in NodeStatus
        )
        lines = [f"{self.run_id} [{self.root}]: {counts}"]
        for r in self.nodes.values():
            if r.status in (NodeStatus.FAILED, NodeStatus.SKIPPED, NodeStatus.CANCELLED):
                lines.append(f"  {r.status.value.upper():<9} {r.key}: {r.summary}")
        return "\n".join(lines)

    def raise_for_failures(self) -> None:
        """Levanta TaskExecutionError se algum nó não ficou satisfeito."""
        if self.ok:
            return
        first = (self.failed or self.cancelled or self.skipped)[0]
        raise TaskExecutionError(
            first.summary,
            details={
                "identity": first.key,
                "failed": [r.key for r in self.failed],
                "skipped": [r.key for r in self.skipped],
                "cancelled": [r.key for r in self.cancelled],
                "error": first.error,
            },
            hint="Corrija a causa e reexecute; nós satisfeitos permanecem em cache.",
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "root": self.root.key,
            "ok": self.ok,
            "nodes": [r.to_dict() for r in self.nodes.values()],
        }


@dataclass(frozen=True)
class _Outcome:
    identity: TaskIdentity
    status: NodeStatus
    summary: str
    revision: Optional[str] = None
    duration_ms: int = 0
    error: Optional[TaskflowErrorPayload] = None


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class Engine:
    """Scheduler canônico do Atlas TaskFlow."""

    def __init__(
        self,
        *,
        store: ArtifactStore,
        ctx: Optional[RunContext] = None,
        fail_fast: bool = False,
        max_workers: int = 1,
        task_defaults: Optional[Mapping[str, Mapping[str, Any]]] = None,
        manifest_dir: Optional[Union[str, Path]] = None,
    ):
        if isinstance(max_workers, bool) or not isinstance(max_workers, int) or max_workers < 1:
            raise ConfigurationError(
                f"max_workers must be an integer >= 1, got: {max_workers!r}",
                details={"max_workers": max_workers},
            )
        self.store = store
        self.ctx = ctx if ctx is not None else RunContext.create()
        self.fail_fast = bool(fail_fast)
        self.max_workers = max_workers
        self.task_defaults = dict(task_defaults or {})
        self.manifest_dir = Path(manifest_dir) if manifest_dir is not None else None
        self._stop = threading.Event()

    # ------------------------------------------------------------------
    # Controle
    # ------------------------------------------------------------------
    def request_stop(self) -> None:
        """Pede o encerramento da run: nenhum nó novo inicia."""
        self._stop.set()

    @property
    def stop_requested(self) -> bool:
        return self._stop.is_set()

    def plan(self, task: Union[TaskInstance, TaskDef]) -> TaskGraph:
        return build_graph(task, task_defaults=self.task_defaults)

    # ------------------------------------------------------------------
    # Manifest / logging
    # ------------------------------------------------------------------
    def _manifest_for(self, graph: TaskGraph) -> RunManifest:
        manifest = self.ctx.manifest
        if not isinstance(manifest, RunManifest):
            manifest = create_manifest(
                run_id=self.ctx.run_id,
                started_at=self.ctx.created_at,
                taskflow_version=__version__,
                config_hash=compute_config_hash(dict(self.ctx.config or {})),
                root=str(graph.root),
            )
            self.ctx.manifest = manifest
        return manifest

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)

    def _log(self, node: Optional[str], level: str, message: str, **extra: Any) -> None:
        self.ctx.log(node=node, level=level, message=message, **extra)

    # ------------------------------------------------------------------
    # Execução de um nó (pode rodar em worker thread)
    # ------------------------------------------------------------------
    def _bind_inputs(self, node: TaskNode) -> Any:
        loaders = {dep: LazyArtifact(dep, self.store.load) for dep in node.dependencies}
        template = node.template
        if template is None:
            return None
        if isinstance(template, TaskIdentity):
            return loaders[template]
        if isinstance(template, dict):
            return {k: loaders[v] for k, v in template.items()}
        if isinstance(template, tuple):
            return tuple(loaders[v] for v in template)
        return [loaders[v] for v in template]

    def _error_payload(self, node: TaskNode, exc: BaseException) -> TaskflowErrorPayload:
        if isinstance(exc, TaskflowException):
            payload = from_exception(exc)
            details = dict(payload.details)
            details.setdefault("identity", node.key)
            details.setdefault("task", node.name)
            return TaskflowErrorPayload(
                type=payload.type,
                message=payload.message,
                details=details,
                hint=payload.hint,
            )
        return task_execution_error(
            identity=node.key,
            task=node.name,
            exc_type=type(exc).__name__,
            exc_message=str(exc),
        )

    def _execute(self, node: TaskNode, upstream: Dict[str, str]) -> _Outcome:
        identity = node.identity
        started = time.perf_counter()
        task_ctx = TaskContext(
            identity=identity,
            params=node.instance.params,
            inputs=self._bind_inputs(node),
            run=self.ctx,
        )

        try:
            node.definition.run(task_ctx)
            value = task_ctx.output
        except Exception as exc:
            return _Outcome(
                identity=identity,
                status=NodeStatus.FAILED,
                summary="",
                duration_ms=int((time.perf_counter() - started) * 1000),
                error=self._error_payload(node, exc),
            )

        try:
            meta = self.store.save(identity, value, upstream=upstream)
        except Exception as exc:
            if not isinstance(exc, StoreIOError):
                exc = StoreIOError(
                    f"Failed to save artifact {identity.key}: {type(exc).__name__}: {exc}",
                    details={"identity": identity.key, "task": node.name},
                )
            return _Outcome(
                identity=identity,
                status=NodeStatus.FAILED,
                summary="",
                duration_ms=int((time.perf_counter() - started) * 1000),
                error=self._error_payload(node, exc),
            )

        duration_ms = int((time.perf_counter() - started) * 1000)
        return _Outcome(
            identity=identity,
            status=NodeStatus.EXECUTED,
            summary=f"executed in {duration_ms} ms",
            revision=meta.revision,
            duration_ms=duration_ms,
        )

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------
    def run(
        self,
        task: Union[TaskInstance, TaskDef, TaskGraph],
        forced: Optional[Iterable[TaskRef]] = None,
    ) -> RunResult:
        """
        Executa o grafo de `task`.

        Erros de construção do grafo (ConfigurationError,
        CyclicDependencyError) são levantados antes de qualquer execução.
        Falhas de nós nunca são levantadas: ficam no RunResult.
        """
        graph = task if isinstance(task, TaskGraph) else self.plan(task)
        forced_ids = resolve_forced(graph, forced)
        self._stop.clear()

        manifest = self._manifest_for(graph)
        add_event(
            manifest,
            event_type="run_started",
            ts=self._now(),
            payload={
                "root": graph.root.key,
                "nodes": len(graph),
                "forced": sorted(i.key for i in forced_ids),
                "fail_fast": self.fail_fast,
                "max_workers": self.max_workers,
            },
        )
        self._log(None, "INFO", "run started", root=graph.root.key, nodes=len(graph))

        outcomes = self._schedule(graph, forced_ids, manifest)

        results: Dict[str, NodeResult] = {}
        for identity in graph.order:
            node = graph.nodes[identity]
            outcome = outcomes[identity]
            results[identity.key] = NodeResult(
                key=identity.key,
                task=node.name,
                status=outcome.status,
                summary=outcome.summary,
                revision=outcome.revision,
                duration_ms=outcome.duration_ms,
                error=outcome.error.to_dict() if outcome.error is not None else None,
                params=dict(node.instance.params),
                warnings=list(self.ctx.warnings.get(identity.key, [])),
            )

        result = RunResult(run_id=self.ctx.run_id, root=graph.root, nodes=results, manifest=manifest)
        counts = {status.value: len(result._with(status)) for status in NodeStatus}
        add_event(manifest, event_type="run_finished", ts=self._now(), payload={"ok": result.ok, **counts})
        self._log(None, "INFO" if result.ok else "ERROR", "run finished", ok=result.ok, **counts)

        if self.manifest_dir is not None:
            save_manifest(manifest, self.manifest_dir / f"{self.ctx.run_id}.json")
        return result

    def _halted(self, outcomes: Mapping[TaskIdentity, _Outcome]) -> Optional[str]:
        if self._stop.is_set():
            return "stop requested"
        if self.fail_fast:
            for outcome in outcomes.values():
                if outcome.status == NodeStatus.FAILED:
                    return f"fail_fast after failure of {outcome.identity.key}"
        return None

    def _prepare(
        self,
        graph: TaskGraph,
        identity: TaskIdentity,
        outcomes: Mapping[TaskIdentity, _Outcome],
        forced_ids: Set[TaskIdentity],
    ) -> Tuple[Optional[_Outcome], Dict[str, str]]:
        """Decide SKIPPED/CACHED sem executar; None ⇒ o nó precisa executar."""
        node = graph.nodes[identity]
        blocked = [d.key for d in node.dependencies if not outcomes[d].status.satisfied]
        if blocked:
            payload = dependency_failed(identity=identity.key, failed_dependencies=blocked)
            return _Outcome(
                identity=identity,
                status=NodeStatus.SKIPPED,
                summary=payload.message,
                error=payload,
            ), {}

        upstream = {d.key: outcomes[d].revision for d in node.dependencies}
        if identity in forced_ids:
            return None, upstream

        status, meta = cache_state(self.store, identity, upstream)
        if status == CacheStatus.SATISFIED and meta is not None:
            return _Outcome(
                identity=identity,
                status=NodeStatus.CACHED,
                summary=f"cached (revision {meta.revision[:12]})",
                revision=meta.revision,
            ), upstream
        return None, upstream

    def _record(self, manifest: RunManifest, node: TaskNode, outcome: _Outcome) -> None:
        ts = self._now()
        key = node.key
        if outcome.status == NodeStatus.EXECUTED:
            node_finished(manifest, node=key, ts=ts, revision=outcome.revision, summary=outcome.summary)
            add_event(
                manifest,
                event_type="artifact_saved",
                ts=ts,
                node=key,
                payload={"revision": outcome.revision},
            )
            self._log(key, "INFO", "node executed", duration_ms=outcome.duration_ms, revision=outcome.revision)
        elif outcome.status == NodeStatus.FAILED:
            error = outcome.error.to_dict() if outcome.error is not None else {}
            node_failed(manifest, node=key, ts=ts, error=error)
            self._log(key, "ERROR", outcome.summary, error_type=error.get("type"))
        else:
            payload: Dict[str, Any] = {}
            if outcome.revision is not None:
                payload["revision"] = outcome.revision
            if outcome.error is not None:
                payload["error"] = outcome.error.to_dict()
            node_state(manifest, node=key, task=node.name, status=outcome.status.value, ts=ts, payload=payload or None)
            level = "INFO" if outcome.status == NodeStatus.CACHED else "WARNING"
            self._log(key, level, f"node {outcome.status.value}")

    def _schedule(
        self,
        graph: TaskGraph,
        forced_ids: Set[TaskIdentity],
        manifest: RunManifest,
    ) -> Dict[TaskIdentity, _Outcome]:
        outcomes: Dict[TaskIdentity, _Outcome] = {}
        pending: Dict[TaskIdentity, int] = {i: len(graph.dependencies(i)) for i in graph.order}
        ready: List[TaskIdentity] = sorted((i for i, c in pending.items() if c == 0), key=lambda i: i.key)
        in_flight: Dict[Future, TaskIdentity] = {}

        def _finish(outcome: _Outcome) -> None:
            if outcome.status == NodeStatus.FAILED and outcome.error is not None:
                outcome = _Outcome(
                    identity=outcome.identity,
                    status=outcome.status,
                    summary=outcome.error.message,
                    duration_ms=outcome.duration_ms,
                    error=outcome.error,
                )
            outcomes[outcome.identity] = outcome
            self._record(manifest, graph.nodes[outcome.identity], outcome)
            for dependent in graph.dependents(outcome.identity):
                pending[dependent] -= 1
                if pending[dependent] == 0:
                    ready.append(dependent)
            ready.sort(key=lambda i: i.key)

        pool_cm = (
            ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="atlas-taskflow")
            if self.max_workers > 1
            else contextlib.nullcontext()
        )
        with pool_cm as pool:
            while ready or in_flight:
                while ready and len(in_flight) < self.max_workers and self._halted(outcomes) is None:
                    identity = ready.pop(0)
                    outcome, upstream = self._prepare(graph, identity, outcomes, forced_ids)
                    if outcome is not None:
                        _finish(outcome)
                        continue

                    node = graph.nodes[identity]
                    node_started(manifest, node=node.key, task=node.name, ts=self._now())
                    self._log(node.key, "INFO", "node started", params=dict(node.instance.params))
                    if pool is None:
                        _finish(self._execute(node, upstream))
                    else:
                        in_flight[pool.submit(self._execute, node, upstream)] = identity

                if not in_flight:
                    break
                done, _ = wait(list(in_flight), return_when=FIRST_COMPLETED)
                for future in sorted(done, key=lambda f: in_flight[f].key):
                    in_flight.pop(future)
                    _finish(future.result())

        reason = self._halted(outcomes) or "run interrupted"
        for identity in graph.order:
            if identity in outcomes:
                continue
            payload = run_cancelled(identity=identity.key, reason=reason)
            outcome = _Outcome(
                identity=identity,
                status=NodeStatus.CANCELLED,
                summary=payload.message,
                error=payload,
            )
            outcomes[identity] = outcome
            self._record(manifest, graph.nodes[identity], outcome)
        return outcomes


__all__ = ["Engine", "RunResult", "cache_state", "resolve_forced"]
