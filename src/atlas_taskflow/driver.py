# src/atlas_taskflow/driver.py
"""
Driver do Atlas TaskFlow.

Fachada de alto nível usada por notebooks, scripts e pela CLI:

    - preview(task)          → PreviewReport (nada é executado)
    - run(task, forced=...)  → RunResult
    - output(task).load()    → valor persistido do nó terminal
    - invalidate(task)       → identidades removidas do store

Todas as funções aceitam `config` (dicionário já resolvido por
`load_config`) e/ou `store` explícito. Sem store explícito, o backend é
construído a partir de `store.backend` / `store.root` da configuração.

Limites explícitos:
    - Não carrega arquivos de configuração (responsabilidade da CLI/loader)
    - Não define tasks
"""

from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Optional, Tuple, Union

from atlas_taskflow.core.config import DEFAULT_CONFIG, EngineSettings
from atlas_taskflow.core.engine import (
    Engine,
    PreviewReport,
    RunResult,
    TaskGraph,
    build_graph,
)
from atlas_taskflow.core.engine.graph import TaskRef
from atlas_taskflow.core.engine.invalidate import invalidate as _invalidate
from atlas_taskflow.core.engine.preview import preview as _preview
from atlas_taskflow.core.task.context import RunContext
from atlas_taskflow.core.task.task import TaskDef, TaskIdentity, TaskInstance
from atlas_taskflow.persistence.artifact_store import (
    ArtifactMeta,
    ArtifactStore,
    InMemoryArtifactStore,
)
from atlas_taskflow.persistence.filesystem_store import FileSystemArtifactStore


TaskLike = Union[TaskInstance, TaskDef]


def _config(config: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    return config if config is not None else deepcopy(DEFAULT_CONFIG)


def build_store(settings: EngineSettings) -> ArtifactStore:
    """Instancia o backend configurado em `store.backend`."""
    if settings.store_backend == "memory":
        return InMemoryArtifactStore()
    return FileSystemArtifactStore(settings.store_root)


def _resolve(
    config: Optional[Mapping[str, Any]],
    store: Optional[ArtifactStore],
) -> Tuple[Mapping[str, Any], EngineSettings, ArtifactStore]:
    cfg = _config(config)
    settings = EngineSettings.from_config(cfg)
    return cfg, settings, store if store is not None else build_store(settings)


def graph(task: TaskLike, *, config: Optional[Mapping[str, Any]] = None) -> TaskGraph:
    """Constrói o grafo de `task` aplicando os defaults `tasks.<nome>` da configuração."""
    settings = EngineSettings.from_config(_config(config))
    return build_graph(task, task_defaults=settings.task_defaults)


def preview(
    task: TaskLike,
    *,
    store: Optional[ArtifactStore] = None,
    config: Optional[Mapping[str, Any]] = None,
    forced: Optional[Iterable[TaskRef]] = None,
) -> PreviewReport:
    _, settings, store = _resolve(config, store)
    return _preview(task, store=store, forced=forced, task_defaults=settings.task_defaults)


def run(
    task: TaskLike,
    *,
    store: Optional[ArtifactStore] = None,
    config: Optional[Mapping[str, Any]] = None,
    forced: Optional[Iterable[TaskRef]] = None,
    ctx: Optional[RunContext] = None,
    fail_fast: Optional[bool] = None,
    max_workers: Optional[int] = None,
) -> RunResult:
    """Executa `task`; `fail_fast`/`max_workers` explícitos vencem a configuração."""
    cfg, settings, store = _resolve(config, store)
    engine = Engine(
        store=store,
        ctx=ctx if ctx is not None else RunContext.create(config=dict(cfg)),
        fail_fast=settings.fail_fast if fail_fast is None else fail_fast,
        max_workers=settings.max_workers if max_workers is None else max_workers,
        task_defaults=settings.task_defaults,
        manifest_dir=settings.manifest_dir,
    )
    return engine.run(task, forced=forced)


@dataclass(frozen=True)
class Output:
    """Referência ao artefato do nó terminal de uma task."""

    identity: TaskIdentity
    store: ArtifactStore

    def exists(self) -> bool:
        return self.store.exists(self.identity)

    def load(self) -> Any:
        return self.store.load(self.identity)

    @property
    def meta(self) -> Optional[ArtifactMeta]:
        return self.store.describe(self.identity)


def output(
    task: TaskLike,
    store: Optional[ArtifactStore] = None,
    *,
    config: Optional[Mapping[str, Any]] = None,
) -> Output:
    """Referência ao artefato de `task` (identidade resolvida como em uma run)."""
    _, settings, store = _resolve(config, store)
    resolved = build_graph(task, task_defaults=settings.task_defaults)
    return Output(identity=resolved.root, store=store)


def invalidate(
    task: TaskLike,
    *,
    store: Optional[ArtifactStore] = None,
    config: Optional[Mapping[str, Any]] = None,
    cascade: bool = False,
    target: Optional[TaskRef] = None,
    ctx: Optional[RunContext] = None,
) -> List[TaskIdentity]:
    """
    Invalida o artefato de `task` (ou de `target`, um nó do grafo de `task`).

    Com `cascade=True`, todos os dependentes transitivos também são
    removidos: os do grafo de `task` e os registrados na lineage do store
    (inclusive quando `task` é a raiz do próprio grafo).
    """
    _, settings, store = _resolve(config, store)
    resolved = build_graph(task, task_defaults=settings.task_defaults)
    ref = target if target is not None else resolved.root
    return _invalidate(store, ref, cascade=cascade, graph=resolved, ctx=ctx)


__all__ = [
    "Output",
    "build_store",
    "graph",
    "preview",
    "run",
    "output",
    "invalidate",
]
