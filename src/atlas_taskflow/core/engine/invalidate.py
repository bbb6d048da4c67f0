# src/atlas_taskflow/core/engine/invalidate.py
"""
Invalidator do Atlas TaskFlow.

Remove artefatos do store para forçar reexecução na próxima run.

Modos:
    - sem cascade: remove apenas o artefato da task informada; os
      dependentes são reexecutados na próxima run porque a revisão
      upstream registrada neles deixa de existir
    - com cascade: remove também todos os dependentes transitivos,
      descobertos pelo grafo (quando informado) e pela lineage registrada
      no store (`ArtifactMeta.upstream`); a lineage cobre dependentes que
      estão fora do grafo, como os de uma task que é a própria raiz

Invariantes:
    - Nós sem caminho até a task invalidada nunca são tocados
    - A remoção ocorre de dependentes para dependências

Limites explícitos:
    - Não executa tasks
    - Não reconstrói o grafo
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, List, Optional, Set, Union

from atlas_taskflow.core.exceptions import ConfigurationError
from atlas_taskflow.core.task.context import RunContext
from atlas_taskflow.core.task.task import TaskDef, TaskIdentity, TaskInstance
from atlas_taskflow.core.traceability.manifest import RunManifest, add_event
from atlas_taskflow.persistence.artifact_store import ArtifactStore

from .graph import TaskGraph


def _seeds(task: Union[TaskInstance, TaskIdentity, TaskDef, str], graph: Optional[TaskGraph]) -> List[TaskIdentity]:
    if graph is not None:
        return graph.resolve(task)
    if isinstance(task, TaskDef):
        task = task()
    if isinstance(task, TaskInstance):
        return [task.identity]
    if isinstance(task, TaskIdentity):
        return [task]
    raise ConfigurationError(
        f"invalidate() without a graph needs a task instance or identity, got {type(task).__name__}",
        details={"received": type(task).__name__},
        hint="Informe o grafo (graph=...) para resolver a task pelo nome.",
    )


def _lineage_dependents(store: ArtifactStore, seeds: List[TaskIdentity]) -> List[TaskIdentity]:
    """Dependentes transitivos segundo a lineage registrada no store."""
    reverse: Dict[str, List[TaskIdentity]] = {}
    for identity in store.keys():
        meta = store.describe(identity)
        if meta is None:
            continue
        for dep_key in meta.upstream:
            reverse.setdefault(dep_key, []).append(identity)

    found: List[TaskIdentity] = []
    seen: Set[str] = {s.key for s in seeds}
    frontier = [s.key for s in seeds]
    while frontier:
        current = frontier.pop(0)
        for dependent in sorted(reverse.get(current, []), key=lambda i: i.key):
            if dependent.key not in seen:
                seen.add(dependent.key)
                found.append(dependent)
                frontier.append(dependent.key)
    return found


def invalidate(
    store: ArtifactStore,
    task: Union[TaskInstance, TaskIdentity, TaskDef, str],
    cascade: bool = False,
    graph: Optional[TaskGraph] = None,
    ctx: Optional[RunContext] = None,
) -> List[TaskIdentity]:
    """
    Invalida o artefato de `task` (e, com `cascade`, de seus dependentes).

    Com `graph`, `task` pode ser qualquer referência aceita por
    `TaskGraph.resolve` (instância, identidade, definição, nome ou chave).

    Returns:
        Identidades cujos artefatos foram efetivamente removidos.
    """
    seeds = _seeds(task, graph)
    targets: List[TaskIdentity] = list(seeds)

    if cascade:
        if graph is not None:
            downstream = graph.downstream(seeds)
            position = {identity: i for i, identity in enumerate(graph.order)}
            targets += sorted(downstream - set(seeds), key=lambda i: position[i])
        # dependentes que não pertencem ao grafo só são conhecidos pela lineage
        known = set(targets)
        targets += [i for i in _lineage_dependents(store, seeds) if i not in known]

    removed: List[TaskIdentity] = []
    for identity in reversed(targets):
        if store.invalidate(identity):
            removed.append(identity)
            if ctx is not None:
                ctx.log(node=identity.key, level="INFO", message="artifact invalidated", cascade=cascade)
                if isinstance(ctx.manifest, RunManifest):
                    add_event(
                        ctx.manifest,
                        event_type="artifact_invalidated",
                        ts=datetime.now(timezone.utc),
                        node=identity.key,
                        payload={"cascade": cascade},
                    )
    removed.reverse()
    return removed


__all__ = ["invalidate"]
