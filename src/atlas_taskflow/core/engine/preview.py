# src/atlas_taskflow/core/engine/preview.py
"""
Preview / Introspecção do Atlas TaskFlow.

Produz uma visão estática do grafo e dos parâmetros efetivos sem executar
nada: para cada nó, em ordem topológica, o estado de cache previsto e se
o nó seria executado por uma run.

Regras:
    - Apenas operações de leitura do store (`exists`, `describe`)
    - Um nó cuja dependência seria executada é previsto como STALE
      (quando possui artefato) ou MISSING (quando não possui)
    - Nós forçados (e seus dependentes) aparecem como `will_run`

Saídas:
    - `to_dict()`      → estrutura serializável
    - `render_text()`  → tabela textual
    - `to_dataframe()` → pandas.DataFrame (uma linha por nó)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

import pandas as pd

from atlas_taskflow.core.task.task import TaskDef, TaskIdentity, TaskInstance
from atlas_taskflow.core.task.types import CacheStatus
from atlas_taskflow.persistence.artifact_store import ArtifactStore

from .engine import cache_state, resolve_forced
from .graph import TaskGraph, TaskRef, build_graph


@dataclass(frozen=True)
class PreviewRow:
    key: str
    task: str
    kind: str
    params: Dict[str, Any]
    dependencies: Tuple[str, ...]
    inherited: Tuple[str, ...]
    configured: Tuple[str, ...]
    status: CacheStatus
    will_run: bool
    forced: bool = False
    revision: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "task": self.task,
            "kind": self.kind,
            "params": dict(self.params),
            "dependencies": list(self.dependencies),
            "inherited": list(self.inherited),
            "configured": list(self.configured),
            "status": self.status.value,
            "will_run": self.will_run,
            "forced": self.forced,
            "revision": self.revision,
        }


@dataclass(frozen=True)
class PreviewReport:
    """Relatório de preview (nós em ordem topológica)."""

    root: str
    rows: Tuple[PreviewRow, ...] = field(default_factory=tuple)

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self):
        return iter(self.rows)

    def row(self, ref: str) -> PreviewRow:
        """Linha por chave de identidade ou nome de task (primeira ocorrência)."""
        for r in self.rows:
            if r.key == ref:
                return r
        for r in self.rows:
            if r.task == ref:
                return r
        raise KeyError(ref)

    @property
    def would_run(self) -> List[str]:
        return [r.key for r in self.rows if r.will_run]

    def counts(self) -> Dict[str, int]:
        out = {status.value: 0 for status in CacheStatus}
        for r in self.rows:
            out[r.status.value] += 1
        out["will_run"] = len(self.would_run)
        return out

    def to_dict(self) -> Dict[str, Any]:
        return {
            "root": self.root,
            "counts": self.counts(),
            "nodes": [r.to_dict() for r in self.rows],
        }

    def to_dataframe(self) -> pd.DataFrame:
        records = []
        for r in self.rows:
            records.append(
                {
                    "key": r.key,
                    "task": r.task,
                    "kind": r.kind,
                    "params": ", ".join(f"{k}={v!r}" for k, v in sorted(r.params.items())),
                    "dependencies": ", ".join(r.dependencies),
                    "inherited": ", ".join(r.inherited),
                    "status": r.status.value,
                    "will_run": r.will_run,
                    "forced": r.forced,
                }
            )
        columns = ["key", "task", "kind", "params", "dependencies", "inherited", "status", "will_run", "forced"]
        return pd.DataFrame.from_records(records, columns=columns)

    def render_text(self) -> str:
        header = ("", "TASK", "STATUS", "PARAMS", "DEPENDS ON")
        table: List[Tuple[str, ...]] = [header]
        for r in self.rows:
            params = []
            for k, v in sorted(r.params.items()):
                marker = "^" if k in r.inherited else ("*" if k in r.configured else "")
                params.append(f"{k}={v!r}{marker}")
            table.append(
                (
                    ">" if r.will_run else " ",
                    r.task,
                    r.status.value + (" (forced)" if r.forced else ""),
                    ", ".join(params) or "-",
                    ", ".join(r.dependencies) or "-",
                )
            )
        widths = [max(len(row[i]) for row in table) for i in range(len(header))]
        lines = ["  ".join(cell.ljust(widths[i]) for i, cell in enumerate(row)).rstrip() for row in table]
        counts = self.counts()
        lines.append("")
        lines.append(
            f"{len(self.rows)} node(s): {counts['satisfied']} satisfied, {counts['stale']} stale, "
            f"{counts['missing']} missing; {counts['will_run']} would run"
        )
        lines.append("^ inherited parameter   * configured parameter")
        return "\n".join(lines)


def preview(
    task: Union[TaskInstance, TaskDef, TaskGraph],
    *,
    store: ArtifactStore,
    forced: Optional[Iterable[TaskRef]] = None,
    task_defaults: Optional[Mapping[str, Mapping[str, Any]]] = None,
) -> PreviewReport:
    """Constrói o grafo de `task` e prevê o estado de cada nó (sem executar)."""
    graph = task if isinstance(task, TaskGraph) else build_graph(task, task_defaults=task_defaults)
    forced_ids = resolve_forced(graph, forced)

    predicted: Dict[TaskIdentity, Optional[str]] = {}
    rows: List[PreviewRow] = []
    for node in graph:
        identity = node.identity
        upstream = {d.key: predicted[d] for d in node.dependencies}
        status, meta = cache_state(store, identity, upstream)
        is_forced = identity in forced_ids
        will_run = is_forced or status != CacheStatus.SATISFIED
        predicted[identity] = None if will_run else meta.revision if meta else None

        rows.append(
            PreviewRow(
                key=identity.key,
                task=node.name,
                kind=node.definition.kind.value,
                params=dict(node.instance.params),
                dependencies=tuple(d.key for d in node.dependencies),
                inherited=node.inherited,
                configured=node.configured,
                status=status,
                will_run=will_run,
                forced=is_forced,
                revision=meta.revision if meta else None,
            )
        )

    return PreviewReport(root=graph.root.key, rows=tuple(rows))


__all__ = ["PreviewRow", "PreviewReport", "preview"]
