# src/atlas_taskflow/core/traceability/manifest.py
"""
Run Manifest v1 - rastreabilidade das execuções do Atlas TaskFlow.

O Manifest consolida, de forma determinística e auditável:
    - metadados da run (run_id, started_at, versão, nó terminal)
    - hash da configuração efetiva
    - estado incremental de cada nó (status, duração, revisão)
    - Event Log ordenado de eventos explícitos

Eventos canônicos emitidos pelo engine:
    run_started, node_started, node_finished, node_cached, node_failed,
    node_skipped, node_cancelled, artifact_saved, artifact_invalidated,
    run_finished

Decisões arquiteturais:
    - UTC é o timezone canônico para todos os timestamps
    - O formato de persistência é JSON determinístico (`sort_keys=True`)
    - Nós e eventos iniciam vazios; nenhum evento é emitido implicitamente

Invariantes:
    - `events` é sempre uma lista ordenada pela ordem de chamada
    - `nodes` é sempre um dicionário indexado pela chave da Task Identity
    - A estrutura é serializável e reconstruível (round-trip)

Limites explícitos:
    - Não executa tasks
    - Não decide políticas de execução
    - Não realiza migração de versões de schema
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union


MANIFEST_EVENTS = (
    "run_started",
    "node_started",
    "node_finished",
    "node_cached",
    "node_failed",
    "node_skipped",
    "node_cancelled",
    "artifact_saved",
    "artifact_invalidated",
    "run_finished",
)


def _ensure_tzaware_utc(dt: datetime) -> datetime:
    """Normaliza um timestamp para timezone-aware em UTC (naive ⇒ UTC)."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _iso(dt: datetime) -> str:
    return _ensure_tzaware_utc(dt).isoformat()


def _ms_between(start: datetime, end: datetime) -> int:
    """Duração em milissegundos, nunca negativa."""
    s = _ensure_tzaware_utc(start)
    e = _ensure_tzaware_utc(end)
    return max(0, int((e - s).total_seconds() * 1000))


@dataclass
class RunManifest:
    """
    Manifest v1 - registro de uma run.

    Campos principais:
        - run: metadados da execução (run_id, started_at, taskflow_version, root)
        - inputs: hash da configuração efetiva
        - nodes: estado incremental de cada nó, indexado pela chave da identidade
        - events: Event Log ordenado
    """

    run: Dict[str, Any]
    inputs: Dict[str, Any]
    nodes: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    events: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Cópia serializável e independente do estado interno."""
        return {
            "run": dict(self.run),
            "inputs": dict(self.inputs),
            "nodes": {k: dict(v) for k, v in self.nodes.items()},
            "events": [dict(e) for e in self.events],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RunManifest":
        """Reconstrução permissiva: campos ausentes viram estruturas vazias."""
        return cls(
            run=dict(data.get("run", {})),
            inputs=dict(data.get("inputs", {})),
            nodes={k: dict(v) for k, v in (data.get("nodes", {}) or {}).items()},
            events=[dict(e) for e in (data.get("events", []) or [])],
        )

    def events_of(self, event_type: str) -> List[Dict[str, Any]]:
        return [e for e in self.events if e.get("event_type") == event_type]


def create_manifest(
    *,
    run_id: str,
    started_at: datetime,
    taskflow_version: str,
    config_hash: str,
    root: Optional[str] = None,
) -> RunManifest:
    """
    Cria o Manifest inicial de uma run.

    Importante: esta função **não emite eventos**. O Event Log inicia vazio
    e só é preenchido por chamadas explícitas (`add_event`, `node_*`).
    """
    started_at = _ensure_tzaware_utc(started_at)
    return RunManifest(
        run={
            "run_id": run_id,
            "started_at": _iso(started_at),
            "taskflow_version": taskflow_version,
            "root": root,
        },
        inputs={"config_hash": config_hash},
        nodes={},
        events=[],
    )


def add_event(
    manifest: RunManifest,
    *,
    event_type: str,
    ts: datetime,
    node: Optional[str] = None,
    payload: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Adiciona um evento explícito ao Event Log.

    Cada chamada adiciona exatamente um evento; eventos nunca são
    reordenados ou deduplicados.
    """
    ev: Dict[str, Any] = {"event_type": event_type, "timestamp": _iso(ts)}
    if node is not None:
        ev["node"] = node
    if payload is not None:
        ev["payload"] = payload
    manifest.events.append(ev)


def node_started(manifest: RunManifest, *, node: str, task: str, ts: datetime) -> None:
    ts = _ensure_tzaware_utc(ts)
    state = manifest.nodes.setdefault(node, {"node": node})
    state.update({"task": task, "status": "running", "started_at": _iso(ts)})
    add_event(manifest, event_type="node_started", ts=ts, node=node, payload={"task": task})


def node_finished(
    manifest: RunManifest,
    *,
    node: str,
    ts: datetime,
    revision: Optional[str] = None,
    summary: Optional[str] = None,
) -> None:
    """Registra a conclusão bem-sucedida (`executed`) de um nó."""
    ts = _ensure_tzaware_utc(ts)
    state = manifest.nodes.setdefault(node, {"node": node})
    started_iso = state.get("started_at")
    started = datetime.fromisoformat(started_iso) if started_iso else ts
    state.update(
        {
            "status": "executed",
            "finished_at": _iso(ts),
            "duration_ms": _ms_between(started, ts),
            "revision": revision,
            "summary": summary,
        }
    )
    add_event(
        manifest,
        event_type="node_finished",
        ts=ts,
        node=node,
        payload={"status": "executed", "duration_ms": state["duration_ms"], "revision": revision},
    )


def node_failed(manifest: RunManifest, *, node: str, ts: datetime, error: Dict[str, Any]) -> None:
    """Registra a falha de um nó com o payload serializável do erro."""
    ts = _ensure_tzaware_utc(ts)
    state = manifest.nodes.setdefault(node, {"node": node})
    started_iso = state.get("started_at")
    started = datetime.fromisoformat(started_iso) if started_iso else ts
    state.update(
        {
            "status": "failed",
            "finished_at": _iso(ts),
            "duration_ms": _ms_between(started, ts),
            "error": dict(error),
        }
    )
    add_event(manifest, event_type="node_failed", ts=ts, node=node, payload={"error": dict(error)})


def node_state(
    manifest: RunManifest,
    *,
    node: str,
    task: str,
    status: str,
    ts: datetime,
    payload: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Registra um nó que não foi executado (`cached`, `skipped`, `cancelled`).

    O evento emitido é `node_<status>`.
    """
    ts = _ensure_tzaware_utc(ts)
    state = manifest.nodes.setdefault(node, {"node": node})
    state.update({"task": task, "status": status, "duration_ms": 0})
    if payload:
        state.update(payload)
    add_event(manifest, event_type=f"node_{status}", ts=ts, node=node, payload=payload)


def save_manifest(manifest: Union[RunManifest, Dict[str, Any]], path: Path) -> None:
    """
    Persiste o Manifest em JSON determinístico.

    Raises:
        OSError: falha ao criar diretórios ou escrever o arquivo.
        TypeError: conteúdo não serializável em JSON.
    """
    data = manifest.to_dict() if isinstance(manifest, RunManifest) else manifest
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, ensure_ascii=False, indent=2, sort_keys=True), encoding="utf-8")


def load_manifest(path: Path) -> RunManifest:
    """Carrega um Manifest persistido por `save_manifest`."""
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    return RunManifest.from_dict(data)
