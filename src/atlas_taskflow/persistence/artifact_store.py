"""Contrato canônico do Artifact Store (v1).

O Artifact Store é a camada de persistência plugável que mapeia uma Task
Identity para o artefato produzido pela task. O Scheduler depende apenas
deste contrato, nunca de checagens ad hoc de existência de arquivos.

Contrato:
- `exists(identity)`   → há artefato comprometido para a identidade?
- `load(identity)`     → valor persistido (NotFoundError se ausente)
- `save(identity, value, upstream=...)` → grava atomicamente e retorna ArtifactMeta
- `invalidate(identity)` → remove o artefato (não toca dependentes)
- `describe(identity)` → ArtifactMeta ou None (somente leitura)
- `keys()`             → identidades com artefato comprometido

Decisões (v1):
- Cada `save` gera uma revisão nova (`ArtifactMeta.revision`)
- `ArtifactMeta.upstream` registra a revisão de cada dependência consumida
  (lineage); o Scheduler usa isso para detectar artefatos desatualizados
- Last-writer-wins por identidade

Limites explícitos:
- Não decide cache nem staleness (responsabilidade do Scheduler)
- Não conhece o grafo de dependências
"""

from __future__ import annotations

import copy
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Protocol, Tuple, runtime_checkable

from atlas_taskflow.core.exceptions import NotFoundError
from atlas_taskflow.core.task.task import TaskIdentity


def new_revision() -> str:
    """Token opaco e único de uma revisão de artefato."""
    return uuid.uuid4().hex


@dataclass(frozen=True)
class ArtifactMeta:
    """Metadata de um artefato comprometido."""

    key: str
    task: str
    params: Dict[str, Any]
    revision: str
    upstream: Dict[str, str] = field(default_factory=dict)
    created_at: str = ""
    checksum: Optional[str] = None
    format: str = "joblib"

    @property
    def identity(self) -> TaskIdentity:
        return TaskIdentity.of(self.task, self.params)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "task": self.task,
            "params": dict(self.params),
            "revision": self.revision,
            "upstream": dict(self.upstream),
            "created_at": self.created_at,
            "checksum": self.checksum,
            "format": self.format,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ArtifactMeta":
        return cls(
            key=str(data["key"]),
            task=str(data["task"]),
            params=dict(data.get("params") or {}),
            revision=str(data["revision"]),
            upstream={str(k): str(v) for k, v in (data.get("upstream") or {}).items()},
            created_at=str(data.get("created_at") or ""),
            checksum=data.get("checksum"),
            format=str(data.get("format") or "joblib"),
        )

    @classmethod
    def create(
        cls,
        identity: TaskIdentity,
        *,
        upstream: Optional[Mapping[str, str]] = None,
        checksum: Optional[str] = None,
        format: str = "joblib",
    ) -> "ArtifactMeta":
        return cls(
            key=identity.key,
            task=identity.name,
            params=identity.as_dict(),
            revision=new_revision(),
            upstream=dict(upstream or {}),
            created_at=datetime.now(timezone.utc).isoformat(),
            checksum=checksum,
            format=format,
        )


@runtime_checkable
class ArtifactStore(Protocol):
    """Protocolo mínimo de um backend de artefatos."""

    def exists(self, identity: TaskIdentity) -> bool:
        ...

    def load(self, identity: TaskIdentity) -> Any:
        ...

    def save(
        self,
        identity: TaskIdentity,
        value: Any,
        *,
        upstream: Optional[Mapping[str, str]] = None,
    ) -> ArtifactMeta:
        ...

    def invalidate(self, identity: TaskIdentity) -> bool:
        ...

    def describe(self, identity: TaskIdentity) -> Optional[ArtifactMeta]:
        ...

    def keys(self) -> List[TaskIdentity]:
        ...


def artifact_not_found(identity: TaskIdentity) -> NotFoundError:
    return NotFoundError(
        f"No artifact for {identity}",
        details={"identity": identity.key, "task": identity.name},
        hint="Execute a task (run) antes de carregar sua saída.",
    )


class InMemoryArtifactStore:
    """Backend em memória (testes e notebooks).

    Valores são copiados profundamente em `save` e `load`, de forma que
    mutações do chamador nunca alteram o artefato comprometido.
    """

    format = "memory"

    def __init__(self) -> None:
        self._entries: Dict[str, Tuple[Any, ArtifactMeta]] = {}
        self._lock = threading.Lock()

    def exists(self, identity: TaskIdentity) -> bool:
        with self._lock:
            return identity.key in self._entries

    def load(self, identity: TaskIdentity) -> Any:
        with self._lock:
            entry = self._entries.get(identity.key)
        if entry is None:
            raise artifact_not_found(identity)
        return copy.deepcopy(entry[0])

    def save(
        self,
        identity: TaskIdentity,
        value: Any,
        *,
        upstream: Optional[Mapping[str, str]] = None,
    ) -> ArtifactMeta:
        stored = copy.deepcopy(value)
        meta = ArtifactMeta.create(identity, upstream=upstream, format=self.format)
        with self._lock:
            self._entries[identity.key] = (stored, meta)
        return meta

    def invalidate(self, identity: TaskIdentity) -> bool:
        with self._lock:
            return self._entries.pop(identity.key, None) is not None

    def describe(self, identity: TaskIdentity) -> Optional[ArtifactMeta]:
        with self._lock:
            entry = self._entries.get(identity.key)
        return None if entry is None else entry[1]

    def keys(self) -> List[TaskIdentity]:
        with self._lock:
            metas = [meta for _, meta in self._entries.values()]
        return sorted((m.identity for m in metas), key=lambda i: i.key)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


__all__ = [
    "ArtifactMeta",
    "ArtifactStore",
    "InMemoryArtifactStore",
    "artifact_not_found",
    "new_revision",
]
