# src/atlas_taskflow/core/task/types.py
"""
Tipos canônicos de execução do Atlas TaskFlow.

Este módulo define as estruturas e enums que padronizam a comunicação
entre Graph Builder, Scheduler, Preview e camadas de rastreabilidade.

Componentes principais:
    - TaskKind    → classificação semântica de tasks
    - CacheStatus → estado de cache de um nó (satisfied / stale / missing)
    - NodeStatus  → estado final de um nó após uma run
    - NodeResult  → resultado imutável de um nó em uma run

Invariantes:
    - Enums possuem valores textuais canônicos (serializáveis em JSON)
    - NodeResult é imutável
    - Tipos não dependem do engine, do store ou da CLI

Limites explícitos:
    - Não executa tasks
    - Não decide políticas de execução
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class TaskKind(str, Enum):
    """
    Tipos semânticos de tasks.

    O tipo é puramente informativo (relatórios, preview, manifest);
    o Scheduler não altera comportamento com base no `kind`.
    """

    DIAGNOSTIC = "diagnostic"
    TRANSFORM = "transform"
    TRAIN = "train"
    EVALUATE = "evaluate"
    EXPORT = "export"


class CacheStatus(str, Enum):
    """
    Estado de cache de um nó frente ao Artifact Store.

    Estados definidos:
        - SATISFIED: artefato presente e consistente com as revisões upstream
        - STALE: artefato presente, mas alguma dependência mudou, está
          ausente ou está ela própria desatualizada
        - MISSING: nenhum artefato para a identidade
    """

    SATISFIED = "satisfied"
    STALE = "stale"
    MISSING = "missing"


class NodeStatus(str, Enum):
    """
    Estados finais possíveis de um nó após uma run.

    Estados definidos:
        - EXECUTED: `run()` executado e artefato persistido
        - CACHED: artefato reutilizado, nenhuma execução
        - FAILED: `run()` ou persistência falharam
        - SKIPPED: não executado porque uma dependência falhou
        - CANCELLED: não iniciado porque a run foi interrompida
    """

    EXECUTED = "executed"
    CACHED = "cached"
    FAILED = "failed"
    SKIPPED = "skipped"
    CANCELLED = "cancelled"

    @property
    def satisfied(self) -> bool:
        return self in (NodeStatus.EXECUTED, NodeStatus.CACHED)


@dataclass(frozen=True)
class NodeResult:
    """
    Resultado imutável de um nó em uma run.

    Campos:
        - key: chave canônica da Task Identity
        - task: nome da task
        - status: estado final (`NodeStatus`)
        - summary: resumo textual
        - revision: revisão do artefato vigente ao final da run (quando houver)
        - duration_ms: duração da execução (0 para nós não executados)
        - error: payload serializável de erro (`TaskflowErrorPayload.to_dict()`)
        - params: parâmetros resolvidos do nó
        - warnings: avisos não fatais registrados pela task durante a execução
    """

    key: str
    task: str
    status: NodeStatus
    summary: str
    revision: Optional[str] = None
    duration_ms: int = 0
    error: Optional[Dict[str, Any]] = None
    params: Dict[str, Any] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "task": self.task,
            "status": self.status.value,
            "summary": self.summary,
            "revision": self.revision,
            "duration_ms": self.duration_ms,
            "error": self.error,
            "params": dict(self.params),
            "warnings": list(self.warnings),
        }
