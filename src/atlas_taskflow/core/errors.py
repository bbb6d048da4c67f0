"""
Atlas TaskFlow - Canonical Error Structures (v1)

Este módulo define o padrão canônico de erros reportados pelo Atlas TaskFlow.

Erros de execução são artefatos de primeira classe do RunResult e do Manifest,
devendo ser:
- explícitos
- serializáveis
- rastreáveis (sempre nomeiam a Task Identity envolvida)
- acionáveis

Nenhuma falha é reportada como um "pipeline failed" genérico.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

from .exceptions import (
    ConfigurationError,
    CyclicDependencyError,
    NotFoundError,
    StoreIOError,
    TaskExecutionError,
    TaskflowException,
    TypeMismatchError,
)


# ---------------------------------------------------------------------------
# Payload canônico
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TaskflowErrorPayload:
    """
    Payload canônico de erro do Atlas TaskFlow.

    Campos:
    - type: código estável do erro (não é texto livre)
    - message: mensagem curta, humana e objetiva
    - details: dados estruturados relevantes para diagnóstico
      (inclui `identity` quando o erro pertence a um nó)
    - hint: ação sugerida ao operador (onde corrigir)
    """

    type: str
    message: str
    details: Dict[str, Any]
    hint: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Retorna representação serializável do erro."""
        return asdict(self)


# ---------------------------------------------------------------------------
# Catálogo canônico de tipos de erro (v1)
# ---------------------------------------------------------------------------

# Definição / grafo
CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
TYPE_MISMATCH = "TYPE_MISMATCH"
CYCLIC_DEPENDENCY = "CYCLIC_DEPENDENCY"

# Artefatos
ARTIFACT_NOT_FOUND = "ARTIFACT_NOT_FOUND"
STORE_IO_ERROR = "STORE_IO_ERROR"

# Execução
TASK_EXECUTION_ERROR = "TASK_EXECUTION_ERROR"
DEPENDENCY_FAILED = "DEPENDENCY_FAILED"
RUN_CANCELLED = "RUN_CANCELLED"

_EXCEPTION_CODES = (
    (TypeMismatchError, TYPE_MISMATCH),
    (ConfigurationError, CONFIGURATION_ERROR),
    (CyclicDependencyError, CYCLIC_DEPENDENCY),
    (NotFoundError, ARTIFACT_NOT_FOUND),
    (StoreIOError, STORE_IO_ERROR),
    (TaskExecutionError, TASK_EXECUTION_ERROR),
)


# ---------------------------------------------------------------------------
# Helpers de fábrica
# ---------------------------------------------------------------------------

def from_exception(exc: TaskflowException) -> TaskflowErrorPayload:
    """Converte uma TaskflowException tipada em payload serializável."""
    code = TASK_EXECUTION_ERROR
    for cls, mapped in _EXCEPTION_CODES:
        if isinstance(exc, cls):
            code = mapped
            break
    return TaskflowErrorPayload(
        type=code,
        message=exc.message,
        details=dict(exc.details),
        hint=exc.hint,
    )


def task_execution_error(
    *,
    identity: str,
    task: str,
    exc_type: str,
    exc_message: str,
    hint: str = "Corrija a causa na task indicada e reexecute; nós não afetados permanecem em cache.",
) -> TaskflowErrorPayload:
    return TaskflowErrorPayload(
        type=TASK_EXECUTION_ERROR,
        message=f"Task {identity} failed: {exc_type}: {exc_message}",
        details={
            "identity": identity,
            "task": task,
            "exc_type": exc_type,
            "exc_message": exc_message,
        },
        hint=hint,
    )


def dependency_failed(
    *,
    identity: str,
    failed_dependencies: List[str],
    hint: str = "Corrija as dependências que falharam; este nó será executado na próxima run.",
) -> TaskflowErrorPayload:
    return TaskflowErrorPayload(
        type=DEPENDENCY_FAILED,
        message=f"Task {identity} skipped: upstream failure in {', '.join(failed_dependencies)}",
        details={
            "identity": identity,
            "failed_dependencies": list(failed_dependencies),
        },
        hint=hint,
    )


def run_cancelled(
    *,
    identity: str,
    reason: str,
    hint: str = "Reexecute a run; nós já concluídos permanecem em cache.",
) -> TaskflowErrorPayload:
    return TaskflowErrorPayload(
        type=RUN_CANCELLED,
        message=f"Task {identity} not started: {reason}",
        details={"identity": identity, "reason": reason},
        hint=hint,
    )


__all__ = [
    "TaskflowErrorPayload",
    "CONFIGURATION_ERROR",
    "TYPE_MISMATCH",
    "CYCLIC_DEPENDENCY",
    "ARTIFACT_NOT_FOUND",
    "STORE_IO_ERROR",
    "TASK_EXECUTION_ERROR",
    "DEPENDENCY_FAILED",
    "RUN_CANCELLED",
    "from_exception",
    "task_execution_error",
    "dependency_failed",
    "run_cancelled",
]
