"""
Atlas TaskFlow - Canonical Exceptions (v1)

Este módulo define as exceções tipadas do Atlas TaskFlow.

Objetivo:
- Permitir que o builder, o scheduler e os stores levantem exceções semânticas tipadas
- Facilitar o mapeamento determinístico para TaskflowErrorPayload
- Evitar ValueError/RuntimeError genéricos em guardrails críticos

Regras:
- Exceções carregam apenas dados estruturados (serializáveis) em `details`.
- Sempre que existir uma Task Identity envolvida, `details["identity"]` a nomeia.
- A mensagem é curta e humana; a causa técnica fica em `details`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass(eq=False)
class TaskflowException(Exception):
    """Base class para exceções do Atlas TaskFlow.

    Importante:
    - Sempre carregar dados estruturados em `details`
    - Não embedar stack trace em payloads de erro
    - Mensagem deve ser curta e humana
    """

    message: str
    details: Dict[str, Any] = field(default_factory=dict)
    hint: Optional[str] = None

    def __str__(self) -> str:
        return self.message

    @property
    def identity(self) -> Optional[str]:
        """Chave da Task Identity associada ao erro, quando existir."""
        value = self.details.get("identity")
        return None if value is None else str(value)


# ---------------------------------------------------------------------------
# Definição de tasks / grafo
# ---------------------------------------------------------------------------

@dataclass(eq=False)
class ConfigurationError(TaskflowException):
    """Parâmetro desconhecido, herança ambígua ou declaração de task inválida."""


@dataclass(eq=False)
class TypeMismatchError(ConfigurationError):
    """Valor de parâmetro com tipo incompatível com o tipo declarado."""


@dataclass(eq=False)
class CyclicDependencyError(TaskflowException):
    """O grafo de dependências contém um ciclo."""

    @property
    def cycle(self) -> list:
        return list(self.details.get("cycle", []))


# ---------------------------------------------------------------------------
# Artefatos / execução
# ---------------------------------------------------------------------------

@dataclass(eq=False)
class NotFoundError(TaskflowException):
    """Artefato inexistente para a identidade solicitada."""


@dataclass(eq=False)
class TaskExecutionError(TaskflowException):
    """Falha levantada dentro do `run()` de uma task (encapsulada)."""


@dataclass(eq=False)
class StoreIOError(TaskflowException):
    """Falha da camada de persistência (escrita parcial, checksum, I/O)."""


__all__ = [
    "TaskflowException",
    "ConfigurationError",
    "TypeMismatchError",
    "CyclicDependencyError",
    "NotFoundError",
    "TaskExecutionError",
    "StoreIOError",
]
