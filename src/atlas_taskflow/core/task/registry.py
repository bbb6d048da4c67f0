# src/atlas_taskflow/core/task/registry.py
"""
Registro estrutural de tasks.

O `TaskRegistry` garante que cada nome de task corresponda a exatamente
uma definição (`TaskDef`). Ele é usado pelo Graph Builder para detectar
duas definições distintas com o mesmo nome dentro de um grafo (o que
tornaria chaves de cache ambíguas). Nomes passados em `--force` são
resolvidos por `TaskGraph.resolve`, não por este registro.

Invariantes:
    - Cada nome registrado aponta para uma única definição
    - A lista de tasks reflete exatamente a ordem de registro

Limites explícitos:
    - Não expande dependências
    - Não executa tasks
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List

from atlas_taskflow.core.exceptions import ConfigurationError

from .task import TaskDef


class DuplicateTaskNameError(ConfigurationError):
    """Duas definições distintas de task compartilham o mesmo nome."""


@dataclass
class TaskRegistry:
    """Registro canônico `nome -> TaskDef`, preservando ordem de registro."""

    _tasks: Dict[str, TaskDef] = field(default_factory=dict, init=False, repr=False)
    _order: List[str] = field(default_factory=list, init=False, repr=False)

    def add(self, definition: TaskDef) -> None:
        name = definition.name
        existing = self._tasks.get(name)
        if existing is definition:
            return
        if existing is not None:
            raise DuplicateTaskNameError(
                f"Duplicate task name: {name}",
                details={"task": name},
                hint="Cada TaskDef precisa de um nome único para que chaves de cache não colidam.",
            )
        self._tasks[name] = definition
        self._order.append(name)

    def get(self, name: str) -> TaskDef:
        try:
            return self._tasks[name]
        except KeyError:
            raise ConfigurationError(
                f"Unknown task: {name}",
                details={"task": name, "known": list(self._order)},
            ) from None

    def __contains__(self, name: object) -> bool:
        return name in self._tasks

    def list(self) -> List[TaskDef]:
        return [self._tasks[name] for name in self._order]
