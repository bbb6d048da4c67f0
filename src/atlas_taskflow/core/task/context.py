# src/atlas_taskflow/core/task/context.py
"""
Contextos de execução do Atlas TaskFlow.

Este módulo define:
    - `RunContext`: contexto compartilhado de uma run (identidade da run,
      configuração resolvida, eventos de log estruturados, warnings por nó
      e Manifest da run)
    - `TaskContext`: visão restrita entregue ao `run()` de uma task
      (parâmetros, inputs preguiçosos, `save` e `log`)
    - `LazyArtifact`: loader preguiçoso sobre o artefato de uma dependência

Princípios fundamentais:
    - Isolamento por run (cada run possui seu próprio RunContext)
    - Logs são eventos estruturados, nunca strings livres
    - Tasks não acessam o Artifact Store diretamente: leem dependências
      via `LazyArtifact` e produzem saída via `TaskContext.save`

Invariantes:
    - Logs sempre incluem `run_id` e `node`
    - Warnings são agrupados por nó
    - `TaskContext.save` aceita exatamente uma chamada por execução
    - O valor salvo só é persistido pelo Scheduler após `run()` retornar

Limites explícitos:
    - Não executa tasks
    - Não decide políticas de execução
"""

from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional

from atlas_taskflow.core.exceptions import TaskExecutionError

from .task import TaskIdentity


_UNSET = object()


@dataclass
class RunContext:
    """
    Contexto de execução compartilhado de uma run.

    O RunContext consolida:
        - identidade da execução (run_id, created_at)
        - configuração resolvida
        - logs estruturados de execução (`events`)
        - warnings associados a nós específicos
        - Manifest da run (preenchido pelo engine)

    Mutações de `events`/`warnings` são protegidas por lock para permitir
    execução paralela de ramos independentes.
    """

    run_id: str
    created_at: datetime
    config: Dict[str, Any] = field(default_factory=dict)
    meta: Dict[str, Any] = field(default_factory=dict)

    events: List[Dict[str, Any]] = field(default_factory=list, init=False)
    warnings: Dict[str, List[str]] = field(default_factory=dict, init=False)
    manifest: Optional[Any] = field(default=None, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    @classmethod
    def create(cls, *, config: Optional[Dict[str, Any]] = None, **meta: Any) -> "RunContext":
        return cls(
            run_id=f"run-{uuid.uuid4().hex[:12]}",
            created_at=datetime.now(timezone.utc),
            config=dict(config or {}),
            meta=dict(meta),
        )

    # -----------------------------
    # Logging & warnings
    # -----------------------------
    def log(self, *, node: Optional[str], level: str, message: str, **extra: Any) -> None:
        event = {
            "run_id": self.run_id,
            "node": node,
            "level": level,
            "message": message,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        event.update(extra)
        with self._lock:
            self.events.append(event)

    def add_warning(self, *, node: str, message: str) -> None:
        with self._lock:
            self.warnings.setdefault(node, []).append(message)

    def events_for(self, node: str) -> List[Dict[str, Any]]:
        with self._lock:
            return [e for e in self.events if e.get("node") == node]


class LazyArtifact:
    """
    Loader preguiçoso sobre o artefato persistido de uma dependência.

    O artefato só é lido do store na primeira chamada a `load()`; chamadas
    seguintes reutilizam o valor carregado.
    """

    __slots__ = ("identity", "_loader", "_value", "_lock")

    def __init__(self, identity: TaskIdentity, loader: Callable[[TaskIdentity], Any]):
        self.identity = identity
        self._loader = loader
        self._value: Any = _UNSET
        self._lock = threading.Lock()

    @property
    def loaded(self) -> bool:
        return self._value is not _UNSET

    def load(self) -> Any:
        with self._lock:
            if self._value is _UNSET:
                self._value = self._loader(self.identity)
            return self._value

    def __repr__(self) -> str:
        return f"LazyArtifact({self.identity})"


class TaskContext:
    """
    Contexto entregue ao `run()` de uma task.

    Atributos:
        - identity: Task Identity do nó em execução
        - params: parâmetros resolvidos (somente leitura)
        - inputs: estrutura espelhando o retorno de `requires()`, com
          `LazyArtifact` no lugar de cada dependência (None se não há deps)
        - run: RunContext da execução
    """

    def __init__(
        self,
        *,
        identity: TaskIdentity,
        params: Mapping[str, Any],
        inputs: Any,
        run: RunContext,
    ):
        self.identity = identity
        self.params = params
        self.inputs = inputs
        self.run = run
        self._saved: Any = _UNSET
        self._save_calls = 0

    def __getitem__(self, name: str) -> Any:
        return self.params[name]

    def save(self, value: Any) -> None:
        """Registra a saída lógica da task (exatamente uma vez)."""
        self._save_calls += 1
        if self._save_calls > 1:
            raise TaskExecutionError(
                f"Task {self.identity.key} called save() more than once",
                details={"identity": self.identity.key, "task": self.identity.name},
                hint="Cada task deve produzir exatamente uma saída lógica.",
            )
        self._saved = value

    @property
    def has_output(self) -> bool:
        return self._saved is not _UNSET

    @property
    def output(self) -> Any:
        if self._saved is _UNSET:
            raise TaskExecutionError(
                f"Task {self.identity.key} finished without calling save()",
                details={"identity": self.identity.key, "task": self.identity.name},
                hint="Chame ctx.save(valor) exatamente uma vez ao final do run().",
            )
        return self._saved

    def log(self, message: str, *, level: str = "INFO", **extra: Any) -> None:
        self.run.log(node=self.identity.key, level=level, message=message, **extra)

    def warn(self, message: str) -> None:
        self.run.add_warning(node=self.identity.key, message=message)
