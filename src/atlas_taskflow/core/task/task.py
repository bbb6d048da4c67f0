# src/atlas_taskflow/core/task/task.py
"""
Contrato canônico de Task do Atlas TaskFlow.

Uma task é declarada como um **valor** (`TaskDef`), e não como uma
hierarquia de classes: nome, parâmetros, função `requires` e
procedimento `run`. Instâncias (`TaskInstance`) são produzidas chamando
o descriptor com overrides parciais, e sua identidade (`TaskIdentity`)
é a chave de cache do Artifact Store.

Componentes:
    - TaskIdentity → (nome da task, parâmetros resolvidos ordenados)
    - Inherit      → anotação de herança de parâmetros entre tasks
    - TaskDef      → descriptor imutável de uma task
    - TaskInstance → descriptor + parâmetros resolvidos (nó do grafo)
    - task         → decorator que constrói um TaskDef a partir de `run`

Decisões arquiteturais:
    - Composição em vez de herança: herança de parâmetros é uma anotação
      (`Inherit`) interpretada pelo Graph Builder
    - Igualdade de instâncias é estrutural (via identidade), nunca por referência
    - Instâncias são imutáveis; `with_params` retorna uma nova instância

Invariantes:
    - Mesma task + mesmos valores ⇒ mesma identidade ⇒ mesma chave de cache
    - Parâmetros não declarados ⇒ ConfigurationError
    - Valores com tipo incompatível ⇒ TypeMismatchError
    - Um nome de parâmetro aparece no máximo uma vez por task
      (próprio ou herdado)

Limites explícitos:
    - Não expande dependências (responsabilidade do Graph Builder)
    - Não executa tasks nem acessa o Artifact Store
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import cached_property
from types import MappingProxyType
from typing import (
    Any,
    Callable,
    Dict,
    FrozenSet,
    Iterable,
    Mapping,
    Optional,
    Sequence,
    Tuple,
)

from atlas_taskflow.core.config.hashing import compute_identity_hash
from atlas_taskflow.core.exceptions import ConfigurationError

from .params import Parameter
from .types import TaskKind


@dataclass(frozen=True)
class TaskIdentity:
    """
    Identidade estrutural de um nó: (nome da task, parâmetros resolvidos).

    `params` é sempre uma tupla de pares `(nome, valor)` ordenada por nome,
    o que torna a identidade determinística e hashable.
    """

    name: str
    params: Tuple[Tuple[str, Any], ...]

    @classmethod
    def of(cls, name: str, params: Mapping[str, Any]) -> "TaskIdentity":
        return cls(name=name, params=tuple(sorted(params.items())))

    @cached_property
    def digest(self) -> str:
        """Hash SHA-256 canônico da identidade."""
        return compute_identity_hash(self.name, dict(self.params))

    @property
    def key(self) -> str:
        """Chave de cache estável (`<task>-<16 hex>`)."""
        return f"{self.name}-{self.digest[:16]}"

    def as_dict(self) -> Dict[str, Any]:
        return dict(self.params)

    def __str__(self) -> str:
        inner = ", ".join(f"{k}={v!r}" for k, v in self.params)
        return f"{self.name}({inner})"


@dataclass(frozen=True)
class Inherit:
    """
    Anotação de herança de parâmetros.

    `Inherit(source=prepare, params=("seed",))` declara que a task
    dependente herda o parâmetro `seed` de `prepare`: a declaração do
    parâmetro é copiada e, quando a dependente é instanciada com um
    override de `seed`, o Graph Builder propaga o valor para `prepare`
    (e para toda task que herde o mesmo parâmetro) em qualquer ponto
    do grafo abaixo dela.

    `params=None` herda todos os parâmetros declarados pela origem.
    """

    source: "TaskDef"
    params: Optional[Tuple[str, ...]] = None

    def __post_init__(self) -> None:
        if self.params is not None:
            object.__setattr__(self, "params", tuple(self.params))


@dataclass(frozen=True, eq=False)
class TaskDef:
    """
    Descriptor imutável de uma task.

    Campos:
        - name: nome único da task (parte da identidade)
        - run: procedimento `run(ctx: TaskContext)`; deve chamar
          `ctx.save(valor)` exatamente uma vez em caso de sucesso
        - params: parâmetros próprios da task
        - requires: função pura `requires(instance)` que retorna None, uma
          TaskInstance, ou uma lista/tupla/dict de TaskInstance
        - inherits: anotações de herança de parâmetros (`Inherit`)
        - kind: tipo semântico (`TaskKind`)
        - description: texto livre

    Igualdade de TaskDef é por referência: duas definições distintas com
    o mesmo nome em um mesmo grafo são rejeitadas pelo Graph Builder.
    """

    name: str
    run: Callable[..., Any]
    params: Tuple[Parameter, ...] = ()
    requires: Optional[Callable[["TaskInstance"], Any]] = None
    inherits: Tuple[Inherit, ...] = ()
    kind: TaskKind = TaskKind.TRANSFORM
    description: str = ""
    _declared: Mapping[str, Parameter] = field(init=False, repr=False)
    _origins: Mapping[str, str] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise ConfigurationError("Task name must be a non-empty string", details={"task": self.name})
        if not callable(self.run):
            raise ConfigurationError(f"Task '{self.name}' requires a callable run", details={"task": self.name})
        if self.requires is not None and not callable(self.requires):
            raise ConfigurationError(f"Task '{self.name}': requires must be callable", details={"task": self.name})

        object.__setattr__(self, "params", tuple(self.params))
        object.__setattr__(self, "inherits", tuple(self.inherits))

        declared: Dict[str, Parameter] = {}
        origins: Dict[str, str] = {}

        for p in self.params:
            if not isinstance(p, Parameter):
                raise ConfigurationError(
                    f"Task '{self.name}': params must be Parameter declarations, got {p!r}",
                    details={"task": self.name},
                )
            if p.name in declared:
                raise ConfigurationError(
                    f"Task '{self.name}' declares parameter '{p.name}' twice",
                    details={"task": self.name, "parameter": p.name},
                )
            declared[p.name] = p

        for inherit in self.inherits:
            source = inherit.source
            if not isinstance(source, TaskDef):
                raise ConfigurationError(
                    f"Task '{self.name}': Inherit.source must be a TaskDef, got {source!r}",
                    details={"task": self.name},
                )
            source_params = source.declared_params
            names = inherit.params if inherit.params is not None else tuple(source_params)
            for pname in names:
                if pname not in source_params:
                    raise ConfigurationError(
                        f"Task '{self.name}' inherits '{pname}' from '{source.name}', "
                        f"which does not declare it",
                        details={"task": self.name, "parameter": pname, "source": source.name},
                    )
                origin = source.origin_of(pname) or source.name
                if pname in declared:
                    previous = origins.get(pname)
                    raise ConfigurationError(
                        f"Task '{self.name}': inherited parameter '{pname}' from '{origin}' "
                        f"collides with "
                        + (f"the one inherited from '{previous}'" if previous else "its own declaration"),
                        details={
                            "task": self.name,
                            "parameter": pname,
                            "sources": sorted(x for x in (previous, origin) if x),
                        },
                        hint="Renomeie um dos parâmetros ou herde-o de uma única origem.",
                    )
                declared[pname] = source_params[pname]
                origins[pname] = origin

        object.__setattr__(self, "_declared", MappingProxyType(declared))
        object.__setattr__(self, "_origins", MappingProxyType(origins))

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------
    @property
    def declared_params(self) -> Mapping[str, Parameter]:
        """Parâmetros efetivos (próprios + herdados), em ordem de declaração."""
        return self._declared

    @property
    def inherited(self) -> Mapping[str, str]:
        """Mapa `parâmetro herdado -> task de origem`."""
        return self._origins

    def origin_of(self, param: str) -> Optional[str]:
        """Task de origem de um parâmetro herdado (None se próprio/ausente)."""
        return self._origins.get(param)

    def defaults(self) -> Dict[str, Any]:
        return {name: p.default for name, p in self._declared.items()}

    # ------------------------------------------------------------------
    # Instantiation
    # ------------------------------------------------------------------
    def resolve(self, overrides: Mapping[str, Any], *, parse: bool = False) -> Dict[str, Any]:
        """Valida overrides parciais e retorna o conjunto completo de valores."""
        unknown = sorted(set(overrides) - set(self._declared))
        if unknown:
            raise ConfigurationError(
                f"Task '{self.name}' has no parameter(s): {', '.join(unknown)}",
                details={
                    "task": self.name,
                    "unknown": unknown,
                    "declared": sorted(self._declared),
                },
                hint="Use apenas parâmetros declarados (ou herdados) pela task.",
            )
        values = self.defaults()
        for name, value in overrides.items():
            param = self._declared[name]
            if parse:
                values[name] = param.parse(value, owner=self.name)
            else:
                values[name] = param.validate(value, owner=self.name)
        return values

    def instantiate(
        self,
        overrides: Optional[Mapping[str, Any]] = None,
        *,
        parse: bool = False,
    ) -> "TaskInstance":
        overrides = dict(overrides or {})
        values = self.resolve(overrides, parse=parse)
        return TaskInstance(definition=self, values=values, explicit=frozenset(overrides))

    def __call__(self, **overrides: Any) -> "TaskInstance":
        return self.instantiate(overrides)

    def __repr__(self) -> str:
        return f"TaskDef({self.name!r})"


@dataclass(frozen=True, eq=False)
class TaskInstance:
    """
    Instância imutável de uma task: descriptor + parâmetros resolvidos.

    `explicit` registra os parâmetros fornecidos explicitamente (não
    preenchidos por default); é usado pelo Graph Builder para decidir
    precedência entre valores explícitos, herdados e defaults de
    configuração. `explicit` não participa da identidade.
    """

    definition: TaskDef
    values: Mapping[str, Any]
    explicit: FrozenSet[str] = frozenset()
    identity: TaskIdentity = field(init=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "values", MappingProxyType(dict(self.values)))
        object.__setattr__(self, "explicit", frozenset(self.explicit))
        object.__setattr__(self, "identity", TaskIdentity.of(self.definition.name, self.values))

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def params(self) -> Mapping[str, Any]:
        return self.values

    @property
    def key(self) -> str:
        return self.identity.key

    def __getitem__(self, name: str) -> Any:
        try:
            return self.values[name]
        except KeyError:
            raise ConfigurationError(
                f"Task '{self.name}' has no parameter '{name}'",
                details={"task": self.name, "parameter": name},
            ) from None

    def get(self, name: str, default: Any = None) -> Any:
        return self.values.get(name, default)

    def with_params(self, **overrides: Any) -> "TaskInstance":
        """Nova instância com overrides aplicados (marcados como explícitos)."""
        merged = {k: self.values[k] for k in self.explicit}
        merged.update(overrides)
        return self.definition.instantiate(merged)

    def _rebind(self, values: Mapping[str, Any], explicit: Iterable[str]) -> "TaskInstance":
        return TaskInstance(definition=self.definition, values=values, explicit=frozenset(explicit))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TaskInstance):
            return NotImplemented
        return self.identity == other.identity

    def __hash__(self) -> int:
        return hash(self.identity)

    def __repr__(self) -> str:
        return str(self.identity)


def task(
    name: Optional[str] = None,
    *,
    params: Sequence[Parameter] = (),
    requires: Optional[Callable[[TaskInstance], Any]] = None,
    inherits: Sequence[Inherit] = (),
    kind: TaskKind = TaskKind.TRANSFORM,
    description: Optional[str] = None,
) -> Callable[[Callable[..., Any]], TaskDef]:
    """
    Decorator que transforma um procedimento `run(ctx)` em `TaskDef`.

    O nome default é o nome da função; a descrição default é a primeira
    linha da docstring.
    """

    def _wrap(fn: Callable[..., Any]) -> TaskDef:
        doc = (fn.__doc__ or "").strip().splitlines()
        return TaskDef(
            name=name or fn.__name__,
            run=fn,
            params=tuple(params),
            requires=requires,
            inherits=tuple(inherits),
            kind=kind,
            description=description if description is not None else (doc[0] if doc else ""),
        )

    return _wrap
