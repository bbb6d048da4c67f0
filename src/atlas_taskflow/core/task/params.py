# src/atlas_taskflow/core/task/params.py
"""
Parâmetros tipados de tasks do Atlas TaskFlow.

Este módulo define o conjunto fechado de tipos de parâmetro aceitos por
uma task e a validação aplicada no momento da construção de instâncias.

Tipos suportados (v1):
    - bool   → apenas `bool`
    - int    → `int` (rejeita `bool`)
    - float  → `float` ou `int` (normalizado para `float`; rejeita `bool`,
               NaN e infinito)
    - str    → apenas `str`
    - choice → um valor dentre `choices` (domínio fechado)

Decisões arquiteturais:
    - O conjunto de tipos é fechado para que erros apareçam na construção
      da instância, e não durante o `run()` da task
    - Defaults são validados no momento da declaração do parâmetro
    - Valores textuais (CLI) são convertidos por `Parameter.parse`

Invariantes:
    - Um `Parameter` é imutável
    - O valor validado de um parâmetro é sempre serializável em JSON canônico

Limites explícitos:
    - Não conhece tasks, grafo ou Artifact Store
    - Não realiza coerções implícitas além de int → float
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Sequence, Tuple

from atlas_taskflow.core.exceptions import ConfigurationError, TypeMismatchError


class ParamKind(str, Enum):
    """Tipos canônicos de parâmetro."""

    BOOL = "bool"
    INT = "int"
    FLOAT = "float"
    STR = "str"
    CHOICE = "choice"


_TRUE_TEXT = {"true", "1", "yes", "y", "on"}
_FALSE_TEXT = {"false", "0", "no", "n", "off"}


@dataclass(frozen=True)
class Parameter:
    """
    Declaração imutável de um parâmetro de task.

    Campos:
        - name: nome do parâmetro (identificador Python válido)
        - kind: tipo canônico (`ParamKind`)
        - default: valor padrão (validado na declaração)
        - description: texto livre opcional
        - choices: domínio fechado (apenas para `ParamKind.CHOICE`)

    Raises (na declaração):
        ConfigurationError: nome inválido, `choices` ausente/indevido ou
            default fora do domínio.
        TypeMismatchError: default com tipo incompatível.
    """

    name: str
    kind: ParamKind
    default: Any
    description: Optional[str] = None
    choices: Optional[Tuple[Any, ...]] = None

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.isidentifier():
            raise ConfigurationError(
                f"Parameter name must be a valid identifier, got: {self.name!r}",
                details={"parameter": self.name},
            )
        if self.kind == ParamKind.CHOICE:
            if not self.choices:
                raise ConfigurationError(
                    f"Choice parameter '{self.name}' requires a non-empty 'choices'",
                    details={"parameter": self.name},
                )
            object.__setattr__(self, "choices", tuple(self.choices))
            for choice in self.choices:
                if not isinstance(choice, (bool, int, float, str)):
                    raise ConfigurationError(
                        f"Choice parameter '{self.name}' only accepts scalar choices, got {choice!r}",
                        details={"parameter": self.name},
                    )
        elif self.choices is not None:
            raise ConfigurationError(
                f"Parameter '{self.name}' of kind {self.kind.value} does not accept 'choices'",
                details={"parameter": self.name},
            )
        object.__setattr__(self, "default", self.validate(self.default, owner="<declaration>"))

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------
    def _mismatch(self, value: Any, owner: str, expected: str) -> TypeMismatchError:
        return TypeMismatchError(
            f"Parameter '{self.name}' of task '{owner}' expects {expected}, "
            f"got {type(value).__name__}: {value!r}",
            details={
                "task": owner,
                "parameter": self.name,
                "expected": expected,
                "received": type(value).__name__,
            },
            hint="Ajuste o valor do parâmetro para o tipo declarado.",
        )

    def validate(self, value: Any, *, owner: str = "?") -> Any:
        """Valida `value` contra a declaração e retorna o valor normalizado."""
        kind = self.kind

        if kind == ParamKind.BOOL:
            if not isinstance(value, bool):
                raise self._mismatch(value, owner, "bool")
            return value

        if kind == ParamKind.INT:
            if isinstance(value, bool) or not isinstance(value, int):
                raise self._mismatch(value, owner, "int")
            return value

        if kind == ParamKind.FLOAT:
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise self._mismatch(value, owner, "float")
            value = float(value)
            if not math.isfinite(value):
                raise ConfigurationError(
                    f"Parameter '{self.name}' of task '{owner}' must be finite, got {value!r}",
                    details={"task": owner, "parameter": self.name},
                )
            return value

        if kind == ParamKind.STR:
            if not isinstance(value, str):
                raise self._mismatch(value, owner, "str")
            return value

        # CHOICE
        choices = self.choices or ()
        if value in choices and any(type(value) is type(c) for c in choices):
            return value
        if not any(type(value) is type(c) for c in choices):
            expected = " | ".join(sorted({type(c).__name__ for c in choices}))
            raise self._mismatch(value, owner, expected)
        raise ConfigurationError(
            f"Parameter '{self.name}' of task '{owner}' must be one of "
            f"{list(choices)!r}, got {value!r}",
            details={"task": owner, "parameter": self.name, "choices": list(choices)},
            hint="Use um dos valores declarados em 'choices'.",
        )

    def parse(self, text: str, *, owner: str = "?") -> Any:
        """Converte um valor textual (CLI/env) e o valida."""
        if not isinstance(text, str):
            return self.validate(text, owner=owner)

        raw = text.strip()
        kind = self.kind

        if kind == ParamKind.BOOL:
            lowered = raw.lower()
            if lowered in _TRUE_TEXT:
                return True
            if lowered in _FALSE_TEXT:
                return False
            raise self._mismatch(text, owner, "bool")

        if kind == ParamKind.INT:
            try:
                return self.validate(int(raw), owner=owner)
            except ValueError:
                raise self._mismatch(text, owner, "int") from None

        if kind == ParamKind.FLOAT:
            try:
                return self.validate(float(raw), owner=owner)
            except ValueError:
                raise self._mismatch(text, owner, "float") from None

        if kind == ParamKind.STR:
            return text

        for choice in self.choices or ():
            if str(choice) == raw:
                return choice
        return self.validate(text, owner=owner)

    def describe(self) -> str:
        desc = f"{self.name}: {self.kind.value} = {self.default!r}"
        if self.choices:
            desc += f" (choices: {', '.join(map(repr, self.choices))})"
        return desc


# ---------------------------------------------------------------------------
# Helpers de fábrica
# ---------------------------------------------------------------------------

def bool_param(name: str, default: bool = False, description: Optional[str] = None) -> Parameter:
    return Parameter(name=name, kind=ParamKind.BOOL, default=default, description=description)


def int_param(name: str, default: int = 0, description: Optional[str] = None) -> Parameter:
    return Parameter(name=name, kind=ParamKind.INT, default=default, description=description)


def float_param(name: str, default: float = 0.0, description: Optional[str] = None) -> Parameter:
    return Parameter(name=name, kind=ParamKind.FLOAT, default=default, description=description)


def str_param(name: str, default: str = "", description: Optional[str] = None) -> Parameter:
    return Parameter(name=name, kind=ParamKind.STR, default=default, description=description)


def choice_param(
    name: str,
    choices: Sequence[Any],
    default: Any = None,
    description: Optional[str] = None,
) -> Parameter:
    """Parâmetro de domínio fechado; o default é o primeiro valor quando omitido."""
    choices = tuple(choices)
    if default is None and choices:
        default = choices[0]
    return Parameter(
        name=name,
        kind=ParamKind.CHOICE,
        default=default,
        description=description,
        choices=choices,
    )


__all__ = [
    "ParamKind",
    "Parameter",
    "bool_param",
    "int_param",
    "float_param",
    "str_param",
    "choice_param",
]
