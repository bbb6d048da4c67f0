# src/atlas_taskflow/core/task/__init__.py
"""
# Task Core - Atlas TaskFlow

Este pacote define os **contratos canônicos** de uma task no Atlas TaskFlow.

Uma computação é modelada como um **DAG de tasks nomeadas e parametrizadas**,
onde:
- cada task declara parâmetros tipados, dependências (`requires`) e `run`
- a identidade de um nó é (nome da task, parâmetros resolvidos)
- a execução é coordenada exclusivamente pelo Scheduler

## Componentes

- **params**: `Parameter`, `ParamKind` e helpers de fábrica
- **task**: `TaskDef`, `TaskInstance`, `TaskIdentity`, `Inherit`, `task`
- **types**: `TaskKind`, `CacheStatus`, `NodeStatus`, `NodeResult`
- **context**: `RunContext`, `TaskContext`, `LazyArtifact`
- **registry**: `TaskRegistry` (unicidade de nomes)

## Invariantes

- Instâncias são imutáveis e comparadas por identidade
- Tasks não acessam o Artifact Store diretamente
"""

from .context import LazyArtifact, RunContext, TaskContext
from .params import (
    Parameter,
    ParamKind,
    bool_param,
    choice_param,
    float_param,
    int_param,
    str_param,
)
from .registry import DuplicateTaskNameError, TaskRegistry
from .task import Inherit, TaskDef, TaskIdentity, TaskInstance, task
from .types import CacheStatus, NodeResult, NodeStatus, TaskKind

__all__ = [
    "LazyArtifact",
    "RunContext",
    "TaskContext",
    "Parameter",
    "ParamKind",
    "bool_param",
    "choice_param",
    "float_param",
    "int_param",
    "str_param",
    "DuplicateTaskNameError",
    "TaskRegistry",
    "Inherit",
    "TaskDef",
    "TaskIdentity",
    "TaskInstance",
    "task",
    "CacheStatus",
    "NodeResult",
    "NodeStatus",
    "TaskKind",
]
