# src/atlas_taskflow/core/engine/__init__.py
"""
Engine do Atlas TaskFlow.

Este pacote contém a implementação responsável por **construir**,
**executar**, **invalidar** e **pré-visualizar** grafos de tasks.

Componentes principais:
    - graph      → expansão de dependências, herança de parâmetros e ordem topológica
    - engine     → Scheduler com cache por identidade e políticas de falha
    - invalidate → remoção seletiva de artefatos (com ou sem cascade)
    - preview    → dry-run do grafo e dos parâmetros efetivos

Princípios fundamentais:
    - Construção do grafo e execução são responsabilidades separadas
    - A ordem de execução é determinística para o mesmo grafo
    - Nenhuma decisão silenciosa é tomada durante a execução

Invariantes:
    - Tasks só executam após suas dependências estarem comprometidas no store
    - Cada nó executa no máximo uma vez por run
    - O resultado da run reflete explicitamente o estado de cada nó
"""

from .engine import Engine, RunResult, cache_state, resolve_forced
from .graph import Edge, TaskGraph, TaskNode, build_graph, topological_order
from .invalidate import invalidate
from .preview import PreviewReport, PreviewRow, preview

__all__ = [
    "Engine",
    "RunResult",
    "cache_state",
    "resolve_forced",
    "Edge",
    "TaskGraph",
    "TaskNode",
    "build_graph",
    "topological_order",
    "invalidate",
    "PreviewReport",
    "PreviewRow",
    "preview",
]
