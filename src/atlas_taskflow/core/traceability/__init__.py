# src/atlas_taskflow/core/traceability/__init__.py
"""
Pacote de rastreabilidade do Atlas TaskFlow - Run Manifest v1.

API pública exposta:
    - RunManifest       → estrutura canônica do Manifest
    - create_manifest   → criação explícita do Manifest
    - add_event         → registro explícito de eventos no Event Log
    - node_started      → marca início de execução de um nó
    - node_finished     → registra conclusão bem-sucedida de um nó
    - node_failed       → registra falha de um nó
    - node_state        → registra nós não executados (cached/skipped/cancelled)
    - save_manifest     → persistência do Manifest em JSON
    - load_manifest     → restauração determinística do Manifest
"""

from .manifest import (
    MANIFEST_EVENTS,
    RunManifest,
    add_event,
    create_manifest,
    load_manifest,
    node_failed,
    node_finished,
    node_started,
    node_state,
    save_manifest,
)

__all__ = [
    "MANIFEST_EVENTS",
    "RunManifest",
    "add_event",
    "create_manifest",
    "load_manifest",
    "node_failed",
    "node_finished",
    "node_started",
    "node_state",
    "save_manifest",
]
