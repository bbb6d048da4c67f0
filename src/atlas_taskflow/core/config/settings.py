"""
Leitura tipada da configuração resolvida do engine.

`EngineSettings` transforma o dicionário produzido por `load_config` em
valores tipados consumidos pelo driver (política de falha, paralelismo,
backend do Artifact Store, diretório de manifests e defaults por task).

Limites explícitos:
    - Não carrega arquivos (responsabilidade do loader)
    - Não valida nomes/tipos de parâmetros de tasks (responsabilidade do builder)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .errors import InvalidSettingError


SUPPORTED_BACKENDS = ("filesystem", "memory")


@dataclass(frozen=True)
class EngineSettings:
    """Valores efetivos do engine derivados da configuração."""

    fail_fast: bool = False
    max_workers: int = 1
    store_backend: str = "filesystem"
    store_root: Path = Path(".atlas/artifacts")
    manifest_dir: Optional[Path] = None
    task_defaults: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "EngineSettings":
        engine_cfg = (config or {}).get("engine", {}) or {}
        store_cfg = (config or {}).get("store", {}) or {}
        run_cfg = (config or {}).get("run", {}) or {}
        tasks_cfg = (config or {}).get("tasks", {}) or {}

        max_workers = engine_cfg.get("max_workers", 1)
        if isinstance(max_workers, bool) or not isinstance(max_workers, int) or max_workers < 1:
            raise InvalidSettingError(f"engine.max_workers must be an integer >= 1, got: {max_workers!r}")

        backend = store_cfg.get("backend", "filesystem")
        if backend not in SUPPORTED_BACKENDS:
            raise InvalidSettingError(
                f"store.backend must be one of {', '.join(SUPPORTED_BACKENDS)}, got: {backend!r}"
            )

        if not isinstance(tasks_cfg, dict):
            raise InvalidSettingError("tasks must be a mapping of task name -> parameter overrides")
        task_defaults: Dict[str, Dict[str, Any]] = {}
        for name, values in tasks_cfg.items():
            if values is None:
                continue
            if not isinstance(values, dict):
                raise InvalidSettingError(f"tasks.{name} must be a mapping of parameter -> value")
            task_defaults[str(name)] = dict(values)

        manifest_dir = run_cfg.get("manifest_dir")

        return cls(
            fail_fast=bool(engine_cfg.get("fail_fast", False)),
            max_workers=max_workers,
            store_backend=backend,
            store_root=Path(store_cfg.get("root", ".atlas/artifacts")),
            manifest_dir=Path(manifest_dir) if manifest_dir else None,
            task_defaults=task_defaults,
        )
