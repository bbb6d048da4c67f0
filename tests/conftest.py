# tests/conftest.py
"""
Fixtures compartilhados para testes do Atlas TaskFlow.

Este módulo define fixtures reutilizáveis que fornecem:
- configurações mínimas e determinísticas (YAML como string)
- contexto de execução controlado (RunContext)
- Artifact Store em memória
- uma fábrica de tasks que contabiliza execuções

O objetivo destas fixtures é permitir testes do core
(config, task, engine e traceability) sem depender de:
- filesystem (exceto quando o teste pede `tmp_path`)
- variáveis de ambiente
- notebooks ou adapters de UI

Decisões arquiteturais:
    - Fixtures são mantidas simples e explícitas
    - `run_id` e `created_at` fixos garantem determinismo
    - Tasks de teste são TaskDef reais, não dublês

Invariantes:
    - Nenhuma fixture executa uma run
    - Cada teste recebe store e contadores isolados

Limites explícitos:
    - Não substituir testes de integração
    - Não conter lógica condicional complexa
"""

import importlib
from collections import Counter
from datetime import datetime, timezone
from pathlib import Path

import pytest


FIXTURES_DIR = Path(__file__).parent / "fixtures"


# =====================================================
# Config fixtures
# =====================================================

@pytest.fixture
def project_like_config_defaults_yaml() -> str:
    """
    YAML de configuração base semelhante ao uso real do projeto.

    Representa o conteúdo típico de um `taskflow.defaults.yaml`, servindo
    como base sobre a qual configurações locais são aplicadas via deep-merge.
    """
    return """\
engine:
  fail_fast: false
  max_workers: 1
store:
  backend: memory
tasks:
  prepare:
    seed: 7
"""


@pytest.fixture
def project_like_config_local_yaml() -> str:
    """YAML de overrides locais (apenas chaves alteradas)."""
    return """\
engine:
  max_workers: 4
tasks:
  train:
    lr: 0.5
"""


# =====================================================
# Run fixtures
# =====================================================

@pytest.fixture
def dummy_config() -> dict:
    return {
        "engine": {"fail_fast": False, "max_workers": 1},
        "store": {"backend": "memory"},
    }


@pytest.fixture
def dummy_ctx(dummy_config):
    """
    RunContext determinístico para testes.

    Decisões arquiteturais:
        - O import é lazy para que falhas de import apareçam no teste
        - `run_id` e `created_at` são fixos

    Returns:
        RunContext: contexto isolado e previsível.
    """
    from atlas_taskflow.core.task.context import RunContext

    return RunContext(
        run_id="run-test-001",
        created_at=datetime(2026, 1, 16, 0, 0, 0, tzinfo=timezone.utc),
        config=dummy_config,
        meta={"source": "pytest"},
    )


@pytest.fixture
def memory_store():
    from atlas_taskflow.persistence.artifact_store import InMemoryArtifactStore

    return InMemoryArtifactStore()


@pytest.fixture
def calls() -> Counter:
    """Contador `nome da task -> número de execuções de run()`."""
    return Counter()


@pytest.fixture
def make_task(calls):
    """
    Fábrica de TaskDef que contabiliza execuções em `calls`.

    `make_task(name, params=..., requires=..., inherits=..., value=fn)`
    cria uma task cujo `run` incrementa `calls[name]` e salva
    `value(ctx)`; sem `value`, salva `{"task": name, "params": ..., "inputs": ...}`
    com os inputs já carregados.

    Usado por:
        - testes do engine (idempotência, isolamento, falhas)
        - testes de invalidação e preview
    """
    from atlas_taskflow.core.task.task import TaskDef

    def _load_inputs(inputs):
        if inputs is None:
            return None
        if isinstance(inputs, dict):
            return {k: v.load() for k, v in inputs.items()}
        if isinstance(inputs, (list, tuple)):
            return [v.load() for v in inputs]
        return inputs.load()

    def _factory(name, *, params=(), requires=None, inherits=(), value=None):
        def _run(ctx):
            calls[name] += 1
            if value is not None:
                ctx.save(value(ctx))
            else:
                ctx.save(
                    {
                        "task": name,
                        "params": dict(ctx.params),
                        "inputs": _load_inputs(ctx.inputs),
                    }
                )

        return TaskDef(
            name=name,
            run=_run,
            params=tuple(params),
            requires=requires,
            inherits=tuple(inherits),
        )

    return _factory


@pytest.fixture
def fixture_tasks(monkeypatch):
    """
    Módulo `taskflow_tasks` (tests/fixtures) importável como alvo da CLI.

    O diretório de fixtures é adicionado ao sys.path apenas durante o teste.
    """
    monkeypatch.syspath_prepend(str(FIXTURES_DIR))
    return importlib.import_module("taskflow_tasks")
