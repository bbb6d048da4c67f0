"""
CLI do Atlas TaskFlow (`atlas-taskflow`).

Comandos:
    preview TARGET      → dry-run do grafo (nada é executado)
    run TARGET          → executa o grafo
    invalidate TARGET   → remove artefatos (opcionalmente em cascade)
    output TARGET       → imprime o valor persistido do nó terminal

TARGET tem o formato `modulo:atributo` e deve resolver para um `TaskDef`
(ou uma instância de task). Opções comuns:
    --param/-p nome=valor   (repetível; convertido pelo tipo declarado)
    --config/-c PATH        (YAML/JSON)
    --store PATH            (força backend filesystem nesse diretório)

Códigos de saída:
    0 → sucesso
    1 → algum nó falhou / artefato ausente
    2 → erro de configuração ou de grafo
"""

from __future__ import annotations

import contextlib
import importlib
import json
import sys
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

import typer

from atlas_taskflow import driver
from atlas_taskflow.core.config import ConfigError, load_config
from atlas_taskflow.core.exceptions import (
    ConfigurationError,
    CyclicDependencyError,
    NotFoundError,
    StoreIOError,
    TaskflowException,
)
from atlas_taskflow.core.task.task import TaskDef, TaskInstance

app = typer.Typer(help="atlas-taskflow: task graph orchestration with cached artifacts")

EXIT_NODE_FAILURE = 1
EXIT_CONFIG_ERROR = 2


# -----------------------------
# helpers
# -----------------------------

def _echo_error(exc: BaseException) -> None:
    typer.echo(f"error: {exc}", err=True)
    hint = getattr(exc, "hint", None)
    if hint:
        typer.echo(f"hint: {hint}", err=True)


@contextlib.contextmanager
def _handle_errors() -> Iterator[None]:
    try:
        yield
    except (ConfigurationError, CyclicDependencyError, ConfigError) as exc:
        _echo_error(exc)
        raise typer.Exit(EXIT_CONFIG_ERROR)
    except (NotFoundError, StoreIOError) as exc:
        _echo_error(exc)
        raise typer.Exit(EXIT_NODE_FAILURE)
    except TaskflowException as exc:
        _echo_error(exc)
        raise typer.Exit(EXIT_NODE_FAILURE)


def _import_target(target: str, app_dir: Path) -> Any:
    module_name, sep, attr_path = target.partition(":")
    if not sep or not module_name or not attr_path:
        raise ConfigurationError(
            f"Invalid target {target!r}",
            details={"target": target},
            hint="Use o formato modulo:atributo, ex.: pipelines.train:evaluate",
        )

    saved_path = list(sys.path)
    sys.path.insert(0, str(app_dir.resolve()))
    try:
        obj: Any = importlib.import_module(module_name)
    except ImportError as exc:
        raise ConfigurationError(
            f"Cannot import module {module_name!r}: {exc}",
            details={"target": target},
        ) from exc
    finally:
        sys.path[:] = saved_path
    for attr in attr_path.split("."):
        try:
            obj = getattr(obj, attr)
        except AttributeError:
            raise ConfigurationError(
                f"Module {module_name!r} has no attribute {attr_path!r}",
                details={"target": target},
            ) from None
    if not isinstance(obj, (TaskDef, TaskInstance)):
        raise ConfigurationError(
            f"Target {target!r} is not a task definition (got {type(obj).__name__})",
            details={"target": target},
        )
    return obj


def _parse_assignments(values: Optional[List[str]]) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for item in values or []:
        name, sep, value = item.partition("=")
        if not sep or not name.strip():
            raise ConfigurationError(
                f"Invalid --param {item!r}",
                details={"param": item},
                hint="Use --param nome=valor",
            )
        out[name.strip()] = value
    return out


def _instance(target: str, params: Optional[List[str]], app_dir: Path) -> TaskInstance:
    obj = _import_target(target, app_dir)
    definition = obj if isinstance(obj, TaskDef) else obj.definition
    base = {} if isinstance(obj, TaskDef) else {k: obj.values[k] for k in obj.explicit}

    texts = _parse_assignments(params)
    parsed = definition.resolve(texts, parse=True)
    base.update({name: parsed[name] for name in texts})
    return definition.instantiate(base)


def _config(config: Optional[Path], store: Optional[Path]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if store is not None:
        overrides["store"] = {"backend": "filesystem", "root": str(store)}
    return load_config(defaults_path=config, overrides=overrides)


def _dump(payload: Any) -> str:
    return json.dumps(payload, ensure_ascii=False, indent=2, default=str)


# -----------------------------
# commands
# -----------------------------

_TARGET = typer.Argument(..., help="Task alvo no formato modulo:atributo")
_PARAM = typer.Option(None, "--param", "-p", help="nome=valor (repetível)")
_CONFIG = typer.Option(None, "--config", "-c", help="Arquivo de configuração YAML/JSON")
_STORE = typer.Option(None, "--store", help="Diretório do Artifact Store (filesystem)")
_APP_DIR = typer.Option(Path("."), "--app-dir", help="Diretório adicionado ao sys.path para importar TARGET")


@app.command()
def preview(
    target: str = _TARGET,
    param: Optional[List[str]] = _PARAM,
    config: Optional[Path] = _CONFIG,
    store: Optional[Path] = _STORE,
    force: Optional[List[str]] = typer.Option(None, "--force", "-f", help="Nome/chave de task a forçar (repetível)"),
    as_json: bool = typer.Option(False, "--json", help="Saída em JSON"),
    app_dir: Path = _APP_DIR,
):
    """Mostra o grafo, os parâmetros efetivos e o que seria executado."""
    with _handle_errors():
        task = _instance(target, param, app_dir)
        report = driver.preview(task, config=_config(config, store), forced=force or None)
    typer.echo(_dump(report.to_dict()) if as_json else report.render_text())


@app.command()
def run(
    target: str = _TARGET,
    param: Optional[List[str]] = _PARAM,
    config: Optional[Path] = _CONFIG,
    store: Optional[Path] = _STORE,
    force: Optional[List[str]] = typer.Option(None, "--force", "-f", help="Nome/chave de task a forçar (repetível)"),
    fail_fast: Optional[bool] = typer.Option(None, "--fail-fast/--keep-going", help="Política de falha"),
    workers: Optional[int] = typer.Option(None, "--workers", "-w", min=1, help="Execução paralela de ramos independentes"),
    as_json: bool = typer.Option(False, "--json", help="Saída em JSON"),
    app_dir: Path = _APP_DIR,
):
    """Executa a task e suas dependências desatualizadas."""
    with _handle_errors():
        task = _instance(target, param, app_dir)
        result = driver.run(
            task,
            config=_config(config, store),
            forced=force or None,
            fail_fast=fail_fast,
            max_workers=workers,
        )
    typer.echo(_dump(result.to_dict()) if as_json else result.summary())
    if not result.ok:
        raise typer.Exit(EXIT_NODE_FAILURE)


@app.command()
def invalidate(
    target: str = _TARGET,
    param: Optional[List[str]] = _PARAM,
    config: Optional[Path] = _CONFIG,
    store: Optional[Path] = _STORE,
    cascade: bool = typer.Option(False, "--cascade", help="Remove também os dependentes"),
    node: Optional[str] = typer.Option(None, "--node", help="Nome/chave de um nó do grafo de TARGET"),
    app_dir: Path = _APP_DIR,
):
    """Remove o artefato da task (e, com --cascade, dos dependentes)."""
    with _handle_errors():
        task = _instance(target, param, app_dir)
        removed = driver.invalidate(task, config=_config(config, store), cascade=cascade, target=node)
    if not removed:
        typer.echo("nothing to invalidate")
        return
    for identity in removed:
        typer.echo(f"invalidated {identity.key}  {identity}")


@app.command()
def output(
    target: str = _TARGET,
    param: Optional[List[str]] = _PARAM,
    config: Optional[Path] = _CONFIG,
    store: Optional[Path] = _STORE,
    app_dir: Path = _APP_DIR,
):
    """Imprime o valor persistido da task (JSON quando possível)."""
    with _handle_errors():
        task = _instance(target, param, app_dir)
        value = driver.output(task, config=_config(config, store)).load()
    try:
        typer.echo(json.dumps(value, ensure_ascii=False, indent=2))
    except (TypeError, ValueError):
        typer.echo(repr(value))


def main() -> None:  # pragma: no cover
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
