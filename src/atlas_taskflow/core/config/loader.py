"""
Loader canônico de configuração do Atlas TaskFlow.

Este módulo é responsável por carregar, validar estruturalmente e resolver
a configuração efetiva utilizada pelo engine.

A configuração é resolvida a partir de:
    - um arquivo de defaults (opcional nesta camada; obrigatório se informado)
    - um arquivo local de overrides (opcional; ignorado se ausente)
    - overrides em memória (ex.: vindos da CLI)

Precedência (maior vence):
    overrides em memória > arquivo local > defaults > DEFAULT_CONFIG

Princípios fundamentais:
    - Configuração é declarativa e explícita
    - Erros estruturais são tratados como falhas fatais
    - A mesma entrada sempre produz a mesma configuração final

Limites explícitos:
    - Não valida semântica de parâmetros de tasks (responsabilidade do builder)
    - Não persiste configuração ou hash
"""

from copy import deepcopy
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union
import json

import yaml  # PyYAML

from .errors import (
    ConfigFileNotFoundError,
    InvalidConfigRootTypeError,
    UnsupportedConfigFormatError,
)
from .merge import deep_merge


DEFAULT_CONFIG: Dict[str, Any] = {
    "engine": {
        "fail_fast": False,
        "max_workers": 1,
    },
    "store": {
        "backend": "filesystem",
        "root": ".atlas/artifacts",
    },
    "run": {
        "manifest_dir": None,
    },
    "tasks": {},
}


def _load_file(path: Path) -> Dict[str, Any]:
    """
    Carrega um arquivo de configuração e valida sua estrutura básica.

    Formatos suportados (v1):
        - YAML (.yaml, .yml)
        - JSON (.json)

    Arquivos vazios são interpretados como dicionários vazios.

    Raises:
        ConfigFileNotFoundError: Se o arquivo não existir.
        UnsupportedConfigFormatError: Se o formato do arquivo não for suportado.
        InvalidConfigRootTypeError: Se o conteúdo raiz não for um dicionário.
    """
    if not path.exists():
        raise ConfigFileNotFoundError(f"Arquivo de configuração não encontrado: {path}")

    suffix = path.suffix.lower()

    if suffix in {".yaml", ".yml"}:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)

    elif suffix == ".json":
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)

    else:
        raise UnsupportedConfigFormatError(f"Formato não suportado: {path.suffix}")

    if data is None:
        data = {}

    if not isinstance(data, dict):
        raise InvalidConfigRootTypeError(
            f"Config root deve ser dict, recebido: {type(data).__name__}"
        )

    return data


def load_config(
    *,
    defaults_path: Optional[Union[str, Path]] = None,
    local_path: Optional[Union[str, Path]] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Carrega e resolve a configuração efetiva do engine.

    Args:
        defaults_path: Caminho para o arquivo de configuração base. Quando
            informado, o arquivo deve existir.
        local_path: Caminho opcional para overrides locais; ignorado se ausente.
        overrides: Overrides em memória aplicados por último.

    Returns:
        Dict[str, Any]: Configuração final resolvida (sempre contém as seções
        de `DEFAULT_CONFIG`).

    Raises:
        ConfigFileNotFoundError: Se `defaults_path` for informado e não existir.
        UnsupportedConfigFormatError: Se o formato do arquivo não for suportado.
        InvalidConfigRootTypeError: Se o conteúdo não for um dicionário.
        ConfigTypeConflictError: Se ocorrer conflito estrutural durante o merge.
    """
    effective = deepcopy(DEFAULT_CONFIG)

    if defaults_path is not None:
        effective = deep_merge(effective, _load_file(Path(defaults_path)))

    if local_path is not None:
        local_file = Path(local_path)
        if local_file.exists():
            effective = deep_merge(effective, _load_file(local_file))

    if overrides:
        effective = deep_merge(effective, dict(overrides))

    return effective
