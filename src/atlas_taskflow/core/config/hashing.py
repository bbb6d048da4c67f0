"""
Hashing canônico do Atlas TaskFlow.

Este módulo implementa a serialização JSON canônica e o hash SHA-256
usados em dois pontos do engine:
    - identidade de configuração efetiva (rastreabilidade da run)
    - chave de cache de uma Task Identity (nome da task + parâmetros)

Política de hashing (v1):
    - Serialização JSON canônica (chaves ordenadas, separadores compactos)
    - Codificação UTF-8
    - Algoritmo SHA-256

Invariantes:
    - Estruturas equivalentes produzem o mesmo hash
    - O valor gerado é sempre uma string hexadecimal de 64 caracteres
"""

import hashlib
import json
from typing import Any, Dict, Mapping


def canonical_json(document: Any) -> str:
    """Serializa `document` em JSON canônico (ordenado, compacto, UTF-8)."""
    return json.dumps(
        document,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    )


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def compute_config_hash(config: Dict[str, Any]) -> str:
    """
    Gera um hash determinístico da configuração efetiva do engine.

    Raises:
        TypeError: Se o objeto fornecido não for um dicionário.
    """
    if not isinstance(config, dict):
        raise TypeError(
            f"Config para hashing deve ser dict, recebido: {type(config).__name__}"
        )
    return sha256_hex(canonical_json(config).encode("utf-8"))


def compute_identity_hash(task_name: str, params: Mapping[str, Any]) -> str:
    """
    Gera o hash canônico de uma Task Identity.

    O documento hasheado é `{"task": <nome>, "params": {...}}`; a ordem
    original dos parâmetros é irrelevante.

    Raises:
        ValueError: Se algum valor não for serializável de forma canônica
            (ex.: NaN/infinito).
    """
    document = {"task": task_name, "params": dict(params)}
    return sha256_hex(canonical_json(document).encode("utf-8"))
