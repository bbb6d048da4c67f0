"""
Camada de configuração do Atlas TaskFlow.

Responsabilidades do pacote:
    - Carregamento de arquivos de configuração (defaults + local + overrides)
    - Resolução de configuração final via deep-merge determinístico
    - Leitura tipada dos settings do engine
    - Hashing canônico (configuração e Task Identity)

Princípios fundamentais:
    - Configuração não contém lógica de tasks
    - Overrides são sempre explícitos
    - A mesma entrada sempre produz a mesma configuração final
"""

from .errors import (
    ConfigError,
    ConfigFileNotFoundError,
    ConfigTypeConflictError,
    InvalidConfigRootTypeError,
    InvalidSettingError,
    UnsupportedConfigFormatError,
)
from .hashing import canonical_json, compute_config_hash, compute_identity_hash
from .loader import DEFAULT_CONFIG, load_config
from .merge import deep_merge
from .settings import EngineSettings

__all__ = [
    "ConfigError",
    "ConfigFileNotFoundError",
    "ConfigTypeConflictError",
    "InvalidConfigRootTypeError",
    "InvalidSettingError",
    "UnsupportedConfigFormatError",
    "canonical_json",
    "compute_config_hash",
    "compute_identity_hash",
    "DEFAULT_CONFIG",
    "load_config",
    "deep_merge",
    "EngineSettings",
]
