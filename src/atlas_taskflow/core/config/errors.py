"""
Exceções canônicas da camada de configuração do Atlas TaskFlow.

As exceções aqui definidas representam violações estruturais da
configuração do engine (arquivos, merge e settings), e não erros de
definição de tasks ou de execução de nós.

Invariantes:
    - Todas as exceções de configuração herdam de `ConfigError`
    - Nenhuma exceção representa erro de execução de task

Limites explícitos:
    - Não executa grafo
    - Não realiza fallback ou recovery
"""


class ConfigError(Exception):
    """
    Exceção base para erros relacionados à configuração do Atlas TaskFlow.

    Todas as exceções levantadas durante carregamento, merge e leitura
    de settings devem herdar desta classe.
    """


class ConfigFileNotFoundError(ConfigError):
    """
    Exceção levantada quando um arquivo de configuração explicitamente
    informado não existe.

    Decisões arquiteturais:
        - Um caminho informado explicitamente é obrigatório
        - Nenhum arquivo é criado ou inferido automaticamente
    """


class UnsupportedConfigFormatError(ConfigError):
    """
    Exceção levantada quando o formato do arquivo de configuração
    não é suportado pelo loader.

    Formatos suportados (v1):
        - YAML (.yaml, .yml)
        - JSON (.json)
    """


class InvalidConfigRootTypeError(ConfigError):
    """
    Exceção levantada quando o conteúdo raiz da configuração
    não é um dicionário (`dict`).
    """


class ConfigTypeConflictError(ConfigError):
    """
    Exceção levantada quando ocorre conflito de tipos durante o deep-merge.

    Exemplo de conflito:
        - base:     {"engine": {"max_workers": 2}}
        - override: {"engine": "parallel"}

    Invariantes:
        - Nenhum merge parcial é produzido em caso de conflito
    """


class InvalidSettingError(ConfigError):
    """
    Exceção levantada quando um valor de configuração é estruturalmente
    válido mas semanticamente inaceitável para o engine
    (ex.: `engine.max_workers: 0`, `store.backend: s3`).
    """
