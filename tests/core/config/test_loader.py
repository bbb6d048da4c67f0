# tests/core/config/test_loader.py
"""
Testes do carregador de configuração (load_config).

Os testes asseguram que:
- um arquivo defaults informado explicitamente é obrigatório
- o arquivo local é opcional
- overrides em memória vencem arquivos
- formatos não suportados e raízes inválidas são rejeitados
- a configuração final sempre contém as seções de DEFAULT_CONFIG

Invariantes:
    - A configuração final é sempre um dicionário
    - Nenhuma configuração parcial é retornada em caso de erro

Limites explícitos:
    - Não valida hashing de configuração
    - Não valida semântica de parâmetros de tasks
"""

from pathlib import Path

import pytest

try:
    from atlas_taskflow.core.config.loader import DEFAULT_CONFIG, load_config
    from atlas_taskflow.core.config.errors import (
        ConfigFileNotFoundError,
        InvalidConfigRootTypeError,
        UnsupportedConfigFormatError,
    )
except Exception as e:  # noqa: BLE001
    load_config = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    if load_config is None:
        pytest.fail(
            "Config loader not available. Expected module "
            f"atlas_taskflow.core.config.loader with load_config(). Import error: {_IMPORT_ERR}"
        )


def test_no_files_returns_default_config():
    _require_imports()

    out = load_config()
    assert out == DEFAULT_CONFIG
    assert out is not DEFAULT_CONFIG


def test_missing_defaults_raises(tmp_path: Path):
    _require_imports()

    missing = tmp_path / "taskflow.defaults.yaml"
    with pytest.raises(ConfigFileNotFoundError):
        load_config(defaults_path=str(missing))


def test_missing_local_is_ok(tmp_path: Path, project_like_config_defaults_yaml):
    _require_imports()

    defaults = tmp_path / "taskflow.defaults.yaml"
    defaults.write_text(project_like_config_defaults_yaml, encoding="utf-8")

    out = load_config(defaults_path=defaults, local_path=tmp_path / "taskflow.local.yaml")
    assert out["store"]["backend"] == "memory"
    assert out["tasks"]["prepare"] == {"seed": 7}


def test_load_defaults_and_local(tmp_path: Path, project_like_config_defaults_yaml, project_like_config_local_yaml):
    """Local sobrescreve defaults chave a chave (deep-merge)."""
    _require_imports()

    defaults = tmp_path / "taskflow.defaults.yaml"
    local = tmp_path / "taskflow.local.yaml"
    defaults.write_text(project_like_config_defaults_yaml, encoding="utf-8")
    local.write_text(project_like_config_local_yaml, encoding="utf-8")

    out = load_config(defaults_path=defaults, local_path=local)
    assert out["engine"] == {"fail_fast": False, "max_workers": 4}
    assert out["tasks"] == {"prepare": {"seed": 7}, "train": {"lr": 0.5}}
    # seção herdada de DEFAULT_CONFIG
    assert out["run"] == {"manifest_dir": None}


def test_overrides_win_over_files(tmp_path: Path, project_like_config_defaults_yaml):
    _require_imports()

    defaults = tmp_path / "taskflow.defaults.yaml"
    defaults.write_text(project_like_config_defaults_yaml, encoding="utf-8")

    out = load_config(
        defaults_path=defaults,
        overrides={"store": {"backend": "filesystem", "root": str(tmp_path / "artifacts")}},
    )
    assert out["store"] == {"backend": "filesystem", "root": str(tmp_path / "artifacts")}


def test_json_is_supported(tmp_path: Path):
    _require_imports()

    cfg = tmp_path / "taskflow.json"
    cfg.write_text('{"engine": {"fail_fast": true}}', encoding="utf-8")

    out = load_config(defaults_path=cfg)
    assert out["engine"]["fail_fast"] is True
    assert out["engine"]["max_workers"] == 1


def test_empty_yaml_is_empty_mapping(tmp_path: Path):
    _require_imports()

    cfg = tmp_path / "empty.yaml"
    cfg.write_text("", encoding="utf-8")
    assert load_config(defaults_path=cfg) == DEFAULT_CONFIG


def test_invalid_root_type_raises(tmp_path: Path):
    _require_imports()

    defaults = tmp_path / "taskflow.defaults.yaml"
    defaults.write_text("- a\n- b\n", encoding="utf-8")

    with pytest.raises(InvalidConfigRootTypeError):
        load_config(defaults_path=defaults)


def test_unsupported_extension_raises(tmp_path: Path):
    _require_imports()

    defaults = tmp_path / "taskflow.defaults.toml"
    defaults.write_text("engine = 1\n", encoding="utf-8")

    with pytest.raises(UnsupportedConfigFormatError):
        load_config(defaults_path=defaults)
