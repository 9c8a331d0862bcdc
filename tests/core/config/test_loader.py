# tests/core/config/test_loader.py
"""
Testes do carregador de configuração (load_config).

Os testes asseguram que:
- o arquivo defaults é obrigatório
- o arquivo local é opcional
- formatos não suportados são rejeitados
- estruturas inválidas são detectadas precocemente
- a configuração final é corretamente resolvida

Decisões arquiteturais:
    - Defaults representam a base canônica do Engine
    - Configuração local atua apenas como override explícito
    - Erros estruturais são tratados como falhas fatais

Limites explícitos:
    - Não valida EngineSettings (ver test_engine_settings)
    - Não valida hashing de configuração
"""

import json
from pathlib import Path

import pytest

from atlas_txflow.core.config.errors import (
    ConfigTypeConflictError,
    DefaultsNotFoundError,
    InvalidConfigRootTypeError,
    UnsupportedConfigFormatError,
)
from atlas_txflow.core.config.loader import load_config


def test_missing_defaults_raises(tmp_path: Path):
    """
    Verifica que a ausência do arquivo defaults é erro fatal.

    Invariantes:
        - a exceção é específica (`DefaultsNotFoundError`)
        - nenhuma configuração parcial é retornada
    """
    missing = tmp_path / "defaults.yaml"
    with pytest.raises(DefaultsNotFoundError):
        load_config(defaults_path=str(missing), local_path=None)


def test_missing_local_is_ok(tmp_path: Path, engine_config_defaults_yaml):
    defaults = tmp_path / "defaults.yaml"
    defaults.write_text(engine_config_defaults_yaml, encoding="utf-8")

    out = load_config(defaults_path=str(defaults), local_path=str(tmp_path / "local.yaml"))

    assert out["engine"]["timeout_seconds"] == 30
    assert out["engine"]["log_level"] == "INFO"


def test_load_defaults_and_local(tmp_path: Path, engine_config_defaults_yaml, engine_config_local_yaml):
    """
    Verifica o merge defaults + local.

    Invariantes:
        - overrides locais têm precedência
        - chaves não sobrescritas permanecem
        - listas são substituídas por inteiro
    """
    defaults = tmp_path / "defaults.yaml"
    local = tmp_path / "local.yaml"
    defaults.write_text(engine_config_defaults_yaml, encoding="utf-8")
    local.write_text(engine_config_local_yaml, encoding="utf-8")

    out = load_config(defaults_path=str(defaults), local_path=str(local))

    assert out["engine"]["timeout_seconds"] == 12.5
    assert out["engine"]["log_format"] == "json"
    assert out["engine"]["detached_workers"] == 4
    assert out["app"]["name"] == "loja"
    assert out["app"]["tags"] == ["orders"]


def test_json_defaults(tmp_path: Path):
    defaults = tmp_path / "defaults.json"
    defaults.write_text(json.dumps({"engine": {"timeout_seconds": 5}}), encoding="utf-8")

    out = load_config(defaults_path=str(defaults))
    assert out == {"engine": {"timeout_seconds": 5}}


def test_empty_file_is_empty_dict(tmp_path: Path):
    defaults = tmp_path / "defaults.yml"
    defaults.write_text("", encoding="utf-8")
    assert load_config(defaults_path=str(defaults)) == {}


def test_invalid_root_type_raises(tmp_path: Path):
    defaults = tmp_path / "defaults.yaml"
    defaults.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(InvalidConfigRootTypeError):
        load_config(defaults_path=str(defaults))


def test_unsupported_extension_raises(tmp_path: Path):
    defaults = tmp_path / "defaults.toml"
    defaults.write_text("x = 1\n", encoding="utf-8")
    with pytest.raises(UnsupportedConfigFormatError):
        load_config(defaults_path=str(defaults))


def test_type_conflict_in_local_raises(tmp_path: Path, engine_config_defaults_yaml):
    defaults = tmp_path / "defaults.yaml"
    local = tmp_path / "local.yaml"
    defaults.write_text(engine_config_defaults_yaml, encoding="utf-8")
    local.write_text("engine: fast\n", encoding="utf-8")

    with pytest.raises(ConfigTypeConflictError):
        load_config(defaults_path=str(defaults), local_path=str(local))
