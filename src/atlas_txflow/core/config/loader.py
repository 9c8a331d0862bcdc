# src/atlas_txflow/core/config/loader.py
"""
Loader canônico de configuração do Atlas TxFlow.

Este módulo é responsável por carregar, validar estruturalmente e resolver
a configuração efetiva utilizada pelo Engine do Atlas TxFlow.

A configuração é resolvida a partir de:
    - um arquivo de defaults (obrigatório)
    - um arquivo local de overrides (opcional)

Responsabilidades do módulo:
    - Carregar arquivos de configuração em YAML ou JSON
    - Validar requisitos estruturais mínimos (tipo raiz)
    - Resolver a configuração final via deep-merge determinístico
    - Traduzir a seção `engine` em `EngineSettings` tipado

Princípios fundamentais:
    - Configuração é declarativa e explícita
    - Nenhuma heurística implícita é aplicada
    - Erros estruturais são tratados como falhas fatais
    - A mesma entrada sempre produz a mesma configuração final

Invariantes:
    - O arquivo de defaults é obrigatório
    - O resultado de `load_config` é sempre um dicionário puro (`dict`)
    - Overrides nunca mutam os defaults

Limites explícitos:
    - Não executa pipelines
    - Não abre transações

Exemplo de arquivo:

    engine:
      timeout_seconds: 15
      retry_delay_seconds: 0.5
      detached_workers: 2
      log_level: DEBUG
      log_format: json
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional
import json

import yaml  # PyYAML

from .merge import deep_merge
from .hashing import compute_config_hash
from .errors import (
    DefaultsNotFoundError,
    InvalidConfigRootTypeError,
    InvalidEngineSettingsError,
    UnsupportedConfigFormatError,
)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("console", "json")


def _load_file(path: Path) -> Dict[str, Any]:
    """
    Carrega um arquivo de configuração e valida sua estrutura básica.

    Formatos suportados (v1):
        - YAML (.yaml, .yml)
        - JSON (.json)

    Decisões arquiteturais:
        - O arquivo deve existir no momento do carregamento
        - O conteúdo raiz deve ser um dicionário (`dict`)
        - Arquivos vazios são interpretados como dicionários vazios

    Raises:
        DefaultsNotFoundError: Se o arquivo não existir.
        UnsupportedConfigFormatError: Se o formato do arquivo não for suportado.
        InvalidConfigRootTypeError: Se o conteúdo raiz não for um dicionário.
    """
    if not path.exists():
        raise DefaultsNotFoundError(f"Arquivo de configuração não encontrado: {path}")

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
    defaults_path: str,
    local_path: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Carrega e resolve a configuração efetiva do Engine.

    Política de resolução:
        - O arquivo de defaults é obrigatório
        - O arquivo local é opcional (ignorado se não existir)
        - Quando presente, o local sempre tem prioridade sobre defaults
        - A resolução utiliza `deep_merge` com política determinística

    Args:
        defaults_path (str): Caminho para o arquivo de configuração base.
        local_path (Optional[str]): Caminho opcional para overrides locais.

    Returns:
        Dict[str, Any]: Configuração final resolvida.

    Raises:
        DefaultsNotFoundError: Se o arquivo de defaults não existir.
        UnsupportedConfigFormatError: Se o formato do arquivo não for suportado.
        InvalidConfigRootTypeError: Se o conteúdo não for um dicionário.
        ConfigTypeConflictError: Se ocorrer conflito estrutural durante o merge.
    """

    defaults = _load_file(Path(defaults_path))

    effective = defaults

    if local_path is not None:
        local_file = Path(local_path)
        if local_file.exists():
            local = _load_file(local_file)
            effective = deep_merge(defaults, local)

    return effective


@dataclass(frozen=True)
class EngineSettings:
    """
    Configuração tipada do Engine (seção `engine`).

    Campos:
        - timeout_seconds: prazo da unidade atômica repassado ao resource
        - retry_delay_seconds: pausa padrão entre tentativas de Steps com retry
        - detached_workers: tamanho do pool de tarefas destacadas
        - log_level / log_format: parâmetros de `configure_logging`
        - config_hash: hash canônico da configuração de origem (rastreabilidade)
    """

    timeout_seconds: float = 30.0
    retry_delay_seconds: float = 0.0
    detached_workers: int = 4
    log_level: str = "INFO"
    log_format: str = "console"
    config_hash: Optional[str] = None

    def __post_init__(self) -> None:
        _require_number("timeout_seconds", self.timeout_seconds, minimum=0, strict=True)
        _require_number("retry_delay_seconds", self.retry_delay_seconds, minimum=0)

        if isinstance(self.detached_workers, bool) or not isinstance(self.detached_workers, int):
            raise InvalidEngineSettingsError("engine.detached_workers deve ser inteiro")
        if self.detached_workers < 1:
            raise InvalidEngineSettingsError("engine.detached_workers deve ser >= 1")

        if not isinstance(self.log_level, str) or self.log_level.upper() not in LOG_LEVELS:
            raise InvalidEngineSettingsError(
                f"engine.log_level inválido: {self.log_level!r} (esperado um de {LOG_LEVELS})"
            )
        object.__setattr__(self, "log_level", self.log_level.upper())

        if self.log_format not in LOG_FORMATS:
            raise InvalidEngineSettingsError(
                f"engine.log_format inválido: {self.log_format!r} (esperado um de {LOG_FORMATS})"
            )

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "EngineSettings":
        """
        Constrói EngineSettings a partir da configuração resolvida.

        Chaves ausentes assumem o valor padrão; chaves desconhecidas na
        seção `engine` são rejeitadas.
        """
        if not isinstance(config, Mapping):
            raise InvalidConfigRootTypeError(
                f"Config root deve ser dict, recebido: {type(config).__name__}"
            )

        section = config.get("engine") or {}
        if not isinstance(section, Mapping):
            raise InvalidEngineSettingsError(
                f"Seção 'engine' deve ser dict, recebido: {type(section).__name__}"
            )

        known = {"timeout_seconds", "retry_delay_seconds", "detached_workers", "log_level", "log_format"}
        unknown = sorted(set(section) - known)
        if unknown:
            raise InvalidEngineSettingsError(
                f"Chaves desconhecidas em 'engine': {', '.join(unknown)}"
            )

        return cls(config_hash=compute_config_hash(dict(config)), **section)


def _require_number(key: str, value: Any, *, minimum: float, strict: bool = False) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidEngineSettingsError(f"engine.{key} deve ser numérico")
    if value < minimum or (strict and value == minimum):
        op = ">" if strict else ">="
        raise InvalidEngineSettingsError(f"engine.{key} deve ser {op} {minimum}")


def load_settings(
    *,
    defaults_path: str,
    local_path: Optional[str] = None,
) -> EngineSettings:
    """Atalho: `load_config` + `EngineSettings.from_config`."""
    return EngineSettings.from_config(
        load_config(defaults_path=defaults_path, local_path=local_path)
    )
