"""
Hashing canônico do Atlas TxFlow.

Este módulo implementa a geração de hash determinístico usada para:
    - identificar a configuração efetiva do Engine
    - identificar a estrutura de um pipeline (fingerprint), registrada nos
      eventos de cada execução

Política de hashing (v1):
    - Serialização JSON canônica (chaves ordenadas, separadores compactos)
    - Codificação UTF-8
    - SHA-256

Invariantes:
    - Estruturas equivalentes produzem o mesmo hash
    - O valor gerado é sempre uma string hexadecimal de 64 caracteres
"""


import json
import hashlib
from typing import Any, Dict, Iterable


def compute_config_hash(config: Dict[str, Any]) -> str:
    """
    Gera um hash determinístico de um dicionário de configuração.

    Raises:
        TypeError: Se o objeto fornecido não for um dicionário.
    """

    if not isinstance(config, dict):
        raise TypeError(
            f"Config para hashing deve ser dict, recebido: {type(config).__name__}"
        )

    canonical_json = json.dumps(
        config,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )

    return hashlib.sha256(canonical_json.encode("utf-8")).hexdigest()


def compute_pipeline_fingerprint(description: Any, steps: Iterable[Any]) -> str:
    """
    Gera a identidade estrutural de um pipeline.

    Participam do fingerprint apenas dados estruturais: nome, kind,
    dependências e políticas de cada Step, na ordem de declaração.
    Funções e builders não participam (não são serializáveis de forma
    estável).
    """
    structure = {
        "description": description,
        "steps": [
            {
                "name": s.name,
                "kind": s.kind.value,
                "depends_on": list(s.depends_on),
                "on_error": s.on_error.value,
                "retry": s.retry,
                "detached": s.detached,
            }
            for s in steps
        ],
    }
    return compute_config_hash(structure)
