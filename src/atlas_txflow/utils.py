# src/atlas_txflow/utils.py
"""Utilitários para leitura de contextos e Outcomes."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Dict, Iterable, Sequence

from atlas_txflow.core.pipeline.types import Failure, Outcome

_MISSING = object()


def get_in(context: Mapping, path: Sequence[Any], default: Any = None) -> Any:
    """
    Lê um valor aninhado do contexto (ou de qualquer mapeamento).

    Cada elemento de `path` é usado como chave em mapeamentos, índice em
    sequências ou nome de atributo nos demais objetos:

        get_in(ctx, ["create_order", "id"])
        get_in(ctx, ["params", "items", 0, "sku"])
    """
    current: Any = context
    for key in path:
        if isinstance(current, Mapping):
            current = current.get(key, _MISSING)
        elif isinstance(key, int) and isinstance(current, Sequence) and not isinstance(current, str):
            current = current[key] if -len(current) <= key < len(current) else _MISSING
        elif isinstance(key, str):
            current = getattr(current, key, _MISSING)
        else:
            current = _MISSING
        if current is _MISSING:
            return default
    return current


def merge_results(outcomes: Iterable[Outcome]) -> Dict[str, Any]:
    """Funde os resultados dos Outcomes bem-sucedidos; falhas são ignoradas."""
    merged: Dict[str, Any] = {}
    for outcome in outcomes:
        if outcome.ok:
            merged.update(outcome.results)
    return merged


def format_failure(outcome: Any) -> str:
    """Texto legível para um `Failure`; outros valores usam `repr`."""
    if isinstance(outcome, Failure):
        return f"Transaction failed at step: {outcome.step}\nError: {outcome.reason!r}\n"
    return repr(outcome)
