"""
Atlas TxFlow — Canonical Error Structures (v1)

Este módulo define o padrão canônico de erros do Atlas TxFlow.
Falhas de pipeline são artefatos do contrato operacional do sistema,
devendo ser:

- explícitas
- serializáveis
- rastreáveis
- acionáveis

Nenhuma decisão implícita é permitida.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional

from .exceptions import RetriesExhausted, StepFailure, TransactionTimeout


# ---------------------------------------------------------------------------
# Payload canônico
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TxFlowErrorPayload:
    """
    Payload canônico de erro do Atlas TxFlow.

    Campos:
    - type: código estável do erro (não é texto livre)
    - message: mensagem curta, humana e objetiva
    - details: dados estruturados relevantes para diagnóstico
    - hint: ação sugerida ao operador (onde corrigir)
    """

    type: str
    message: str
    details: Dict[str, Any]
    hint: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Retorna representação serializável do erro."""
        return asdict(self)


# ---------------------------------------------------------------------------
# Catálogo canônico de tipos de erro (v1)
# ---------------------------------------------------------------------------

STEP_FAILED = "STEP_FAILED"
STEP_RETRIES_EXHAUSTED = "STEP_RETRIES_EXHAUSTED"
TRANSACTION_TIMEOUT = "TRANSACTION_TIMEOUT"
ENGINE_EXECUTION_ERROR = "ENGINE_EXECUTION_ERROR"


# ---------------------------------------------------------------------------
# Helpers de fábrica
# ---------------------------------------------------------------------------

def step_failed(
    *,
    step: str,
    reason: Any,
    hint: str = "Inspecione o `reason` retornado pelo Step. Nenhum fallback é aplicado automaticamente.",
) -> TxFlowErrorPayload:
    return TxFlowErrorPayload(
        type=STEP_FAILED,
        message="Step retornou falha",
        details={"step": step, "reason": repr(reason)},
        hint=hint,
    )


def retries_exhausted(*, step: str, attempts: int, last_reason: Any) -> TxFlowErrorPayload:
    return TxFlowErrorPayload(
        type=STEP_RETRIES_EXHAUSTED,
        message="Step falhou em todas as tentativas",
        details={"step": step, "attempts": attempts, "last_reason": repr(last_reason)},
        hint="Verifique a causa da última tentativa ou aumente `retry` no Step.",
    )


def transaction_timeout(*, step: str, timeout: float) -> TxFlowErrorPayload:
    return TxFlowErrorPayload(
        type=TRANSACTION_TIMEOUT,
        message="Prazo da transação expirado",
        details={"step": step, "timeout": timeout},
        hint="Aumente `engine.timeout_seconds` ou reduza o trabalho por transação.",
    )


def engine_execution_error(*, step: str, exc: BaseException) -> TxFlowErrorPayload:
    return TxFlowErrorPayload(
        type=ENGINE_EXECUTION_ERROR,
        message=str(exc) or "Erro inesperado durante execução",
        details={
            "step": step,
            "exception_class": exc.__class__.__name__,
            **dict(getattr(exc, "details", {}) or {}),
        },
        hint=getattr(exc, "hint", None) or "Verifique o log técnico e a definição do pipeline",
    )


def error_payload_for(step: str, reason: Any) -> TxFlowErrorPayload:
    """Converte o `reason` de um Failure em TxFlowErrorPayload.

    Regras:
    - RetriesExhausted / TransactionTimeout: códigos dedicados.
    - Demais exceções: ENGINE_EXECUTION_ERROR, sem stack trace.
    - Qualquer outro valor (ex.: `Err("saldo insuficiente")`): STEP_FAILED.
    """
    if isinstance(reason, RetriesExhausted):
        return retries_exhausted(step=step, attempts=reason.attempts, last_reason=reason.last_reason)

    if isinstance(reason, TransactionTimeout):
        return transaction_timeout(step=step, timeout=reason.timeout)

    if isinstance(reason, StepFailure):
        return step_failed(step=step, reason=reason.reason)

    if isinstance(reason, BaseException):
        return engine_execution_error(step=step, exc=reason)

    return step_failed(step=step, reason=reason)
