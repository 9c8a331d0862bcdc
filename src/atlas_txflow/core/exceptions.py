"""
Atlas TxFlow — Canonical Exceptions (v1)

Este módulo define as exceções tipadas internas do Atlas TxFlow.

Objetivo:
- Permitir que Steps/Engine levantem exceções semânticas tipadas
- Facilitar o mapeamento determinístico para TxFlowErrorPayload
- Evitar ValueError/RuntimeError genéricos em guardrails críticos

Regras:
- Não contém lógica de domínio específica de aplicação.
- Exceções carregam apenas dados estruturados em `details`.
- Erros de montagem/resolução são fatais; erros de Step viram `Failure`.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class TxFlowException(Exception):
    """Base class para exceções internas do Atlas TxFlow.

    Importante:
    - Sempre carregar dados estruturados em `details`
    - Não embedar stack trace em payloads de erro
    - Mensagem deve ser curta e humana
    """

    def __init__(
        self,
        message: str,
        *,
        details: Optional[Dict[str, Any]] = None,
        hint: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = dict(details or {})
        self.hint = hint

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Montagem / Configuração
# ---------------------------------------------------------------------------

class InvalidStepError(TxFlowException, ValueError):
    """Descriptor de Step estruturalmente inválido (nome, action, política)."""


class TxFlowConfigurationError(TxFlowException):
    """Configuração ausente ou inconsistente para execução (ex.: sem resource)."""


# ---------------------------------------------------------------------------
# Execução de Steps
# ---------------------------------------------------------------------------

class StepFailure(TxFlowException):
    """Falha de um Step durante a execução.

    Pode ser levantada diretamente pela action de um Step para falhar com um
    `reason` explícito; o Engine desembrulha o `reason` ao montar o `Failure`.
    """

    def __init__(self, step: str, reason: Any, *, hint: Optional[str] = None) -> None:
        super().__init__(
            f"Step '{step}' failed: {reason!r}",
            details={"step": step, "reason": repr(reason)},
            hint=hint,
        )
        self.step = step
        self.reason = reason


class RetriesExhausted(StepFailure):
    """Todas as tentativas de um Step com `retry` falharam."""

    def __init__(self, step: str, attempts: int, last_reason: Any) -> None:
        super().__init__(
            step,
            last_reason,
            hint="Verifique a causa da última tentativa ou aumente `retry` no Step.",
        )
        self.message = f"Step '{step}' failed after {attempts} attempts: {last_reason!r}"
        self.details["attempts"] = attempts
        self.attempts = attempts
        self.last_reason = last_reason


class AsyncStepError(TxFlowException):
    """Falha de um Step destacado (fire-and-forget). Nunca chega ao Outcome."""

    def __init__(self, step: str, cause: BaseException) -> None:
        super().__init__(
            f"Detached step '{step}' failed: {cause!r}",
            details={"step": step, "exception_class": cause.__class__.__name__},
        )
        self.step = step
        self.cause = cause


class TransactionTimeout(TxFlowException):
    """O prazo da unidade atômica expirou antes de uma operação."""

    def __init__(self, timeout: float, operation: str) -> None:
        super().__init__(
            f"Transaction timed out after {timeout}s before operation '{operation}'",
            details={"timeout": timeout, "operation": operation},
            hint="Aumente `engine.timeout_seconds` ou reduza o trabalho por transação.",
        )
        self.timeout = timeout
        self.operation = operation
