# src/atlas_txflow/core/engine/hooks.py
"""
Despachante de hooks transversais do pipeline.

Hooks são callbacks de efeito colateral (logging, métricas, auditoria)
executados em torno de uma execução completa do pipeline:

    - before: `hook(params)`            → antes do primeiro Step
    - after:  `hook(params, results)`   → somente em Success, após o commit
    - error:  `hook(params, reason)`    → somente em Failure

Decisões arquiteturais:
    - Hooks são imutáveis após a definição do pipeline (tuplas)
    - A ordem de registro é a ordem de execução
    - Exceções levantadas por hooks NÃO são capturadas: propagam para
      quem chamou `execute`. Hooks são código de observabilidade e sua
      falha deve ser visível.

Limites explícitos:
    - Hooks não alteram o Outcome
    - Hooks não participam da unidade atômica
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping, Tuple

BeforeHook = Callable[[Mapping], Any]
AfterHook = Callable[[Mapping, Mapping], Any]
ErrorHook = Callable[[Mapping, Any], Any]


def _checked(hook: Callable[..., Any], category: str) -> Callable[..., Any]:
    if not callable(hook):
        raise TypeError(f"{category} hook must be callable, got {type(hook).__name__}")
    return hook


@dataclass(frozen=True)
class HookDispatcher:
    """Três listas independentes de hooks, na ordem de registro."""

    before: Tuple[BeforeHook, ...] = ()
    after: Tuple[AfterHook, ...] = ()
    error: Tuple[ErrorHook, ...] = ()

    def with_before(self, hook: BeforeHook) -> "HookDispatcher":
        return HookDispatcher(self.before + (_checked(hook, "before"),), self.after, self.error)

    def with_after(self, hook: AfterHook) -> "HookDispatcher":
        return HookDispatcher(self.before, self.after + (_checked(hook, "after"),), self.error)

    def with_error(self, hook: ErrorHook) -> "HookDispatcher":
        return HookDispatcher(self.before, self.after, self.error + (_checked(hook, "error"),))

    def merged(self, other: "HookDispatcher") -> "HookDispatcher":
        return HookDispatcher(
            self.before + other.before,
            self.after + other.after,
            self.error + other.error,
        )

    def fire_before(self, params: Mapping) -> None:
        for hook in self.before:
            hook(params)

    def fire_after(self, params: Mapping, results: Mapping) -> None:
        for hook in self.after:
            hook(params, results)

    def fire_error(self, params: Mapping, reason: Any) -> None:
        for hook in self.error:
            hook(params, reason)
