# src/atlas_txflow/core/engine/detached.py
"""
Execução de Steps destacados (fire-and-forget).

Um Step `detached=True` é submetido a um runner quando alcançado e o
pipeline segue imediatamente. A tarefa:
    - não participa da unidade atômica (não é revertida)
    - não é aguardada, cancelada nem reexecutada
    - tem sua falha apenas registrada em log (`AsyncStepError`)

O handle devolvido pelo runner é registrado no contexto sob o nome do
Step, o que permite a testes (ou a quem chamou) aguardar a tarefa.
"""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Optional, Protocol, runtime_checkable

import structlog

from atlas_txflow.core.exceptions import AsyncStepError

logger = structlog.get_logger(__name__)


@runtime_checkable
class DetachedRunner(Protocol):
    def submit(self, step: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        ...


class ThreadDetachedRunner:
    """Runner padrão sobre `ThreadPoolExecutor`; criado sob demanda."""

    def __init__(self, max_workers: int = 4) -> None:
        self.max_workers = max_workers
        self._executor: Optional[ThreadPoolExecutor] = None

    def _pool(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self.max_workers,
                thread_name_prefix="atlas-txflow-detached",
            )
        return self._executor

    def submit(self, step: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        future = self._pool().submit(fn, *args, **kwargs)
        future.add_done_callback(lambda f: _log_failure(step, f))
        return future

    def shutdown(self, wait: bool = True) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None


def _log_failure(step: str, future: Future) -> None:
    if future.cancelled():
        return
    exc = future.exception()
    if exc is None:
        return
    error = AsyncStepError(step, exc)
    logger.error(
        "Detached step failed",
        step=step,
        error=error.message,
        exception_class=exc.__class__.__name__,
    )
