# src/atlas_txflow/core/engine/engine.py
"""
Engine de execução do pipeline transacional do Atlas TxFlow.

O Engine coordena uma execução completa:

    1. resolve a ordem dos Steps (`pipeline.plan()`); erros estruturais
       são levantados aqui, antes de qualquer hook ou transação
    2. semeia o `ExecutionContext` com `params`
    3. dispara os hooks `before`
    4. abre uma unidade atômica no resource e adiciona uma operação por
       Step, na ordem resolvida
    5. confirma a unidade (`commit`), que executa as operações em ordem
    6. converte `Committed` → `Success` e `Aborted` → `Failure`
    7. dispara os hooks `after` (sucesso) ou `error` (falha)

Dentro de cada operação, o Engine aplica as políticas do Step:
    - retry: até `retry` tentativas, com pausa `retry_delay` entre elas;
      ao esgotar, o motivo é `RetriesExhausted`
    - isolamento: Steps com retry ou `on_error=continue` executam cada
      tentativa em `repo.savepoint()`, sem deixar escritas parciais
    - continue: a falha vira `Placeholder(reason)` no contexto e o
      pipeline segue
    - abort: a falha interrompe a unidade, que é revertida por completo
    - detached: a função é submetida ao runner de tarefas destacadas e o
      handle é registrado

Decisões arquiteturais:
    - Exceções levantadas por actions viram motivo de falha; nunca
      escapam de `execute`
    - `StepFailure` levantada por uma action é desembrulhada para o seu
      `reason`
    - Exceções de hooks propagam para quem chamou `execute`
    - O resource é recebido por chamada e nunca armazenado no Engine

Limites explícitos:
    - Não implementa atomicidade própria (delegada ao resource)
    - Não aguarda Steps destacados
"""

from __future__ import annotations

import time
import uuid
from typing import Any, Callable, Mapping, Optional, Tuple

import structlog

from atlas_txflow.core.config.loader import EngineSettings
from atlas_txflow.core.exceptions import RetriesExhausted, StepFailure, TxFlowConfigurationError
from atlas_txflow.core.pipeline.context import ExecutionContext
from atlas_txflow.core.pipeline.definition import Pipeline
from atlas_txflow.core.pipeline.step import StepDescriptor
from atlas_txflow.core.pipeline.types import (
    BULK_KINDS,
    BulkResult,
    Err,
    Failure,
    Ok,
    OnError,
    Outcome,
    Placeholder,
    StepKind,
    Success,
)
from atlas_txflow.core.resource.base import Operation, OperationError, TransactionalResource

from .detached import DetachedRunner, ThreadDetachedRunner

logger = structlog.get_logger(__name__)

PIPELINE_EVENT = "__pipeline__"


class _RollbackAttempt(Exception):
    """Atravessa o savepoint de uma tentativa que falhou sem exceção (Err)."""

    def __init__(self, reason: Any) -> None:
        super().__init__(reason)
        self.reason = reason


def _interpret(raw: Any) -> Tuple[bool, Any]:
    if isinstance(raw, Ok):
        return True, raw.value
    if isinstance(raw, Err):
        return False, raw.reason
    return True, raw


class Engine:
    """Engine canônico do Atlas TxFlow (planner + executor)."""

    def __init__(
        self,
        *,
        settings: Optional[EngineSettings] = None,
        detached_runner: Optional[DetachedRunner] = None,
        sleep: Callable[[float], Any] = time.sleep,
    ) -> None:
        self.settings = settings or EngineSettings()
        self.detached_runner = detached_runner or ThreadDetachedRunner(self.settings.detached_workers)
        self._sleep = sleep

    # ------------------------------------------------------------------
    # API pública
    # ------------------------------------------------------------------
    def execute(
        self,
        pipeline: Pipeline,
        params: Optional[Mapping] = None,
        resource: Optional[TransactionalResource] = None,
        *,
        timeout: Optional[float] = None,
    ) -> Outcome:
        """
        Executa `pipeline` como uma única transação de `resource`.

        Args:
            pipeline: definição a executar.
            params: entrada, acessível como `ctx["params"]`.
            resource: resource transacional (obrigatório).
            timeout: prazo em segundos; padrão `settings.timeout_seconds`.

        Returns:
            Success(context) ou Failure(step, reason, context).

        Raises:
            TxFlowConfigurationError: sem resource.
            DuplicateStepNameError / UnknownDependencyError /
            CycleDetectedError: pipeline estruturalmente inválido.
        """
        if resource is None:
            raise TxFlowConfigurationError(
                "No transactional resource given",
                hint="Passe `resource=` (ex.: InMemoryResource() ou SQLAlchemyResource(factory)).",
            )
        if timeout is None:
            timeout = self.settings.timeout_seconds
        return self._run(pipeline, params, resource, timeout)

    # ------------------------------------------------------------------
    # Execução
    # ------------------------------------------------------------------
    def _run(
        self,
        pipeline: Pipeline,
        params: Optional[Mapping],
        resource: TransactionalResource,
        timeout: Optional[float],
    ) -> Outcome:
        if not isinstance(pipeline, Pipeline):
            raise TypeError(f"Expected Pipeline, got {type(pipeline).__name__}")

        ordered = pipeline.plan()
        params = {} if params is None else params

        ctx = ExecutionContext(run_id=uuid.uuid4().hex, params=params)
        ctx.detach_fn = lambda fn, *a, **kw: self.detached_runner.submit(
            getattr(fn, "__name__", "detached"), fn, *a, **kw
        )
        ctx.nested_fn = lambda sub, sub_resource: self._run(sub, ctx.params, sub_resource, None)

        log = logger.bind(run_id=ctx.run_id, pipeline=pipeline.description)
        ctx.log(
            step=PIPELINE_EVENT,
            level="info",
            message="pipeline started",
            fingerprint=pipeline.fingerprint(),
            order=[s.name for s in ordered],
        )
        log.info("Pipeline started", steps=len(ordered))

        pipeline.hooks.fire_before(params)

        unit = resource.begin()
        for step in ordered:
            unit.add_operation(Operation(step.name, step.kind, self._operation(step, ctx)))

        committed = unit.commit(timeout=timeout)

        if committed.ok:
            ctx.log(step=PIPELINE_EVENT, level="info", message="pipeline committed")
            log.info("Pipeline committed")
            pipeline.hooks.fire_after(params, ctx.results)
            return Success(ctx)

        failure = Failure(committed.operation, committed.reason, ctx)
        ctx.log(
            step=PIPELINE_EVENT,
            level="error",
            message="pipeline rolled back",
            failed_step=failure.step,
            error=failure.error.to_dict(),
        )
        log.warning("Pipeline rolled back", failed_step=failure.step, reason=repr(failure.reason))
        pipeline.hooks.fire_error(params, failure.reason)
        return failure

    def _operation(self, step: StepDescriptor, ctx: ExecutionContext) -> Callable[[Any], Any]:
        def perform(repo: Any) -> Any:
            if step.detached:
                handle = self.detached_runner.submit(step.name, step.action.fn, ctx)
                ctx.record(step.name, handle)
                ctx.log(step=step.name, level="info", message="detached step submitted")
                return handle

            ok, value = self._run_with_policy(step, repo, ctx)

            if ok:
                ctx.record(step.name, value)
                ctx.log(step=step.name, level="info", message="step succeeded", kind=step.kind.value)
                return value

            if step.on_error is OnError.CONTINUE:
                placeholder = Placeholder(value)
                ctx.record(step.name, placeholder)
                ctx.add_warning(step=step.name, message=f"step failed and was skipped: {value!r}")
                ctx.log(step=step.name, level="warning", message="step failed, continuing", reason=repr(value))
                logger.warning("Step failed, continuing", step=step.name, reason=repr(value))
                return placeholder

            ctx.log(step=step.name, level="error", message="step failed", reason=repr(value))
            raise OperationError(value)

        return perform

    def _run_with_policy(self, step: StepDescriptor, repo: Any, ctx: ExecutionContext) -> Tuple[bool, Any]:
        isolated = step.retry is not None or step.on_error is OnError.CONTINUE
        delay = step.retry_delay if step.retry_delay is not None else self.settings.retry_delay_seconds
        attempts = step.attempts
        last_reason: Any = None

        for attempt in range(1, attempts + 1):
            ok, value = self._attempt(step, repo, ctx, isolated)
            if ok:
                return True, value
            last_reason = value
            if attempt < attempts:
                ctx.log(
                    step=step.name,
                    level="warning",
                    message="attempt failed, retrying",
                    attempt=attempt,
                    reason=repr(value),
                )
                if delay:
                    self._sleep(delay)

        if step.retry is not None:
            return False, RetriesExhausted(step.name, attempts, last_reason)
        return False, last_reason

    def _attempt(self, step: StepDescriptor, repo: Any, ctx: ExecutionContext, isolated: bool) -> Tuple[bool, Any]:
        try:
            if not isolated:
                return self._invoke(step, repo, ctx)
            with repo.savepoint():
                ok, value = self._invoke(step, repo, ctx)
                if not ok:
                    raise _RollbackAttempt(value)
                return ok, value
        except _RollbackAttempt as rb:
            return False, rb.reason
        except StepFailure as exc:
            return False, exc.reason
        except Exception as exc:
            logger.debug("Step raised", step=step.name, exc_info=True)
            return False, exc

    def _invoke(self, step: StepDescriptor, repo: Any, ctx: ExecutionContext) -> Tuple[bool, Any]:
        action = step.action
        kind = step.kind

        if kind is StepKind.RUN:
            raw = action.fn(repo, ctx) if action.takes_repo else action.fn(ctx)
            return _interpret(raw)

        if kind in BULK_KINDS:
            return self._invoke_bulk(action, kind, repo, ctx)

        ok, entity = _interpret(action.builder(ctx))
        if not ok:
            return False, entity
        if kind is StepKind.INSERT_ONE:
            return True, repo.insert_one(entity)
        if kind is StepKind.UPDATE_ONE:
            return True, repo.update_one(entity)
        return True, repo.delete_one(entity)

    def _invoke_bulk(self, action: Any, kind: StepKind, repo: Any, ctx: ExecutionContext) -> Tuple[bool, Any]:
        # builder, query e changes podem devolver Err, que falha o Step sem tocar o repo
        if kind is StepKind.INSERT_MANY:
            ok, rows = _interpret(action.builder(ctx))
            if not ok:
                return False, rows
            count, records = repo.insert_many(action.target, rows)
            return True, BulkResult(count, list(records))

        ok, query = _interpret(action.query(ctx))
        if not ok:
            return False, query

        if kind is StepKind.UPDATE_MANY:
            ok, changes = _interpret(action.changes(ctx))
            if not ok:
                return False, changes
            count, records = repo.update_many(query, changes)
        else:
            count, records = repo.delete_many(query)
        return True, BulkResult(count, list(records))


_default_engine: Optional[Engine] = None


def default_engine() -> Engine:
    global _default_engine
    if _default_engine is None:
        _default_engine = Engine()
    return _default_engine


def execute(
    pipeline: Pipeline,
    params: Optional[Mapping] = None,
    resource: Optional[TransactionalResource] = None,
    *,
    timeout: Optional[float] = None,
) -> Outcome:
    """Executa `pipeline` com o Engine padrão do processo."""
    return default_engine().execute(pipeline, params, resource, timeout=timeout)
