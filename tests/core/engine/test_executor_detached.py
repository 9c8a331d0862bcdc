# tests/core/engine/test_executor_detached.py
"""
Testes de Steps destacados (fire-and-forget) e de `ctx.detach`.

Invariantes:
    - o Step destacado é submetido ao runner com o contexto
    - o handle do runner é registrado sob o nome do Step
    - falhas da tarefa destacada não afetam o Outcome
    - tarefas destacadas não participam do rollback
"""

import threading

import pytest

from atlas_txflow.builders import insert_step, run_step
from atlas_txflow.core.engine.detached import DetachedRunner, ThreadDetachedRunner
from atlas_txflow.core.exceptions import InvalidStepError
from atlas_txflow.core.pipeline.definition import Pipeline
from atlas_txflow.core.pipeline.types import Err


def test_detached_step_is_submitted(engine, memory_resource, recording_runner):
    seen = []

    def notify(ctx):
        seen.append(ctx["params"]["email"])

    pipeline = Pipeline.new().pipe(run_step, "notify", notify, detached=True)
    outcome = engine.execute(pipeline, {"email": "a@x"}, memory_resource)

    assert outcome.ok
    assert outcome.results["notify"] == "handle:notify"
    step, fn, args, _ = recording_runner.submitted[0]
    assert step == "notify"
    assert fn is notify
    assert args[0] is outcome.context
    assert seen == ["a@x"]


def test_detached_failure_does_not_fail_pipeline(engine, memory_resource, recording_runner):
    def broken(ctx):
        raise RuntimeError("push service down")

    pipeline = (
        Pipeline.new()
        .pipe(run_step, "push", broken, detached=True)
        .pipe(run_step, "after", lambda ctx: 1)
    )
    outcome = engine.execute(pipeline, {}, memory_resource)

    assert outcome.ok
    assert outcome.results["after"] == 1
    assert isinstance(recording_runner.errors[0], RuntimeError)


def test_detached_task_survives_rollback(engine, memory_resource, entities, recording_runner):
    pipeline = (
        Pipeline.new()
        .pipe(insert_step, "order", lambda ctx: entities.Order(customer_id=1))
        .pipe(run_step, "audit", lambda ctx: None, detached=True)
        .pipe(run_step, "fail", lambda ctx: Err("late failure"))
    )
    outcome = engine.execute(pipeline, {}, memory_resource)

    assert not outcome.ok
    assert len(recording_runner.submitted) == 1
    assert memory_resource.count(entities.Order) == 0


def test_ctx_detach_uses_engine_runner(engine, memory_resource, recording_runner):
    def schedule(ctx):
        return ctx.detach(lambda: None)

    pipeline = Pipeline.new().pipe(run_step, "schedule", schedule)
    outcome = engine.execute(pipeline, {}, memory_resource)

    assert outcome.results["schedule"] == "handle:<lambda>"
    assert recording_runner.submitted[0][0] == "<lambda>"


def test_detached_requires_run_kind_without_retry(entities):
    with pytest.raises(InvalidStepError):
        Pipeline.new().pipe(insert_step, "x", lambda ctx: entities.Order(1), detached=True)
    with pytest.raises(InvalidStepError):
        Pipeline.new().pipe(run_step, "x", lambda ctx: None, detached=True, retry=2)


def test_thread_runner_returns_future():
    runner = ThreadDetachedRunner(max_workers=1)
    assert isinstance(runner, DetachedRunner)

    done = threading.Event()
    future = runner.submit("job", lambda x: done.set() or x * 2, 21)

    assert future.result(timeout=5) == 42
    assert done.is_set()
    runner.shutdown()


def test_thread_runner_logs_failures_without_raising():
    runner = ThreadDetachedRunner(max_workers=1)
    future = runner.submit("job", lambda: 1 / 0)

    with pytest.raises(ZeroDivisionError):
        future.result(timeout=5)
    runner.shutdown()


def test_thread_runner_shutdown_is_idempotent():
    runner = ThreadDetachedRunner()
    runner.shutdown()
    future = runner.submit("job", lambda: "again")
    assert future.result(timeout=5) == "again"
    runner.shutdown()
    runner.shutdown()
