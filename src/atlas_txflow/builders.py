# src/atlas_txflow/builders.py
"""
Builders funcionais para montagem de pipelines transacionais.

Cada builder recebe um `Pipeline` como primeiro argumento e devolve um
NOVO `Pipeline`, o que permite encadear com `Pipeline.pipe`:

    from atlas_txflow.builders import run_step, insert_step, insert_many_step
    from atlas_txflow.core.pipeline.definition import Pipeline

    pipeline = (
        Pipeline.new("criar pedido")
        .pipe(run_step, "validate", validate)
        .pipe(insert_step, "order", build_order)
        .pipe(insert_many_step, "items", OrderItem, build_items, depends_on="order")
        .pipe(conditional_step, params["send_email"], "email", send_email)
    )

Opções comuns (keyword) aceitas por todos os builders de Step:
    depends_on, on_error, retry, retry_delay, detached, description
"""

from __future__ import annotations

from typing import Any, Callable, Iterable, Union

from atlas_txflow.core.exceptions import InvalidStepError
from atlas_txflow.core.pipeline.definition import Pipeline, Predicate
from atlas_txflow.core.pipeline.step import StepDescriptor, build_descriptor
from atlas_txflow.core.pipeline.types import Err, Ok, StepKind


def run_step(pipeline: Pipeline, name: str, fn: Callable[..., Any], **options: Any) -> Pipeline:
    """Step `run`: `fn(ctx)` ou `fn(repo, ctx)`, retornando valor, `Ok` ou `Err`."""
    return pipeline.add_step(build_descriptor(name, StepKind.RUN, function=fn, **options))


def insert_step(pipeline: Pipeline, name: str, builder: Callable[..., Any], **options: Any) -> Pipeline:
    return pipeline.add_step(build_descriptor(name, StepKind.INSERT_ONE, builder=builder, **options))


def insert_many_step(
    pipeline: Pipeline, name: str, target: Any, builder: Callable[..., Any], **options: Any
) -> Pipeline:
    """`builder(ctx)` retorna linhas (mapeamentos ou entidades) de `target`."""
    return pipeline.add_step(
        build_descriptor(name, StepKind.INSERT_MANY, target=target, builder=builder, **options)
    )


def update_step(pipeline: Pipeline, name: str, builder: Callable[..., Any], **options: Any) -> Pipeline:
    return pipeline.add_step(build_descriptor(name, StepKind.UPDATE_ONE, builder=builder, **options))


def update_many_step(
    pipeline: Pipeline,
    name: str,
    query: Callable[..., Any],
    changes: Callable[..., Any],
    **options: Any,
) -> Pipeline:
    return pipeline.add_step(
        build_descriptor(name, StepKind.UPDATE_MANY, query=query, set=changes, **options)
    )


def delete_step(pipeline: Pipeline, name: str, builder: Callable[..., Any], **options: Any) -> Pipeline:
    return pipeline.add_step(build_descriptor(name, StepKind.DELETE_ONE, builder=builder, **options))


def delete_many_step(pipeline: Pipeline, name: str, query: Callable[..., Any], **options: Any) -> Pipeline:
    return pipeline.add_step(build_descriptor(name, StepKind.DELETE_MANY, query=query, **options))


def conditional_step(
    pipeline: Pipeline,
    condition: Predicate,
    name: str,
    fn: Callable[..., Any],
    **options: Any,
) -> Pipeline:
    """Acrescenta um Step `run` somente se `condition` for verdadeira."""
    return pipeline.add_conditional_step(
        condition, build_descriptor(name, StepKind.RUN, function=fn, **options)
    )


StepEntry = Union[StepDescriptor, tuple]


def add_steps(pipeline: Pipeline, steps: Iterable[StepEntry]) -> Pipeline:
    """
    Acrescenta vários Steps de uma vez.

    Formatos aceitos:
        - StepDescriptor
        - (name, "run", fn)
        - (name, "insert_one" | "update_one" | "delete_one", builder)
        - (name, "insert_many", (target, builder))
        - (name, "update_many", (query, changes))
        - (name, "delete_many", query)

    Qualquer outro formato levanta `InvalidStepError`.
    """
    for entry in steps:
        pipeline = pipeline.add_step(_descriptor_from_entry(entry))
    return pipeline


def _descriptor_from_entry(entry: StepEntry) -> StepDescriptor:
    if isinstance(entry, StepDescriptor):
        return entry
    if not isinstance(entry, tuple) or len(entry) != 3:
        raise InvalidStepError(f"Unknown step format: {entry!r}")

    name, kind, payload = entry
    try:
        kind = StepKind(kind)
    except ValueError:
        raise InvalidStepError(f"Unknown step format: {entry!r}") from None

    if kind is StepKind.RUN:
        return build_descriptor(name, kind, function=payload)
    if kind in (StepKind.INSERT_ONE, StepKind.UPDATE_ONE, StepKind.DELETE_ONE):
        return build_descriptor(name, kind, builder=payload)
    if kind is StepKind.DELETE_MANY:
        return build_descriptor(name, kind, query=payload)

    if not isinstance(payload, tuple) or len(payload) != 2:
        raise InvalidStepError(f"Step '{name}' ({kind.value}) expects a pair payload, got {payload!r}")
    first, second = payload
    if kind is StepKind.INSERT_MANY:
        return build_descriptor(name, kind, target=first, builder=second)
    return build_descriptor(name, kind, query=first, set=second)


def retry_step(
    pipeline: Pipeline,
    name: str,
    attempts: int,
    delay: float,
    fn: Callable[..., Any],
    **options: Any,
) -> Pipeline:
    """Step `run` com até `attempts` tentativas e `delay` segundos entre elas."""
    return pipeline.add_step(
        build_descriptor(name, StepKind.RUN, function=fn, retry=attempts, retry_delay=delay, **options)
    )


def merge(pipeline: Pipeline, other: Pipeline) -> Pipeline:
    return pipeline.merge(other)


def group(
    pipeline: Pipeline,
    name: str,
    build: Callable[[Pipeline], Pipeline],
    **options: Any,
) -> Pipeline:
    """
    Agrupa Steps em uma sub-transação nomeada.

    `build` recebe um pipeline vazio e devolve o sub-pipeline, validado
    agora. Na execução, o sub-pipeline roda contra `repo.nested()` (um
    savepoint): sucesso registra o mapeamento de resultados do grupo sob
    `name`; falha desfaz apenas as escritas do grupo e vira a falha deste
    Step, sujeita ao seu próprio `on_error`.
    """
    sub = build(Pipeline.new(name))
    if not isinstance(sub, Pipeline):
        raise InvalidStepError(
            f"Group '{name}' builder must return a Pipeline, got {type(sub).__name__}",
            details={"step": name},
        )
    sub.plan()

    def run_group(repo: Any, ctx: Any) -> Any:
        outcome = ctx.run_nested(sub, repo.nested())
        if outcome.ok:
            return Ok(outcome.results)
        return Err(outcome.reason)

    return pipeline.add_step(build_descriptor(name, StepKind.RUN, function=run_group, **options))


def tap_step(pipeline: Pipeline, name: str, fn: Callable[..., Any], **options: Any) -> Pipeline:
    """Efeito colateral (log, métrica); o valor de `fn` é descartado e `None` é registrado."""

    def tap(ctx: Any) -> None:
        fn(ctx)

    return pipeline.add_step(build_descriptor(name, StepKind.RUN, function=tap, **options))


def validate_step(pipeline: Pipeline, name: str, validator: Callable[..., Any], **options: Any) -> Pipeline:
    """
    Step de validação.

    Retorno de `validator(ctx)`:
        - None / True  → {"validated": True}
        - False        → Err("validation failed")
        - Ok / Err     → repassado
    """

    def validate(ctx: Any) -> Any:
        verdict = validator(ctx)
        if verdict is None or verdict is True:
            return Ok({"validated": True})
        if verdict is False:
            return Err("validation failed")
        if isinstance(verdict, (Ok, Err)):
            return verdict
        raise TypeError(
            f"validator for '{name}' must return None, bool, Ok or Err, got {type(verdict).__name__}"
        )

    return pipeline.add_step(build_descriptor(name, StepKind.RUN, function=validate, **options))
