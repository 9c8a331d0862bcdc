# src/atlas_txflow/dsl.py
"""
DSL declarativo para transações nomeadas.

Uma transação é declarada como uma subclasse de `Transaction`, com
atributos de classe:

    from atlas_txflow.dsl import Transaction, step

    class CreateOrder(Transaction):
        description = "Criar pedido"

        steps = [
            step("validate", "run", function=validate),
            step("create_order", "insert_one", builder=build_order),
            step("create_items", "insert_many", target=OrderItem,
                 builder=build_items, depends_on="create_order"),
            step("send_email", "run", function=send_email,
                 on_error="continue", retry=3),
        ]

        before_hooks = [log_start]
        after_hooks = [log_success]
        error_hooks = [log_error]

    outcome = CreateOrder.execute({"customer_id": 1}, resource=resource)

O pipeline é montado e resolvido na criação da classe: nomes
duplicados, dependências desconhecidas e ciclos falham já na importação
do módulo que declara a transação.

Não existe repositório global: o resource vem do argumento `resource=`
ou do atributo de classe `resource`. Sem nenhum dos dois, `execute`
levanta `TxFlowConfigurationError`.
"""

from __future__ import annotations

from typing import Any, ClassVar, List, Mapping, Optional, Sequence

from atlas_txflow.core.engine.engine import Engine, default_engine
from atlas_txflow.core.engine.hooks import HookDispatcher
from atlas_txflow.core.exceptions import TxFlowConfigurationError
from atlas_txflow.core.pipeline.definition import Pipeline
from atlas_txflow.core.pipeline.step import StepDescriptor, build_descriptor
from atlas_txflow.core.pipeline.types import Outcome


def step(name: str, kind: str, **fields: Any) -> StepDescriptor:
    """
    Declara um Step no corpo de uma `Transaction`.

    `fields` são os campos de `build_descriptor` (function, builder,
    target, query, set, depends_on, on_error, retry, retry_delay,
    detached, description). `async` é aceito como sinônimo de `detached`
    (via `**{"async": True}`).
    """
    if "async" in fields:
        fields["detached"] = bool(fields.pop("async"))
    return build_descriptor(name, kind, **fields)


class Transaction:
    """Base das transações declarativas."""

    description: ClassVar[Optional[str]] = None
    steps: ClassVar[Sequence[StepDescriptor]] = ()
    before_hooks: ClassVar[Sequence[Any]] = ()
    after_hooks: ClassVar[Sequence[Any]] = ()
    error_hooks: ClassVar[Sequence[Any]] = ()
    resource: ClassVar[Any] = None

    pipeline: ClassVar[Pipeline] = Pipeline()
    order: ClassVar[List[str]] = []

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)

        hooks = HookDispatcher()
        for hook in cls.before_hooks:
            hooks = hooks.with_before(hook)
        for hook in cls.after_hooks:
            hooks = hooks.with_after(hook)
        for hook in cls.error_hooks:
            hooks = hooks.with_error(hook)

        cls.pipeline = Pipeline(cls.description, tuple(cls.steps), hooks)
        cls.order = [s.name for s in cls.pipeline.plan()]

    @classmethod
    def execute(
        cls,
        params: Optional[Mapping] = None,
        *,
        resource: Any = None,
        engine: Optional[Engine] = None,
        timeout: Optional[float] = None,
    ) -> Outcome:
        resource = resource if resource is not None else cls.resource
        if resource is None:
            raise TxFlowConfigurationError(
                f"Transaction {cls.__name__} has no resource",
                details={"transaction": cls.__name__},
                hint="Passe `resource=` em execute() ou defina o atributo de classe `resource`.",
            )
        engine = engine or default_engine()
        return engine.execute(cls.pipeline, params, resource, timeout=timeout)
