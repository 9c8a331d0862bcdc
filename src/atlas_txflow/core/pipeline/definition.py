# src/atlas_txflow/core/pipeline/definition.py
"""
Definição imutável de pipeline transacional.

Este módulo define o `Pipeline`, o valor que descreve uma transação
completa: uma descrição opcional, a sequência ordenada de Steps e o
conjunto de hooks transversais.

Todo método de construção retorna um NOVO Pipeline; a instância original
nunca é alterada. Isso permite compor definições a partir de pedaços
reutilizáveis:

    base = Pipeline.new("criar pedido").add_step(...)
    com_email = base.add_conditional_step(enviar_email, step_email)

Decisões arquiteturais:
    - Nomes duplicados são rejeitados no momento da montagem
      (`add_step` / `merge`), não apenas no planejamento
    - `add_conditional_step` avalia o predicado uma única vez, no momento
      da montagem
    - `merge` concatena Steps (os do outro pipeline depois dos próprios)
      e hooks, preservando a ordem relativa de ambos
    - Dependências não são validadas aqui: um Step pode referenciar outro
      que será adicionado depois; a validação completa ocorre em `plan()`

Invariantes:
    - Uma instância nunca é alterada após criada
    - A ordem de `steps` é sempre a ordem de declaração

Limites explícitos:
    - Não executa Steps
    - Não abre transações
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Tuple, Union

from atlas_txflow.core.config.hashing import compute_pipeline_fingerprint
from atlas_txflow.core.engine.hooks import HookDispatcher
from atlas_txflow.core.engine.planner import plan_execution

from .registry import StepRegistry
from .step import StepDescriptor

Predicate = Union[bool, Callable[[], Any]]


@dataclass(frozen=True)
class Pipeline:
    """Definição imutável de uma transação nomeada em Steps."""

    description: Optional[str] = None
    steps: Tuple[StepDescriptor, ...] = ()
    hooks: HookDispatcher = field(default_factory=HookDispatcher)

    def __post_init__(self) -> None:
        object.__setattr__(self, "steps", tuple(self.steps))
        StepRegistry.of(self.steps)

    @classmethod
    def new(cls, description: Optional[str] = None) -> "Pipeline":
        return cls(description=description)

    # -----------------------------
    # Composição
    # -----------------------------
    def add_step(self, step: StepDescriptor) -> "Pipeline":
        """Acrescenta um Step; `DuplicateStepNameError` se o nome já existir."""
        StepRegistry.of(self.steps).declare(step)
        return Pipeline(self.description, self.steps + (step,), self.hooks)

    def add_conditional_step(self, predicate: Predicate, step: StepDescriptor) -> "Pipeline":
        """
        Acrescenta `step` somente se `predicate` for verdadeiro.

        `predicate` pode ser um booleano ou um callable sem argumentos,
        avaliado agora. Quando falso, o próprio pipeline é retornado.
        """
        decided = predicate() if callable(predicate) else predicate
        if not decided:
            return self
        return self.add_step(step)

    def merge(self, other: "Pipeline") -> "Pipeline":
        """Concatena Steps e hooks de `other` após os deste pipeline."""
        if not isinstance(other, Pipeline):
            raise TypeError(f"Can only merge a Pipeline, got {type(other).__name__}")
        registry = StepRegistry.of(self.steps)
        for step in other.steps:
            registry.declare(step)
        return Pipeline(
            self.description if self.description is not None else other.description,
            self.steps + other.steps,
            self.hooks.merged(other.hooks),
        )

    def with_description(self, description: Optional[str]) -> "Pipeline":
        return Pipeline(description, self.steps, self.hooks)

    def with_before_hook(self, hook: Callable[..., Any]) -> "Pipeline":
        return Pipeline(self.description, self.steps, self.hooks.with_before(hook))

    def with_after_hook(self, hook: Callable[..., Any]) -> "Pipeline":
        return Pipeline(self.description, self.steps, self.hooks.with_after(hook))

    def with_error_hook(self, hook: Callable[..., Any]) -> "Pipeline":
        return Pipeline(self.description, self.steps, self.hooks.with_error(hook))

    def pipe(self, fn: Callable[..., "Pipeline"], *args: Any, **kwargs: Any) -> "Pipeline":
        """`fn(self, *args, **kwargs)`; encadeia os builders funcionais."""
        result = fn(self, *args, **kwargs)
        if not isinstance(result, Pipeline):
            raise TypeError(f"{getattr(fn, '__name__', fn)!r} did not return a Pipeline")
        return result

    # -----------------------------
    # Leitura
    # -----------------------------
    @property
    def names(self) -> List[str]:
        return [s.name for s in self.steps]

    def __len__(self) -> int:
        return len(self.steps)

    def plan(self) -> List[StepDescriptor]:
        """Ordem de execução resolvida (ver `plan_execution`)."""
        return plan_execution(self.steps)

    def fingerprint(self) -> str:
        return compute_pipeline_fingerprint(self.description, self.steps)
