# src/atlas_txflow/core/pipeline/step.py
"""
Contrato canônico de Step do Atlas TxFlow.

Este módulo define o `StepDescriptor`, a descrição declarativa de uma
unidade de trabalho dentro de uma transação, e o conjunto fechado de
actions que um Step pode carregar.

Um Step é a menor unidade executável do pipeline. Ele não executa nada
por si só: apenas descreve *o que* deve ser feito (action), *depois de
quê* (depends_on) e *como reagir a falhas* (on_error, retry).

Responsabilidades do módulo:
    - Definir uma variante de action por StepKind, com os campos exatos
      de que cada formato precisa
    - Validar a estrutura do Step no momento da construção
    - Oferecer uma fábrica única (`build_descriptor`) usada pelo builder
      funcional, pelo DSL declarativo e pelo loader de definições

Princípios fundamentais:
    - Steps não conhecem o Engine nem o planner
    - Steps não controlam ordem de execução
    - Dependências são explícitas e declarativas
    - Erros estruturais são detectados antes de qualquer execução

Invariantes:
    - `name` é uma string não vazia e diferente de `params`
    - `action` é sempre uma das sete variantes conhecidas
    - Todo builder/query/função de uma action é chamável
    - `retry`, quando presente, é um inteiro positivo
    - Steps destacados (`detached`) são sempre do tipo `run` e sem retry,
      com `fn(ctx)` (nunca `fn(repo, ctx)`)

Limites explícitos:
    - Não executa Steps
    - Não resolve dependências
    - Não interage com o resource transacional

Este módulo existe para garantir desacoplamento,
clareza contratual e testabilidade dos Steps.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar, Dict, Iterable, Optional, Tuple, Union

from atlas_txflow.core.exceptions import InvalidStepError

from .context import PARAMS_KEY
from .types import OnError, StepKind


# -----------------------------
# Actions (uma variante por StepKind)
# -----------------------------

@dataclass(frozen=True)
class RunAction:
    """Função arbitrária: `fn(ctx)` ou `fn(repo, ctx)`."""
    fn: Callable[..., Any]
    kind: ClassVar[StepKind] = StepKind.RUN

    @property
    def takes_repo(self) -> bool:
        """True quando `fn` exige exatamente dois parâmetros posicionais: `fn(repo, ctx)`."""
        try:
            sig = inspect.signature(self.fn)
        except (TypeError, ValueError):
            return False
        required = [
            p for p in sig.parameters.values()
            if p.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
            and p.default is inspect.Parameter.empty
        ]
        return len(required) == 2


@dataclass(frozen=True)
class InsertOne:
    """`builder(ctx)` retorna a entidade a inserir."""
    builder: Callable[..., Any]
    kind: ClassVar[StepKind] = StepKind.INSERT_ONE


@dataclass(frozen=True)
class InsertMany:
    """`builder(ctx)` retorna as linhas a inserir em `target`."""
    target: Any
    builder: Callable[..., Any]
    kind: ClassVar[StepKind] = StepKind.INSERT_MANY


@dataclass(frozen=True)
class UpdateOne:
    """`builder(ctx)` retorna a entidade com as alterações aplicadas."""
    builder: Callable[..., Any]
    kind: ClassVar[StepKind] = StepKind.UPDATE_ONE


@dataclass(frozen=True)
class UpdateMany:
    """`query(ctx)` seleciona os registros; `changes(ctx)` retorna os campos a alterar."""
    query: Callable[..., Any]
    changes: Callable[..., Any]
    kind: ClassVar[StepKind] = StepKind.UPDATE_MANY


@dataclass(frozen=True)
class DeleteOne:
    """`builder(ctx)` retorna a entidade a remover."""
    builder: Callable[..., Any]
    kind: ClassVar[StepKind] = StepKind.DELETE_ONE


@dataclass(frozen=True)
class DeleteMany:
    """`query(ctx)` seleciona os registros a remover."""
    query: Callable[..., Any]
    kind: ClassVar[StepKind] = StepKind.DELETE_MANY


StepAction = Union[RunAction, InsertOne, InsertMany, UpdateOne, UpdateMany, DeleteOne, DeleteMany]

ACTION_TYPES: Dict[StepKind, type] = {
    StepKind.RUN: RunAction,
    StepKind.INSERT_ONE: InsertOne,
    StepKind.INSERT_MANY: InsertMany,
    StepKind.UPDATE_ONE: UpdateOne,
    StepKind.UPDATE_MANY: UpdateMany,
    StepKind.DELETE_ONE: DeleteOne,
    StepKind.DELETE_MANY: DeleteMany,
}

_ON_ERROR_ALIASES = {"rollback": OnError.ABORT}

_CALLABLE_FIELDS: Dict[type, Tuple[str, ...]] = {
    RunAction: ("fn",),
    InsertOne: ("builder",),
    InsertMany: ("builder",),
    UpdateOne: ("builder",),
    UpdateMany: ("query", "changes"),
    DeleteOne: ("builder",),
    DeleteMany: ("query",),
}


@dataclass(frozen=True)
class StepDescriptor:
    """
    Descrição canônica e imutável de um Step do Atlas TxFlow.

    Campos:
        - name: identificador único do Step no pipeline (chave no contexto)
        - action: variante de action correspondente ao formato da operação
        - depends_on: nomes de Steps que devem ter executado antes
        - on_error: política de falha (ABORT por padrão)
        - retry: número total de tentativas (None = uma tentativa)
        - retry_delay: pausa em segundos entre tentativas (None = padrão do Engine)
        - detached: executa como tarefa fire-and-forget, fora da unidade atômica;
          aceita apenas `fn(ctx)`
        - description: texto livre para leitura humana

    Decisões arquiteturais:
        - O `kind` é derivado da action, nunca declarado em duplicidade
        - Normalizações (str → enum, lista → tupla) ocorrem na construção
        - Violações estruturais levantam `InvalidStepError` imediatamente

    Invariantes:
        - Uma instância nunca é alterada após criada
        - `depends_on` é sempre uma tupla de strings

    Limites explícitos:
        - Não executa a action
        - Não valida existência das dependências (responsabilidade do planner)
    """
    name: str
    action: StepAction
    depends_on: Tuple[str, ...] = ()
    on_error: OnError = OnError.ABORT
    retry: Optional[int] = None
    retry_delay: Optional[float] = None
    detached: bool = False
    description: Optional[str] = field(default=None, compare=False)

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise InvalidStepError("step.name must be a non-empty string")
        if self.name == PARAMS_KEY:
            raise InvalidStepError(
                f"'{PARAMS_KEY}' is reserved for the input parameters",
                details={"step": self.name},
            )

        callable_fields = _CALLABLE_FIELDS.get(type(self.action))
        if callable_fields is None:
            raise InvalidStepError(
                f"Step '{self.name}' has unsupported action {type(self.action).__name__}",
                details={"step": self.name},
                hint="Use uma das actions de atlas_txflow.core.pipeline.step",
            )
        for attr in callable_fields:
            if not callable(getattr(self.action, attr)):
                raise InvalidStepError(
                    f"Step '{self.name}' ({self.action.kind.value}) requires a callable '{attr}'",
                    details={"step": self.name, "field": attr},
                )

        object.__setattr__(self, "depends_on", _normalize_depends_on(self.name, self.depends_on))

        try:
            object.__setattr__(self, "on_error", OnError(_ON_ERROR_ALIASES.get(self.on_error, self.on_error)))
        except ValueError:
            raise InvalidStepError(
                f"Step '{self.name}' has unknown on_error policy {self.on_error!r}",
                details={"step": self.name},
            ) from None

        if self.retry is not None and (
            isinstance(self.retry, bool) or not isinstance(self.retry, int) or self.retry < 1
        ):
            raise InvalidStepError(
                f"Step '{self.name}' retry must be a positive integer",
                details={"step": self.name, "retry": self.retry},
            )
        if self.retry_delay is not None and (
            isinstance(self.retry_delay, bool)
            or not isinstance(self.retry_delay, (int, float))
            or self.retry_delay < 0
        ):
            raise InvalidStepError(
                f"Step '{self.name}' retry_delay must be a number >= 0",
                details={"step": self.name, "retry_delay": self.retry_delay},
            )

        if self.detached:
            if self.kind != StepKind.RUN:
                raise InvalidStepError(
                    f"Step '{self.name}' cannot be detached: only run steps run outside the transaction",
                    details={"step": self.name, "kind": self.kind.value},
                )
            if self.retry is not None:
                raise InvalidStepError(
                    f"Step '{self.name}' cannot combine detached with retry",
                    details={"step": self.name},
                )
            if self.action.takes_repo:
                raise InvalidStepError(
                    f"Step '{self.name}' cannot be detached: fn(repo, ctx) needs the open transaction",
                    details={"step": self.name},
                    hint="Steps destacados recebem apenas `fn(ctx)`",
                )

    @property
    def kind(self) -> StepKind:
        return self.action.kind

    @property
    def attempts(self) -> int:
        return self.retry or 1


def _normalize_depends_on(name: str, depends_on: Any) -> Tuple[str, ...]:
    if depends_on is None:
        return ()
    if isinstance(depends_on, str):
        depends_on = (depends_on,)
    deps = tuple(depends_on)
    for dep in deps:
        if not isinstance(dep, str) or not dep.strip():
            raise InvalidStepError(
                f"Step '{name}' has an invalid dependency {dep!r}",
                details={"step": name},
            )
    return deps


def build_descriptor(
    name: str,
    kind: Union[StepKind, str],
    *,
    function: Optional[Callable[..., Any]] = None,
    builder: Optional[Callable[..., Any]] = None,
    target: Any = None,
    query: Optional[Callable[..., Any]] = None,
    set: Optional[Callable[..., Any]] = None,
    depends_on: Union[str, Iterable[str], None] = None,
    on_error: Union[OnError, str] = OnError.ABORT,
    retry: Optional[int] = None,
    retry_delay: Optional[float] = None,
    detached: bool = False,
    description: Optional[str] = None,
) -> StepDescriptor:
    """
    Fábrica única de StepDescriptor a partir de campos nomeados.

    Esta função traduz a forma "tabela" de um Step (kind + campos soltos),
    usada pelo DSL declarativo e pelo loader de definições, para a
    variante de action correta, exigindo exatamente os campos de cada
    formato.

    Campos por kind:
        - run:          function
        - insert_one:   builder
        - insert_many:  target, builder
        - update_one:   builder
        - update_many:  query, set
        - delete_one:   builder
        - delete_many:  query

    Raises:
        InvalidStepError: kind desconhecido, campo obrigatório ausente ou
            campo não aplicável ao kind informado.
    """
    try:
        kind = StepKind(kind)
    except ValueError:
        raise InvalidStepError(
            f"Step '{name}' has unknown kind {kind!r}",
            details={"step": name, "allowed": [k.value for k in StepKind]},
        ) from None

    provided = {
        "function": function,
        "builder": builder,
        "target": target,
        "query": query,
        "set": set,
    }
    required = {
        StepKind.RUN: ("function",),
        StepKind.INSERT_ONE: ("builder",),
        StepKind.INSERT_MANY: ("target", "builder"),
        StepKind.UPDATE_ONE: ("builder",),
        StepKind.UPDATE_MANY: ("query", "set"),
        StepKind.DELETE_ONE: ("builder",),
        StepKind.DELETE_MANY: ("query",),
    }[kind]

    missing = [f for f in required if provided[f] is None]
    if missing:
        raise InvalidStepError(
            f"Step '{name}' ({kind.value}) is missing {', '.join(missing)}",
            details={"step": name, "missing": missing},
        )
    extra = [f for f, v in provided.items() if v is not None and f not in required]
    if extra:
        raise InvalidStepError(
            f"Step '{name}' ({kind.value}) does not accept {', '.join(extra)}",
            details={"step": name, "unexpected": extra},
        )

    if kind == StepKind.RUN:
        action: StepAction = RunAction(fn=function)
    elif kind == StepKind.INSERT_ONE:
        action = InsertOne(builder=builder)
    elif kind == StepKind.INSERT_MANY:
        action = InsertMany(target=target, builder=builder)
    elif kind == StepKind.UPDATE_ONE:
        action = UpdateOne(builder=builder)
    elif kind == StepKind.UPDATE_MANY:
        action = UpdateMany(query=query, changes=set)
    elif kind == StepKind.DELETE_ONE:
        action = DeleteOne(builder=builder)
    else:
        action = DeleteMany(query=query)

    return StepDescriptor(
        name=name,
        action=action,
        depends_on=depends_on,
        on_error=on_error,
        retry=retry,
        retry_delay=retry_delay,
        detached=detached,
        description=description,
    )
