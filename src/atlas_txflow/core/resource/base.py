# src/atlas_txflow/core/resource/base.py
"""
Contrato do resource transacional.

O Atlas TxFlow não implementa atomicidade, durabilidade nem isolamento:
ele delega essas garantias a um *resource transacional* externo (banco
de dados, store em memória, ...). Este módulo define o contrato mínimo
que um resource deve satisfazer para ser usado pelo Engine.

Fluxo:

    unit = resource.begin()
    unit.add_operation(Operation("criar_pedido", StepKind.INSERT_ONE, perform))
    ...
    outcome = unit.commit(timeout=30)   # Committed | Aborted

Cada `Operation.perform(repo)` recebe a capacidade nativa do resource
(`Repo`) e:
    - retorna o valor da operação em caso de sucesso
    - levanta `OperationError(reason)` para abortar a unidade

Qualquer outra exceção levantada por `perform` é tratada como defeito:
a unidade é revertida e a exceção propaga para quem chamou `commit`.

Decisões arquiteturais:
    - O timeout é cooperativo: verificado antes de cada operação; ao
      expirar, a unidade aborta com `TransactionTimeout` como motivo
    - Operações são executadas estritamente na ordem de adição
    - Nomes de operação são únicos dentro de uma unidade

Limites explícitos:
    - Não planeja Steps
    - Não conhece ExecutionContext, hooks ou políticas de retry
"""

from __future__ import annotations

import time
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from typing import (
    Any,
    Callable,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Protocol,
    Tuple,
    Union,
    runtime_checkable,
)

from atlas_txflow.core.exceptions import TransactionTimeout
from atlas_txflow.core.pipeline.types import StepKind


class OperationError(Exception):
    """Sinaliza, de dentro de `perform`, que a unidade deve abortar com `reason`."""

    def __init__(self, reason: Any) -> None:
        super().__init__(reason)
        self.reason = reason


@dataclass(frozen=True)
class Operation:
    """Operação nomeada adicionada a uma unidade atômica."""
    name: str
    kind: StepKind
    perform: Callable[["Repo"], Any]


@dataclass(frozen=True)
class Committed:
    """Todas as operações executaram e a unidade foi confirmada."""
    results: Dict[str, Any] = field(default_factory=dict)

    ok = True


@dataclass(frozen=True)
class Aborted:
    """A unidade foi revertida na operação `operation`."""
    operation: str
    reason: Any
    results: Dict[str, Any] = field(default_factory=dict)

    ok = False


CommitOutcome = Union[Committed, Aborted]


@runtime_checkable
class Repo(Protocol):
    """
    Capacidade nativa entregue às operações dentro da transação.

    Operações em lote retornam o par `(count, records)`.
    """

    def insert_one(self, entity: Any) -> Any:
        ...

    def insert_many(self, target: Any, rows: Iterable[Any]) -> Tuple[int, List[Any]]:
        ...

    def update_one(self, entity: Any) -> Any:
        ...

    def update_many(self, query: Any, changes: Mapping[str, Any]) -> Tuple[int, List[Any]]:
        ...

    def delete_one(self, entity: Any) -> Any:
        ...

    def delete_many(self, query: Any) -> Tuple[int, List[Any]]:
        ...

    def savepoint(self) -> AbstractContextManager:
        """Escopo que desfaz as escritas internas se uma exceção o atravessar."""
        ...

    def nested(self) -> "TransactionalResource":
        """Resource cujas unidades são sub-transações (savepoints) desta."""
        ...


@runtime_checkable
class AtomicUnit(Protocol):
    def add_operation(self, operation: Operation) -> None:
        ...

    def commit(self, *, timeout: Optional[float] = None) -> CommitOutcome:
        ...


@runtime_checkable
class TransactionalResource(Protocol):
    def begin(self) -> AtomicUnit:
        ...


class BaseAtomicUnit:
    """
    Base das unidades atômicas fornecidas pelo pacote.

    Mantém a lista ordenada de operações e implementa o laço de execução
    (`_run_operations`) com verificação cooperativa do prazo. Subclasses
    cuidam apenas de abrir, confirmar e reverter a transação nativa.
    """

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._operations: List[Operation] = []
        self._names: set = set()
        self._clock = clock

    @property
    def operations(self) -> List[Operation]:
        return list(self._operations)

    def add_operation(self, operation: Operation) -> None:
        if not isinstance(operation, Operation):
            raise TypeError(f"Expected Operation, got {type(operation).__name__}")
        if operation.name in self._names:
            raise ValueError(f"Duplicate operation name: {operation.name}")
        self._names.add(operation.name)
        self._operations.append(operation)

    def commit(self, *, timeout: Optional[float] = None) -> CommitOutcome:
        raise NotImplementedError

    def _run_operations(
        self, repo: Repo, timeout: Optional[float]
    ) -> Tuple[Dict[str, Any], Optional[Aborted]]:
        """
        Executa as operações em ordem.

        Retorna `(results, None)` quando todas concluem, ou
        `(results, Aborted(...))` na primeira que falhar. Exceções que não
        sejam `OperationError` propagam sem tratamento.
        """
        deadline = None if timeout is None else self._clock() + timeout
        results: Dict[str, Any] = {}

        for op in self._operations:
            if deadline is not None and self._clock() > deadline:
                return results, Aborted(op.name, TransactionTimeout(timeout, op.name), dict(results))
            try:
                results[op.name] = op.perform(repo)
            except OperationError as exc:
                return results, Aborted(op.name, exc.reason, dict(results))

        return results, None
