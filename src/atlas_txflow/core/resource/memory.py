# src/atlas_txflow/core/resource/memory.py
"""
Resource transacional em memória.

Implementação de referência do contrato de `base.py`, usada em testes,
exemplos e protótipos. As "tabelas" são dicionários indexados por `id`,
agrupados pelo nome da classe da entidade.

Semântica transacional:
    - Atomicidade por snapshot: ao iniciar o commit, o estado completo é
      copiado (`deepcopy`); ao abortar, o snapshot é restaurado
    - Savepoints usam o mesmo mecanismo, em escopo menor
    - Commits são serializados por um `RLock` (isolamento trivial)
    - Durabilidade: nenhuma (processo local)

Entidades:
    - Qualquer objeto com atributo `id` (dataclasses são o caso comum)
    - `id is None` na inserção recebe um inteiro auto-incrementado
    - Dataclasses recebem `id`/alterações via `dataclasses.replace`;
      demais objetos via `setattr` em uma cópia rasa

Consultas em lote usam `Query(target, where)`, onde `where` é um
callable `registro -> bool` ou um mapeamento de igualdade de campos.
Passar a classe diretamente seleciona todos os registros dela.
"""

from __future__ import annotations

import copy
import dataclasses
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple, Union

from .base import BaseAtomicUnit, Committed, CommitOutcome

Where = Union[Callable[[Any], bool], Mapping[str, Any], None]


@dataclass(frozen=True)
class Query:
    """Seleção de registros de `target` (classe ou nome de tabela)."""
    target: Any
    where: Where = None

    def matches(self, record: Any) -> bool:
        if self.where is None:
            return True
        if callable(self.where):
            return bool(self.where(record))
        return all(getattr(record, k, None) == v for k, v in self.where.items())


def _table_name(target: Any) -> str:
    if isinstance(target, str):
        return target
    if isinstance(target, type):
        return target.__name__
    return type(target).__name__


def _with_fields(entity: Any, **changes: Any) -> Any:
    if dataclasses.is_dataclass(entity) and not isinstance(entity, type):
        return dataclasses.replace(entity, **changes)
    updated = copy.copy(entity)
    for key, value in changes.items():
        setattr(updated, key, value)
    return updated


class InMemoryResource:
    """
    Resource transacional em memória.

    Atributos úteis em testes:
        - commits / rollbacks: contadores de unidades de topo
        - all(target) / get(target, id): leitura do estado confirmado
    """

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._tables: Dict[str, Dict[Any, Any]] = {}
        self._next_ids: Dict[str, int] = {}
        self._lock = threading.RLock()
        self._clock = clock
        self.commits = 0
        self.rollbacks = 0

    # -----------------------------
    # Contrato
    # -----------------------------
    def begin(self) -> "InMemoryUnit":
        return InMemoryUnit(self, nested=False)

    # -----------------------------
    # Leitura
    # -----------------------------
    def all(self, target: Any) -> List[Any]:
        with self._lock:
            return list(self._tables.get(_table_name(target), {}).values())

    def get(self, target: Any, id: Any) -> Optional[Any]:
        with self._lock:
            return self._tables.get(_table_name(target), {}).get(id)

    def count(self, target: Any) -> int:
        return len(self.all(target))

    # -----------------------------
    # Snapshot
    # -----------------------------
    def _snapshot(self) -> Tuple[Dict[str, Dict[Any, Any]], Dict[str, int]]:
        return copy.deepcopy(self._tables), dict(self._next_ids)

    def _restore(self, snapshot: Tuple[Dict[str, Dict[Any, Any]], Dict[str, int]]) -> None:
        tables, next_ids = snapshot
        self._tables = tables
        self._next_ids = next_ids

    def _table(self, target: Any) -> Dict[Any, Any]:
        return self._tables.setdefault(_table_name(target), {})

    def _allocate_id(self, target: Any) -> int:
        name = _table_name(target)
        table = self._table(target)
        next_id = self._next_ids.get(name, 0) + 1
        while next_id in table:
            next_id += 1
        self._next_ids[name] = next_id
        return next_id

    def _reserve_id(self, target: Any, entity_id: Any) -> None:
        # ids explícitos inteiros avançam o auto-incremento da tabela
        if isinstance(entity_id, int) and not isinstance(entity_id, bool):
            name = _table_name(target)
            self._next_ids[name] = max(self._next_ids.get(name, 0), entity_id)


class _NestedMemoryResource:
    """Resource cujas unidades rodam como savepoints do resource pai."""

    def __init__(self, parent: InMemoryResource) -> None:
        self._parent = parent

    def begin(self) -> "InMemoryUnit":
        return InMemoryUnit(self._parent, nested=True)


class InMemoryRepo:
    """Capacidade `Repo` sobre o estado de um `InMemoryResource`."""

    def __init__(self, resource: InMemoryResource) -> None:
        self._resource = resource

    def insert_one(self, entity: Any) -> Any:
        table = self._resource._table(entity)
        entity_id = getattr(entity, "id", None)
        if entity_id is None:
            entity = _with_fields(entity, id=self._resource._allocate_id(entity))
        elif entity_id in table:
            raise ValueError(f"Duplicate id {entity_id!r} for {_table_name(entity)}")
        else:
            self._resource._reserve_id(entity, entity_id)
        table[entity.id] = entity
        return entity

    def insert_many(self, target: Any, rows: Iterable[Any]) -> Tuple[int, List[Any]]:
        records = []
        for row in rows:
            if isinstance(row, Mapping):
                if not callable(target):
                    raise TypeError(f"Cannot build {target!r} from a mapping")
                row = target(**row)
            records.append(self.insert_one(row))
        return len(records), records

    def update_one(self, entity: Any) -> Any:
        table = self._resource._table(entity)
        entity_id = getattr(entity, "id", None)
        if entity_id not in table:
            raise LookupError(f"{_table_name(entity)} with id {entity_id!r} not found")
        table[entity_id] = entity
        return entity

    def update_many(self, query: Any, changes: Mapping[str, Any]) -> Tuple[int, List[Any]]:
        query = self._as_query(query)
        table = self._resource._table(query.target)
        records = []
        for key, record in list(table.items()):
            if query.matches(record):
                updated = _with_fields(record, **changes)
                table[key] = updated
                records.append(updated)
        return len(records), records

    def delete_one(self, entity: Any) -> Any:
        table = self._resource._table(entity)
        entity_id = getattr(entity, "id", None)
        if entity_id not in table:
            raise LookupError(f"{_table_name(entity)} with id {entity_id!r} not found")
        return table.pop(entity_id)

    def delete_many(self, query: Any) -> Tuple[int, List[Any]]:
        query = self._as_query(query)
        table = self._resource._table(query.target)
        records = [r for r in table.values() if query.matches(r)]
        for record in records:
            del table[record.id]
        return len(records), records

    def all(self, target: Any) -> List[Any]:
        return list(self._resource._table(target).values())

    @contextmanager
    def savepoint(self) -> Iterator["InMemoryRepo"]:
        snapshot = self._resource._snapshot()
        try:
            yield self
        except BaseException:
            self._resource._restore(snapshot)
            raise

    def nested(self) -> _NestedMemoryResource:
        return _NestedMemoryResource(self._resource)

    @staticmethod
    def _as_query(query: Any) -> Query:
        if isinstance(query, Query):
            return query
        if isinstance(query, (type, str)):
            return Query(query)
        raise TypeError(f"Unsupported query for InMemoryRepo: {query!r}")


class InMemoryUnit(BaseAtomicUnit):
    """Unidade atômica de topo (ou savepoint, quando `nested`)."""

    def __init__(self, resource: InMemoryResource, *, nested: bool) -> None:
        super().__init__(clock=resource._clock)
        self._resource = resource
        self._nested = nested

    def commit(self, *, timeout: Optional[float] = None) -> CommitOutcome:
        resource = self._resource
        with resource._lock:
            snapshot = resource._snapshot()
            try:
                results, aborted = self._run_operations(InMemoryRepo(resource), timeout)
            except BaseException:
                self._rollback(snapshot)
                raise

            if aborted is not None:
                self._rollback(snapshot)
                return aborted

            if not self._nested:
                resource.commits += 1
            return Committed(results)

    def _rollback(self, snapshot: Any) -> None:
        self._resource._restore(snapshot)
        if not self._nested:
            self._resource.rollbacks += 1


