# src/atlas_txflow/core/resource/sqlalchemy_resource.py
"""
Resource transacional sobre SQLAlchemy (`Session` síncrona, 2.x).

Cada unidade atômica abre uma `Session` nova a partir da fábrica
informada e executa todas as operações dentro de `session.begin()`.
Savepoints e resources aninhados usam `session.begin_nested()`.

    from sqlalchemy.orm import sessionmaker

    factory = sessionmaker(engine, expire_on_commit=False)
    resource = SQLAlchemyResource(factory)

`expire_on_commit=False` é recomendado: as entidades registradas no
contexto continuam legíveis depois que a sessão é fechada.

Consultas em lote (`update_many` / `delete_many`) aceitam um `Select`
ou uma classe mapeada (equivale a `select(Classe)`).

Requer o extra `sqlalchemy` (`pip install atlas-txflow[sqlalchemy]`).
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Any, Callable, Iterable, Iterator, List, Mapping, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from .base import Aborted, BaseAtomicUnit, Committed, CommitOutcome


class _Rollback(Exception):
    """Interrompe o bloco transacional para que o SQLAlchemy reverta."""

    def __init__(self, aborted: Aborted) -> None:
        super().__init__(aborted.operation)
        self.aborted = aborted


class SQLAlchemyRepo:
    """Capacidade `Repo` sobre uma `Session` em transação."""

    def __init__(self, session: Session, *, clock: Callable[[], float] = time.monotonic) -> None:
        self.session = session
        self._clock = clock

    def insert_one(self, entity: Any) -> Any:
        self.session.add(entity)
        self.session.flush()
        return entity

    def insert_many(self, target: Any, rows: Iterable[Any]) -> Tuple[int, List[Any]]:
        records = [target(**row) if isinstance(row, Mapping) else row for row in rows]
        self.session.add_all(records)
        self.session.flush()
        return len(records), records

    def update_one(self, entity: Any) -> Any:
        merged = self.session.merge(entity)
        self.session.flush()
        return merged

    def update_many(self, query: Any, changes: Mapping[str, Any]) -> Tuple[int, List[Any]]:
        records = list(self.session.scalars(self._select(query)))
        for record in records:
            for key, value in changes.items():
                setattr(record, key, value)
        self.session.flush()
        return len(records), records

    def delete_one(self, entity: Any) -> Any:
        attached = entity if entity in self.session else self.session.merge(entity)
        self.session.delete(attached)
        self.session.flush()
        return entity

    def delete_many(self, query: Any) -> Tuple[int, List[Any]]:
        records = list(self.session.scalars(self._select(query)))
        for record in records:
            self.session.delete(record)
        self.session.flush()
        return len(records), records

    @contextmanager
    def savepoint(self) -> Iterator["SQLAlchemyRepo"]:
        with self.session.begin_nested():
            yield self

    def nested(self) -> "_NestedSQLAlchemyResource":
        return _NestedSQLAlchemyResource(self.session, clock=self._clock)

    @staticmethod
    def _select(query: Any) -> Any:
        if isinstance(query, type):
            return select(query)
        return query


class SQLAlchemyUnit(BaseAtomicUnit):
    """Unidade atômica de topo: uma `Session`, um `session.begin()`."""

    def __init__(self, session_factory: Callable[[], Session], *, clock: Callable[[], float]) -> None:
        super().__init__(clock=clock)
        self._session_factory = session_factory

    def commit(self, *, timeout: Optional[float] = None) -> CommitOutcome:
        session = self._session_factory()
        try:
            try:
                with session.begin():
                    results, aborted = self._run_operations(
                        SQLAlchemyRepo(session, clock=self._clock), timeout
                    )
                    if aborted is not None:
                        raise _Rollback(aborted)
            except _Rollback as rb:
                return rb.aborted
            return Committed(results)
        finally:
            session.close()


class _NestedSQLAlchemyUnit(BaseAtomicUnit):
    """Sub-transação (SAVEPOINT) dentro de uma `Session` já em transação."""

    def __init__(self, session: Session, *, clock: Callable[[], float]) -> None:
        super().__init__(clock=clock)
        self._session = session

    def commit(self, *, timeout: Optional[float] = None) -> CommitOutcome:
        try:
            with self._session.begin_nested():
                results, aborted = self._run_operations(
                    SQLAlchemyRepo(self._session, clock=self._clock), timeout
                )
                if aborted is not None:
                    raise _Rollback(aborted)
        except _Rollback as rb:
            return rb.aborted
        return Committed(results)


class _NestedSQLAlchemyResource:
    def __init__(self, session: Session, *, clock: Callable[[], float]) -> None:
        self._session = session
        self._clock = clock

    def begin(self) -> _NestedSQLAlchemyUnit:
        return _NestedSQLAlchemyUnit(self._session, clock=self._clock)


class SQLAlchemyResource:
    """Resource transacional a partir de uma fábrica de `Session` (ex.: `sessionmaker`)."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if not callable(session_factory):
            raise TypeError("session_factory must be callable")
        self._session_factory = session_factory
        self._clock = clock

    def begin(self) -> SQLAlchemyUnit:
        return SQLAlchemyUnit(self._session_factory, clock=self._clock)
