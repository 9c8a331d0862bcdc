# tests/core/resource/test_memory_resource.py
"""
Testes do resource transacional em memória e do contrato de unidade.

Os testes asseguram que:
- operações executam em ordem e seus resultados são devolvidos
- OperationError aborta e restaura o estado anterior
- exceções inesperadas revertem e propagam
- savepoints desfazem apenas o seu escopo
- unidades aninhadas não alteram os contadores do resource
- o prazo cooperativo aborta antes da operação atrasada
"""

import pytest

from atlas_txflow.core.exceptions import TransactionTimeout
from atlas_txflow.core.pipeline.types import StepKind
from atlas_txflow.core.resource.base import (
    Aborted,
    AtomicUnit,
    Committed,
    Operation,
    OperationError,
    Repo,
    TransactionalResource,
)
from atlas_txflow.core.resource.memory import InMemoryRepo, InMemoryResource, Query


def _op(name, fn):
    return Operation(name, StepKind.RUN, fn)


def test_contract_protocols(memory_resource):
    assert isinstance(memory_resource, TransactionalResource)
    assert isinstance(memory_resource.begin(), AtomicUnit)
    assert isinstance(InMemoryRepo(memory_resource), Repo)


def test_commit_runs_operations_in_order(memory_resource, entities):
    unit = memory_resource.begin()
    unit.add_operation(_op("order", lambda repo: repo.insert_one(entities.Order(customer_id=1))))
    unit.add_operation(_op("count", lambda repo: len(repo.all(entities.Order))))

    outcome = unit.commit()

    assert isinstance(outcome, Committed)
    assert outcome.ok
    assert list(outcome.results) == ["order", "count"]
    assert outcome.results["order"].id == 1
    assert outcome.results["count"] == 1
    assert memory_resource.commits == 1


def test_operation_error_aborts_and_restores(memory_resource, entities):
    unit = memory_resource.begin()
    unit.add_operation(_op("order", lambda repo: repo.insert_one(entities.Order(customer_id=1))))

    def refuse(repo):
        raise OperationError("insufficient stock")

    unit.add_operation(_op("stock", refuse))
    outcome = unit.commit()

    assert isinstance(outcome, Aborted)
    assert not outcome.ok
    assert outcome.operation == "stock"
    assert outcome.reason == "insufficient stock"
    assert list(outcome.results) == ["order"]
    assert memory_resource.count(entities.Order) == 0
    assert memory_resource.rollbacks == 1


def test_unexpected_exception_rolls_back_and_propagates(memory_resource, entities):
    unit = memory_resource.begin()
    unit.add_operation(_op("order", lambda repo: repo.insert_one(entities.Order(customer_id=1))))
    unit.add_operation(_op("boom", lambda repo: 1 / 0))

    with pytest.raises(ZeroDivisionError):
        unit.commit()

    assert memory_resource.count(entities.Order) == 0
    assert memory_resource.rollbacks == 1


def test_add_operation_validates(memory_resource):
    unit = memory_resource.begin()
    unit.add_operation(_op("a", lambda repo: None))

    with pytest.raises(ValueError, match="Duplicate operation name"):
        unit.add_operation(_op("a", lambda repo: None))
    with pytest.raises(TypeError):
        unit.add_operation(lambda repo: None)
    assert [op.name for op in unit.operations] == ["a"]


def test_timeout_aborts_before_late_operation(entities, fake_clock):
    resource = InMemoryResource(clock=fake_clock)
    unit = resource.begin()
    unit.add_operation(_op("slow", lambda repo: fake_clock.advance(3)))
    unit.add_operation(_op("late", lambda repo: repo.insert_one(entities.Order(customer_id=1))))

    outcome = unit.commit(timeout=2)

    assert not outcome.ok
    assert outcome.operation == "late"
    assert isinstance(outcome.reason, TransactionTimeout)
    assert outcome.reason.operation == "late"
    assert resource.count(entities.Order) == 0


def test_insert_assigns_ids_and_rejects_duplicates(memory_resource, entities):
    repo = InMemoryRepo(memory_resource)
    a = repo.insert_one(entities.Customer("Ana", "a@x"))
    b = repo.insert_one(entities.Customer("Bia", "b@x"))
    explicit = repo.insert_one(entities.Customer("Caio", "c@x", id=10))

    assert (a.id, b.id, explicit.id) == (1, 2, 10)
    with pytest.raises(ValueError, match="Duplicate id"):
        repo.insert_one(entities.Customer("Dup", "d@x", id=10))


def test_explicit_ids_advance_auto_increment(memory_resource, entities):
    repo = InMemoryRepo(memory_resource)
    ana = repo.insert_one(entities.Customer("Ana", "a@x", id=1))
    bia = repo.insert_one(entities.Customer("Bia", "b@x"))

    assert (ana.id, bia.id) == (1, 2)
    assert [c.name for c in repo.all(entities.Customer)] == ["Ana", "Bia"]

    repo.insert_one(entities.Customer("Caio", "c@x", id=7))
    assert repo.insert_one(entities.Customer("Duda", "d@x")).id == 8


def test_allocated_ids_skip_taken_keys(memory_resource, entities):
    repo = InMemoryRepo(memory_resource)
    # registro gravado direto na tabela, sem avançar o contador
    memory_resource._table(entities.Customer)[1] = entities.Customer("Ana", "a@x", id=1)

    assert repo.insert_one(entities.Customer("Bia", "b@x")).id == 2
    assert memory_resource.count(entities.Customer) == 2


def test_insert_many_builds_from_mappings(memory_resource, entities):
    repo = InMemoryRepo(memory_resource)
    count, records = repo.insert_many(
        entities.OrderItem, [{"order_id": 1, "sku": "A"}, entities.OrderItem(1, "B")]
    )
    assert count == 2
    assert [r.sku for r in records] == ["A", "B"]

    with pytest.raises(TypeError):
        repo.insert_many("OrderItem", [{"order_id": 1, "sku": "C"}])


def test_update_and_delete(memory_resource, entities):
    repo = InMemoryRepo(memory_resource)
    order = repo.insert_one(entities.Order(customer_id=1))

    from dataclasses import replace

    updated = repo.update_one(replace(order, status="paid"))
    assert updated.status == "paid"
    assert repo.delete_one(updated).id == order.id

    with pytest.raises(LookupError):
        repo.update_one(order)
    with pytest.raises(LookupError):
        repo.delete_one(order)


def test_bulk_queries(memory_resource, entities):
    repo = InMemoryRepo(memory_resource)
    repo.insert_many(entities.OrderItem, [{"order_id": 1, "sku": s} for s in "AAB"])

    count, records = repo.update_many(Query(entities.OrderItem, {"sku": "A"}), {"qty": 3})
    assert count == 2
    assert all(r.qty == 3 for r in records)

    count, _ = repo.delete_many(Query("OrderItem", lambda r: r.sku == "B"))
    assert count == 1

    count, _ = repo.update_many(entities.OrderItem, {"qty": 0})
    assert count == 2

    with pytest.raises(TypeError):
        repo.delete_many(42)

    count, _ = repo.delete_many(entities.OrderItem)
    assert count == 2
    assert repo.all(entities.OrderItem) == []


def test_savepoint_restores_only_its_scope(memory_resource, entities):
    repo = InMemoryRepo(memory_resource)
    repo.insert_one(entities.Customer("Ana", "a@x"))

    with pytest.raises(RuntimeError):
        with repo.savepoint():
            repo.insert_one(entities.Customer("Bia", "b@x"))
            raise RuntimeError("undo")

    assert [c.name for c in repo.all(entities.Customer)] == ["Ana"]
    # o contador de ids também volta
    assert repo.insert_one(entities.Customer("Caio", "c@x")).id == 2


def test_nested_units_do_not_touch_counters(memory_resource, entities):
    unit = memory_resource.begin()

    def run_nested(repo):
        nested = repo.nested().begin()
        nested.add_operation(_op("inner", lambda r: r.insert_one(entities.Customer("Ana", "a@x"))))

        def refuse(r):
            raise OperationError("no")

        nested.add_operation(_op("refuse", refuse))
        return nested.commit()

    unit.add_operation(_op("outer_order", lambda repo: repo.insert_one(entities.Order(customer_id=1))))
    unit.add_operation(_op("group", run_nested))
    outcome = unit.commit()

    assert outcome.ok
    assert isinstance(outcome.results["group"], Aborted)
    assert memory_resource.count(entities.Customer) == 0
    assert memory_resource.count(entities.Order) == 1
    assert (memory_resource.commits, memory_resource.rollbacks) == (1, 0)
