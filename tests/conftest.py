# tests/conftest.py
"""
Fixtures compartilhados para testes do Atlas TxFlow.

Este módulo define fixtures reutilizáveis que fornecem:
- entidades de domínio mínimas (Order, OrderItem, Customer)
- um resource transacional em memória, isolado por teste
- um runner de Steps destacados que apenas registra submissões
- um Engine que não dorme entre tentativas (pausas são registradas)
- um relógio controlável para testes de timeout

O objetivo destas fixtures é permitir testes do core
(pipeline, engine, resource e config) sem depender de:
- banco de dados real
- threads de background
- tempo de parede

Decisões arquiteturais:
    - Entidades são dataclasses simples com `id` opcional
    - O runner destacado é síncrono e determinístico
    - Pausas de retry são capturadas em lista, nunca executadas

Invariantes:
    - Cada teste recebe um resource novo e vazio
    - Nenhuma fixture executa pipeline
    - Nenhuma fixture realiza I/O

Este módulo existe como infraestrutura de teste e não
como validação funcional do framework.
"""

from dataclasses import dataclass
from typing import Any, List, Optional

import pytest


@dataclass
class Customer:
    name: str
    email: str
    id: Optional[int] = None


@dataclass
class Order:
    customer_id: int
    total: float = 0.0
    status: str = "pending"
    id: Optional[int] = None


@dataclass
class OrderItem:
    order_id: int
    sku: str
    qty: int = 1
    id: Optional[int] = None


@pytest.fixture
def entities():
    """
    Fixture que fornece as classes de entidade usadas nos testes.

    Retorna um namespace simples para evitar imports cruzados entre
    módulos de teste (`entities.Order`, `entities.OrderItem`, ...).
    """

    class _Entities:
        pass

    ns = _Entities()
    ns.Customer = Customer
    ns.Order = Order
    ns.OrderItem = OrderItem
    return ns


@pytest.fixture
def memory_resource():
    """
    Fixture que fornece um InMemoryResource vazio.

    Invariantes:
        - commits == rollbacks == 0
        - nenhuma tabela populada
    """
    from atlas_txflow.core.resource.memory import InMemoryResource

    return InMemoryResource()


class RecordingRunner:
    """Runner destacado síncrono: registra e executa a função imediatamente."""

    def __init__(self) -> None:
        self.submitted: List[tuple] = []
        self.errors: List[BaseException] = []

    def submit(self, step: str, fn: Any, *args: Any, **kwargs: Any) -> str:
        self.submitted.append((step, fn, args, kwargs))
        try:
            fn(*args, **kwargs)
        except Exception as e:  # noqa: BLE001
            self.errors.append(e)
        return f"handle:{step}"


@pytest.fixture
def recording_runner():
    return RecordingRunner()


@pytest.fixture
def sleeps():
    """Lista onde o Engine de teste registra as pausas solicitadas."""
    return []


@pytest.fixture
def engine(recording_runner, sleeps):
    """
    Fixture que fornece um Engine determinístico.

    Decisões arquiteturais:
        - `sleep` registra a pausa em `sleeps` em vez de dormir
        - Steps destacados executam de forma síncrona via RecordingRunner
    """
    from atlas_txflow.core.engine.engine import Engine

    return Engine(detached_runner=recording_runner, sleep=sleeps.append)


class FakeClock:
    """Relógio monotônico manual: avança apenas via `advance`."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def engine_config_defaults_yaml() -> str:
    """Arquivo de defaults típico de um projeto (seção `engine` + chaves livres)."""
    return """
engine:
  timeout_seconds: 30
  retry_delay_seconds: 0
  detached_workers: 4
  log_level: INFO
  log_format: console
app:
  name: loja
  tags: [orders, billing]
"""


@pytest.fixture
def engine_config_local_yaml() -> str:
    """Overrides locais: prazo menor e log em JSON."""
    return """
engine:
  timeout_seconds: 12.5
  log_format: json
app:
  tags: [orders]
"""
