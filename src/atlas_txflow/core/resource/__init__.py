# src/atlas_txflow/core/resource/__init__.py
"""
Resources transacionais do Atlas TxFlow.

    - base: contrato (Operation, Committed, Aborted, Repo, AtomicUnit,
      TransactionalResource) e o laço de execução compartilhado
    - memory: resource em memória com rollback por snapshot
    - sqlalchemy_resource: adaptador para `Session` do SQLAlchemy
      (extra opcional `sqlalchemy`, importado explicitamente)
"""

from .base import (
    Aborted,
    AtomicUnit,
    BaseAtomicUnit,
    Committed,
    Operation,
    OperationError,
    Repo,
    TransactionalResource,
)
from .memory import InMemoryRepo, InMemoryResource, Query

__all__ = [
    "Aborted",
    "AtomicUnit",
    "BaseAtomicUnit",
    "Committed",
    "InMemoryRepo",
    "InMemoryResource",
    "Operation",
    "OperationError",
    "Query",
    "Repo",
    "TransactionalResource",
]
