# src/atlas_txflow/__init__.py
"""
Atlas TxFlow — pipelines transacionais de Steps nomeados.

Uma camada declarativa/funcional sobre um resource transacional: o
chamador monta um conjunto de Steps nomeados, o Atlas TxFlow os ordena
por dependências declaradas, executa-os contra um contexto acumulado de
resultados, aplica políticas de retry e continue-on-error por Step,
dispara hooks e delega commit/rollback atômico ao resource.

Arquitetura em alto nível:
    - core.pipeline → Steps, contexto, registry e definição imutável
    - core.engine   → planner (DAG), hooks, engine e tarefas destacadas
    - core.resource → contrato transacional e adaptadores
    - core.config   → configuração do Engine, logging e definições YAML
    - builders      → builders funcionais (`Pipeline.pipe`)
    - dsl           → transações declaradas como classes
    - utils         → leitura de contextos e Outcomes

Limites explícitos:
    - Não implementa ACID próprio
    - Não coordena transações distribuídas
    - Não faz recuperação após queda do processo
"""

from .core.engine.engine import Engine, execute
from .core.exceptions import (
    AsyncStepError,
    InvalidStepError,
    RetriesExhausted,
    StepFailure,
    TransactionTimeout,
    TxFlowConfigurationError,
    TxFlowException,
)
from .core.engine.planner import CycleDetectedError, UnknownDependencyError
from .core.pipeline.context import ExecutionContext
from .core.pipeline.definition import Pipeline
from .core.pipeline.registry import DuplicateStepNameError
from .core.pipeline.step import StepDescriptor, build_descriptor
from .core.pipeline.types import (
    BulkResult,
    Err,
    Failure,
    Ok,
    OnError,
    Placeholder,
    StepKind,
    Success,
)
from .core.resource import InMemoryResource, Query

__all__ = [
    "AsyncStepError",
    "BulkResult",
    "CycleDetectedError",
    "DuplicateStepNameError",
    "Engine",
    "Err",
    "ExecutionContext",
    "Failure",
    "InMemoryResource",
    "InvalidStepError",
    "Ok",
    "OnError",
    "Pipeline",
    "Placeholder",
    "Query",
    "RetriesExhausted",
    "StepDescriptor",
    "StepFailure",
    "StepKind",
    "Success",
    "TransactionTimeout",
    "TxFlowConfigurationError",
    "TxFlowException",
    "UnknownDependencyError",
    "build_descriptor",
    "execute",
]
