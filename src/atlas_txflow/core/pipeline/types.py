# src/atlas_txflow/core/pipeline/types.py
"""
Tipos canônicos do pipeline do Atlas TxFlow.

Este módulo define as estruturas e enums fundamentais que padronizam
a comunicação entre Steps, Engine e o resource transacional.

Os tipos aqui definidos representam:
    - o formato de operação de cada Step (StepKind)
    - a política de erro por Step (OnError)
    - marcadores explícitos de resultado de Step (Ok, Err)
    - valores especiais registrados no contexto (BulkResult, Placeholder)
    - o resultado discriminado de uma execução (Success, Failure)

Princípios fundamentais:
    - Tipos são estáveis e imutáveis
    - Valores textuais dos enums são canônicos (usados em YAML e eventos)
    - Nenhuma lógica de execução vive neste módulo

Invariantes:
    - Todo Outcome é exatamente um de Success ou Failure
    - BulkResult sempre carrega contagem e registros afetados
    - Placeholder é falsy e preserva o motivo da falha absorvida

Limites explícitos:
    - Não executa Steps
    - Não planeja pipelines
    - Não interage com o resource transacional

Este módulo existe para garantir consistência,
interoperabilidade e clareza semântica no pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Union

from atlas_txflow.core.errors import TxFlowErrorPayload, error_payload_for

if TYPE_CHECKING:
    from .context import ExecutionContext


class StepKind(str, Enum):
    """
    Formato de operação de um Step no pipeline.

    Diferente de uma classificação puramente informativa, o `kind` define
    qual primitiva do resource transacional será usada para executar o Step.
    O conjunto é fechado: cada valor corresponde a exatamente uma variante
    de action em `step.py`.

    Tipos definidos:
        - RUN: função arbitrária (pode usar o repo dentro da transação)
        - INSERT_ONE / UPDATE_ONE / DELETE_ONE: operação sobre um registro
        - INSERT_MANY / UPDATE_MANY / DELETE_MANY: operação em lote,
          com resultado `BulkResult(count, records)`

    Invariantes:
        - Todo Step possui exatamente um `kind`
        - O valor textual do enum é estável e canônico
    """
    RUN = "run"
    INSERT_ONE = "insert_one"
    INSERT_MANY = "insert_many"
    UPDATE_ONE = "update_one"
    UPDATE_MANY = "update_many"
    DELETE_ONE = "delete_one"
    DELETE_MANY = "delete_many"


BULK_KINDS = frozenset({StepKind.INSERT_MANY, StepKind.UPDATE_MANY, StepKind.DELETE_MANY})


class OnError(str, Enum):
    """
    Política aplicada quando um Step falha.

    - ABORT: a falha encerra o pipeline e a unidade atômica é revertida (padrão)
    - CONTINUE: a falha é absorvida, um `Placeholder` é registrado e o
      pipeline segue para o próximo Step

    Não existe política global implícita: a escolha é sempre por Step.
    """
    ABORT = "abort"
    CONTINUE = "continue"


@dataclass(frozen=True)
class Ok:
    """Resultado explícito de sucesso de um Step."""
    value: Any = None


@dataclass(frozen=True)
class Err:
    """Resultado explícito de falha de um Step, com o motivo."""
    reason: Any


StepReturn = Union[Ok, Err]


@dataclass(frozen=True)
class BulkResult:
    """
    Resultado de um Step em lote (insert_many / update_many / delete_many).

    Pode ser desempacotado como par: `count, records = ctx["create_items"]`.
    """
    count: int
    records: List[Any] = field(default_factory=list)

    def __iter__(self) -> Iterator[Any]:
        return iter((self.count, self.records))


@dataclass(frozen=True)
class Placeholder:
    """
    Valor registrado no contexto para um Step `on_error=continue` que falhou.

    É falsy, permitindo `if ctx["send_email"]:` em Steps posteriores, e
    preserva o motivo da falha para inspeção.
    """
    reason: Any = None

    def __bool__(self) -> bool:
        return False


@dataclass(frozen=True)
class Success:
    """
    Execução concluída e confirmada pelo resource transacional.

    Campos:
        - context: ExecutionContext final (params + resultados de todos os Steps)
    """
    context: "ExecutionContext"

    ok = True

    @property
    def results(self) -> Dict[str, Any]:
        return self.context.results


@dataclass(frozen=True)
class Failure:
    """
    Execução interrompida no primeiro Step que falhou (unidade revertida).

    Campos:
        - step: nome do Step (ou operação) que falhou
        - reason: motivo da falha (valor de `Err`, exceção ou `RetriesExhausted`)
        - context: ExecutionContext acumulado até a falha
    """
    step: str
    reason: Any
    context: "ExecutionContext"

    ok = False

    @property
    def error(self) -> TxFlowErrorPayload:
        return error_payload_for(self.step, self.reason)


Outcome = Union[Success, Failure]
