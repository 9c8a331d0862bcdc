# src/atlas_txflow/core/pipeline/registry.py
"""
Registro estrutural de Steps do pipeline.

Este módulo define o `StepRegistry`, responsável por registrar
StepDescriptors e validar a integridade estrutural do pipeline antes de
qualquer planejamento ou execução.

O registry atua como uma camada de proteção antecipada, garantindo que:
    - cada Step possua um nome válido
    - não existam nomes duplicados
    - a ordem de declaração dos Steps seja preservada explicitamente

Decisões arquiteturais:
    - A validação ocorre no momento da montagem, antes do planner
    - Duplicidade é tratada como falha fatal de montagem
    - O registry não resolve dependências nem executa Steps

Invariantes:
    - Cada Step registrado possui um `name` único
    - A lista de Steps reflete exatamente a ordem de declaração

Limites explícitos:
    - Não planeja execução (não é DAG planner)
    - Não executa pipeline
    - Não interage com ExecutionContext ou resource

Este módulo existe para garantir integridade estrutural,
previsibilidade e segurança na definição do pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List

from atlas_txflow.core.exceptions import InvalidStepError, TxFlowException

from .step import StepDescriptor


class DuplicateStepNameError(TxFlowException, ValueError):
    """
    Exceção levantada quando dois Steps compartilham o mesmo nome.

    Decisões arquiteturais:
        - Nomes de Step são chaves do ExecutionContext e devem ser únicos
        - A duplicidade é tratada como erro fatal de montagem
        - A exceção é lançada no registro ou no merge, antes da execução

    Limites explícitos:
        - Não tenta renomear Steps automaticamente
    """

    def __init__(self, name: str) -> None:
        super().__init__(
            f"Duplicate step name: {name}",
            details={"step": name},
            hint="Renomeie um dos Steps; nomes são chaves do contexto de execução.",
        )
        self.name = name


@dataclass
class StepRegistry:
    """
    Registro canônico de Steps para validação estrutural pré-execução.

    Decisões arquiteturais:
        - A ordem de declaração é preservada separadamente
        - A estrutura interna não é exposta diretamente

    Invariantes:
        - Cada `name` é único no registry
        - Apenas StepDescriptors são aceitos
    """

    _steps: Dict[str, StepDescriptor] = field(default_factory=dict, init=False, repr=False)
    _order: List[str] = field(default_factory=list, init=False, repr=False)

    @classmethod
    def of(cls, steps: Iterable[StepDescriptor]) -> "StepRegistry":
        reg = cls()
        for step in steps:
            reg.declare(step)
        return reg

    def declare(self, step: StepDescriptor) -> None:
        if not isinstance(step, StepDescriptor):
            raise InvalidStepError(
                f"Expected StepDescriptor, got {type(step).__name__}",
                hint="Use build_descriptor() ou os builders de atlas_txflow.builders",
            )

        if step.name in self._steps:
            raise DuplicateStepNameError(step.name)

        self._steps[step.name] = step
        self._order.append(step.name)

    def get(self, name: str) -> StepDescriptor:
        return self._steps[name]

    def __contains__(self, name: object) -> bool:
        return name in self._steps

    def __len__(self) -> int:
        return len(self._order)

    def list(self) -> List[StepDescriptor]:
        return [self._steps[name] for name in self._order]
