# src/atlas_txflow/core/pipeline/context.py
"""
Contexto de execução acumulado do pipeline.

Este módulo define o `ExecutionContext`, a estrutura canônica utilizada
para compartilhar resultados entre Steps durante uma execução do
pipeline no Atlas TxFlow.

O ExecutionContext atua como o único meio permitido de:
    - leitura dos parâmetros de entrada (chave reservada `params`)
    - leitura dos resultados de Steps anteriores (por nome do Step)
    - registro de logs estruturados de execução
    - coleta de warnings não fatais associados a Steps
    - submissão de tarefas destacadas (fire-and-forget)
    - execução de sub-pipelines (grupos) pelo mesmo Engine

Princípios fundamentais:
    - Isolamento por execução (cada execução possui seu próprio contexto)
    - Crescimento monotônico: resultados nunca são sobrescritos
    - Leitura via interface `Mapping` (sem mutação pelos Steps)
    - Ausência de estado global compartilhado

Invariantes:
    - `params` está sempre presente e nunca é substituído
    - Cada nome de Step é registrado no máximo uma vez
    - Logs sempre incluem `run_id` e `step`
    - Warnings são agrupados por nome de Step

Limites explícitos:
    - Não executa Steps
    - Não planeja nem coordena execução
    - Não persiste dados
    - Não abre nem confirma transações

Este módulo existe para garantir isolamento,
clareza e rastreabilidade na execução de pipelines.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterator, List, Optional

PARAMS_KEY = "params"


@dataclass(eq=False)
class ExecutionContext(Mapping):
    """
    Contexto de execução acumulado de uma execução do pipeline.

    Esta classe é passada (por referência, somente leitura) à action de
    cada Step. Ela se comporta como um `Mapping` de nome de Step para
    resultado, com a chave reservada `params` contendo a entrada original.

    O ExecutionContext consolida:
        - identidade da execução (run_id, created_at)
        - parâmetros de entrada
        - resultados acumulados dos Steps
        - logs estruturados de execução
        - warnings associados a Steps específicos
        - a capacidade de submeter tarefas destacadas

    Decisões arquiteturais:
        - Steps leem apenas via interface `Mapping` ou `params`
        - Apenas o Engine registra resultados (`record`)
        - A capacidade de tarefas destacadas é injetada, nunca global

    Invariantes:
        - O contexto cresce monotonicamente
        - Um resultado registrado nunca é alterado retroativamente
        - Logs incluem sempre `run_id` e `step`

    Limites explícitos:
        - Não executa Steps
        - Não decide políticas de execução
        - Não persiste dados automaticamente
    """
    run_id: str
    params: Mapping
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    detach_fn: Optional[Callable[..., Any]] = field(default=None, repr=False)
    nested_fn: Optional[Callable[..., Any]] = field(default=None, repr=False)

    _results: Dict[str, Any] = field(default_factory=dict, init=False, repr=False)
    events: List[Dict[str, Any]] = field(default_factory=list, init=False)
    warnings: Dict[str, List[str]] = field(default_factory=dict, init=False)

    def __post_init__(self) -> None:
        self._results[PARAMS_KEY] = self.params

    # -----------------------------
    # Mapping (somente leitura)
    # -----------------------------
    def __getitem__(self, key: str) -> Any:
        return self._results[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._results)

    def __len__(self) -> int:
        return len(self._results)

    @property
    def results(self) -> Dict[str, Any]:
        """Resultados dos Steps, sem a chave reservada `params`."""
        return {k: v for k, v in self._results.items() if k != PARAMS_KEY}

    def as_dict(self) -> Dict[str, Any]:
        return dict(self._results)

    # -----------------------------
    # Registro (uso exclusivo do Engine)
    # -----------------------------
    def record(self, name: str, value: Any) -> None:
        if name == PARAMS_KEY:
            raise KeyError(f"'{PARAMS_KEY}' is reserved for the input parameters")
        if name in self._results:
            raise KeyError(f"Result for step '{name}' already recorded")
        self._results[name] = value

    # -----------------------------
    # Tarefas destacadas
    # -----------------------------
    def detach(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Submete `fn` sem bloquear o pipeline; retorna o handle do runner."""
        if self.detach_fn is None:
            raise RuntimeError("No detached runner bound to this execution context")
        return self.detach_fn(fn, *args, **kwargs)

    def run_nested(self, pipeline: Any, resource: Any) -> Any:
        """Executa `pipeline` contra `resource` pelo mesmo Engine; retorna o Outcome."""
        if self.nested_fn is None:
            raise RuntimeError("No engine bound to this execution context")
        return self.nested_fn(pipeline, resource)

    # -----------------------------
    # Logging & warnings
    # -----------------------------
    def log(self, *, step: str, level: str, message: str, **extra: Any) -> None:
        event = {
            "run_id": self.run_id,
            "step": step,
            "level": level,
            "message": message,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        event.update(extra)
        self.events.append(event)

    def add_warning(self, *, step: str, message: str) -> None:
        if step not in self.warnings:
            self.warnings[step] = []
        self.warnings[step].append(message)
