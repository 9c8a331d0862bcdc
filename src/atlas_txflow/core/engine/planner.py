# src/atlas_txflow/core/engine/planner.py
"""
Planejador de execução do pipeline (DAG).

Este módulo é responsável por validar a estrutura do pipeline e produzir
uma ordem de execução topológica determinística dos Steps declarados.

O planner opera exclusivamente em nível estrutural, analisando:
    - nomes de Steps
    - dependências declaradas
    - formação de ciclos
    - consistência do grafo

A saída do planner é uma sequência linear de Steps pronta para execução
pelo Engine, respeitando integralmente as dependências explícitas.

Princípios fundamentais:
    - O pipeline deve formar um DAG válido
    - A ordenação é determinística para a mesma entrada
    - Validação estrutural ocorre antes de qualquer execução

Decisões arquiteturais:
    - `depends_on` reordena Steps de fato (não é apenas documentação)
    - Empates são resolvidos pela ordem de declaração (Kahn com heap
      indexado pela posição original), e não por ordem lexicográfica:
      a ordem escrita pelo autor é preservada sempre que possível
    - Ciclos são detectados por DFS com marcação de cores e reportados
      com o caminho completo (ex.: a -> b -> a)
    - Erros estruturais são tratados como falhas fatais

Invariantes:
    - Nenhum Step aparece antes de suas dependências
    - Todos os Steps aparecem exatamente uma vez
    - A mesma definição de pipeline produz sempre a mesma ordem

Limites explícitos:
    - Não executa Steps
    - Não interage com ExecutionContext
    - Não decide políticas de execução

Este módulo existe para garantir correção estrutural,
determinismo e previsibilidade na execução de pipelines.
"""

from __future__ import annotations

import heapq
from typing import Dict, Iterable, List, Optional, Tuple

from atlas_txflow.core.exceptions import TxFlowException
from atlas_txflow.core.pipeline.registry import StepRegistry
from atlas_txflow.core.pipeline.step import StepDescriptor


class UnknownDependencyError(TxFlowException, ValueError):
    """
    Exceção levantada quando um Step referencia uma dependência inexistente.

    Decisões arquiteturais:
        - Todas as dependências devem ser explícitas e resolvíveis
        - A validação ocorre antes de qualquer execução

    Limites explícitos:
        - Não tenta inferir ou criar Steps ausentes
    """

    def __init__(self, step: str, dependency: str) -> None:
        super().__init__(
            f"Step '{step}' depends on unknown step '{dependency}'",
            details={"step": step, "dependency": dependency},
            hint="Declare o Step ausente ou corrija `depends_on`.",
        )
        self.step = step
        self.dependency = dependency


class CycleDetectedError(TxFlowException, ValueError):
    """
    Exceção levantada quando o grafo de dependências contém um ciclo.

    O atributo `cycle` contém o caminho do primeiro ciclo encontrado,
    começando e terminando no mesmo Step (ex.: ("a", "b", "a")).

    Decisões arquiteturais:
        - Pipelines devem ser acíclicos
        - Nenhuma execução parcial é permitida em presença de ciclos

    Limites explícitos:
        - Não tenta resolver ou quebrar ciclos automaticamente
    """

    def __init__(self, cycle: Tuple[str, ...]) -> None:
        super().__init__(
            "Cycle detected in step dependency graph: " + " -> ".join(cycle),
            details={"cycle": list(cycle)},
            hint="Remova uma das dependências do ciclo.",
        )
        self.cycle = cycle

    @property
    def steps(self) -> Tuple[str, ...]:
        """Steps implicados no ciclo, sem repetição."""
        return tuple(dict.fromkeys(self.cycle))


_WHITE, _GRAY, _BLACK = 0, 1, 2


def _find_cycle(order: List[str], deps: Dict[str, Tuple[str, ...]]) -> Optional[Tuple[str, ...]]:
    color: Dict[str, int] = {name: _WHITE for name in order}
    path: List[str] = []

    def visit(name: str) -> Optional[Tuple[str, ...]]:
        color[name] = _GRAY
        path.append(name)
        for dep in deps[name]:
            if color[dep] == _GRAY:
                return tuple(path[path.index(dep):]) + (dep,)
            if color[dep] == _WHITE:
                found = visit(dep)
                if found:
                    return found
        path.pop()
        color[name] = _BLACK
        return None

    for name in order:
        if color[name] == _WHITE:
            found = visit(name)
            if found:
                return found
    return None


def plan_execution(steps: Iterable[StepDescriptor]) -> List[StepDescriptor]:
    """
    Valida e produz uma ordem de execução topológica determinística de Steps.

    A ordenação é estável: sempre que múltiplos Steps estiverem prontos
    para execução, o que foi declarado primeiro executa primeiro. Um Step
    sem dependências é elegível imediatamente, na ordem de declaração.

    Ordem de validação:
        1. nomes únicos (via StepRegistry)
        2. dependências existentes
        3. ausência de ciclos
        4. ordenação topológica

    Args:
        steps (Iterable[StepDescriptor]): Steps na ordem de declaração.

    Returns:
        List[StepDescriptor]: Steps em ordem topológica determinística.

    Raises:
        DuplicateStepNameError: Se dois Steps compartilharem o mesmo nome.
        UnknownDependencyError: Se um Step declarar dependência inexistente.
        CycleDetectedError: Se houver ciclo no grafo de dependências.
    """
    declared = StepRegistry.of(steps).list()
    index: Dict[str, int] = {s.name: i for i, s in enumerate(declared)}
    names = [s.name for s in declared]

    deps: Dict[str, Tuple[str, ...]] = {}
    for s in declared:
        for dep in s.depends_on:
            if dep not in index:
                raise UnknownDependencyError(s.name, dep)
        deps[s.name] = s.depends_on

    cycle = _find_cycle(names, deps)
    if cycle is not None:
        raise CycleDetectedError(cycle)

    # Kahn's algorithm, ties broken by declaration index
    incoming: Dict[str, int] = {name: len(set(deps[name])) for name in names}
    outgoing: Dict[str, List[str]] = {name: [] for name in names}
    for name in names:
        for dep in set(deps[name]):
            outgoing[dep].append(name)

    ready: List[int] = [index[name] for name in names if incoming[name] == 0]
    heapq.heapify(ready)
    ordered: List[StepDescriptor] = []

    while ready:
        step = declared[heapq.heappop(ready)]
        ordered.append(step)
        for child in outgoing[step.name]:
            incoming[child] -= 1
            if incoming[child] == 0:
                heapq.heappush(ready, index[child])

    return ordered
