# tests/core/engine/test_planner_toposort.py
"""
Testes de ordenação topológica do planner do engine.

Este módulo valida o comportamento do planner responsável por
ordenar Steps respeitando dependências declaradas, de forma
estável e determinística.

Os testes asseguram que:
- dependências explícitas reordenam Steps de fato
- empates são resolvidos pela ordem de declaração
- a mesma entrada sempre produz a mesma ordem

Decisões arquiteturais:
    - Kahn com heap indexado pela posição de declaração
    - Nenhuma ordenação lexicográfica implícita

Limites explícitos:
    - Não valida grafos inválidos (ver test_planner_invalid_graph)
    - Não executa Steps
"""

import pytest

try:
    from atlas_txflow.core.engine.planner import plan_execution
    from atlas_txflow.core.pipeline.step import build_descriptor
except Exception as e:  # noqa: BLE001
    plan_execution = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    """
    Garante que o planner esteja disponível para os testes.

    Decisões arquiteturais:
        - Falha antecipada e explícita quando o planner está ausente
        - Não tenta fallback nem implementação alternativa
    """
    if _IMPORT_ERR is not None:
        pytest.fail(f"""Missing planner. Implement:
- atlas_txflow.core.engine.planner.plan_execution(steps) -> list
Import error: {_IMPORT_ERR}
""")


def _step(name, depends_on=None):
    return build_descriptor(name, "run", function=lambda ctx: None, depends_on=depends_on)


def _names(steps):
    return [s.name for s in steps]


def test_toposort_linear():
    """
    Verifica ordenação de uma cadeia linear declarada fora de ordem.

    Invariantes:
        - Nenhum Step aparece antes de suas dependências
        - Todos os Steps aparecem exatamente uma vez
    """
    _require_imports()
    steps = [
        _step("c", depends_on=["b"]),
        _step("b", depends_on=["a"]),
        _step("a"),
    ]
    assert _names(plan_execution(steps)) == ["a", "b", "c"]


def test_toposort_without_dependencies_keeps_declaration_order():
    _require_imports()
    steps = [_step("zeta"), _step("alpha"), _step("mid")]
    assert _names(plan_execution(steps)) == ["zeta", "alpha", "mid"]


def test_toposort_ties_broken_by_declaration_index():
    """
    Verifica a estabilidade do desempate.

    `send_email` depende de `create_order`, declarado depois; `audit` e
    `validate` não dependem de nada. Entre os prontos, quem foi declarado
    primeiro executa primeiro.
    """
    _require_imports()
    steps = [
        _step("validate"),
        _step("send_email", depends_on="create_order"),
        _step("create_order", depends_on="validate"),
        _step("audit"),
    ]
    assert _names(plan_execution(steps)) == ["validate", "create_order", "send_email", "audit"]


def test_toposort_diamond():
    _require_imports()
    steps = [
        _step("d", depends_on=["b", "c"]),
        _step("c", depends_on=["a"]),
        _step("b", depends_on=["a"]),
        _step("a"),
    ]
    assert _names(plan_execution(steps)) == ["a", "c", "b", "d"]


def test_toposort_is_deterministic_and_tolerates_repeated_dependency():
    _require_imports()
    steps = [_step("b", depends_on=["a", "a"]), _step("a")]
    first = _names(plan_execution(steps))
    assert first == ["a", "b"]
    assert all(_names(plan_execution(steps)) == first for _ in range(5))


def test_empty_plan():
    _require_imports()
    assert plan_execution([]) == []
