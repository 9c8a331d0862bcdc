# tests/core/pipeline/test_step_descriptor.py
"""
Testes do contrato de StepDescriptor e da fábrica build_descriptor.

Este módulo valida que:
- cada kind exige exatamente os campos de sua action
- violações estruturais levantam InvalidStepError na construção
- normalizações (str → enum, str → tupla) são aplicadas
- Steps destacados são restritos a `run` sem retry

Invariantes:
    - Nenhum descriptor inválido chega a existir
    - O `kind` é sempre derivado da action

Limites explícitos:
    - Não executa Steps
    - Não valida dependências entre Steps (responsabilidade do planner)
"""

import pytest

try:
    from atlas_txflow.core.exceptions import InvalidStepError
    from atlas_txflow.core.pipeline.step import (
        DeleteMany,
        InsertMany,
        RunAction,
        StepDescriptor,
        UpdateMany,
        build_descriptor,
    )
    from atlas_txflow.core.pipeline.types import OnError, StepKind
except Exception as e:  # noqa: BLE001
    build_descriptor = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    """
    Garante que o contrato de Step esteja disponível para os testes.

    Falha imediatamente (sem fallback) quando `step.py` ou os tipos
    canônicos não podem ser importados.
    """
    if _IMPORT_ERR is not None:
        pytest.fail(f"""Missing step contract. Implement:
- atlas_txflow.core.pipeline.step (StepDescriptor, build_descriptor, actions)
- atlas_txflow.core.pipeline.types (StepKind, OnError)
Import error: {_IMPORT_ERR}
""")


def _fn(ctx):
    return None


def test_run_descriptor_defaults():
    """
    Verifica os valores padrão de um Step `run`.

    Invariantes:
        - on_error padrão é ABORT
        - uma tentativa quando `retry` não é informado
        - depends_on vazio é uma tupla
    """
    _require_imports()
    step = build_descriptor("validate", "run", function=_fn)

    assert step.kind is StepKind.RUN
    assert isinstance(step.action, RunAction)
    assert step.on_error is OnError.ABORT
    assert step.attempts == 1
    assert step.depends_on == ()
    assert step.detached is False


def test_each_kind_maps_to_its_action():
    _require_imports()
    many = build_descriptor("items", "insert_many", target=dict, builder=_fn)
    upd = build_descriptor("bump", "update_many", query=_fn, set=_fn)
    dele = build_descriptor("purge", "delete_many", query=_fn)

    assert isinstance(many.action, InsertMany) and many.action.target is dict
    assert isinstance(upd.action, UpdateMany) and upd.action.changes is _fn
    assert isinstance(dele.action, DeleteMany)
    assert [s.kind.value for s in (many, upd, dele)] == ["insert_many", "update_many", "delete_many"]


def test_missing_and_extra_fields_are_rejected():
    """
    Verifica que cada kind exige exatamente os seus campos.

    Decisões arquiteturais:
        - Campo obrigatório ausente → erro (não há default implícito)
        - Campo de outro kind → erro (evita configuração ignorada em silêncio)
    """
    _require_imports()
    with pytest.raises(InvalidStepError, match="missing target"):
        build_descriptor("items", "insert_many", builder=_fn)

    with pytest.raises(InvalidStepError, match="does not accept builder"):
        build_descriptor("validate", "run", function=_fn, builder=_fn)


def test_unknown_kind_is_rejected():
    _require_imports()
    with pytest.raises(InvalidStepError, match="unknown kind"):
        build_descriptor("x", "upsert", function=_fn)


@pytest.mark.parametrize("name", ["", "   ", None, "params"])
def test_invalid_names_are_rejected(name):
    """
    Verifica que nomes vazios e o nome reservado `params` são rejeitados.

    `params` é a chave reservada da entrada no ExecutionContext; um Step
    com esse nome sobrescreveria os parâmetros.
    """
    _require_imports()
    with pytest.raises(InvalidStepError):
        build_descriptor(name, "run", function=_fn)


def test_non_callable_builder_is_rejected():
    _require_imports()
    with pytest.raises(InvalidStepError, match="requires a callable 'builder'"):
        build_descriptor("order", "insert_one", builder="not callable")


@pytest.mark.parametrize("retry", [0, -1, 1.5, True])
def test_retry_must_be_positive_integer(retry):
    _require_imports()
    with pytest.raises(InvalidStepError, match="retry"):
        build_descriptor("call_api", "run", function=_fn, retry=retry)


@pytest.mark.parametrize("delay", ["1s", -0.5, True, [1]])
def test_retry_delay_must_be_non_negative_number(delay):
    _require_imports()
    with pytest.raises(InvalidStepError, match="retry_delay"):
        build_descriptor("call_api", "run", function=_fn, retry=2, retry_delay=delay)


def test_on_error_normalization():
    _require_imports()
    assert build_descriptor("a", "run", function=_fn, on_error="continue").on_error is OnError.CONTINUE
    assert build_descriptor("b", "run", function=_fn, on_error="rollback").on_error is OnError.ABORT
    with pytest.raises(InvalidStepError, match="on_error"):
        build_descriptor("c", "run", function=_fn, on_error="ignore")


def test_depends_on_string_becomes_tuple():
    _require_imports()
    step = build_descriptor("items", "run", function=_fn, depends_on="order")
    assert step.depends_on == ("order",)


def test_detached_rules():
    """
    Verifica as restrições de Steps destacados.

    Decisões arquiteturais:
        - Apenas Steps `run` podem executar fora da unidade atômica
        - Steps destacados não são reexecutados (sem retry)
    """
    _require_imports()
    assert build_descriptor("notify", "run", function=_fn, detached=True).detached is True

    with pytest.raises(InvalidStepError, match="cannot be detached"):
        build_descriptor("order", "insert_one", builder=_fn, detached=True)

    with pytest.raises(InvalidStepError, match="detached with retry"):
        build_descriptor("notify", "run", function=_fn, detached=True, retry=2)

    with pytest.raises(InvalidStepError, match="needs the open transaction"):
        build_descriptor("notify", "run", function=lambda repo, ctx: None, detached=True)

    # parâmetro com default não conta como repo
    assert build_descriptor("notify", "run", function=lambda ctx, to=None: None, detached=True).detached


def test_run_action_takes_repo():
    _require_imports()

    def with_repo(repo, ctx):
        return None

    def with_default(ctx, strict=False):
        return None

    def with_extras(repo, ctx, *args, verbose=False, **kwargs):
        return None

    assert build_descriptor("a", "run", function=with_repo).action.takes_repo
    assert not build_descriptor("b", "run", function=with_default).action.takes_repo
    assert build_descriptor("c", "run", function=with_extras).action.takes_repo
    assert not build_descriptor("d", "run", function=_fn).action.takes_repo


def test_descriptor_is_immutable():
    _require_imports()
    step = StepDescriptor(name="a", action=RunAction(_fn))
    with pytest.raises(Exception):
        step.name = "b"
