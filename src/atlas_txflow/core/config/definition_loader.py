# src/atlas_txflow/core/config/definition_loader.py
"""
Carregamento de pipelines a partir de definições declarativas (YAML/JSON).

Formato:

    description: Criar pedido
    hooks:
      before: ["orders.hooks:log_start"]
      after:  ["orders.hooks:log_success"]
      error:  ["orders.hooks:log_error"]
    steps:
      - name: validate
        kind: run
        function: "orders.steps:validate"
      - name: create_order
        kind: insert_one
        builder: "orders.steps:build_order"
      - name: create_items
        kind: insert_many
        target: "orders.models:OrderItem"
        builder: "orders.steps:build_items"
        depends_on: [create_order]
      - name: send_email
        kind: run
        function: "orders.steps:send_email"
        on_error: continue
        retry: 3
        async: false

Callables e targets são referências `"modulo:atributo"` (atributos
pontilhados são permitidos, ex.: `"pkg.mod:Classe.metodo"`), resolvidas
com importlib no carregamento.

Decisões arquiteturais:
    - Toda falha estrutural vira `PipelineDefinitionError`, com o índice
      e o nome do Step quando conhecidos
    - O pipeline é resolvido (`plan()`) no carregamento
"""

from __future__ import annotations

import importlib
from pathlib import Path
from typing import Any, Callable, Dict, Mapping

import yaml  # PyYAML

from atlas_txflow.core.exceptions import TxFlowException
from atlas_txflow.core.pipeline.definition import Pipeline
from atlas_txflow.core.pipeline.step import build_descriptor

from .errors import ConfigError, PipelineDefinitionError
from .loader import _load_file

_STEP_KEYS = {
    "name", "kind", "function", "builder", "target", "query", "set",
    "depends_on", "on_error", "retry", "retry_delay", "async", "description",
}
_REFERENCE_KEYS = ("function", "builder", "target", "query", "set")
_HOOK_KINDS = ("before", "after", "error")


def resolve_reference(ref: str) -> Any:
    """Importa `"modulo:atributo"` e retorna o objeto referenciado."""
    if not isinstance(ref, str) or ref.count(":") != 1:
        raise PipelineDefinitionError(f"Referência inválida (esperado 'modulo:atributo'): {ref!r}")

    module_name, attr_path = ref.split(":")
    if not module_name or not attr_path:
        raise PipelineDefinitionError(f"Referência inválida (esperado 'modulo:atributo'): {ref!r}")

    try:
        obj: Any = importlib.import_module(module_name)
    except ImportError as e:
        raise PipelineDefinitionError(f"Módulo não encontrado em {ref!r}: {e}") from e

    for part in attr_path.split("."):
        try:
            obj = getattr(obj, part)
        except AttributeError:
            raise PipelineDefinitionError(f"Atributo '{part}' não encontrado em {ref!r}") from None
    return obj


def _resolve_callable(ref: str) -> Callable[..., Any]:
    obj = resolve_reference(ref)
    if not callable(obj):
        raise PipelineDefinitionError(f"Referência {ref!r} não é chamável")
    return obj


def pipeline_from_dict(data: Mapping[str, Any]) -> Pipeline:
    """
    Constrói (e resolve) um Pipeline a partir de uma tabela declarativa.

    Raises:
        PipelineDefinitionError: estrutura inválida, referência não
            resolvível ou Step rejeitado pelo núcleo (nome duplicado,
            dependência desconhecida, ciclo, campos inválidos).
    """
    if not isinstance(data, Mapping):
        raise PipelineDefinitionError(
            f"Definição de pipeline deve ser dict, recebido: {type(data).__name__}"
        )

    steps_data = data.get("steps")
    if not isinstance(steps_data, list) or not steps_data:
        raise PipelineDefinitionError("Definição de pipeline requer uma lista 'steps' não vazia")

    description = data.get("description")
    if description is not None and not isinstance(description, str):
        raise PipelineDefinitionError("'description' deve ser string")

    pipeline = Pipeline.new(description)

    hooks = data.get("hooks") or {}
    if not isinstance(hooks, Mapping):
        raise PipelineDefinitionError("'hooks' deve ser dict")
    unknown_hooks = sorted(set(hooks) - set(_HOOK_KINDS))
    if unknown_hooks:
        raise PipelineDefinitionError(f"Tipos de hook desconhecidos: {', '.join(unknown_hooks)}")
    for hook_kind in _HOOK_KINDS:
        refs = hooks.get(hook_kind) or []
        if isinstance(refs, str):
            refs = [refs]
        for ref in refs:
            fn = _resolve_callable(ref)
            if hook_kind == "before":
                pipeline = pipeline.with_before_hook(fn)
            elif hook_kind == "after":
                pipeline = pipeline.with_after_hook(fn)
            else:
                pipeline = pipeline.with_error_hook(fn)

    for index, raw in enumerate(steps_data):
        if not isinstance(raw, Mapping):
            raise PipelineDefinitionError(
                f"steps[{index}] deve ser dict, recebido: {type(raw).__name__}"
            )
        try:
            pipeline = pipeline.add_step(_step_from_dict(index, raw))
        except TxFlowException as e:
            raise PipelineDefinitionError(f"steps[{index}]: {e}") from e

    try:
        pipeline.plan()
    except TxFlowException as e:
        raise PipelineDefinitionError(f"Pipeline inválido: {e}") from e

    return pipeline


def _step_from_dict(index: int, raw: Mapping[str, Any]) -> Any:
    where = f"steps[{index}]"
    name = raw.get("name")
    if isinstance(name, str):
        where = f"{where} ('{name}')"

    unknown = sorted(set(raw) - _STEP_KEYS)
    if unknown:
        raise PipelineDefinitionError(f"{where}: chaves desconhecidas: {', '.join(unknown)}")
    if "kind" not in raw:
        raise PipelineDefinitionError(f"{where}: 'kind' é obrigatório")

    fields: Dict[str, Any] = {}
    for key in _REFERENCE_KEYS:
        if raw.get(key) is None:
            continue
        fields[key] = resolve_reference(raw[key]) if key == "target" else _resolve_callable(raw[key])

    try:
        return build_descriptor(
            name,
            raw["kind"],
            depends_on=raw.get("depends_on"),
            on_error=raw.get("on_error", "abort"),
            retry=raw.get("retry"),
            retry_delay=raw.get("retry_delay"),
            detached=bool(raw.get("async", False)),
            description=raw.get("description"),
            **fields,
        )
    except TxFlowException as e:
        raise PipelineDefinitionError(f"{where}: {e}") from e


def load_pipeline(path: str) -> Pipeline:
    """Carrega um Pipeline de um arquivo `.yaml`, `.yml` ou `.json`."""
    file = Path(path)
    if not file.exists():
        raise PipelineDefinitionError(f"Arquivo de pipeline não encontrado: {file}")
    try:
        data = _load_file(file)
    except (ConfigError, yaml.YAMLError, ValueError) as e:
        raise PipelineDefinitionError(f"Arquivo de pipeline inválido: {e}") from e
    return pipeline_from_dict(data)
