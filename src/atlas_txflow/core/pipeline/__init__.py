# src/atlas_txflow/core/pipeline/__init__.py
"""
# Pipeline Core — Atlas TxFlow

Este pacote define os **contratos canônicos** e as **estruturas
fundamentais** de um pipeline transacional.

Um pipeline é uma sequência nomeada de Steps, ordenável por dependências,
executada dentro de uma única transação de um resource externo.

## Componentes

- **types**
  - `StepKind`, `OnError`: formato da operação e política de falha
  - `Ok`, `Err`, `BulkResult`, `Placeholder`: valores de resultado
  - `Success`, `Failure`: o Outcome de uma execução

- **step**
  - `StepDescriptor` e as sete variantes de action
  - `build_descriptor`: fábrica por kind + campos nomeados

- **context**
  - `ExecutionContext`: mapeamento somente leitura dos resultados

- **registry**
  - `StepRegistry`: unicidade de nomes e ordem de declaração

- **definition**
  - `Pipeline`: definição imutável (Steps + hooks)

## Invariantes

- Cada Step possui um `name` único, diferente de `params`
- O contexto cresce monotonicamente durante a execução
"""
