# src/atlas_txflow/core/__init__.py
"""
Core do Atlas TxFlow.

Este pacote contém a implementação canônica do pipeline transacional,
independente de banco de dados ou framework de persistência.

Componentes principais:
    - config   → configuração do Engine, logging e definições declarativas
    - pipeline → Steps, registry, contexto de execução e definição imutável
    - engine   → planejamento (DAG), hooks, execução e tarefas destacadas
    - resource → contrato transacional e adaptadores (memória, SQLAlchemy)

Princípios fundamentais:
    - Nenhuma decisão silenciosa: todo comportamento é explícito e testado
    - Atomicidade é delegada ao resource, nunca reimplementada
    - Estado de execução é isolado por chamada

Limites explícitos:
    - Não define modelos de domínio
    - Não coordena transações distribuídas
"""
