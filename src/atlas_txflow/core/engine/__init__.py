# src/atlas_txflow/core/engine/__init__.py
"""
Engine do Atlas TxFlow.

Este pacote contém a implementação responsável por **planejar** e
**executar** pipelines transacionais.

Componentes principais:
    - planner  → ordenação topológica estável e validações estruturais
    - hooks    → hooks before / after / error em torno da execução
    - engine   → execução dos Steps dentro da unidade atômica do resource
    - detached → runner de Steps destacados (fire-and-forget)

Invariantes:
    - Steps só são executados após suas dependências
    - Cada Step é executado no máximo uma vez por execução (exceto retries)
    - Exatamente um de after/error hooks dispara por execução concluída

Limites explícitos:
    - Não implementa atomicidade própria
    - Não persiste resultados
"""
