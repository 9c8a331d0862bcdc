# src/atlas_txflow/core/config/__init__.py

"""
Camada de configuração do Atlas TxFlow.

Este pacote contém as estruturas e utilitários responsáveis por carregar,
mesclar, validar e identificar a configuração do Engine, além do
carregamento de definições declarativas de pipeline (YAML/JSON) e da
configuração de logging estruturado.

A configuração no Atlas TxFlow é:
    - declarativa
    - determinística
    - explicitamente versionável

Responsabilidades do pacote:
    - Carregamento de arquivos de configuração (defaults + overrides locais)
    - Resolução de configuração final via deep-merge determinístico
    - Tradução da seção `engine` em `EngineSettings`
    - Geração de hash canônico para rastreabilidade
    - Carregamento de pipelines a partir de tabelas declarativas

Invariantes:
    - A configuração final é um dicionário puro (dict)
    - Conflitos estruturais são tratados como erro

Limites explícitos:
    - Não executa pipeline
    - Não abre transações
"""
