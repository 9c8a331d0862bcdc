"""
Exceções canônicas da camada de configuração do Atlas TxFlow.

Este módulo define a hierarquia oficial de exceções utilizadas durante
o carregamento e a resolução de configuração do Engine e de definições
declarativas de pipeline.

Princípios fundamentais:
    - Exceções são tipadas e semânticas
    - Erros estruturais são tratados como falhas fatais
    - Mensagens de erro são claras e direcionadas ao usuário

Invariantes:
    - Todas as exceções de configuração herdam de `ConfigError`
    - Nenhuma exceção representa erro de execução de Step

Limites explícitos:
    - Não executa pipeline
    - Não realiza fallback ou recovery
"""


class ConfigError(Exception):
    """
    Exceção base para erros relacionados à configuração do Atlas TxFlow.

    Esta hierarquia permite:
        - captura genérica de erros de configuração
        - distinção clara entre falhas estruturais e falhas de execução
    """


class DefaultsNotFoundError(ConfigError):
    """
    Exceção levantada quando o arquivo de configuração base (defaults)
    não é encontrado no caminho especificado.

    Decisões arquiteturais:
        - O arquivo de defaults é obrigatório
        - Não tenta inferir ou criar defaults automaticamente
    """


class UnsupportedConfigFormatError(ConfigError):
    """Extensão de arquivo diferente de .yaml, .yml ou .json."""


class InvalidConfigRootTypeError(ConfigError):
    """O conteúdo raiz do arquivo não é um dicionário."""


class ConfigTypeConflictError(ConfigError):
    """Conflito de tipo entre base e override durante o deep-merge."""


class InvalidEngineSettingsError(ConfigError):
    """Seção `engine` com valor de tipo ou faixa inválidos."""


class PipelineDefinitionError(ConfigError):
    """
    Definição declarativa de pipeline (YAML/JSON) estruturalmente inválida.

    Cobre: seções ausentes, Steps malformados e referências
    `"modulo:atributo"` que não podem ser importadas.
    """
