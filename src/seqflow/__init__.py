"""
SeqFlow — engine de workflows em DAG para pipelines de análise de sequências.

Um workflow é um conjunto de Steps ligados por ports tipados: a saída de
um Step alimenta a entrada de outro quando ambos usam o mesmo formato de
dados. Cada Step executa como uma ou mais tasks independentes (por
exemplo, uma por amostra) em um pool limitado de workers.

Arquitetura em alto nível:
    - core.data         → DataFormat, Port, Data
    - core.pipeline     → Step, TaskStatus, TaskResult, StepResult, contextos
    - core.engine       → planner, executor concorrente e Engine
    - core.config       → configuração (YAML/JSON) e hashing
    - core.traceability → Workflow Manifest
    - report            → relatório Markdown a partir do manifest
    - steps             → Steps genéricos reutilizáveis

Limites explícitos:
    - Não invoca ferramentas externas de bioinformática
    - Não executa em cluster
"""

__version__ = "0.1.0"
