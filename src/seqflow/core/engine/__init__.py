"""
Engine do SeqFlow.

Componentes:
    - planner  → grafo por ports tipados, validações estruturais e ordem
                 topológica determinística
    - executor → execução concorrente em pool limitado, skip de dependentes
                 e cancelamento cooperativo
    - engine   → fachada (configuração, planejamento, execução, manifest)

Invariantes:
    - Um Step só executa depois que todos os seus produtores tiveram sucesso
    - Cada Step é executado no máximo uma vez por run
    - O resultado reflete explicitamente o estado de cada Step
"""

from .engine import Engine, WorkflowFailure, WorkflowResult
from .executor import ConcurrentExecutor, StepProgressListener
from .planner import InputSource, WorkflowGraph, build_graph

__all__ = [
    "ConcurrentExecutor",
    "Engine",
    "InputSource",
    "StepProgressListener",
    "WorkflowFailure",
    "WorkflowGraph",
    "WorkflowResult",
    "build_graph",
]
