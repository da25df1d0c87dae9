"""
# Pipeline Core — SeqFlow

Este pacote define os **contratos canônicos** e as **estruturas
fundamentais** de um workflow no SeqFlow.

## Componentes

- **types**: `StepState`, `TaskResult`, `StepResult`, `aggregate_step_result`
- **status**: `TaskStatus` (progresso, contadores, finalize exatamente uma vez)
- **step**: `Step` (Protocol) e `StepNode` (ciclo de vida de configuração)
- **requirements**: `Requirement` e implementações embarcadas
- **context**: `RunContext` (run) e `TaskContext` (task)
- **registry**: `StepRegistry` (unicidade de `step.id`, ligações explícitas)

## Princípios Fundamentais

- Steps **não conhecem** o Engine, o planner nem o executor
- Dependências são declaradas **apenas por ports tipados**
- Comunicação entre Steps ocorre **apenas via RunContext**
"""

from .context import EXTERNAL_PRODUCER, RunContext, TaskContext
from .registry import DuplicateStepIdError, PortBinding, StepRegistry
from .requirements import CallableRequirement, DockerRequirement, PathRequirement, Requirement, tool_requirement
from .status import TaskStatus, TaskStatusSnapshot
from .step import Step, StepLifecycle, StepNode
from .types import StepResult, StepState, TaskResult, aggregate_step_result, merge_counters

__all__ = [
    "CallableRequirement",
    "DockerRequirement",
    "DuplicateStepIdError",
    "EXTERNAL_PRODUCER",
    "PathRequirement",
    "PortBinding",
    "Requirement",
    "RunContext",
    "Step",
    "StepLifecycle",
    "StepNode",
    "StepRegistry",
    "StepResult",
    "StepState",
    "TaskContext",
    "TaskResult",
    "TaskStatus",
    "TaskStatusSnapshot",
    "aggregate_step_result",
    "merge_counters",
    "tool_requirement",
]
