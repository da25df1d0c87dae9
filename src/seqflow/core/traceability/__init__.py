"""
Rastreabilidade de execuções do SeqFlow — Workflow Manifest.

API pública:
    - WorkflowManifest  → estrutura do manifest
    - create_manifest   → criação explícita
    - add_event         → registro explícito no Event Log
    - step_started / step_finished / step_failed / step_skipped
    - save_manifest / load_manifest → persistência JSON (round-trip)

Nenhum evento é emitido implicitamente: a ordem do Event Log é a ordem
das chamadas.
"""

from .manifest import (
    WorkflowManifest,
    add_event,
    create_manifest,
    load_manifest,
    save_manifest,
    step_failed,
    step_finished,
    step_skipped,
    step_started,
)

__all__ = [
    "WorkflowManifest",
    "add_event",
    "create_manifest",
    "load_manifest",
    "save_manifest",
    "step_failed",
    "step_finished",
    "step_skipped",
    "step_started",
]
