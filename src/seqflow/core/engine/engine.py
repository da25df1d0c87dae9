"""
Engine de execução de workflows do SeqFlow.

O Engine é a fachada usada pelo chamador:
    1. configura cada Step (`steps.<id>.parameters` da configuração efetiva)
       e verifica seus requisitos
    2. valida e ordena o grafo (planner)
    3. cria um `ConcurrentExecutor` para a run, executa e o descarta
    4. consolida o `WorkflowResult` e, quando fornecido, registra cada Step
       no Workflow Manifest

Políticas controladas por configuração:
    - engine.workers   → tamanho do pool (default 1)
    - engine.fail_fast → interrompe na primeira falha (default false)

Invariantes:
    - Erros de validação (configuração, grafo) abortam antes de qualquer task
    - Falhas de tasks nunca derrubam o Engine: o resultado reflete o estado
      explícito de cada Step
    - Cada Engine executa no máximo uma run

Limites explícitos:
    - Não define Steps de domínio
    - Não persiste o manifest automaticamente
"""

from __future__ import annotations

import hashlib
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from seqflow.core.config.hashing import canonical_json, compute_config_hash
from seqflow.core.config.settings import EngineSettings, resolve_engine_settings, step_parameters
from seqflow.core.data.data import Data
from seqflow.core.exceptions import ConfigurationError, IllegalStateError
from seqflow.core.pipeline.context import RunContext
from seqflow.core.pipeline.registry import StepRegistry
from seqflow.core.pipeline.step import Step, StepNode
from seqflow.core.pipeline.types import StepResult, StepState, merge_counters
from seqflow.core.traceability.manifest import (
    WorkflowManifest,
    add_event,
    create_manifest,
    step_failed,
    step_finished,
    step_skipped,
    step_started,
)

from .executor import ConcurrentExecutor, StepProgressListener
from .planner import WorkflowGraph, build_graph


@dataclass(frozen=True)
class WorkflowFailure:
    """Causa de falha reportada ao chamador (uma por task ou por Step)."""
    step_id: str
    task_id: Optional[str]
    type: str
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step_id": self.step_id,
            "task_id": self.task_id,
            "type": self.type,
            "message": self.message,
        }


@dataclass(frozen=True)
class WorkflowResult:
    """Resultado agregado de uma run do workflow."""
    run_id: str
    steps: Dict[str, StepResult] = field(default_factory=dict)
    counters: Dict[str, int] = field(default_factory=dict)
    failures: Tuple[WorkflowFailure, ...] = ()
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    duration_ms: int = 0
    cancelled: bool = False

    @property
    def success(self) -> bool:
        return not self.cancelled and all(r.state is StepState.SUCCEEDED for r in self.steps.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "success": self.success,
            "cancelled": self.cancelled,
            "duration_ms": self.duration_ms,
            "counters": dict(self.counters),
            "failures": [f.to_dict() for f in self.failures],
            "steps": {sid: r.to_dict() for sid, r in self.steps.items()},
        }


def _collect_failures(results: Sequence[StepResult]) -> List[WorkflowFailure]:
    failures: List[WorkflowFailure] = []
    for r in results:
        failed_tasks = r.failures
        for t in failed_tasks:
            failures.append(
                WorkflowFailure(
                    step_id=r.step_id,
                    task_id=t.task_id,
                    type=t.error.type if t.error is not None else "TASK_FAILED",
                    message=t.message or "task failed",
                )
            )
        if not failed_tasks and r.state is not StepState.SUCCEEDED:
            failures.append(
                WorkflowFailure(
                    step_id=r.step_id,
                    task_id=None,
                    type=r.error.type if r.error is not None else r.state.value.upper(),
                    message=r.error.message if r.error is not None else r.summary,
                )
            )
    return failures


class Engine:
    """Engine canônico do SeqFlow (configuração + planner + executor)."""

    def __init__(
        self,
        *,
        steps: Union[StepRegistry, Sequence[Step]],
        ctx: RunContext,
        inputs: Sequence[Data] = (),
        progress_listener: Optional[StepProgressListener] = None,
    ) -> None:
        if isinstance(steps, StepRegistry):
            self.registry = steps
        else:
            self.registry = StepRegistry()
            for s in steps:
                self.registry.add(s)

        self.ctx = ctx
        self.inputs: Dict[str, Data] = {}
        for data in inputs:
            key = data.format.name
            if key in self.inputs:
                raise ConfigurationError(
                    f"More than one external input of format '{key}'",
                    details={"format": key},
                    hint="Forneça um único Data (lista, se necessário) por formato.",
                )
            self.inputs[key] = data.finalize()

        self.settings: EngineSettings = resolve_engine_settings(ctx.config)
        self._progress_listener = progress_listener
        self._graph: Optional[WorkflowGraph] = None
        self._executor: Optional[ConcurrentExecutor] = None
        self._lock = threading.Lock()
        self._cancel_requested = False
        self._ran = False

    # ------------------------------------------------------------------
    # Planejamento
    # ------------------------------------------------------------------
    def plan(self) -> WorkflowGraph:
        """Configura os Steps e valida o grafo (idempotente)."""
        if self._graph is not None:
            return self._graph

        nodes: List[StepNode] = []
        for step in self.registry.list():
            node = StepNode(step)
            node.configure(step_parameters(self.ctx.config, node.id))
            if not node.requirements_satisfied:
                self.ctx.add_warning(
                    step_id=node.id,
                    message="requirements not available: " + ", ".join(node.unavailable_requirements),
                )
            nodes.append(node)

        self._graph = build_graph(
            nodes,
            bindings=self.registry.bindings(),
            external_formats=[d.format for d in self.inputs.values()],
        )
        self.ctx.log(
            step_id="<workflow>",
            level="info",
            message="workflow planned",
            order=list(self._graph.order),
        )
        return self._graph

    @property
    def config_hash(self) -> str:
        return compute_config_hash(dict(self.ctx.config or {}))

    @property
    def workflow_hash(self) -> str:
        """SHA-256 da estrutura do workflow (Steps, versões, ports e ligações)."""
        graph = self.plan()
        structure = []
        for sid in sorted(graph.nodes):
            node = graph.nodes[sid]
            structure.append(
                {
                    "id": sid,
                    "version": node.version,
                    "inputs": [[p.name, p.format.name, p.cardinality.value] for p in node.inputs.ports()],  # type: ignore[union-attr]
                    "outputs": [[p.name, p.format.name] for p in node.outputs.ports()],  # type: ignore[union-attr]
                    "sources": {
                        port: [src.producer, src.output_port] for port, src in sorted(graph.sources[sid].items())
                    },
                }
            )
        return hashlib.sha256(canonical_json(structure)).hexdigest()

    def create_manifest(self, *, seqflow_version: Optional[str] = None) -> WorkflowManifest:
        if seqflow_version is None:
            from seqflow import __version__ as seqflow_version
        return create_manifest(
            run_id=self.ctx.run_id,
            started_at=self.ctx.created_at,
            seqflow_version=seqflow_version,
            config_hash=self.config_hash,
            workflow_hash=self.workflow_hash,
        )

    # ------------------------------------------------------------------
    # Execução
    # ------------------------------------------------------------------
    def cancel(self) -> None:
        """Cancela a run (antes ou durante a execução)."""
        with self._lock:
            self._cancel_requested = True
            executor = self._executor
        if executor is not None:
            executor.cancel()

    def run(self, *, manifest: Optional[WorkflowManifest] = None) -> WorkflowResult:
        with self._lock:
            if self._ran:
                raise IllegalStateError("Engine.run() can only be called once per engine")
            self._ran = True

        graph = self.plan()
        started_at = datetime.now(timezone.utc)

        def on_started(step_id: str) -> None:
            if manifest is not None:
                step_started(manifest, step_id=step_id, version=graph.nodes[step_id].version, ts=datetime.now(timezone.utc))

        def on_finished(result: StepResult) -> None:
            if manifest is not None:
                self._record(manifest, result)

        executor = ConcurrentExecutor(
            graph=graph,
            run=self.ctx,
            workers=self.settings.workers,
            fail_fast=self.settings.fail_fast,
            external_inputs=self.inputs,
            progress_listener=self._progress_listener,
            on_step_started=on_started,
            on_step_finished=on_finished,
        )
        with self._lock:
            self._executor = executor
            if self._cancel_requested:
                executor.cancel()

        if manifest is not None:
            add_event(manifest, event_type="run_started", ts=started_at, payload={"workers": self.settings.workers})

        try:
            results = executor.run()
        finally:
            with self._lock:
                self._executor = None

        finished_at = datetime.now(timezone.utc)
        ordered = [results[sid] for sid in graph.order]
        wf = WorkflowResult(
            run_id=self.ctx.run_id,
            steps=dict(results),
            counters=merge_counters([r.counters for r in ordered]),
            failures=tuple(_collect_failures(ordered)),
            started_at=started_at,
            finished_at=finished_at,
            duration_ms=max(0, int((finished_at - started_at).total_seconds() * 1000)),
            cancelled=executor.cancelled,
        )

        if manifest is not None:
            add_event(
                manifest,
                event_type="run_finished",
                ts=finished_at,
                payload={"success": wf.success, "cancelled": wf.cancelled, "duration_ms": wf.duration_ms},
            )
        return wf

    def _record(self, manifest: WorkflowManifest, result: StepResult) -> None:
        ts = result.finished_at or datetime.now(timezone.utc)
        if result.state is StepState.SKIPPED:
            reason: Mapping[str, Any] = result.error.to_dict() if result.error is not None else {"message": result.summary}
            step_skipped(manifest, step_id=result.step_id, ts=ts, reason=dict(reason))
        elif result.state is StepState.FAILED:
            error: Union[str, Dict[str, Any]] = result.error.to_dict() if result.error is not None else result.summary
            step_failed(manifest, step_id=result.step_id, ts=ts, error=error, result=result.to_dict())
        else:
            step_finished(manifest, step_id=result.step_id, ts=ts, result=result.to_dict())
