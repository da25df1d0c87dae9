"""
Workflow Manifest — registro forense de uma run do SeqFlow.

O manifest consolida:
    - run: metadados da execução (run_id, started_at, seqflow_version)
    - inputs: hashes da configuração efetiva e da estrutura do workflow
    - steps: estado final de cada Step, indexado por step_id
    - events: Event Log ordenado

Decisões arquiteturais:
    - A API aceita o manifest como objeto ou como dict (JSON carregado);
      alterações sobre um dict são sincronizadas de volta no próprio dict
    - Timestamps são sempre normalizados para UTC (timestamps naive são
      assumidos como UTC)
    - Nenhum evento é emitido implicitamente

Limites explícitos:
    - Não executa o workflow
    - Não persiste automaticamente
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union


def _utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _iso(dt: datetime) -> str:
    return _utc(dt).isoformat()


@dataclass
class WorkflowManifest:
    run: Dict[str, Any]
    inputs: Dict[str, Any]
    steps: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    events: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Cópia serializável e independente do estado interno."""
        return json.loads(json.dumps(
            {"run": self.run, "inputs": self.inputs, "steps": self.steps, "events": self.events},
            default=str,
        ))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WorkflowManifest":
        return cls(
            run=dict(data.get("run") or {}),
            inputs=dict(data.get("inputs") or {}),
            steps={k: dict(v) for k, v in (data.get("steps") or {}).items()},
            events=[dict(e) for e in (data.get("events") or [])],
        )


ManifestLike = Union[WorkflowManifest, Dict[str, Any]]


def _resolve(manifest: ManifestLike) -> Tuple[WorkflowManifest, bool]:
    if isinstance(manifest, WorkflowManifest):
        return manifest, False
    return WorkflowManifest.from_dict(manifest), True


def _sync(manifest: ManifestLike, m: WorkflowManifest, is_dict: bool) -> None:
    if is_dict:
        manifest.clear()  # type: ignore[union-attr]
        manifest.update(m.to_dict())  # type: ignore[union-attr]


def create_manifest(
    *,
    run_id: str,
    started_at: datetime,
    seqflow_version: str,
    config_hash: str,
    workflow_hash: str,
) -> WorkflowManifest:
    """Cria um manifest vazio (sem Steps nem eventos)."""
    return WorkflowManifest(
        run={
            "run_id": run_id,
            "started_at": _iso(started_at),
            "seqflow_version": seqflow_version,
        },
        inputs={
            "config_hash": config_hash,
            "workflow_hash": workflow_hash,
        },
    )


def add_event(
    manifest: ManifestLike,
    *,
    event_type: str,
    ts: datetime,
    step_id: Optional[str] = None,
    payload: Optional[Dict[str, Any]] = None,
) -> None:
    m, is_dict = _resolve(manifest)
    event: Dict[str, Any] = {"event_type": event_type, "timestamp": _iso(ts)}
    if step_id is not None:
        event["step_id"] = step_id
    if payload is not None:
        event["payload"] = dict(payload)
    m.events.append(event)
    _sync(manifest, m, is_dict)


def step_started(manifest: ManifestLike, *, step_id: str, version: str, ts: datetime) -> None:
    m, is_dict = _resolve(manifest)
    m.steps.setdefault(step_id, {}).update(
        {
            "step_id": step_id,
            "version": version,
            "state": "running",
            "started_at": _iso(ts),
        }
    )
    add_event(m, event_type="step_started", ts=ts, step_id=step_id, payload={"version": version})
    _sync(manifest, m, is_dict)


def step_finished(manifest: ManifestLike, *, step_id: str, ts: datetime, result: Dict[str, Any]) -> None:
    """
    Registra a conclusão de um Step a partir de `StepResult.to_dict()`.

    O estado registrado é o do resultado (`succeeded`, `cancelled`, ...).
    """
    m, is_dict = _resolve(manifest)
    tasks = result.get("tasks") or []
    state = result.get("state", "succeeded")
    s = m.steps.setdefault(step_id, {"step_id": step_id})
    s.update(
        {
            "state": state,
            "finished_at": _iso(ts),
            "duration_ms": int(result.get("duration_ms") or 0),
            "task_duration_ms": int(result.get("task_duration_ms") or 0),
            "summary": result.get("summary"),
            "counters": dict(result.get("counters") or {}),
            "tasks": len(tasks),
            "failed_tasks": sum(1 for t in tasks if not t.get("success")),
        }
    )
    add_event(
        m,
        event_type="step_finished",
        ts=ts,
        step_id=step_id,
        payload={"state": state, "duration_ms": s["duration_ms"]},
    )
    _sync(manifest, m, is_dict)


def step_failed(
    manifest: ManifestLike,
    *,
    step_id: str,
    ts: datetime,
    error: Union[str, Dict[str, Any]],
    result: Optional[Dict[str, Any]] = None,
) -> None:
    """Marca o Step como `failed`; `error` é um texto ou um ErrorPayload serializado."""
    m, is_dict = _resolve(manifest)
    if result is not None:
        step_finished(m, step_id=step_id, ts=ts, result=result)
    err = {"type": "ERROR", "message": error} if isinstance(error, str) else dict(error)
    s = m.steps.setdefault(step_id, {"step_id": step_id})
    s.update({"state": "failed", "finished_at": _iso(ts), "error": err})
    add_event(m, event_type="step_failed", ts=ts, step_id=step_id, payload={"error": err})
    _sync(manifest, m, is_dict)


def step_skipped(manifest: ManifestLike, *, step_id: str, ts: datetime, reason: Dict[str, Any]) -> None:
    m, is_dict = _resolve(manifest)
    s = m.steps.setdefault(step_id, {"step_id": step_id})
    s.update({"state": "skipped", "finished_at": _iso(ts), "error": dict(reason)})
    add_event(m, event_type="step_skipped", ts=ts, step_id=step_id, payload={"reason": reason.get("message")})
    _sync(manifest, m, is_dict)


def save_manifest(manifest: ManifestLike, path: Union[str, Path]) -> None:
    data = manifest.to_dict() if isinstance(manifest, WorkflowManifest) else manifest
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(json.dumps(data, ensure_ascii=False, indent=2, sort_keys=True), encoding="utf-8")


def load_manifest(path: Union[str, Path]) -> WorkflowManifest:
    return WorkflowManifest.from_dict(json.loads(Path(path).read_text(encoding="utf-8")))
