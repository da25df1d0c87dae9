"""
Gerador de `report.md` de uma run do SeqFlow.

Regras:
- O relatório é derivado EXCLUSIVAMENTE do manifest (dict ou WorkflowManifest).
- Não infere nem recalcula nada que não esteja registrado.
- Mesmo manifest => mesmo relatório (ordenação estável).

Estrutura mínima obrigatória:
# Execution Report

## Summary
## Steps
## Counters
## Failures
## Execution Metadata
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Tuple, Union

from seqflow.core.traceability.manifest import WorkflowManifest


REQUIRED_SECTIONS: List[str] = [
    "# Execution Report",
    "## Summary",
    "## Steps",
    "## Counters",
    "## Failures",
    "## Execution Metadata",
]


def _sorted_items(d: Any) -> List[Tuple[str, Any]]:
    if not isinstance(d, dict):
        return []
    return sorted(d.items(), key=lambda kv: kv[0])


def _as_pretty_json(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, sort_keys=True, indent=2)


def _require_manifest(manifest: Union[WorkflowManifest, Dict[str, Any]]) -> Dict[str, Any]:
    if isinstance(manifest, WorkflowManifest):
        return manifest.to_dict()
    if not isinstance(manifest, dict) or not manifest:
        raise ValueError("Manifest is required to generate report.md")
    return manifest


def _step_order(steps: Dict[str, Any], events: List[Dict[str, Any]]) -> List[str]:
    # ordem do Event Log; Steps sem evento vão ao final, por id
    order: List[str] = []
    for ev in events:
        sid = ev.get("step_id") if isinstance(ev, dict) else None
        if sid in steps and sid not in order:
            order.append(sid)
    order.extend(sid for sid, _ in _sorted_items(steps) if sid not in order)
    return order


def _cell(value: Any) -> str:
    return str(value).replace("|", "\\|").replace("\n", " ") if value is not None else ""


def generate_report_md(manifest: Union[WorkflowManifest, Dict[str, Any]]) -> str:
    """Gera o conteúdo completo do report.md a partir do manifest."""
    data = _require_manifest(manifest)

    run = data.get("run") if isinstance(data.get("run"), dict) else {}
    inputs = data.get("inputs") if isinstance(data.get("inputs"), dict) else {}
    steps = data.get("steps") if isinstance(data.get("steps"), dict) else {}
    events = data.get("events") if isinstance(data.get("events"), list) else []

    order = _step_order(steps, events)
    states: Dict[str, int] = {}
    for sid in order:
        state = str(steps[sid].get("state", "unknown"))
        states[state] = states.get(state, 0) + 1

    lines: List[str] = ["# Execution Report\n"]

    lines.append("## Summary")
    lines.append(f"- **Run ID**: `{run.get('run_id', '<unknown>')}`")
    lines.append(f"- **Started At (UTC)**: `{run.get('started_at', '<unknown>')}`")
    lines.append(f"- **SeqFlow Version**: `{run.get('seqflow_version', '<unknown>')}`")
    lines.append(f"- **Steps**: `{len(order)}`")
    for state, count in _sorted_items(states):
        lines.append(f"  - {state}: `{count}`")
    lines.append("")

    lines.append("## Steps")
    if order:
        lines.append("| Step | Version | State | Tasks | Duration (ms) | Summary |")
        lines.append("|---|---|---|---|---|---|")
        for sid in order:
            s = steps[sid]
            lines.append(
                f"| {_cell(sid)} | {_cell(s.get('version'))} | {_cell(s.get('state'))} "
                f"| {_cell(s.get('tasks', 0))} | {_cell(s.get('duration_ms', 0))} | {_cell(s.get('summary'))} |"
            )
    else:
        lines.append("No steps recorded in the manifest.")
    lines.append("")

    lines.append("## Counters")
    any_counters = False
    for sid in order:
        counters = steps[sid].get("counters")
        if isinstance(counters, dict) and counters:
            any_counters = True
            lines.append(f"### {sid}")
            for k, v in _sorted_items(counters):
                lines.append(f"- **{k}**: `{v}`")
    if not any_counters:
        lines.append("No counters recorded.")
    lines.append("")

    lines.append("## Failures")
    failed = [sid for sid in order if isinstance(steps[sid].get("error"), dict)]
    if failed:
        for sid in failed:
            err = steps[sid]["error"]
            lines.append(f"- **{sid}** (`{steps[sid].get('state')}`): `{err.get('type')}` {err.get('message', '')}")
            if err.get("hint"):
                lines.append(f"  - hint: {err['hint']}")
    else:
        lines.append("No failures recorded.")
    lines.append("")

    lines.append("## Execution Metadata")
    lines.append(f"- Events recorded: `{len(events)}`")
    lines.append("### run")
    lines.append("```json")
    lines.append(_as_pretty_json(run))
    lines.append("```")
    lines.append("### inputs")
    lines.append("```json")
    lines.append(_as_pretty_json(inputs))
    lines.append("```")

    content = "\n".join(lines)

    for sec in REQUIRED_SECTIONS:
        if sec not in content:
            raise RuntimeError(f"Report generation failed: missing required section: {sec}")

    return content
