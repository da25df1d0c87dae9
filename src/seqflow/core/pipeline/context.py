"""
Contextos de execução do SeqFlow.

Este módulo define:
    - `RunContext`: contexto compartilhado de uma run do workflow
      (identidade, configuração resolvida, Data publicados, event log e
      warnings)
    - `TaskContext`: visão de uma única task sobre a run (Data de entrada
      por port, criação de Data de saída, status e logging)

O RunContext é o único meio permitido de:
    - troca indireta de Data entre Steps (publicação por Step/port)
    - registro de logs estruturados de execução
    - coleta de warnings não fatais associados a Steps

Princípios fundamentais:
    - Isolamento por execução (cada run possui seu próprio contexto)
    - Ausência de estado global compartilhado
    - Acesso concorrente seguro: tasks em paralelo registram eventos e
      leem Data publicados sob lock

Invariantes:
    - Logs sempre incluem `run_id` e `step_id`
    - Um par Step/port publica Data no máximo uma vez
    - Data publicados estão sempre finalizados

Limites explícitos:
    - Não executa Steps
    - Não planeja nem coordena execução
    - Não interpreta o conteúdo dos Data
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple

from seqflow.core.data.data import Data
from seqflow.core.data.ports import PortSet
from seqflow.core.exceptions import ConfigurationError, IllegalStateError

from .status import TaskStatus


# Produtor sintético dos inputs externos (indexados pelo nome do formato).
EXTERNAL_PRODUCER = "<external>"


@dataclass
class RunContext:
    """
    Contexto de execução compartilhado de uma run do workflow.

    Campos canônicos:
    - run_id: identificador único da execução
    - created_at: timestamp UTC de criação do contexto
    - config: configuração efetiva (defaults + local deep-merge)
    - meta: metadados livres de execução
    - events: log estruturado de eventos
    - warnings: warnings por step_id
    """
    run_id: str
    created_at: datetime
    config: Dict[str, Any]
    meta: Dict[str, Any] = field(default_factory=dict)

    events: List[Dict[str, Any]] = field(default_factory=list, init=False)
    warnings: Dict[str, List[str]] = field(default_factory=dict, init=False)

    _data: Dict[Tuple[str, str], Data] = field(default_factory=dict, init=False, repr=False)
    _lock: threading.RLock = field(default_factory=threading.RLock, init=False, repr=False)

    # -----------------------------
    # Data store
    # -----------------------------
    def publish(self, *, step_id: str, port: str, data: Data) -> None:
        key = (step_id, port)
        with self._lock:
            if key in self._data:
                raise IllegalStateError(f"Data already published for {step_id}.{port}")
            self._data[key] = data.finalize()

    def has_data(self, *, step_id: str, port: str) -> bool:
        with self._lock:
            return (step_id, port) in self._data

    def get_data(self, *, step_id: str, port: str) -> Data:
        with self._lock:
            if (step_id, port) not in self._data:
                raise KeyError(f"{step_id}.{port}")
            return self._data[(step_id, port)]

    # -----------------------------
    # Logging & warnings
    # -----------------------------
    def log(self, *, step_id: str, level: str, message: str, **extra: Any) -> None:
        event = {
            "run_id": self.run_id,
            "step_id": step_id,
            "level": level,
            "message": message,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        event.update(extra)
        with self._lock:
            self.events.append(event)

    def add_warning(self, *, step_id: str, message: str) -> None:
        with self._lock:
            self.warnings.setdefault(step_id, []).append(message)

    def events_for(self, step_id: str) -> List[Dict[str, Any]]:
        with self._lock:
            return [dict(e) for e in self.events if e.get("step_id") == step_id]


class TaskContext:
    """
    Visão de uma task sobre a run.

    - `input_data(port)`: Data de entrada do port (somente leitura)
    - `output_data(port, name=None)`: cria uma unidade de saída no port;
      o nome e os metadados são herdados do elemento primário da task
    - `status`: TaskStatus da task (progresso, contadores, finalize)
    """

    def __init__(
        self,
        *,
        run: RunContext,
        step_id: str,
        task_id: str,
        context_name: str,
        status: TaskStatus,
        inputs: Mapping[str, Data],
        output_ports: PortSet,
        parameters: Optional[Mapping[str, Any]] = None,
        primary: Optional[Data] = None,
    ) -> None:
        self.run = run
        self.step_id = step_id
        self.task_id = task_id
        self.context_name = context_name
        self.status = status
        self.parameters: Dict[str, Any] = dict(parameters or {})
        self.primary = primary
        self._inputs: Dict[str, Data] = dict(inputs)
        self._output_ports = output_ports
        self._outputs: Dict[str, List[Data]] = {name: [] for name in output_ports}

    @property
    def run_id(self) -> str:
        return self.run.run_id

    def input_data(self, port: str) -> Data:
        if port not in self._inputs:
            raise ConfigurationError(
                f"Step '{self.step_id}' has no input port '{port}'",
                details={"step_id": self.step_id, "port": port},
            )
        return self._inputs[port]

    def output_data(
        self,
        port: str,
        name: Optional[str] = None,
        *,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> Data:
        if port not in self._output_ports:
            raise ConfigurationError(
                f"Step '{self.step_id}' has no output port '{port}'",
                details={"step_id": self.step_id, "port": port},
            )

        unit_name = name or (self.primary.name if self.primary is not None else self.step_id)
        inherited = self.primary.metadata.to_dict() if self.primary is not None else {}
        inherited.update(metadata or {})

        data = Data.single(unit_name, self._output_ports[port].format, metadata=inherited)
        self._outputs[port].append(data)
        return data

    def outputs(self) -> Dict[str, List[Data]]:
        return {port: list(units) for port, units in self._outputs.items()}

    def is_cancelled(self) -> bool:
        return self.status.cancel_requested

    def log(self, level: str, message: str, **extra: Any) -> None:
        self.run.log(step_id=self.step_id, level=level, message=message, task_id=self.task_id, **extra)

    def add_warning(self, message: str) -> None:
        self.run.add_warning(step_id=self.step_id, message=message)
