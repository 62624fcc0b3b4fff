"""Execution state storage."""

from __future__ import annotations

import threading
import time
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from .state import WorkflowExecutionState


def generate_execution_id() -> str:
    """Build an id from the current time in milliseconds and a random suffix."""
    return f"exec-{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"


class ExecutionStore(ABC):
    """Keyed storage for execution records, injected into the engine."""

    @abstractmethod
    def get(self, execution_id: str) -> Optional[WorkflowExecutionState]:
        ...

    @abstractmethod
    def save(self, state: WorkflowExecutionState) -> None:
        ...

    @abstractmethod
    def delete(self, execution_id: str) -> bool:
        ...

    @abstractmethod
    def list_executions(self) -> List[WorkflowExecutionState]:
        ...

    @abstractmethod
    def reap(self, now: Optional[datetime] = None) -> List[str]:
        """Drop expired records and return their ids."""


class InMemoryExecutionStore(ExecutionStore):
    """
    Process-lifetime store.

    Finished executions (completed or failed) are dropped once they have
    not been updated for ``ttl_seconds``. Executions waiting on a human
    are never reaped. A ttl of ``None`` or ``0`` keeps everything.
    """

    def __init__(self, ttl_seconds: Optional[float] = None):
        self.ttl_seconds = ttl_seconds
        self._states: Dict[str, WorkflowExecutionState] = {}
        self._lock = threading.Lock()

    def get(self, execution_id: str) -> Optional[WorkflowExecutionState]:
        with self._lock:
            return self._states.get(execution_id)

    def save(self, state: WorkflowExecutionState) -> None:
        with self._lock:
            self._states[state.execution_id] = state
        self.reap()

    def delete(self, execution_id: str) -> bool:
        with self._lock:
            return self._states.pop(execution_id, None) is not None

    def list_executions(self) -> List[WorkflowExecutionState]:
        self.reap()
        with self._lock:
            return list(self._states.values())

    def reap(self, now: Optional[datetime] = None) -> List[str]:
        if not self.ttl_seconds:
            return []
        cutoff = (now or datetime.now(timezone.utc)) - timedelta(seconds=self.ttl_seconds)
        with self._lock:
            expired = [
                execution_id
                for execution_id, state in self._states.items()
                if state.is_terminal and state.updated_at < cutoff
            ]
            for execution_id in expired:
                del self._states[execution_id]
        return expired
