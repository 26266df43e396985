"""Execution records and run state."""

from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .plan import Plan


class StepStatus(str, Enum):
    PENDING = "pending"
    IN_FLIGHT = "in_flight"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class RunStatus(str, Enum):
    CREATED = "created"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    ABORTED = "aborted"


def utc_now() -> str:
    return datetime.now(tz=timezone.utc).isoformat()


@dataclass(frozen=True)
class ExecutionRecord:
    """One line of a Run's record log"""
    run_id: str
    step: str
    status: StepStatus
    action: Optional[str] = None
    address: Optional[str] = None
    transaction_id: Optional[str] = None
    error: Optional[str] = None
    timestamp: str = field(default_factory=utc_now)

    @property
    def key(self) -> Tuple[str, Optional[str]]:
        return (self.step, self.action)

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["status"] = self.status.value
        return payload

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "ExecutionRecord":
        return cls(
            run_id=payload["run_id"],
            step=payload["step"],
            status=StepStatus(payload["status"]),
            action=payload.get("action"),
            address=payload.get("address"),
            transaction_id=payload.get("transaction_id"),
            error=payload.get("error"),
            timestamp=payload.get("timestamp") or utc_now(),
        )


@dataclass
class Run:
    """One execution attempt of a Plan"""
    run_id: str
    plan: Plan
    records: List[ExecutionRecord] = field(default_factory=list)
    status: RunStatus = RunStatus.CREATED
    error: Optional[Exception] = None

    def latest(self) -> Dict[Tuple[str, Optional[str]], ExecutionRecord]:
        latest: Dict[Tuple[str, Optional[str]], ExecutionRecord] = {}
        for record in self.records:
            latest[record.key] = record
        return latest

    def step_status(self, step: str, action: Optional[str] = None) -> StepStatus:
        record = self.latest().get((step, action))
        return record.status if record else StepStatus.PENDING

    def outputs(self) -> Dict[str, Dict[str, Optional[str]]]:
        """Address and transaction id of every succeeded deploy"""
        return {
            step: {"address": record.address, "transaction_id": record.transaction_id}
            for (step, action), record in self.latest().items()
            if action is None and record.status == StepStatus.SUCCEEDED
        }

    @property
    def succeeded(self) -> bool:
        return self.status == RunStatus.SUCCEEDED
