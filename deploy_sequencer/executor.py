"""
Deployment Executor
Runs a Plan strictly in order, checkpointing every step to the Result Store
and resuming prior Runs from their first unfinished step
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol, Tuple

from .errors import DeployError, PostActionError, SequencerError
from .events import Event, EventStream
from .models import ExecutionRecord, Run, RunStatus, StepStatus
from .plan import Plan, PostAction, Step, resolve_args
from .store import ResultStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeployResult:
    address: str
    transaction_id: str


class Deployer(Protocol):
    def deploy(self, artifact: str, args: List[Any], signer: Any) -> DeployResult:
        ...

    def transfer_ownership(self, target: str, new_owner: str, signer: Any) -> str:
        ...


def new_run_id() -> str:
    stamp = datetime.now(tz=timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    return f"{stamp}-{uuid.uuid4().hex[:8]}"


class Executor:
    """
    Sequential deployment executor

    The deployer and signer are injected; the executor never reaches for a
    global chain client. Only the executor writes to the store.
    """

    def __init__(self, deployer: Deployer, signer: Any, store: ResultStore,
                 events: Optional[EventStream] = None):
        self.deployer = deployer
        self.signer = signer
        self.store = store
        self.events = events or EventStream()

    def run(self, plan: Plan, run_id: Optional[str] = None) -> Run:
        """Start a fresh Run of the plan"""
        run_id = run_id or new_run_id()
        self.store.create_run(run_id, plan)
        logger.info(f"Created run {run_id} with {len(plan)} steps")
        return self._execute(Run(run_id=run_id, plan=plan))

    def resume(self, run_id: str) -> Run:
        """Continue a prior Run, skipping every step already succeeded"""
        plan = self.store.load_plan(run_id)
        run = Run(
            run_id=run_id,
            plan=plan,
            records=self.store.read_records(run_id),
            status=self.store.read_status(run_id),
        )
        done = sum(1 for step in plan if run.step_status(step.name) == StepStatus.SUCCEEDED)
        logger.info(f"Resuming run {run_id}: {done}/{len(plan)} steps already succeeded")
        return self._execute(run)

    def _execute(self, run: Run) -> Run:
        self._set_status(run, RunStatus.RUNNING)
        outputs = run.outputs()
        try:
            for step in run.plan:
                if step.name in outputs:
                    logger.info(f"[{run.run_id}] {step.name}: already deployed at {outputs[step.name]['address']}, skipping")
                    continue
                result = self._deploy_step(run, step, outputs)
                outputs[step.name] = {"address": result.address, "transaction_id": result.transaction_id}
            self._run_post_actions(run, outputs)
        except SequencerError as e:
            run.error = e
            self._set_status(run, RunStatus.ABORTED)
            return run
        run.error = None
        self._set_status(run, RunStatus.SUCCEEDED)
        return run

    def _deploy_step(self, run: Run, step: Step, outputs: Dict[str, Dict[str, Optional[str]]]) -> DeployResult:
        self._record(run, step.name, None, StepStatus.IN_FLIGHT)
        try:
            args = resolve_args(step.args, outputs, self.signer.address)
            result = self.deployer.deploy(step.artifact, args, self.signer)
        except DeployError as e:
            error = DeployError(step.name, e.cause)
        except Exception as e:
            error = DeployError(step.name, f"{type(e).__name__}: {e}")
        else:
            self._record(run, step.name, None, StepStatus.SUCCEEDED,
                         address=result.address, transaction_id=result.transaction_id)
            return result
        self._record(run, step.name, None, StepStatus.FAILED, error=error.cause)
        raise error

    def _run_post_actions(self, run: Run, outputs: Dict[str, Dict[str, Optional[str]]]) -> None:
        """Run every pending post-action; failures do not stop the others"""
        latest = run.latest()
        failures: List[Tuple[str, str, str]] = []
        for step, action in run.plan.post_actions():
            record = latest.get((step.name, action.key))
            if record is not None and record.status == StepStatus.SUCCEEDED:
                logger.info(f"[{run.run_id}] {step.name} ({action.key}): already done, skipping")
                continue
            cause = self._post_action(run, step, action, outputs)
            if cause is not None:
                failures.append((step.name, action.key, cause))
        if failures:
            step_name, action_key, cause = failures[0]
            raise PostActionError(step_name, action_key, cause, failures=failures)

    def _post_action(self, run: Run, step: Step, action: PostAction,
                     outputs: Dict[str, Dict[str, Optional[str]]]) -> Optional[str]:
        target = outputs[step.name]["address"]
        new_owner = outputs[action.new_owner]["address"]
        self._record(run, step.name, action.key, StepStatus.IN_FLIGHT)
        try:
            tx_id = self.deployer.transfer_ownership(target, new_owner, self.signer)
        except PostActionError as e:
            cause = e.cause
        except Exception as e:
            cause = f"{type(e).__name__}: {e}"
        else:
            self._record(run, step.name, action.key, StepStatus.SUCCEEDED,
                         address=target, transaction_id=tx_id)
            return None
        self._record(run, step.name, action.key, StepStatus.FAILED, error=cause)
        return cause

    def _record(self, run: Run, step: str, action: Optional[str], status: StepStatus, **fields) -> None:
        record = ExecutionRecord(run_id=run.run_id, step=step, action=action, status=status, **fields)
        self.store.append(record)
        run.records.append(record)
        detail = {k: v for k, v in fields.items() if v is not None}
        self.events.emit(Event(run_id=run.run_id, step=step, action=action, status=status,
                               detail=detail, timestamp=record.timestamp))

    def _set_status(self, run: Run, status: RunStatus) -> None:
        run.status = status
        self.store.set_status(run.run_id, status)
