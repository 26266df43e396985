"""
Result Store
Append-only record log per Run, plus the Run's plan and status files

Layout under the runs directory:
    <run_id>.jsonl        one ExecutionRecord per line, append-only
    <run_id>.plan.json    plan declarations and fingerprint, written once
    <run_id>.status.json  current RunStatus, replaced atomically
"""

import json
import logging
import os
import re
from typing import Any, Dict, List, Optional, Tuple

from .errors import InvalidRunIdError, PlanDriftError, RunNotFoundError, SequencerError
from .models import ExecutionRecord, RunStatus, utc_now
from .plan import Plan, build_plan

logger = logging.getLogger(__name__)

RUN_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


def _dumps(payload: Dict[str, Any]) -> str:
    return json.dumps(payload, sort_keys=True, ensure_ascii=True, separators=(",", ":"))


class ResultStore:
    def __init__(self, root: str):
        self.root = root

    def _path(self, run_id: str, suffix: str) -> str:
        if not RUN_ID_PATTERN.match(run_id):
            raise InvalidRunIdError(f"Invalid run id: {run_id!r}")
        return os.path.join(self.root, f"{run_id}{suffix}")

    def records_path(self, run_id: str) -> str:
        return self._path(run_id, ".jsonl")

    def exists(self, run_id: str) -> bool:
        return os.path.exists(self._path(run_id, ".plan.json"))

    def check_new_run_id(self, run_id: str) -> None:
        """Raise InvalidRunIdError unless run_id is well formed and unused"""
        if self.exists(run_id):
            raise InvalidRunIdError(f"Run '{run_id}' already exists")

    def create_run(self, run_id: str, plan: Plan) -> None:
        """Persist the plan for a new run; refuses to reuse an existing run id"""
        os.makedirs(self.root, exist_ok=True)
        payload = {
            "run_id": run_id,
            "fingerprint": plan.fingerprint,
            "steps": list(plan.declarations),
            "created_at": utc_now(),
        }
        try:
            with open(self._path(run_id, ".plan.json"), 'x') as f:
                f.write(_dumps(payload) + "\n")
        except FileExistsError:
            raise InvalidRunIdError(f"Run '{run_id}' already exists") from None
        self.set_status(run_id, RunStatus.CREATED)

    def load_plan(self, run_id: str) -> Plan:
        path = self._path(run_id, ".plan.json")
        if not os.path.exists(path):
            raise RunNotFoundError(f"No run named '{run_id}' in {self.root}")
        with open(path, 'r') as f:
            payload = json.load(f)
        plan = build_plan(payload["steps"])
        if plan.fingerprint != payload.get("fingerprint"):
            raise PlanDriftError(f"Stored plan for run '{run_id}' does not match its fingerprint")
        return plan

    def append(self, record: ExecutionRecord) -> None:
        """Append one record and force it to disk before returning"""
        path = self.records_path(record.run_id)
        if os.path.exists(path):
            self._truncate_torn_tail(path)
        with open(path, 'a') as f:
            f.write(_dumps(record.to_dict()) + "\n")
            f.flush()
            os.fsync(f.fileno())

    def _truncate_torn_tail(self, path: str) -> None:
        """Drop a partial last line so the next record starts on its own line"""
        with open(path, 'rb+') as f:
            f.seek(0, os.SEEK_END)
            if f.tell() == 0:
                return
            f.seek(-1, os.SEEK_END)
            if f.read(1) == b"\n":
                return
            f.seek(0)
            data = f.read()
            cut = data.rfind(b"\n") + 1
            logger.warning(f"Truncating incomplete record at end of {path}")
            f.truncate(cut)

    def read_records(self, run_id: str) -> List[ExecutionRecord]:
        if not self.exists(run_id):
            raise RunNotFoundError(f"No run named '{run_id}' in {self.root}")
        path = self.records_path(run_id)
        if not os.path.exists(path):
            return []
        with open(path, 'r') as f:
            lines = f.read().splitlines()
        records = []
        for number, line in enumerate(lines, start=1):
            if not line.strip():
                continue
            try:
                records.append(ExecutionRecord.from_dict(json.loads(line)))
            except (json.JSONDecodeError, KeyError, ValueError) as e:
                if number == len(lines):
                    # A crash mid-append can leave a torn final line
                    logger.warning(f"Ignoring incomplete last record in {path}: {e}")
                    continue
                raise SequencerError(f"Corrupt record at {path}:{number}: {e}") from e
        return records

    def latest(self, run_id: str) -> Dict[Tuple[str, Optional[str]], ExecutionRecord]:
        """Most recent record per (step, action)"""
        latest: Dict[Tuple[str, Optional[str]], ExecutionRecord] = {}
        for record in self.read_records(run_id):
            latest[record.key] = record
        return latest

    def set_status(self, run_id: str, status: RunStatus) -> None:
        path = self._path(run_id, ".status.json")
        tmp_path = path + ".tmp"
        with open(tmp_path, 'w') as f:
            f.write(_dumps({"run_id": run_id, "status": status.value, "updated_at": utc_now()}) + "\n")
        os.replace(tmp_path, path)

    def read_status(self, run_id: str) -> RunStatus:
        path = self._path(run_id, ".status.json")
        if not os.path.exists(path):
            # Plan is written before the first status; a crash can fall between them
            if self.exists(run_id):
                return RunStatus.CREATED
            raise RunNotFoundError(f"No run named '{run_id}' in {self.root}")
        with open(path, 'r') as f:
            return RunStatus(json.load(f)["status"])

    def list_runs(self) -> List[str]:
        if not os.path.isdir(self.root):
            return []
        suffix = ".plan.json"
        return sorted(name[:-len(suffix)] for name in os.listdir(self.root) if name.endswith(suffix))
