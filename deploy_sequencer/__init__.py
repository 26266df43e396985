"""
Deployment Sequencer
====================

Ordered, resumable deployment of smart contracts.

Components:
- plan: Step Graph Builder (validates declarations into an immutable Plan)
- executor: runs a Plan step by step with checkpointing and resume
- store: append-only record log per Run
- chain: web3.py deploy and ownership-transfer operations
"""

from .errors import (
    SequencerError,
    InvalidPlanError,
    DeployError,
    PostActionError,
    RunNotFoundError,
    PlanDriftError,
    ConfigError,
    InvalidRunIdError,
)
from .plan import Step, PostAction, Plan, build_plan, load_plan
from .models import StepStatus, RunStatus, ExecutionRecord, Run
from .store import ResultStore
from .events import Event, EventStream
from .executor import Executor, DeployResult

__version__ = "0.1.0"

__all__ = [
    'SequencerError', 'InvalidPlanError', 'DeployError', 'PostActionError',
    'RunNotFoundError', 'PlanDriftError', 'ConfigError', 'InvalidRunIdError',
    'Step', 'PostAction', 'Plan', 'build_plan', 'load_plan',
    'StepStatus', 'RunStatus', 'ExecutionRecord', 'Run',
    'ResultStore', 'Event', 'EventStream', 'Executor', 'DeployResult',
]
