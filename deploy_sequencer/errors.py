"""Error taxonomy for the deployment sequencer."""

from typing import Optional


class SequencerError(Exception):
    """Base class for every error raised by the sequencer"""


class InvalidPlanError(SequencerError):
    """Plan declarations are malformed or reference unknown/later steps"""


class ConfigError(SequencerError):
    """Missing or invalid configuration value"""


class RunNotFoundError(SequencerError):
    """No persisted Run exists for the given identifier"""


class PlanDriftError(SequencerError):
    """Stored plan does not match the plan it was recorded with"""


class DeployError(SequencerError):
    """The external deploy operation failed for a step"""

    def __init__(self, step: str, cause: str):
        self.step = step
        self.cause = cause
        super().__init__(f"Deploy of step '{step}' failed: {cause}")


class PostActionError(SequencerError):
    """A post-deploy action (ownership transfer) failed"""

    def __init__(self, step: str, action: str, cause: str, failures: Optional[list] = None):
        self.step = step
        self.action = action
        self.cause = cause
        self.failures = failures or [(step, action, cause)]
        super().__init__(f"Post-action '{action}' on step '{step}' failed: {cause}")


class InvalidRunIdError(SequencerError):
    """Run id is malformed or already used by another run"""
