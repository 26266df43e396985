"""
Step Graph Builder
Validates raw step declarations into an immutable, ordered Plan
"""

import copy
import hashlib
import json
import os
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from .errors import InvalidPlanError

TRANSFER_OWNERSHIP = "transfer_ownership"
REFERENCE_FIELDS = ("address", "transaction_id")
SIGNER_FIELDS = ("address",)


class _Struct(tuple):
    """Frozen mapping argument (solidity struct), resolved back into a dict"""


@dataclass(frozen=True)
class Reference:
    """Argument placeholder resolved against an earlier step's output"""
    step: str
    field: str = "address"


@dataclass(frozen=True)
class SignerReference:
    """Argument placeholder resolved against the signer"""
    field: str = "address"


@dataclass(frozen=True)
class PostAction:
    kind: str
    new_owner: str

    @property
    def key(self) -> str:
        return f"{self.kind}:{self.new_owner}"


@dataclass(frozen=True)
class Step:
    name: str
    artifact: str
    args: Tuple[Any, ...] = ()
    post_actions: Tuple[PostAction, ...] = ()

    def references(self) -> List[Reference]:
        return list(_iter_references(self.args))


@dataclass(frozen=True)
class Plan:
    steps: Tuple[Step, ...]
    fingerprint: str
    declarations: Tuple[Dict[str, Any], ...] = ()

    def __iter__(self):
        return iter(self.steps)

    def __len__(self) -> int:
        return len(self.steps)

    def post_actions(self) -> List[Tuple[Step, PostAction]]:
        return [(step, action) for step in self.steps for action in step.post_actions]


def _iter_references(value: Any):
    if isinstance(value, Reference):
        yield value
    elif isinstance(value, tuple):
        for item in value:
            yield from _iter_references(item)


def _freeze(value: Any, step_name: str) -> Any:
    """Turn a raw argument template into immutable values and placeholders"""
    if isinstance(value, dict):
        if "ref" in value:
            extra = set(value) - {"ref", "field"}
            field = value.get("field", "address")
            if extra or not isinstance(value["ref"], str) or field not in REFERENCE_FIELDS:
                raise InvalidPlanError(f"Step '{step_name}': malformed reference {value!r}")
            return Reference(step=value["ref"], field=field)
        if "signer" in value:
            if set(value) != {"signer"} or value["signer"] not in SIGNER_FIELDS:
                raise InvalidPlanError(f"Step '{step_name}': malformed signer reference {value!r}")
            return SignerReference(field=value["signer"])
        return _Struct((k, _freeze(v, step_name)) for k, v in value.items())
    if isinstance(value, list):
        return tuple(_freeze(item, step_name) for item in value)
    return value


def _parse_post_actions(raw: Any, step_name: str) -> Tuple[PostAction, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise InvalidPlanError(f"Step '{step_name}': post_actions must be a list")
    actions = []
    for item in raw:
        if not isinstance(item, dict) or set(item) != {"transfer_ownership_to"}:
            raise InvalidPlanError(f"Step '{step_name}': unsupported post-action {item!r}")
        new_owner = item["transfer_ownership_to"]
        if not isinstance(new_owner, str) or not new_owner:
            raise InvalidPlanError(f"Step '{step_name}': post-action owner must be a step name")
        action = PostAction(kind=TRANSFER_OWNERSHIP, new_owner=new_owner)
        if action in actions:
            # Records are keyed by (step, action.key); a repeat would share one key
            raise InvalidPlanError(f"Step '{step_name}': duplicate post-action '{action.key}'")
        actions.append(action)
    return tuple(actions)


def plan_fingerprint(declarations: List[Dict[str, Any]]) -> str:
    canonical = json.dumps(declarations, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def build_plan(declarations: List[Dict[str, Any]]) -> Plan:
    """
    Validate step declarations and build an immutable Plan

    Args:
        declarations: list of {"name", "artifact", "args", "post_actions"} dicts

    Returns:
        Plan whose argument references only point at earlier steps

    Raises:
        InvalidPlanError: on any malformed declaration or bad reference
    """
    if not isinstance(declarations, list) or not declarations:
        raise InvalidPlanError("Plan must declare at least one step")

    declared: List[str] = []
    steps: List[Step] = []
    for index, raw in enumerate(declarations):
        if not isinstance(raw, dict):
            raise InvalidPlanError(f"Step #{index} must be an object")
        unknown = set(raw) - {"name", "artifact", "args", "post_actions"}
        if unknown:
            raise InvalidPlanError(f"Step #{index}: unknown keys {sorted(unknown)}")

        name = raw.get("name")
        if not isinstance(name, str) or not name:
            raise InvalidPlanError(f"Step #{index} has no name")
        if name in declared:
            raise InvalidPlanError(f"Duplicate step name '{name}'")
        artifact = raw.get("artifact", name)
        if not isinstance(artifact, str) or not artifact:
            raise InvalidPlanError(f"Step '{name}' has no artifact")
        args = raw.get("args", [])
        if not isinstance(args, list):
            raise InvalidPlanError(f"Step '{name}': args must be a list")

        step = Step(
            name=name,
            artifact=artifact,
            args=_freeze(args, name),
            post_actions=_parse_post_actions(raw.get("post_actions"), name),
        )
        for ref in step.references():
            if ref.step == name:
                raise InvalidPlanError(f"Step '{name}' references itself")
            if ref.step not in declared:
                raise InvalidPlanError(
                    f"Step '{name}' references '{ref.step}', which is not declared before it"
                )
        declared.append(name)
        steps.append(step)

    # Post-actions run after every deploy, so any other step may be the new owner
    for step in steps:
        for action in step.post_actions:
            if action.new_owner == step.name:
                raise InvalidPlanError(f"Step '{step.name}' cannot transfer ownership to itself")
            if action.new_owner not in declared:
                raise InvalidPlanError(
                    f"Step '{step.name}': post-action names unknown step '{action.new_owner}'"
                )

    return Plan(
        steps=tuple(steps),
        fingerprint=plan_fingerprint(declarations),
        declarations=tuple(copy.deepcopy(declarations)),
    )


def load_plan(path: str) -> Plan:
    """Load a plan file: a JSON list of steps, or an object with a "steps" list"""
    if not os.path.exists(path):
        raise InvalidPlanError(f"Plan file not found: {path}")
    try:
        with open(path, 'r') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise InvalidPlanError(f"Plan file {path} is not valid JSON: {e}") from e
    if isinstance(data, dict):
        data = data.get("steps")
    return build_plan(data)


def resolve_args(value: Any, outputs: Dict[str, Dict[str, Optional[str]]], signer_address: str) -> Any:
    """Substitute references with recorded outputs, returning plain lists/dicts"""
    if isinstance(value, Reference):
        return outputs[value.step][value.field]
    if isinstance(value, SignerReference):
        return signer_address
    if isinstance(value, _Struct):
        return {k: resolve_args(v, outputs, signer_address) for k, v in value}
    if isinstance(value, tuple):
        return [resolve_args(item, outputs, signer_address) for item in value]
    return value
