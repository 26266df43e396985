#!/usr/bin/env python3
"""
Command line entry point

    deploy-sequencer run <plan-file> [--run-id ID] [--export deployment.json]
    deploy-sequencer resume <run-id> [--export deployment.json]
    deploy-sequencer status <run-id>
    deploy-sequencer runs

Exit codes: 0 full success, 1 step or post-action failure,
2 invalid plan, invalid or reused run id, unknown run or bad configuration.
"""

import argparse
import json
import logging
import os
import sys
from typing import List, Optional

from web3 import Web3

from .chain import Web3Deployer
from .config import SequencerConfig
from .errors import (
    ConfigError, InvalidPlanError, InvalidRunIdError, PlanDriftError, RunNotFoundError, SequencerError,
)
from .events import EventStream, SlackNotifier, log_event
from .executor import Executor
from .logging_utils import configure_logging
from .models import Run
from .plan import load_plan
from .store import ResultStore

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="deploy-sequencer", description="Ordered, resumable contract deployment")
    parser.add_argument("--env-file", default=None, help="Path to a .env file (default: search upwards from cwd)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Execute a fresh run of a plan file")
    run_parser.add_argument("plan_file")
    run_parser.add_argument("--run-id", default=None)
    run_parser.add_argument("--export", default=None, help="Write deployed addresses to this JSON file")

    resume_parser = subparsers.add_parser("resume", help="Continue a prior run")
    resume_parser.add_argument("run_id")
    resume_parser.add_argument("--export", default=None, help="Write deployed addresses to this JSON file")

    status_parser = subparsers.add_parser("status", help="Show the records of a run")
    status_parser.add_argument("run_id")

    subparsers.add_parser("runs", help="List known runs")
    return parser


def export_deployment(run: Run, signer_address: str, path: str) -> None:
    """Write addresses in the deployment.json shape read by off-chain scripts"""
    payload = {
        "run_id": run.run_id,
        "contracts": {name: out["address"] for name, out in run.outputs().items()},
        "roles": {"deployer": signer_address},
    }
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(path, 'w') as f:
        json.dump(payload, f, indent=2)
    logger.info(f"Deployment addresses written to {path}")


def _build_executor(config: SequencerConfig, store: ResultStore) -> Executor:
    deployer = Web3Deployer.connect(config)
    signer = deployer.load_signer(config.require_private_key())
    balance = deployer.balance_of(signer.address)
    logger.info(f"Deployer address: {signer.address}")
    logger.info(f"Account balance: {Web3.from_wei(balance, 'ether')} ETH")

    events = EventStream()
    events.subscribe(log_event)
    if config.slack_webhook:
        events.subscribe(SlackNotifier(config.slack_webhook))
    return Executor(deployer, signer, store, events)


def _finish(run: Run, executor: Executor, export: Optional[str]) -> int:
    if run.succeeded:
        logger.info(f"Run {run.run_id} succeeded")
        if export:
            export_deployment(run, executor.signer.address, export)
        return EXIT_OK
    logger.error(f"Run {run.run_id} aborted: {run.error}")
    logger.error(f"Fix the cause and continue with: deploy-sequencer resume {run.run_id}")
    return EXIT_FAILED


def _print_status(store: ResultStore, run_id: str) -> None:
    plan = store.load_plan(run_id)
    latest = store.latest(run_id)
    print(f"Run {run_id}: {store.read_status(run_id).value}")
    for step in plan:
        record = latest.get((step.name, None))
        status = record.status.value if record else "pending"
        address = record.address if record and record.address else ""
        print(f"  {step.name:<24} {status:<10} {address}")
        for action in step.post_actions:
            record = latest.get((step.name, action.key))
            status = record.status.value if record else "pending"
            print(f"    -> {action.key:<21} {status}")


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        config = SequencerConfig.from_env(args.env_file)
        configure_logging(config.log_level, config.log_file)
        store = ResultStore(config.runs_dir)

        if args.command == "runs":
            for run_id in store.list_runs():
                print(f"{run_id}  {store.read_status(run_id).value}")
            return EXIT_OK
        if args.command == "status":
            _print_status(store, args.run_id)
            return EXIT_OK

        if args.command == "run":
            # Validate before touching the chain
            plan = load_plan(args.plan_file)
            if args.run_id is not None:
                store.check_new_run_id(args.run_id)
            executor = _build_executor(config, store)
            run = executor.run(plan, run_id=args.run_id)
        else:
            store.load_plan(args.run_id)
            executor = _build_executor(config, store)
            run = executor.resume(args.run_id)
        return _finish(run, executor, args.export)
    except (InvalidPlanError, InvalidRunIdError, RunNotFoundError, PlanDriftError, ConfigError) as e:
        logger.error(str(e))
        return EXIT_USAGE
    except SequencerError as e:
        logger.error(str(e))
        return EXIT_FAILED


if __name__ == "__main__":
    sys.exit(main())
