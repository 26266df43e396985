#!/usr/bin/env python3
"""
Deploys the MeltyFi contracts in the following order:
1. ChocoChip: ERC20 governance token of the ecosystem.
2. WonkaBar: ERC1155 utility token of the ecosystem.
3. TimelockController: timelock of the MeltyFiDAO (1 hour delay, deployer as admin).
4. MeltyFiDAO: initialized with ChocoChip and TimelockController.
5. MeltyFiNFT: initialized with ChocoChip, WonkaBar and MeltyFiDAO.
Then transfers ownership of ChocoChip and WonkaBar to MeltyFiNFT.

Re-running with --resume <run-id> continues a run that stopped part way.
"""

import argparse
import os
import sys

from deploy_sequencer.cli import main as cli_main

PLAN_PATH = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'plans', 'meltyfi.json')


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Deploy the MeltyFi contract suite")
    parser.add_argument("--resume", metavar="RUN_ID", default=None)
    parser.add_argument("--export", default="deployment.json")
    args = parser.parse_args(argv)

    if args.resume:
        return cli_main(["resume", args.resume, "--export", args.export])
    return cli_main(["run", PLAN_PATH, "--export", args.export])


if __name__ == "__main__":
    sys.exit(main())
