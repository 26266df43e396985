"""Shared fixtures for deployment sequencer tests"""

import hashlib
from types import SimpleNamespace

import pytest

from deploy_sequencer.errors import DeployError, PostActionError
from deploy_sequencer.executor import DeployResult

SIGNER_ADDRESS = "0x" + "ab" * 20

CONFIG_KEYS = [
    "RPC_URL", "PRIVATE_KEY", "CHAIN_ID", "ARTIFACTS_DIR", "RUNS_DIR",
    "RECEIPT_TIMEOUT", "GAS_LIMIT", "POA_MIDDLEWARE", "LOG_FILE", "LOG_LEVEL",
    "SLACK_WEBHOOK",
]


def fake_address(name: str) -> str:
    return "0x" + hashlib.sha256(name.encode()).hexdigest()[:40]


class FakeDeployer:
    """In-memory deployer recording every call"""

    def __init__(self, fail_on=(), fail_transfer_of=()):
        self.fail_on = set(fail_on)
        self.fail_transfer_of = set(fail_transfer_of)
        self.deploy_calls = []
        self.transfer_calls = []

    def deploy(self, artifact, args, signer):
        self.deploy_calls.append((artifact, args))
        if artifact in self.fail_on:
            raise DeployError(artifact, "execution reverted")
        return DeployResult(address=fake_address(artifact), transaction_id="0x" + hashlib.sha256(
            f"tx-{artifact}".encode()).hexdigest())

    def transfer_ownership(self, target, new_owner, signer):
        self.transfer_calls.append((target, new_owner))
        if target in self.fail_transfer_of:
            raise PostActionError(target, f"transfer_ownership:{new_owner}", "caller is not the owner")
        return "0x" + hashlib.sha256(f"transfer-{target}-{new_owner}".encode()).hexdigest()

    # used by the CLI
    def load_signer(self, private_key):
        return SimpleNamespace(address=SIGNER_ADDRESS)

    def balance_of(self, address):
        return 10 ** 18


@pytest.fixture
def signer():
    return SimpleNamespace(address=SIGNER_ADDRESS)


@pytest.fixture
def clean_env(monkeypatch):
    """Remove config variables; anything load_dotenv sets is undone after the test"""
    for key in CONFIG_KEYS:
        monkeypatch.setenv(key, "placeholder")
        monkeypatch.delenv(key)
    return monkeypatch
