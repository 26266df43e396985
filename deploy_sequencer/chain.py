"""
web3.py implementation of the deploy and ownership-transfer operations
Loads Hardhat compilation artifacts (artifacts/contracts/<File>.sol/<Name>.json)
"""

import glob
import json
import logging
import os
from typing import Any, Dict, List, Optional, Tuple

from web3 import Web3
from web3.exceptions import TimeExhausted, Web3Exception
from web3.middleware import ExtraDataToPOAMiddleware

from .config import SequencerConfig
from .errors import ConfigError, DeployError, PostActionError
from .executor import DeployResult

logger = logging.getLogger(__name__)

# Ownable.transferOwnership(address)
OWNABLE_ABI = [
    {
        "inputs": [{"internalType": "address", "name": "newOwner", "type": "address"}],
        "name": "transferOwnership",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    }
]


class TransactionFailed(Exception):
    pass


def load_artifact(artifacts_dir: str, name: str) -> Tuple[List[Dict[str, Any]], str]:
    """Return (abi, bytecode) for a contract artifact"""
    pattern = os.path.join(artifacts_dir, "**", f"{name}.json")
    matches = [p for p in glob.glob(pattern, recursive=True)
               if "build-info" not in p.split(os.sep)]
    if not matches:
        raise DeployError(name, f"artifact not found under {artifacts_dir}")
    if len(matches) > 1:
        raise DeployError(name, f"ambiguous artifact, found {sorted(matches)}")
    with open(matches[0], 'r') as f:
        data = json.load(f)
    bytecode = data.get("bytecode") or ""
    if bytecode in ("", "0x"):
        raise DeployError(name, "artifact has no bytecode (abstract contract or interface?)")
    return data['abi'], bytecode


class Web3Deployer:
    def __init__(self, w3: Web3, artifacts_dir: str, receipt_timeout: int = 300,
                 gas_limit: Optional[int] = None, chain_id: Optional[int] = None):
        self.w3 = w3
        self.artifacts_dir = artifacts_dir
        self.receipt_timeout = receipt_timeout
        self.gas_limit = gas_limit
        self.chain_id = chain_id

    @classmethod
    def connect(cls, config: SequencerConfig) -> "Web3Deployer":
        w3 = Web3(Web3.HTTPProvider(config.rpc_url))
        if config.poa_middleware:
            w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
        if not w3.is_connected():
            raise ConfigError(f"Could not connect to RPC URL: {config.rpc_url}")
        logger.info(f"Connected to blockchain at {config.rpc_url}")
        return cls(
            w3,
            artifacts_dir=config.artifacts_dir,
            receipt_timeout=config.receipt_timeout,
            gas_limit=config.gas_limit,
            chain_id=config.chain_id,
        )

    def load_signer(self, private_key: str) -> Any:
        try:
            return self.w3.eth.account.from_key(private_key)
        except ValueError as e:
            raise ConfigError(f"PRIVATE_KEY is not a valid key: {e}") from None

    def balance_of(self, address: str) -> int:
        return self.w3.eth.get_balance(Web3.to_checksum_address(address))

    def _tx_params(self, signer: Any) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            'from': signer.address,
            'nonce': self.w3.eth.get_transaction_count(signer.address, 'pending'),
            'gasPrice': self.w3.eth.gas_price,
        }
        if self.gas_limit:
            params['gas'] = self.gas_limit
        if self.chain_id:
            params['chainId'] = self.chain_id
        return params

    def _send(self, tx: Dict[str, Any], signer: Any) -> Tuple[str, Any]:
        signed_tx = signer.sign_transaction(tx)
        tx_hash = self.w3.eth.send_raw_transaction(signed_tx.raw_transaction)
        tx_id = Web3.to_hex(tx_hash)
        logger.info(f"Transaction sent: {tx_id}")
        receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.receipt_timeout)
        if receipt['status'] != 1:
            raise TransactionFailed(f"transaction {tx_id} reverted in block {receipt['blockNumber']}")
        return tx_id, receipt

    def deploy(self, artifact: str, args: List[Any], signer: Any) -> DeployResult:
        abi, bytecode = load_artifact(self.artifacts_dir, artifact)
        logger.info(f"{artifact} is deploying from {signer.address}...")
        try:
            contract = self.w3.eth.contract(abi=abi, bytecode=bytecode)
            tx = contract.constructor(*args).build_transaction(self._tx_params(signer))
            tx_id, receipt = self._send(tx, signer)
        except TimeExhausted:
            raise DeployError(artifact, f"no receipt within {self.receipt_timeout}s") from None
        except (Web3Exception, TransactionFailed, ValueError, TypeError) as e:
            raise DeployError(artifact, str(e)) from e
        address = receipt['contractAddress']
        logger.info(f"{artifact} deployed at {address}")
        return DeployResult(address=address, transaction_id=tx_id)

    def transfer_ownership(self, target: str, new_owner: str, signer: Any) -> str:
        action = f"transfer_ownership:{new_owner}"
        try:
            contract = self.w3.eth.contract(address=Web3.to_checksum_address(target), abi=OWNABLE_ABI)
            tx = contract.functions.transferOwnership(
                Web3.to_checksum_address(new_owner)
            ).build_transaction(self._tx_params(signer))
            tx_id, _ = self._send(tx, signer)
        except TimeExhausted:
            raise PostActionError(target, action, f"no receipt within {self.receipt_timeout}s") from None
        except (Web3Exception, TransactionFailed, ValueError, TypeError) as e:
            raise PostActionError(target, action, str(e)) from e
        logger.info(f"Ownership of {target} transferred to {new_owner}")
        return tx_id
