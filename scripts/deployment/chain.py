"""
Web3 construction and invocation primitives
Submits contract deployments and method calls and waits for their receipts
"""

import os
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence

from web3 import Web3
from web3.middleware import ExtraDataToPOAMiddleware

from .errors import ArtifactNotFound, ChainError, ConnectionFailed, NetworkMismatch, TransactionReverted
from .networks import NetworkProfile

logger = logging.getLogger(__name__)

DEFAULT_ARTIFACTS_DIR = os.path.join("build", "contracts")
DEFAULT_RECEIPT_TIMEOUT = 300


@dataclass(frozen=True)
class SubmissionReceipt:
    """Confirmed transaction; contract_address is set for deployments only"""
    tx_hash: str
    block_number: Optional[int] = None
    contract_address: Optional[str] = None


def load_artifact(artifacts_dir: str, kind: str) -> Dict[str, Any]:
    """Loads a compiled contract's ABI and bytecode from its JSON artifact."""
    path = os.path.join(artifacts_dir, f"{kind}.json")
    try:
        with open(path, 'r') as f:
            data = json.load(f)
    except FileNotFoundError:
        raise ArtifactNotFound(f"No artifact for {kind} at {path}. Compile the contracts first.") from None

    if 'abi' not in data or not data.get('bytecode'):
        raise ArtifactNotFound(f"Artifact {path} has no abi/bytecode")
    return {'abi': data['abi'], 'bytecode': data['bytecode']}


class Web3Chain:
    def __init__(self, w3: Web3, artifacts_dir: str = DEFAULT_ARTIFACTS_DIR,
                 private_key: Optional[str] = None, receipt_timeout: int = DEFAULT_RECEIPT_TIMEOUT):
        self.w3 = w3
        self.artifacts_dir = artifacts_dir
        self.private_key = private_key
        self.receipt_timeout = receipt_timeout
        self.account = w3.eth.account.from_key(private_key) if private_key else None
        self._abis: Dict[str, Any] = {}

    @classmethod
    def connect(cls, profile: NetworkProfile, artifacts_dir: str = DEFAULT_ARTIFACTS_DIR,
                private_key: Optional[str] = None,
                receipt_timeout: int = DEFAULT_RECEIPT_TIMEOUT) -> "Web3Chain":
        """
        Open an HTTP connection to the profile's node and check it serves the expected network

        Raises:
            ConnectionFailed: node unreachable
            NetworkMismatch: node reports a different network id than the profile pins
            ChainError: PRIVATE_KEY belongs to an account other than the profile originator
        """
        w3 = Web3(Web3.HTTPProvider(profile.endpoint))
        if profile.poa:
            w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)

        if not w3.is_connected():
            raise ConnectionFailed(f"Could not connect to the RPC URL at {profile.endpoint}")

        network_id = w3.net.version
        if not profile.accepts_network(network_id):
            raise NetworkMismatch(
                f"Node at {profile.endpoint} serves network {network_id}, "
                f"profile '{profile.name}' expects {profile.network_id}"
            )
        logger.info(f"Connected to network {network_id} at {profile.endpoint}")

        chain = cls(w3, artifacts_dir, private_key, receipt_timeout)
        if chain.account is not None and profile.originator \
                and chain.account.address.lower() != profile.originator.lower():
            raise ChainError(
                f"The private key in .env ({chain.account.address}) does not match "
                f"the originator of profile '{profile.name}' ({profile.originator})"
            )
        return chain

    def register_abi(self, address: str, abi: Any):
        """Make a contract deployed outside this chain object invokable"""
        self._abis[Web3.to_checksum_address(address)] = abi

    def sender(self, originator: Optional[str]) -> str:
        """
        Account every request is submitted from

        The originator wins; a configured key may only sign for that same account.
        Without an originator the key's account is used, then the node's first account.
        """
        if originator:
            originator = Web3.to_checksum_address(originator)
            if self.account is not None and self.account.address.lower() != originator.lower():
                raise ChainError(f"Private key account {self.account.address} cannot sign for originator {originator}")
            return originator
        if self.account is not None:
            return self.account.address
        accounts = self.w3.eth.accounts
        if not accounts:
            raise ChainError("No originator configured and the node exposes no unlocked accounts")
        return accounts[0]

    def construct(self, kind: str, args: Sequence[Any], originator: Optional[str],
                  resource_ceiling: int, unit_price: Optional[int] = None) -> SubmissionReceipt:
        artifact = load_artifact(self.artifacts_dir, kind)
        factory = self.w3.eth.contract(abi=artifact['abi'], bytecode=artifact['bytecode'])

        receipt = self._submit(factory.constructor(*args), originator, resource_ceiling, unit_price)
        address = receipt['contractAddress']
        if not address:
            raise ChainError(f"Deployment of {kind} confirmed without a contract address")
        address = Web3.to_checksum_address(address)
        self._abis[address] = artifact['abi']
        return SubmissionReceipt(
            tx_hash=Web3.to_hex(receipt['transactionHash']),
            block_number=receipt['blockNumber'],
            contract_address=address,
        )

    def invoke(self, address: str, method: str, args: Sequence[Any], originator: Optional[str],
               resource_ceiling: int, unit_price: Optional[int] = None) -> SubmissionReceipt:
        checksum_address = Web3.to_checksum_address(address)
        abi = self._abis.get(checksum_address)
        if abi is None:
            raise ChainError(f"No ABI known for contract at {checksum_address}")

        contract = self.w3.eth.contract(address=checksum_address, abi=abi)
        call = getattr(contract.functions, method)(*args)
        receipt = self._submit(call, originator, resource_ceiling, unit_price)
        return SubmissionReceipt(
            tx_hash=Web3.to_hex(receipt['transactionHash']),
            block_number=receipt['blockNumber'],
        )

    def _submit(self, call, originator: Optional[str], gas: int, gas_price: Optional[int]):
        sender = self.sender(originator)
        tx_params = {
            'from': sender,
            'gas': gas,
            'gasPrice': gas_price if gas_price is not None else self.w3.eth.gas_price,
        }

        if self.account is not None:
            tx_params['nonce'] = self.w3.eth.get_transaction_count(sender)
            tx = call.build_transaction(tx_params)
            signed_tx = self.w3.eth.account.sign_transaction(tx, self.private_key)
            tx_hash = self.w3.eth.send_raw_transaction(signed_tx.raw_transaction)
        else:
            tx_hash = call.transact(tx_params)

        logger.info(f"Transaction sent from {sender}: {Web3.to_hex(tx_hash)}")
        # Raises web3.exceptions.TimeExhausted after receipt_timeout seconds
        receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.receipt_timeout)
        if receipt['status'] != 1:
            raise TransactionReverted(Web3.to_hex(tx_hash), receipt.get('blockNumber'))

        logger.info(f"Transaction confirmed in block {receipt['blockNumber']}")
        return receipt
