"""Errors raised while resolving profiles and running deployment pipelines."""

from typing import Any, Optional


class DeploymentError(Exception):
    """Base class for every deployment failure surfaced to the operator"""


class InvalidProfile(DeploymentError):
    """A network profile entry failed validation at load time"""


class UnknownProfile(DeploymentError):
    def __init__(self, name: str, known=()):
        self.name = name
        self.known = tuple(known)
        message = f"Unknown network profile '{name}'"
        if self.known:
            message += f" (known: {', '.join(self.known)})"
        super().__init__(message)


class UnresolvedReference(DeploymentError):
    """A step refers to a step that has not completed or does not produce an address"""

    def __init__(self, step_index: int, ref_index: int, reason: str = "has not completed"):
        self.step_index = step_index
        self.ref_index = ref_index
        super().__init__(f"Step {step_index} references step {ref_index}, which {reason}")


class PlaceholderIdentityRejected(DeploymentError):
    def __init__(self, profile_name: str, role: str, address: Optional[str]):
        self.profile_name = profile_name
        self.role = role
        self.address = address
        super().__init__(
            f"Refusing to deploy to '{profile_name}': {role} is the placeholder identity ({address}). "
            f"Override it before running against this network."
        )


class StepFailed(DeploymentError):
    """A construct/invoke primitive reported failure; later steps were not run"""

    def __init__(self, step_index: int, cause: BaseException, result: Any = None):
        self.step_index = step_index
        self.cause = cause
        # Partial RunResult: every step before step_index
        self.result = result
        super().__init__(f"Step {step_index} failed: {cause}")


class ChainError(Exception):
    """Failure reported by the web3 construction/invocation layer"""


class ConnectionFailed(ChainError):
    pass


class NetworkMismatch(ChainError):
    pass


class ArtifactNotFound(ChainError):
    pass


class TransactionReverted(ChainError):
    def __init__(self, tx_hash: str, block_number: Optional[int] = None):
        self.tx_hash = tx_hash
        self.block_number = block_number
        super().__init__(f"Transaction {tx_hash} reverted (block {block_number})")
