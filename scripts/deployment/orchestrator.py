"""
Deployment Orchestrator
Runs a pipeline step by step against one network profile, threading the
addresses of deployed contracts into the steps that depend on them
"""

import logging
from typing import Any, Tuple

from .errors import ChainError, PlaceholderIdentityRejected, StepFailed, UnresolvedReference
from .networks import NetworkProfile, is_placeholder
from .pipeline import (
    Address,
    ComponentHandle,
    Construct,
    Invoke,
    InvokeOutcome,
    Pipeline,
    Ref,
    RunResult,
)

logger = logging.getLogger(__name__)


def validate_identities(pipeline: Pipeline, profile: NetworkProfile):
    """
    Reject placeholder identities on any non-development network

    The originator and every Address literal embedded in the pipeline are checked.
    Nothing is submitted before this passes.

    Raises:
        PlaceholderIdentityRejected: on a missing or all-zero identity
    """
    if profile.development:
        return
    if is_placeholder(profile.originator):
        raise PlaceholderIdentityRejected(profile.name, "originator", profile.originator)
    for index, literal in pipeline.address_literals():
        if is_placeholder(literal.value):
            raise PlaceholderIdentityRejected(profile.name, f"{literal.role} (step {index})", literal.value)


def preflight(pipeline: Pipeline, profile: NetworkProfile):
    """Validate references and identities; nothing is submitted"""
    pipeline.validate()
    validate_identities(pipeline, profile)


class DeploymentOrchestrator:
    """Sequential executor for deployment pipelines"""

    def __init__(self, chain):
        """
        Args:
            chain: Object exposing construct(kind, args, originator, resource_ceiling, unit_price)
                   and invoke(address, method, args, originator, resource_ceiling, unit_price)
        """
        self.chain = chain

    def preflight(self, pipeline: Pipeline, profile: NetworkProfile):
        preflight(pipeline, profile)

    def run(self, pipeline: Pipeline, profile: NetworkProfile) -> RunResult:
        """
        Execute every step in order, stopping at the first failure

        Returns:
            RunResult with one entry per step

        Raises:
            UnresolvedReference: malformed pipeline
            PlaceholderIdentityRejected: placeholder originator/address on a live network
            StepFailed: a construct/invoke primitive failed; `.result` holds the completed steps
        """
        self.preflight(pipeline, profile)

        total = len(pipeline)
        result = RunResult()
        logger.info(f"Running {total} deployment steps on '{profile.name}' ({profile.endpoint})")

        for index, step in pipeline:
            args = self._resolve_args(index, step.args, result)
            logger.info(f"[{index}/{total}] {step.describe()}")

            if isinstance(step, Construct):
                outcome = self._construct(index, step, args, profile, result)
            elif isinstance(step, Invoke):
                outcome = self._invoke(index, step, args, profile, result)
            else:
                raise TypeError(f"Unsupported pipeline step at {index}: {step!r}")

            result.record(index, outcome)

        logger.info(f"Deployment on '{profile.name}' completed: {len(result)}/{total} steps")
        return result

    def _construct(self, index: int, step: Construct, args: Tuple[Any, ...],
                   profile: NetworkProfile, result: RunResult) -> ComponentHandle:
        try:
            receipt = self.chain.construct(
                step.kind, args, profile.originator, profile.resource_ceiling, profile.unit_price
            )
            if not receipt.contract_address:
                raise ChainError(f"No contract address in receipt for {step.kind}")
        except Exception as e:
            logger.error(f"Step {index} ({step.describe()}) failed: {e}")
            raise StepFailed(index, e, result) from e

        logger.info(f"-> {step.kind} deployed at {receipt.contract_address}")
        return ComponentHandle(
            kind=step.kind,
            address=receipt.contract_address,
            profile=profile,
            step_index=index,
            tx_hash=receipt.tx_hash,
        )

    def _invoke(self, index: int, step: Invoke, args: Tuple[Any, ...],
                profile: NetworkProfile, result: RunResult) -> InvokeOutcome:
        target = self._lookup(index, step.target, result)
        try:
            receipt = self.chain.invoke(
                target.address, step.method, args, profile.originator, profile.resource_ceiling, profile.unit_price
            )
        except Exception as e:
            logger.error(f"Step {index} ({step.describe()}) failed: {e}")
            raise StepFailed(index, e, result) from e

        logger.info(f"-> {target.kind}.{step.method} confirmed")
        return InvokeOutcome(step_index=index, target=target, method=step.method, tx_hash=receipt.tx_hash)

    def _lookup(self, index: int, ref: int, result: RunResult) -> ComponentHandle:
        if ref >= index or ref not in result:
            raise UnresolvedReference(index, ref)
        outcome = result[ref]
        if not isinstance(outcome, ComponentHandle):
            raise UnresolvedReference(index, ref, "does not produce an address")
        return outcome

    def _resolve_args(self, index: int, args: Tuple[Any, ...], result: RunResult) -> Tuple[Any, ...]:
        resolved = []
        for arg in args:
            if isinstance(arg, Ref):
                resolved.append(self._lookup(index, arg.step, result).address)
            elif isinstance(arg, Address):
                resolved.append(arg.value)
            else:
                resolved.append(arg)
        return tuple(resolved)


def run(pipeline: Pipeline, profile: NetworkProfile, chain) -> RunResult:
    return DeploymentOrchestrator(chain).run(pipeline, profile)
