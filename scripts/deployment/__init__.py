"""
Contract Deployment
===================

Ordered deployment and wiring of the CoinStructure contracts:
- networks: named network profiles (development, test, rinkeby, live)
- pipeline: construct/invoke steps and the run ledger
- orchestrator: sequential executor with placeholder-identity guard
- chain: web3 construction and invocation primitives
- migrations: the CoinStructure token/crowdsale/proxy pipeline
"""

from .errors import (
    DeploymentError,
    InvalidProfile,
    PlaceholderIdentityRejected,
    StepFailed,
    UnknownProfile,
    UnresolvedReference,
)
from .networks import NetworkProfile, ProfileRegistry, default_registry
from .orchestrator import DeploymentOrchestrator, preflight, run
from .pipeline import Address, ComponentHandle, Construct, Invoke, Pipeline, Ref, RunResult

__all__ = [
    'DeploymentError',
    'InvalidProfile',
    'PlaceholderIdentityRejected',
    'StepFailed',
    'UnknownProfile',
    'UnresolvedReference',
    'NetworkProfile',
    'ProfileRegistry',
    'default_registry',
    'DeploymentOrchestrator',
    'preflight',
    'run',
    'Address',
    'ComponentHandle',
    'Construct',
    'Invoke',
    'Pipeline',
    'Ref',
    'RunResult',
]
