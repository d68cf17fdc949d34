#!/usr/bin/env python3
"""
CoinStructure deployment script
Deploys the token, crowdsale and TokenDesk proxy to the selected network and wires them together

Usage:
    python -m scripts.deployment.deploy --network rinkeby
"""

import os
import sys
import json
import logging
import argparse
from datetime import datetime
from typing import Any, Dict, Optional, Sequence

from dotenv import load_dotenv

from .chain import DEFAULT_ARTIFACTS_DIR, DEFAULT_RECEIPT_TIMEOUT, Web3Chain
from .errors import ChainError, DeploymentError, InvalidProfile, StepFailed
from .migrations import pipeline_from_env
from .networks import NetworkProfile, default_registry, overrides_from_env
from .notifier import SlackNotifier
from .orchestrator import DeploymentOrchestrator, preflight
from .pipeline import Address, Pipeline, Ref, RunResult

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)


def setup_logging(log_file: str = 'deployment.log'):
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler()
        ]
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="coinstructure-deploy",
                                     description="Deploy and wire the CoinStructure contracts")
    parser.add_argument("--network", default=os.getenv("DEPLOY_NETWORK", "development"),
                        help="Network profile to deploy to (default: %(default)s)")
    parser.add_argument("--artifacts", default=os.getenv("ARTIFACTS_DIR", DEFAULT_ARTIFACTS_DIR),
                        help="Directory holding compiled contract JSON artifacts")
    parser.add_argument("--output", default="deployment.json",
                        help="Where to write the deployment record (default: %(default)s)")
    parser.add_argument("--no-output", action="store_true", help="Do not write a deployment record")
    parser.add_argument("--dry-run", action="store_true",
                        help="Validate the profile and pipeline without submitting anything")
    parser.add_argument("--list-networks", action="store_true", help="List known network profiles and exit")
    parser.add_argument("--log-file", default="deployment.log")
    return parser


def receipt_timeout_from_env() -> int:
    value = os.getenv("RECEIPT_TIMEOUT")
    if not value:
        return DEFAULT_RECEIPT_TIMEOUT
    try:
        timeout = int(value)
    except ValueError:
        raise InvalidProfile(f"RECEIPT_TIMEOUT must be an integer number of seconds, got {value!r}") from None
    if timeout <= 0:
        raise InvalidProfile(f"RECEIPT_TIMEOUT must be positive, got {timeout}")
    return timeout


def build_deployment_record(profile: NetworkProfile, pipeline: Pipeline, result: RunResult,
                            deployer: Optional[str]) -> Dict[str, Any]:
    roles: Dict[str, Any] = {"deployer": deployer}
    for _, literal in pipeline.address_literals():
        roles[literal.role] = literal.value

    return {
        "network": profile.name,
        "network_id": profile.network_id,
        "deployed_at": datetime.now().isoformat(),
        "contracts": {kind: handle.address for kind, handle in result.handles.items()},
        "roles": roles,
        "transactions": result.transactions,
    }


def write_deployment_record(path: str, record: Dict[str, Any]):
    with open(path, 'w') as f:
        json.dump(record, f, indent=2)
    logger.info(f"Deployment record written to {path}")


def log_plan(pipeline: Pipeline, profile: NetworkProfile):
    logger.info(f"Dry run on '{profile.name}' ({profile.endpoint}, network {profile.network_id})")
    for index, step in pipeline:
        args = ", ".join(
            f"<step {arg.step}>" if isinstance(arg, Ref) else
            (arg.value if isinstance(arg, Address) else repr(arg))
            for arg in step.args
        )
        logger.info(f"  {index}. {step.describe()}({args})")


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(list(argv) if argv is not None else None)
    setup_logging(args.log_file)

    registry = default_registry()
    if args.list_networks:
        for name in registry.names():
            profile = registry.resolve(name)
            print(f"{name}: {profile.endpoint} network_id={profile.network_id} gas={profile.resource_ceiling}")
        return 0

    notifier = SlackNotifier(os.getenv("SLACK_WEBHOOK"))

    try:
        profile = overrides_from_env(registry.resolve(args.network))
        pipeline = pipeline_from_env()
        preflight(pipeline, profile)

        if args.dry_run:
            log_plan(pipeline, profile)
            return 0

        chain = Web3Chain.connect(
            profile,
            artifacts_dir=args.artifacts,
            private_key=os.getenv("PRIVATE_KEY"),
            receipt_timeout=receipt_timeout_from_env(),
        )
        result = DeploymentOrchestrator(chain).run(pipeline, profile)

    except StepFailed as e:
        completed = len(e.result) if e.result is not None else 0
        logger.error(f"Deployment aborted at step {e.step_index} after {completed} completed steps: {e.cause}")
        if e.result is not None:
            for kind, handle in e.result.handles.items():
                logger.error(f"  already deployed: {kind} at {handle.address}")
        notifier.deployment_failed(args.network, e, completed)
        return 1
    except (DeploymentError, ChainError) as e:
        logger.error(f"Deployment failed: {e}")
        notifier.deployment_failed(args.network, e)
        return 1

    for kind, handle in result.handles.items():
        logger.info(f"{kind}: {handle.address}")

    if not args.no_output:
        record = build_deployment_record(profile, pipeline, result, chain.sender(profile.originator))
        write_deployment_record(args.output, record)

    notifier.deployment_succeeded(profile, result)
    return 0


if __name__ == "__main__":
    sys.exit(main())
