#!/usr/bin/env python3
"""
Tests for the deployment command line entry point
"""

import json
import pytest
from unittest.mock import patch, MagicMock

from scripts.deployment import deploy
from scripts.deployment.chain import SubmissionReceipt
from scripts.deployment.errors import ConnectionFailed, InvalidProfile
from scripts.deployment.migrations import MINTER_ADDRESS, build_pipeline
from scripts.deployment.networks import default_registry
from scripts.deployment.orchestrator import run

NODE_ACCOUNT = "0x" + "aa" * 20


def fake_chain(fail_on_call=None):
    chain = MagicMock()
    calls = []

    def submit(*args, **kwargs):
        calls.append(args)
        if fail_on_call == len(calls):
            raise RuntimeError("out of gas")
        n = len(calls)
        return SubmissionReceipt(tx_hash=f"0x{n:064x}", block_number=n, contract_address=f"0x{n:040x}")

    chain.construct.side_effect = submit
    chain.invoke.side_effect = submit
    chain.sender.return_value = NODE_ACCOUNT
    chain.calls = calls
    return chain


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in ("DEPLOY_NETWORK", "SLACK_WEBHOOK", "PRIVATE_KEY", "DEPLOYER_ADDRESS", "NETWORK_HOST", "NETWORK_PORT",
                 "MINTER_ADDRESS", "TOKEN_DESK_BONUS", "RECEIPT_TIMEOUT"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    with patch.object(deploy, 'setup_logging'):
        yield


class TestMain:
    """Test class for deploy.main"""

    @patch('scripts.deployment.deploy.Web3Chain')
    def test_successful_deployment_writes_record(self, mock_chain_cls, tmp_path):
        """Test a full run writes the deployment record"""
        chain = fake_chain()
        mock_chain_cls.connect.return_value = chain
        output = tmp_path / "deployment.json"

        assert deploy.main(["--network", "development", "--output", str(output)]) == 0

        assert len(chain.calls) == 6
        record = json.loads(output.read_text())
        assert record["network"] == "development"
        assert set(record["contracts"]) == {"CoinStructureToken", "CoinStructureCrowdsale", "TokenDeskProxy"}
        assert record["roles"]["deployer"] == NODE_ACCOUNT
        assert record["roles"]["minter"].lower() == MINTER_ADDRESS.lower()
        assert len(record["transactions"]) == 6

    @patch('scripts.deployment.deploy.Web3Chain')
    def test_no_output(self, mock_chain_cls, tmp_path):
        """Test --no-output skips the deployment record"""
        mock_chain_cls.connect.return_value = fake_chain()
        assert deploy.main(["--no-output"]) == 0
        assert not (tmp_path / "deployment.json").exists()

    @patch('scripts.deployment.deploy.Web3Chain')
    def test_step_failure_returns_error(self, mock_chain_cls, tmp_path):
        """Test a failed step exits with status 1 and writes no record"""
        chain = fake_chain(fail_on_call=2)
        mock_chain_cls.connect.return_value = chain

        assert deploy.main(["--network", "test"]) == 1
        assert len(chain.calls) == 2
        assert not (tmp_path / "deployment.json").exists()

    @patch('scripts.deployment.deploy.Web3Chain')
    def test_unknown_network(self, mock_chain_cls):
        """Test an unknown profile fails before connecting"""
        assert deploy.main(["--network", "nonexistent"]) == 1
        mock_chain_cls.connect.assert_not_called()

    @patch('scripts.deployment.deploy.Web3Chain')
    def test_live_placeholder_rejected_before_connecting(self, mock_chain_cls):
        """Test the placeholder live originator never reaches the node"""
        assert deploy.main(["--network", "production"]) == 1
        mock_chain_cls.connect.assert_not_called()

    @patch('scripts.deployment.deploy.Web3Chain')
    def test_live_with_operator_override(self, mock_chain_cls, monkeypatch):
        """Test DEPLOYER_ADDRESS unlocks the live profile"""
        monkeypatch.setenv("DEPLOYER_ADDRESS", "0x" + "cd" * 20)
        mock_chain_cls.connect.return_value = fake_chain()

        assert deploy.main(["--network", "live", "--no-output"]) == 0
        profile = mock_chain_cls.connect.call_args[0][0]
        assert profile.originator.lower() == "0x" + "cd" * 20

    @patch('scripts.deployment.deploy.Web3Chain')
    def test_connection_failure(self, mock_chain_cls):
        """Test an unreachable node exits with status 1"""
        mock_chain_cls.connect.side_effect = ConnectionFailed("no node")
        assert deploy.main([]) == 1

    @patch('scripts.deployment.deploy.Web3Chain')
    def test_dry_run_submits_nothing(self, mock_chain_cls):
        """Test --dry-run validates without connecting"""
        assert deploy.main(["--network", "rinkeby", "--dry-run"]) == 0
        mock_chain_cls.connect.assert_not_called()

    def test_list_networks(self, capsys):
        """Test --list-networks prints every profile"""
        assert deploy.main(["--list-networks"]) == 0
        out = capsys.readouterr().out
        for name in ("development", "test", "rinkeby", "live"):
            assert f"{name}:" in out

    @patch('scripts.deployment.deploy.SlackNotifier')
    @patch('scripts.deployment.deploy.Web3Chain')
    def test_failure_notification(self, mock_chain_cls, mock_notifier_cls):
        """Test failures are reported to the notifier with the completed step count"""
        mock_chain_cls.connect.return_value = fake_chain(fail_on_call=4)
        assert deploy.main([]) == 1
        notifier = mock_notifier_cls.return_value
        args = notifier.deployment_failed.call_args[0]
        assert args[0] == "development"
        assert args[2] == 3
        notifier.deployment_succeeded.assert_not_called()


class TestHelpers:
    """Test class for deploy helpers"""

    def test_receipt_timeout_from_env(self, monkeypatch):
        """Test RECEIPT_TIMEOUT parsing"""
        assert deploy.receipt_timeout_from_env() == 300
        monkeypatch.setenv("RECEIPT_TIMEOUT", "60")
        assert deploy.receipt_timeout_from_env() == 60
        monkeypatch.setenv("RECEIPT_TIMEOUT", "soon")
        with pytest.raises(InvalidProfile):
            deploy.receipt_timeout_from_env()

    def test_build_deployment_record(self):
        """Test the record maps kinds to addresses and roles to identities"""
        profile = default_registry().resolve("rinkeby")
        pipeline = build_pipeline()
        result = run(pipeline, profile, fake_chain())

        record = deploy.build_deployment_record(profile, pipeline, result, profile.originator)

        assert record["network_id"] == "4"
        assert record["contracts"]["CoinStructureToken"] == result[1].address
        assert record["roles"]["deployer"] == profile.originator
        assert record["roles"]["minter"].lower() == MINTER_ADDRESS.lower()
