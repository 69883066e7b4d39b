"""Unit tests for the cad-client CLI.

Network-facing commands are exercised with their factories patched; the SAML
commands run for real against temporary key and certificate files.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import MagicMock, Mock, patch

import pytest
from click.testing import CliRunner

from cad_client import __version__
from cad_client.cli.main import cli
from cad_client.cli.token_commands import mask
from cad_client.models.credentials import Credential
from cad_client.models.resources import Account
from cad_client.utils.exceptions import AuthenticationError

NOW = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers = handlers
    root.setLevel(level)


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def config_file(tmp_path: Path, key_file: Path) -> Path:
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps(
            {
                "endpoints": {
                    "token_url": "http://127.0.0.1:8080/oauth/v1/get_access_token_by_saml",
                    "api_base_url": "http://127.0.0.1:8080/v1",
                },
                "credentials": {
                    "consumer_key": "consumer-key",
                    "saml_provider_id": "provider.example.com",
                    "private_key_path": str(key_file),
                },
                "logging": {"level": "WARNING"},
            }
        )
    )
    return path


@pytest.fixture
def base_args(config_file: Path, tmp_path: Path) -> list:
    return ["--config", str(config_file), "--log-file", str(tmp_path / "logs" / "cli.log")]


class TestMainGroup:
    def test_version(self, runner) -> None:
        result = runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_help_lists_commands(self, runner) -> None:
        result = runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        for command in ("accounts", "config", "mock", "saml", "token"):
            assert command in result.output

    def test_bad_config_exits(self, runner, tmp_path: Path) -> None:
        path = tmp_path / "config.json"
        path.write_text("{oops")

        result = runner.invoke(cli, ["--config", str(path), "token", "--help"])

        assert result.exit_code == 1
        assert "Error loading configuration" in result.output


class TestConfigValidate:
    def test_valid(self, runner, base_args, config_file: Path) -> None:
        result = runner.invoke(cli, base_args + ["config", "validate", str(config_file)])

        assert result.exit_code == 0
        assert "Configuration is valid" in result.output
        assert "consumer-key" in result.output
        assert "Consumer secret:  Not configured" in result.output

    def test_invalid(self, runner, base_args, tmp_path: Path) -> None:
        bad = tmp_path / "bad.json"
        bad.write_text(json.dumps({"assertion": {"lifetime_minutes": 0}}))

        result = runner.invoke(cli, base_args + ["config", "validate", str(bad)])

        assert result.exit_code == 1
        assert "Configuration validation failed" in result.output


class TestSAMLCommands:
    """Test saml generate / saml verify."""

    def test_generate_unsigned(self, runner, base_args) -> None:
        result = runner.invoke(cli, base_args + ["saml", "generate", "--subject", "customer-42"])

        assert result.exit_code == 0
        assert "Issuer:          provider.example.com" in result.output
        assert "Signed:          no" in result.output
        assert "<saml:Assertion" in result.output

    def test_generate_without_issuer(self, runner, tmp_path: Path) -> None:
        empty = tmp_path / "empty.json"
        empty.write_text(json.dumps({"logging": {"level": "WARNING"}}))
        args = ["--config", str(empty), "--log-file", str(tmp_path / "cli.log")]

        result = runner.invoke(cli, args + ["saml", "generate", "--subject", "customer-42"])

        assert result.exit_code == 2
        assert "No issuer given" in result.output

    def test_generate_sign_and_verify(self, runner, base_args, key_file, cert_file, tmp_path) -> None:
        """Test a signed assertion written to disk verifies with both verifiers."""
        output = tmp_path / "assertion.xml"

        generated = runner.invoke(
            cli,
            base_args
            + ["saml", "generate", "--subject", "customer-42", "--key", str(key_file), "--output", str(output)],
        )
        verified = runner.invoke(
            cli, base_args + ["saml", "verify", str(output), "--cert", str(cert_file), "--signxml"]
        )

        assert generated.exit_code == 0
        assert "Signed:          yes" in generated.output
        assert output.exists()
        assert verified.exit_code == 0
        assert "Signature valid (signxml)" in verified.output
        assert "Timestamps valid" in verified.output

    def test_verify_tampered(self, runner, base_args, signed_assertion, cert_file, tmp_path) -> None:
        path = tmp_path / "tampered.xml"
        path.write_text(signed_assertion.xml_content.replace("customer-42", "customer-43"))

        result = runner.invoke(cli, base_args + ["saml", "verify", str(path), "--cert", str(cert_file)])

        assert result.exit_code == 1
        assert "Signature invalid" in result.output

    def test_verify_not_an_assertion(self, runner, base_args, cert_file, tmp_path) -> None:
        path = tmp_path / "other.xml"
        path.write_text("<root/>")

        result = runner.invoke(cli, base_args + ["saml", "verify", str(path), "--cert", str(cert_file)])

        assert result.exit_code == 1
        assert "expected Assertion root" in result.output


class TestTokenCommands:
    """Test token exchange."""

    def test_mask(self) -> None:
        assert mask("abcdefgh") == "abcd****"
        assert mask("abc") == "***"

    @patch("cad_client.cli.token_commands.build_authenticator")
    def test_exchange_masks_secret(self, mock_build, runner, base_args) -> None:
        mock_build.return_value = Mock(
            return_value=Credential("customer-42", "T1", "S1-secret-value", NOW, NOW)
        )

        result = runner.invoke(cli, base_args + ["token", "exchange", "--customer-id", "customer-42"])

        assert result.exit_code == 0
        assert "Token:        T1" in result.output
        assert "S1-secret-value" not in result.output
        assert "S1-s" in result.output
        mock_build.return_value.assert_called_once_with("customer-42")

    @patch("cad_client.cli.token_commands.build_authenticator")
    def test_exchange_show_secret(self, mock_build, runner, base_args) -> None:
        mock_build.return_value = Mock(
            return_value=Credential("customer-42", "T1", "S1-secret-value", NOW, NOW)
        )

        result = runner.invoke(
            cli, base_args + ["token", "exchange", "--customer-id", "customer-42", "--show-secret"]
        )

        assert "S1-secret-value" in result.output

    @patch("cad_client.cli.token_commands.build_authenticator")
    def test_exchange_failure(self, mock_build, runner, base_args) -> None:
        """Test a rejected assertion prints categorized error information."""
        mock_build.return_value = Mock(
            side_effect=AuthenticationError(
                "Authentication error: 401 Unauthorized oauth_problem=signature_invalid",
                status_code=401,
            )
        )

        result = runner.invoke(cli, base_args + ["token", "exchange", "--customer-id", "customer-42"])

        assert result.exit_code == 1
        assert "AuthenticationError" in result.output
        assert "oauth_problem=signature_invalid" in result.output
        assert "Category:    PERMANENT" in result.output
        assert "Retryable:   no" in result.output


class TestAccountsCommands:
    """Test accounts list / accounts transactions."""

    @pytest.fixture
    def client(self):
        client = MagicMock()
        client.get_customer_accounts.return_value = [
            Account(accountId=1, accountNickname="Checking", balanceAmount=12.5, status="ACTIVE", currencyCode="USD")
        ]
        client.get_account_transactions.return_value = {"bankingTransactions": []}
        return client

    def test_list_table(self, runner, base_args, client) -> None:
        with patch("cad_client.cli.api_commands._client", return_value=client):
            result = runner.invoke(cli, base_args + ["accounts", "list", "--customer-id", "customer-42"])

        assert result.exit_code == 0
        assert "Checking" in result.output
        assert "12.50" in result.output
        client.cache.__exit__.assert_called_once()

    def test_list_json(self, runner, base_args, client) -> None:
        with patch("cad_client.cli.api_commands._client", return_value=client):
            result = runner.invoke(
                cli, base_args + ["accounts", "list", "--customer-id", "customer-42", "--json"]
            )

        assert result.exit_code == 0
        assert json.loads(result.output)[0]["id"] == 1

    def test_transactions_dates(self, runner, base_args, client) -> None:
        with patch("cad_client.cli.api_commands._client", return_value=client):
            result = runner.invoke(
                cli,
                base_args
                + [
                    "accounts", "transactions", "--customer-id", "customer-42",
                    "--account-id", "7", "--start", "2024-01-01", "--end", "2024-01-31",
                ],
            )

        assert result.exit_code == 0
        assert "bankingTransactions (0)" in result.output
        args = client.get_account_transactions.call_args.args
        assert args[0] == 7
        assert args[1].isoformat() == "2024-01-01"
        assert args[2].isoformat() == "2024-01-31"


class TestMockCommands:
    @patch("cad_client.cli.mock_commands.run_server")
    def test_start_applies_overrides(self, mock_run, runner, base_args, cert_file) -> None:
        result = runner.invoke(
            cli,
            base_args
            + ["mock", "start", "--port", "9099", "--cert", str(cert_file), "--consumer-key", "ck"],
        )

        assert result.exit_code == 0
        config = mock_run.call_args.args[0]
        assert config.port == 9099
        assert config.signing_cert_path == str(cert_file)
        assert config.consumer_key == "ck"
        assert "http://127.0.0.1:9099" in result.output
