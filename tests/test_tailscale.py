"""Tests for Tailscale client management."""

import json
from unittest.mock import MagicMock, patch

import httpx
import pytest

from hardnode.core import tailscale
from hardnode.errors import ExternalToolFailure
from hardnode.utils.process import CommandResult


def result(cmd, returncode=0, stdout="", stderr=""):
    return CommandResult(cmd=cmd, returncode=returncode, stdout=stdout, stderr=stderr)


class TestStatus:
    @patch("hardnode.core.tailscale.command_exists", return_value=True)
    @patch("hardnode.core.tailscale.run")
    def test_connected(self, mock_run, _):
        mock_run.return_value = result(["tailscale"], stdout=json.dumps({"BackendState": "Running"}))
        assert tailscale.is_connected() is True

    @patch("hardnode.core.tailscale.command_exists", return_value=True)
    @patch("hardnode.core.tailscale.run")
    def test_needs_login(self, mock_run, _):
        mock_run.return_value = result(["tailscale"], stdout=json.dumps({"BackendState": "NeedsLogin"}))
        assert tailscale.is_connected() is False

    @patch("hardnode.core.tailscale.command_exists", return_value=False)
    def test_not_installed(self, _):
        assert tailscale.is_connected() is False
        assert tailscale.get_status() is None

    @patch("hardnode.core.tailscale.command_exists", return_value=True)
    @patch("hardnode.core.tailscale.run")
    def test_bad_json(self, mock_run, _):
        mock_run.return_value = result(["tailscale"], stdout="not json")
        assert tailscale.get_status() is None

    @patch("hardnode.core.tailscale.run")
    def test_get_ip(self, mock_run):
        mock_run.return_value = result(["tailscale"], stdout="100.64.1.2\n")
        assert tailscale.get_ip() == "100.64.1.2"


class TestUp:
    @patch("hardnode.core.tailscale.run")
    def test_joins_with_auth_key(self, mock_run):
        mock_run.return_value = result(["tailscale"])

        tailscale.up("tskey-auth-abc")

        assert mock_run.call_args.args[0] == ["tailscale", "up", "--auth-key=tskey-auth-abc"]

    @patch("hardnode.core.tailscale.run")
    def test_custom_login_server(self, mock_run):
        mock_run.return_value = result(["tailscale"])

        tailscale.up("tskey-auth-abc", "http://hs.local:8080")

        assert "--login-server=http://hs.local:8080" in mock_run.call_args.args[0]

    @patch("hardnode.core.tailscale.run")
    def test_failure_masks_auth_key(self, mock_run):
        cmd = ["tailscale", "up", "--auth-key=tskey-auth-abc"]
        mock_run.return_value = result(cmd, returncode=1, stderr="invalid key")

        with pytest.raises(ExternalToolFailure) as exc_info:
            tailscale.up("tskey-auth-abc")

        assert "tskey-auth-abc" not in str(exc_info.value)
        assert "****" in str(exc_info.value)

    @patch("hardnode.core.tailscale.run")
    def test_failure_masks_auth_key_echoed_on_stderr(self, mock_run):
        cmd = ["tailscale", "up", "--auth-key=tskey-auth-abc"]
        mock_run.return_value = result(cmd, returncode=1, stderr="backend error: invalid key tskey-auth-abc")

        with pytest.raises(ExternalToolFailure) as exc_info:
            tailscale.up("tskey-auth-abc")

        assert "tskey-auth-abc" not in str(exc_info.value)
        assert "tskey-auth-abc" not in exc_info.value.stderr


class TestInstall:
    @patch("hardnode.core.tailscale.run")
    @patch("hardnode.core.tailscale.httpx.get")
    def test_downloads_runs_and_enables(self, mock_get, mock_run):
        mock_get.return_value = MagicMock(text="#!/bin/sh\necho install\n")
        mock_run.side_effect = lambda cmd, **kwargs: result(cmd)

        tailscale.install()

        commands = [call.args[0] for call in mock_run.call_args_list]
        assert commands[0][0] == "sh"
        assert commands[1] == ["systemctl", "enable", "--now", "tailscaled"]

    @patch("hardnode.core.tailscale.httpx.get")
    def test_download_failure(self, mock_get):
        mock_get.side_effect = httpx.ConnectError("no route")

        with pytest.raises(ExternalToolFailure, match="download"):
            tailscale.install()

    @patch("hardnode.core.tailscale.run")
    @patch("hardnode.core.tailscale.httpx.get")
    def test_installer_failure_stops_before_enable(self, mock_get, mock_run):
        mock_get.return_value = MagicMock(text="exit 1\n")
        mock_run.return_value = result(["sh"], returncode=1, stderr="unsupported")

        with pytest.raises(ExternalToolFailure, match="installer failed"):
            tailscale.install()

        assert mock_run.call_count == 1


class TestHealth:
    @patch("hardnode.core.tailscale.httpx.get")
    def test_healthy(self, mock_get):
        mock_get.return_value = MagicMock(status_code=200)
        assert tailscale.get_health("http://hs.local:8080/") is True
        mock_get.assert_called_once_with("http://hs.local:8080/health", timeout=5)

    @patch("hardnode.core.tailscale.httpx.get")
    def test_unreachable(self, mock_get):
        mock_get.side_effect = httpx.ConnectError("refused")
        assert tailscale.get_health("http://hs.local:8080") is False
