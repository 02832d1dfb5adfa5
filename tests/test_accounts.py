"""Tests for Linux account management."""

from pathlib import Path
from unittest.mock import patch

import pytest

from hardnode.core.accounts import (
    add_to_group,
    create_account,
    get_account,
    parse_passwd_entry,
    validate_username,
)
from hardnode.errors import ExternalToolFailure
from hardnode.utils.process import CommandResult


def result(cmd, returncode=0, stdout="", stderr=""):
    return CommandResult(cmd=cmd, returncode=returncode, stdout=stdout, stderr=stderr)


class TestValidateUsername:
    def test_valid_usernames(self):
        assert validate_username("alice") is True
        assert validate_username("mike-1") is True
        assert validate_username("svc_backup") is True

    def test_invalid_usernames(self):
        assert validate_username("") is False
        assert validate_username("Alice") is False  # uppercase
        assert validate_username("1alice") is False  # starts with digit
        assert validate_username("alice smith") is False  # space
        assert validate_username("a" * 33) is False  # too long


class TestParsePasswdEntry:
    def test_parses_fields(self):
        uid, gid, home = parse_passwd_entry("alice:x:1001:1001:,,,:/home/alice:/bin/bash")
        assert (uid, gid, home) == (1001, 1001, Path("/home/alice"))

    def test_malformed(self):
        with pytest.raises(ValueError):
            parse_passwd_entry("alice:x:1001")


class TestGetAccount:
    @patch("hardnode.core.accounts.run")
    def test_existing_account(self, mock_run):
        mock_run.side_effect = [
            result(["getent"], stdout="alice:x:1001:1001:,,,:/home/alice:/bin/bash\n"),
            result(["id"], stdout="alice sudo users\n"),
        ]

        account = get_account("alice")

        assert account.name == "alice"
        assert account.uid == 1001
        assert account.home == Path("/home/alice")
        assert account.groups == ["alice", "sudo", "users"]
        assert account.authorized_keys == Path("/home/alice/.ssh/authorized_keys")

    @patch("hardnode.core.accounts.run")
    def test_missing_account(self, mock_run):
        mock_run.return_value = result(["getent"], returncode=2)

        assert get_account("alice") is None
        mock_run.assert_called_once_with(["getent", "passwd", "alice"])

    @patch("hardnode.core.accounts.run")
    def test_database_error(self, mock_run):
        mock_run.return_value = result(["getent", "passwd", "alice"], returncode=1, stderr="nss failure")

        with pytest.raises(ExternalToolFailure):
            get_account("alice")


class TestMutations:
    @patch("hardnode.core.accounts.run")
    def test_create_account_without_password(self, mock_run):
        mock_run.return_value = result(["adduser"])

        create_account("alice")

        mock_run.assert_called_once_with(["adduser", "--disabled-password", "--gecos", "", "alice"])

    @patch("hardnode.core.accounts.run")
    def test_create_account_failure(self, mock_run):
        mock_run.return_value = result(["adduser"], returncode=1, stderr="adduser: The user `alice' already exists.")

        with pytest.raises(ExternalToolFailure, match="Failed to create user alice"):
            create_account("alice")

    @patch("hardnode.core.accounts.run")
    def test_add_to_group_appends(self, mock_run):
        mock_run.return_value = result(["usermod"])

        add_to_group("alice", "sudo")

        mock_run.assert_called_once_with(["usermod", "-aG", "sudo", "alice"])
