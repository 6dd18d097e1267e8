"""Tests for fetching machine information from peers over SSH."""

from unittest.mock import MagicMock, patch

import paramiko
import pytest

from collector import RemoteSnapshotCollector
from engine import (
    DependencyUnavailableError,
    MalformedSnapshotError,
    UnsupportedVersionError,
)
from ssh_client import SSHClient, SSHClientError


class FakeSSH:
    """In-memory stand-in for SSHClient."""

    def __init__(self, outputs=None, files=None):
        self.outputs = outputs or {}
        self.files = files or {}
        self.commands = []

    def execute(self, cmd):
        self.commands.append(cmd)
        return self.outputs.get(cmd, "")

    def read_file(self, path):
        if path not in self.files:
            raise SSHClientError(f"No such file: {path}")
        return self.files[path]


class TestRemoteSnapshotCollector:
    """Test parsing peer output."""

    def test_collect_from_command(self, ring4_snapshot):
        ssh = FakeSSH(outputs={"probe": ring4_snapshot.to_json()})
        snapshot = RemoteSnapshotCollector(ssh).collect("probe")

        assert ssh.commands == ["probe"]
        assert snapshot == ring4_snapshot

    def test_collect_from_file(self, ring4_snapshot):
        ssh = FakeSSH(files={"/var/lib/devlink/local.json": ring4_snapshot.to_json()})
        snapshot = RemoteSnapshotCollector(ssh).collect_file("/var/lib/devlink/local.json")

        assert len(snapshot) == 4

    def test_empty_output(self):
        with pytest.raises(DependencyUnavailableError):
            RemoteSnapshotCollector(FakeSSH()).collect("probe")

    def test_garbage_output(self):
        ssh = FakeSSH(outputs={"probe": "command not found"})

        with pytest.raises(MalformedSnapshotError):
            RemoteSnapshotCollector(ssh).collect("probe")

    def test_incompatible_peer(self):
        ssh = FakeSSH(outputs={"probe": '{"version": "3.1", "label": "x", "devices": []}'})

        with pytest.raises(UnsupportedVersionError):
            RemoteSnapshotCollector(ssh).collect("probe")

    def test_missing_remote_file(self):
        with pytest.raises(SSHClientError):
            RemoteSnapshotCollector(FakeSSH()).collect_file("/absent.json")


@pytest.fixture
def paramiko_client():
    """Patch paramiko.SSHClient and return the client instance mock."""
    with patch("ssh_client.paramiko.SSHClient") as factory:
        yield factory.return_value


def _command_result(client, output=b"", error=b"", status=0):
    stdout = MagicMock()
    stdout.read.return_value = output
    stdout.channel.recv_exit_status.return_value = status
    stderr = MagicMock()
    stderr.read.return_value = error
    client.exec_command.return_value = (MagicMock(), stdout, stderr)


class TestSSHClient:
    """Test the paramiko-backed client."""

    def test_execute(self, paramiko_client):
        _command_result(paramiko_client, output=b'{"ok": 1}')

        with SSHClient("10.0.0.2", auth_type="password", password="secret") as ssh:
            assert ssh.execute("probe") == '{"ok": 1}'

        kwargs = paramiko_client.connect.call_args.kwargs
        assert kwargs["hostname"] == "10.0.0.2"
        assert kwargs["password"] == "secret"
        paramiko_client.close.assert_called_once()

    def test_non_zero_exit(self, paramiko_client):
        _command_result(paramiko_client, error=b"sensor missing", status=2)

        with SSHClient("10.0.0.2") as ssh:
            with pytest.raises(SSHClientError, match="exited with 2"):
                ssh.execute("probe")

    def test_read_file(self, paramiko_client):
        sftp = paramiko_client.open_sftp.return_value.__enter__.return_value
        sftp.open.return_value.__enter__.return_value.read.return_value = b"content"

        with SSHClient("10.0.0.2") as ssh:
            assert ssh.read_file("/tmp/local.json") == "content"
        sftp.open.assert_called_once_with("/tmp/local.json", "r")

    def test_read_file_failure(self, paramiko_client):
        paramiko_client.open_sftp.side_effect = paramiko.SSHException("no sftp")

        with SSHClient("10.0.0.2") as ssh:
            with pytest.raises(SSHClientError):
                ssh.read_file("/tmp/local.json")

    def test_authentication_failure(self, paramiko_client):
        paramiko_client.connect.side_effect = paramiko.AuthenticationException("denied")

        with pytest.raises(SSHClientError, match="Authentication failed"):
            SSHClient("10.0.0.2").connect()

    def test_password_auth_requires_password(self, paramiko_client):
        with pytest.raises(SSHClientError):
            SSHClient("10.0.0.2", auth_type="password").connect()

    def test_unknown_auth_type(self, paramiko_client):
        with pytest.raises(SSHClientError):
            SSHClient("10.0.0.2", auth_type="kerberos").connect()

    def test_missing_key_falls_back_to_agent(self, paramiko_client, tmp_path):
        SSHClient("10.0.0.2", key_file=str(tmp_path / "id_missing")).connect()

        kwargs = paramiko_client.connect.call_args.kwargs
        assert "key_filename" not in kwargs
        assert kwargs["look_for_keys"] is True
