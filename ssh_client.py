"""
SSH Client

Fetches machine information from peer machines. A peer either prints its
snapshot when a command is run, or has saved it to a file that is read over
SFTP. Implements the interface expected by collector.remote:
- execute(cmd) -> str
- read_file(path) -> str
"""

import os
import logging
from typing import Optional

import paramiko

logger = logging.getLogger(__name__)


class SSHClientError(Exception):
    """Exception raised for SSH client errors."""
    pass


class SSHClient:
    """
    SSH client for one peer machine.

    Supports both key-based and password authentication.
    """

    def __init__(
        self,
        hostname: str,
        port: int = 22,
        username: str = "root",
        auth_type: str = "key",
        key_file: Optional[str] = None,
        password: Optional[str] = None,
        timeout: int = 10
    ):
        """
        Initialize SSH client.

        Args:
            hostname: Peer IP or hostname
            port: SSH port (default: 22)
            username: SSH username (default: root)
            auth_type: Authentication type - "key" or "password"
            key_file: Path to private key file (for key auth)
            password: Password (for password auth)
            timeout: Connection and command timeout in seconds
        """
        self.hostname = hostname
        self.port = port
        self.username = username
        self.auth_type = auth_type
        self.key_file = key_file
        self.password = password
        self.timeout = timeout

        self._client: Optional[paramiko.SSHClient] = None

    @property
    def connected(self) -> bool:
        return self._client is not None

    def connect(self) -> None:
        """
        Open the connection to the peer.

        Raises:
            SSHClientError: If connection fails
        """
        if self.connected:
            return

        kwargs = {
            "hostname": self.hostname,
            "port": self.port,
            "username": self.username,
            "timeout": self.timeout,
            "allow_agent": False,
            "look_for_keys": False,
        }

        if self.auth_type == "key":
            key_path = self._resolve_key_path()
            if key_path:
                kwargs["key_filename"] = key_path
            else:
                kwargs["allow_agent"] = True
                kwargs["look_for_keys"] = True
        elif self.auth_type == "password":
            if not self.password:
                raise SSHClientError("Password authentication requires a password")
            kwargs["password"] = self.password
        else:
            raise SSHClientError(f"Unknown auth_type: {self.auth_type}")

        client = paramiko.SSHClient()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

        try:
            logger.debug(f"Connecting to {self.hostname}:{self.port} as {self.username}")
            client.connect(**kwargs)
        except paramiko.AuthenticationException as e:
            raise SSHClientError(f"Authentication failed for {self.hostname}: {e}")
        except paramiko.SSHException as e:
            raise SSHClientError(f"SSH error connecting to {self.hostname}: {e}")
        except OSError as e:
            raise SSHClientError(f"Network error connecting to {self.hostname}: {e}")

        self._client = client
        logger.info(f"Connected to {self.hostname}")

    def _resolve_key_path(self) -> Optional[str]:
        if not self.key_file:
            return None

        path = os.path.expanduser(self.key_file)
        if os.path.isfile(path):
            return path

        logger.warning(f"Key file not found: {path}")
        return None

    def execute(self, cmd: str) -> str:
        """
        Run a command on the peer and return its stdout.

        Raises:
            SSHClientError: If the command cannot be run or exits non-zero
        """
        self.connect()

        try:
            logger.debug(f"Executing on {self.hostname}: {cmd}")
            _, stdout, stderr = self._client.exec_command(cmd, timeout=self.timeout)
            output = stdout.read().decode("utf-8", errors="replace")
            error = stderr.read().decode("utf-8", errors="replace")
            exit_status = stdout.channel.recv_exit_status()
        except (paramiko.SSHException, OSError) as e:
            raise SSHClientError(f"Failed to execute command on {self.hostname}: {e}")

        if exit_status != 0:
            raise SSHClientError(
                f"Command on {self.hostname} exited with {exit_status}: {error.strip()}"
            )
        return output

    def read_file(self, path: str) -> str:
        """
        Read a text file from the peer over SFTP.

        Raises:
            SSHClientError: If the file cannot be read
        """
        self.connect()

        try:
            logger.debug(f"Reading {self.hostname}:{path}")
            with self._client.open_sftp() as sftp:
                with sftp.open(path, "r") as f:
                    return f.read().decode("utf-8", errors="replace")
        except (paramiko.SSHException, OSError) as e:
            raise SSHClientError(f"Failed to read {path} from {self.hostname}: {e}")

    def close(self) -> None:
        if self._client:
            self._client.close()
            self._client = None
            logger.debug(f"Disconnected from {self.hostname}")

    def __enter__(self) -> "SSHClient":
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"SSHClient({self.username}@{self.hostname}:{self.port})"
