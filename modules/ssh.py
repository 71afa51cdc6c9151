"""
SSH access to test VMs (paramiko).
"""

import logging
import os
import shlex
import threading
from dataclasses import dataclass
from typing import Optional

import paramiko

from lib.constants import (
    SSH_CONNECT_TIMEOUT,
    SSH_DEFAULT_PORT,
    SSH_DEFAULT_USER,
    SSH_POLL_INTERVAL,
    SSH_POLL_TIMEOUT,
)
from lib.endpoint import wait_for_endpoint
from lib.exceptions import ConfigurationError, RemoteCommandError
from lib.waiter import Clock, PollSpec

logger = logging.getLogger("ocp_functional")


@dataclass(frozen=True)
class SSHTarget:
    """Where and how to reach a VM over SSH (key authentication only)."""

    host: str
    key_path: str
    user: str = SSH_DEFAULT_USER
    port: int = SSH_DEFAULT_PORT
    connect_timeout: float = SSH_CONNECT_TIMEOUT

    @property
    def address(self) -> str:
        return f"{self.user}@{self.host}:{self.port}"


class SSHSession:
    """An open SSH connection. Connects on construction."""

    def __init__(self, target: SSHTarget):
        self.target = target
        logger.debug("Attempting to connect to SSH at %s...", target.address)
        self._client = paramiko.SSHClient()
        # Host keys of freshly created VMs are never known
        self._client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        try:
            self._client.connect(
                hostname=target.host,
                port=target.port,
                username=target.user,
                key_filename=target.key_path,
                timeout=target.connect_timeout,
                allow_agent=False,
                look_for_keys=False,
            )
        except Exception:
            self._client.close()
            raise
        logger.debug("SSH connected to %s", target.address)

    def run_command(self, command: str, timeout: Optional[float] = None) -> str:
        """
        Run a command and return its combined stdout and stderr.

        Raises:
            RemoteCommandError: If the command exits with a non-zero status
        """
        logger.debug("Running on %s: %s", self.target.host, command)
        _, stdout, stderr = self._client.exec_command(command, timeout=timeout)
        # Drain both streams first; a full channel window blocks the exit status
        output = stdout.read().decode() + stderr.read().decode()
        exit_status = stdout.channel.recv_exit_status()
        if exit_status != 0:
            raise RemoteCommandError(
                f"Command {command!r} on {self.target.host} failed with exit status {exit_status}",
                exit_status=exit_status,
                output=output,
            )
        return output

    def read_file(self, remote_path: str) -> str:
        return self.run_command(f"cat {shlex.quote(remote_path)}")

    def copy_file(self, local_path: str, remote_path: str) -> None:
        """Upload a local file to the VM over SFTP."""
        sftp = self._client.open_sftp()
        try:
            sftp.put(local_path, remote_path)
        finally:
            sftp.close()
        logger.info("Copied %s to %s:%s", local_path, self.target.host, remote_path)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "SSHSession":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


def poll_ssh_connection(
    target: SSHTarget,
    spec: Optional[PollSpec] = None,
    *,
    logger: Optional[logging.Logger] = None,
    cancel: Optional[threading.Event] = None,
    clock: Optional[Clock] = None,
) -> SSHSession:
    """
    Retry connecting until the VM accepts the SSH handshake.

    Authentication failures are retried as well, since cloud-init may not have
    installed the key yet when sshd starts.

    Returns:
        The session opened by the successful attempt; the caller closes it

    Raises:
        ConfigurationError: If the private key file does not exist
        WaitTimeoutError / RetriesExhaustedError: SSH never became available
    """
    if not os.path.isfile(target.key_path):
        raise ConfigurationError(f"SSH private key not found: {target.key_path}")

    spec = spec or PollSpec(interval=SSH_POLL_INTERVAL, timeout=SSH_POLL_TIMEOUT)
    logger = logger or logging.getLogger("ocp_functional")
    session = wait_for_endpoint(
        f"SSH {target.address}",
        lambda: SSHSession(target),
        spec,
        logger=logger,
        retry_on=(paramiko.SSHException, OSError),
        cancel=cancel,
        clock=clock,
    )
    logger.info("SSH connection to %s established successfully.", target.address)
    return session
