"""Command execution channel used for readiness waits and post-create scripts"""

from __future__ import annotations

import subprocess
import time
from typing import Any, Callable, Mapping, Protocol

from rich.console import Console

from kitchen_oci.errors import KitchenOciError, WaitTimeoutError

CONSOLE: Console = Console()


class CommandChannel(Protocol):
    def wait_until_ready(self, state: Mapping[str, Any]) -> None: ...

    def execute(self, state: Mapping[str, Any], command: str) -> None: ...

    def close(self, state: Mapping[str, Any]) -> None: ...


class SshChannel:
    """Runs commands on the instance through the local ``ssh`` client"""

    def __init__(
        self,
        username: str = "opc",
        port: int = 22,
        ready_timeout: float = 600,
        ready_interval: float = 10,
        console: Console | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.username: str = username
        self.port: int = port
        self.ready_timeout: float = ready_timeout
        self.ready_interval: float = ready_interval
        self.console: Console = console or CONSOLE
        self.sleep: Callable[[float], None] = sleep
        self.clock: Callable[[], float] = clock

    def _command(self, state: Mapping[str, Any], remote: str) -> list[str]:
        cmd: list[str] = [
            "ssh",
            "-o", "StrictHostKeyChecking=no",
            "-o", "UserKnownHostsFile=/dev/null",
            "-o", "BatchMode=yes",
            "-o", "ConnectTimeout=10",
            "-p", str(self.port),
        ]
        if state.get("ssh_key_path"):
            cmd.extend(["-i", str(state["ssh_key_path"])])
        cmd.append(f"{state.get('username') or self.username}@{state['hostname']}")
        cmd.append(remote)
        return cmd

    def wait_until_ready(self, state: Mapping[str, Any]) -> None:
        self.console.print(f"[yellow]Waiting for SSH on {state['hostname']}...[/yellow]")
        started = self.clock()
        while True:
            result: subprocess.CompletedProcess[str] = subprocess.run(
                self._command(state, "true"), capture_output=True, text=True
            )
            if result.returncode == 0:
                self.console.print(f"✅ {state['hostname']} is reachable")
                return
            waited = self.clock() - started
            if waited >= self.ready_timeout:
                raise WaitTimeoutError("ssh", state["hostname"], "reachable", result.stderr.strip(), waited)
            self.sleep(self.ready_interval)

    def execute(self, state: Mapping[str, Any], command: str) -> None:
        result: subprocess.CompletedProcess[str] = subprocess.run(
            self._command(state, command), capture_output=True, text=True
        )
        if result.returncode != 0:
            raise KitchenOciError(f"Remote command failed on {state['hostname']}: {result.stderr.strip()}")
        if result.stdout:
            self.console.print(result.stdout.rstrip())

    def close(self, state: Mapping[str, Any]) -> None:
        """Nothing to release; every command opens its own connection"""
