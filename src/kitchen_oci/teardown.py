"""Reverse-order destruction of everything recorded in a state document"""

from __future__ import annotations

import random
from pathlib import Path
from typing import Any, Callable, Dict, List

from rich.console import Console

from kitchen_oci.channel import CommandChannel
from kitchen_oci.errors import TransportError, is_not_found, translate_errors
from kitchen_oci.instances import instance_model
from kitchen_oci.lifecycle import LifecycleWaiter
from kitchen_oci.models import ProvisionRequest, StateDocument
from kitchen_oci.volumes import VolumeManager

CONSOLE: Console = Console()

StateCallback = Callable[[StateDocument], None]


class TeardownOrchestrator:
    """Detaches, deletes and terminates whatever the state document lists.

    Each entry leaves the state only once the control plane confirms it is
    gone, so an interrupted destroy can simply be run again.
    """

    def __init__(
        self,
        api: Any,
        request: ProvisionRequest | None = None,
        waiter: LifecycleWaiter | None = None,
        channel: CommandChannel | None = None,
        on_state: StateCallback | None = None,
        console: Console | None = None,
    ) -> None:
        self.api: Any = api
        self.request: ProvisionRequest = request or ProvisionRequest()
        self.console: Console = console or CONSOLE
        self.waiter: LifecycleWaiter = waiter or LifecycleWaiter(console=self.console)
        self.channel: CommandChannel | None = channel
        self.on_state: StateCallback | None = on_state
        self.volumes: VolumeManager = VolumeManager(api, self.waiter, console=self.console)
        self.state: StateDocument = {}

    def _update(self, state: StateDocument) -> None:
        self.state = state
        if self.on_state is not None:
            self.on_state(self.state)

    def _forget(self, *keys: str) -> None:
        self._update({k: v for k, v in self.state.items() if k not in keys})

    def _gone(self, kind: str, identifier: str, error: TransportError) -> None:
        if not is_not_found(error):
            raise error
        self.console.print(f"[dim]{kind} <{identifier}> no longer exists[/dim]")

    def destroy(self, state: StateDocument | None = None) -> StateDocument:
        self.state = dict(state or {})

        if self.channel is not None and self.state.get("hostname"):
            self.channel.close(self.state)

        self._detach_all()
        self._delete_all()
        self._terminate()
        self._remove_key_files()
        self._forget("username", "password")

        self.console.print("✅ Finished destroying instance resources")
        return self.state

    def _detach_all(self) -> None:
        remaining: List[Dict[str, Any]] = list(self.state.get("volume_attachments") or [])
        while remaining:
            attachment = remaining[0]
            try:
                self.volumes.detach(attachment)
            except TransportError as e:
                self._gone("volume attachment", attachment["id"], e)
            remaining = remaining[1:]
            self._update({**self.state, "volume_attachments": remaining})
        self._forget("volume_attachments")

    def _delete_all(self) -> None:
        remaining: List[Dict[str, Any]] = list(self.state.get("volumes") or [])
        while remaining:
            volume = remaining[0]
            try:
                self.volumes.delete(volume)
            except TransportError as e:
                self._gone("volume", volume["id"], e)
            remaining = remaining[1:]
            self._update({**self.state, "volumes": remaining})
        self._forget("volumes")

    def _terminate(self) -> None:
        server_id = self.state.get("server_id")
        if not server_id:
            self._delete_boot_volume_clone()
            return

        model = instance_model(self.api, self.request, self.waiter, random.Random(), self.console)
        self.console.print(f"[yellow]Terminating {model.resource_name} <{server_id}>...[/yellow]")
        try:
            with translate_errors(model.resource_name, server_id):
                model.terminate(server_id)
        except TransportError as e:
            self._gone(model.resource_name, server_id, e)
        self._forget("server_id", "hostname", "boot_volume_id")
        self.console.print(f"✅ Finished terminating <{server_id}>")

    def _delete_boot_volume_clone(self) -> None:
        """A clone recorded without a server means the launch never completed"""
        boot_volume_id = self.state.get("boot_volume_id")
        if not boot_volume_id:
            return
        try:
            self.volumes.delete_boot_volume(boot_volume_id)
        except TransportError as e:
            self._gone("boot volume", boot_volume_id, e)
        self._forget("boot_volume_id")

    def _remove_key_files(self) -> None:
        key_path = self.state.get("ssh_key_path")
        if not key_path:
            return
        for path in (Path(key_path), Path(f"{key_path}.pub")):
            path.unlink(missing_ok=True)
        self._forget("ssh_key_path")
