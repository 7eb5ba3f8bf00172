"""Drive creation of an instance, its volumes and attachments"""

from __future__ import annotations

import random
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from rich.console import Console

from kitchen_oci.channel import CommandChannel
from kitchen_oci.config import validate_request
from kitchen_oci.instances import InstanceModel, instance_model
from kitchen_oci.lifecycle import LifecycleWaiter
from kitchen_oci.models import InstanceKind, ProvisionRequest, StateDocument, UserDataPart
from kitchen_oci.resolver import ResourceResolver
from kitchen_oci.ssh_keys import CredentialProvisioner
from kitchen_oci.support import random_password
from kitchen_oci.user_data import encode_user_data, winrm_bootstrap
from kitchen_oci.volumes import VolumeManager

CONSOLE: Console = Console()

WINRM_PASSWORD_SPECIALS = ["@", "-", "(", ")", "."]

StateCallback = Callable[[StateDocument], None]


class ProvisioningOrchestrator:
    """Creates the resources described by a ProvisionRequest.

    The state document is never mutated in place. Every successful step
    produces a merged copy in `self.state` and hands it to `on_state`, so a
    failure part way through leaves an accurate record of what exists.
    """

    def __init__(
        self,
        api: Any,
        waiter: LifecycleWaiter | None = None,
        rng: random.Random | None = None,
        channel: CommandChannel | None = None,
        on_state: StateCallback | None = None,
        console: Console | None = None,
    ) -> None:
        self.api: Any = api
        self.console: Console = console or CONSOLE
        self.waiter: LifecycleWaiter = waiter or LifecycleWaiter(console=self.console)
        self.rng: random.Random = rng or random.Random()
        self.channel: CommandChannel | None = channel
        self.on_state: StateCallback | None = on_state
        self.resolver: ResourceResolver = ResourceResolver(api, self.console)
        self.state: StateDocument = {}

    def _merge(self, **updates: Any) -> StateDocument:
        self.state = {**self.state, **updates}
        if self.on_state is not None:
            self.on_state(self.state)
        return self.state

    def create(self, request: ProvisionRequest, state: StateDocument | None = None) -> StateDocument:
        self.state = dict(state or {})
        if self.state.get("server_id"):
            self.console.print(f"[dim]Instance <{self.state['server_id']}> already exists, nothing to do[/dim]")
            return self.state

        validate_request(request)
        compartment_id = self.resolver.compartment(request.compartment_id, request.compartment_name)
        model = instance_model(self.api, request, self.waiter, self.rng, self.console)
        volumes = VolumeManager(
            self.api,
            self.waiter,
            compartment_id=compartment_id,
            availability_domain=request.availability_domain,
            defined_tags=request.defined_tags,
            console=self.console,
        )

        image_id, boot_volume_id = self._launch_source(request, compartment_id, volumes)
        user_data = self._windows_user_data(request)
        ssh_public_key = self._ssh_public_key(request)
        metadata = self._metadata(request, ssh_public_key, user_data)

        if model.kind is InstanceKind.COMPUTE:
            server_id = model.launch(
                compartment_id, metadata, ssh_public_key, image_id=image_id, boot_volume_id=boot_volume_id
            )
        else:
            server_id = model.launch(compartment_id, metadata, ssh_public_key)
        self._merge(server_id=server_id)
        self._merge(hostname=model.hostname(compartment_id, server_id))

        self._create_volumes(request, volumes, server_id)

        if self.channel is not None:
            self.channel.wait_until_ready(self.state)
            self._run_post_create_script(request)
        self._reboot(request, model, compartment_id, server_id)

        self.console.print(f"✅ Finished creating <{self.state['hostname']}>")
        return self.state

    def _launch_source(
        self, request: ProvisionRequest, compartment_id: str, volumes: VolumeManager
    ) -> Tuple[Optional[str], Optional[str]]:
        if request.instance_kind is not InstanceKind.COMPUTE:
            return None, None
        if request.boot_volume_id:
            if not self.state.get("boot_volume_id"):
                self._merge(boot_volume_id=volumes.clone_boot_volume(request.boot_volume_id))
            return None, self.state["boot_volume_id"]
        return self.resolver.image(request.image_id, request.image_name, request.shape, compartment_id), None

    def _windows_user_data(self, request: ProvisionRequest) -> Any:
        """User data with the WinRM bootstrap appended when WinRM setup is requested"""
        if not request.setup_winrm:
            return request.user_data

        if not self.state.get("password"):
            self._merge(
                username=request.winrm_user,
                password=request.winrm_password or random_password(self.rng, WINRM_PASSWORD_SPECIALS),
            )
        parts: List[UserDataPart] = list(request.user_data or ())
        parts.append(winrm_bootstrap(self.state["username"], self.state["password"]))
        return tuple(parts)

    def _ssh_public_key(self, request: ProvisionRequest) -> str:
        if request.ssh_keygen:
            provisioner = CredentialProvisioner(request.ssh_keytype, self.rng, self.console)
            private_key_path, public_line = provisioner.provision_files(request.key_dir, request.instance_name)
            self._merge(ssh_key_path=str(private_key_path))
            return public_line

        with Path(request.ssh_keypath).expanduser().open() as f:
            return f.readline().rstrip("\n")

    def _metadata(self, request: ProvisionRequest, ssh_public_key: str, user_data: Any) -> Dict[str, str]:
        metadata: Dict[str, str] = dict(request.custom_metadata)
        metadata["ssh_authorized_keys"] = ssh_public_key
        if user_data:
            metadata["user_data"] = encode_user_data(user_data, self.rng)
        return metadata

    def _create_volumes(self, request: ProvisionRequest, volumes: VolumeManager, server_id: str) -> None:
        for spec in request.volumes:
            volume = volumes.create(spec)
            self._merge(
                volumes=[*self.state.get("volumes", []), volumes.final_volume_state(volume, spec.attachment_kind)]
            )
            attachment = volumes.attach(volume, server_id, spec)
            self._merge(volume_attachments=[*self.state.get("volume_attachments", []), attachment])

    def _run_post_create_script(self, request: ProvisionRequest) -> None:
        script = request.post_create_script
        if script is None:
            return
        if isinstance(script, str):
            self.console.print("[yellow]Running post create script...[/yellow]")
            self.channel.execute(self.state, script)
            return
        for path in script:
            self.console.print(f"[yellow]Running post create script {Path(path).name}...[/yellow]")
            self.channel.execute(self.state, Path(path).expanduser().read_text())

    def _reboot(self, request: ProvisionRequest, model: InstanceModel, compartment_id: str, server_id: str) -> None:
        if not request.post_create_reboot:
            return
        if self.channel is not None:
            self.channel.close(self.state)
        model.reboot(compartment_id, server_id)
        if self.channel is not None:
            self.channel.wait_until_ready(self.state)
