"""Block volumes, boot volume clones and their attachments"""

from __future__ import annotations

import re
from typing import Any, Dict, Optional

import oci
from rich.console import Console

from kitchen_oci.errors import translate_errors
from kitchen_oci.lifecycle import LifecycleWaiter, get_poll
from kitchen_oci.models import AttachmentKind, LifecycleState, VolumeSpec

CONSOLE: Console = Console()

WINDOWS_OS = re.compile(r"windows", re.IGNORECASE)
ATTACHMENT_PREFIX = re.compile(r"(?:paravirtual|iscsi)-")
DEFAULT_VPUS_PER_GB = 10


def attachment_name(attachment: Dict[str, Any]) -> str:
    """Attachment display name without its attachment-kind prefix"""
    return ATTACHMENT_PREFIX.sub("", attachment["display_name"])


def server_os(api: Any, server_id: str) -> str:
    """Operating system of the image the instance was launched from"""
    with translate_errors("instance", server_id):
        image_id = api.compute.get_instance(server_id).data.image_id
    with translate_errors("image", image_id):
        return api.compute.get_image(image_id).data.operating_system


class ParavirtualAttachment:
    kind: AttachmentKind = AttachmentKind.PARAVIRTUAL

    def display_name(self, volume: Any) -> str:
        return f"{self.kind.value}-{volume.display_name}"

    def attachment_details(self, volume: Any, server_id: str, volume_spec: VolumeSpec, api: Any) -> Any:
        return oci.core.models.AttachParavirtualizedVolumeDetails(
            display_name=self.display_name(volume),
            volume_id=volume.id,
            instance_id=server_id,
            device=volume_spec.device,
        )

    def final_attachment_state(self, response: Any) -> Dict[str, Any]:
        return {"id": response.id, "display_name": response.display_name}


class IscsiAttachment(ParavirtualAttachment):
    """iSCSI attachments also record the target needed to log in to the volume"""

    kind: AttachmentKind = AttachmentKind.ISCSI

    def attachment_details(self, volume: Any, server_id: str, volume_spec: VolumeSpec, api: Any) -> Any:
        device: Optional[str] = volume_spec.device
        # device paths mean nothing on Windows instances
        if device is not None and WINDOWS_OS.search(server_os(api, server_id) or ""):
            device = None
        return oci.core.models.AttachIScsiVolumeDetails(
            display_name=self.display_name(volume),
            volume_id=volume.id,
            instance_id=server_id,
            device=device,
        )

    def final_attachment_state(self, response: Any) -> Dict[str, Any]:
        state = super().final_attachment_state(response)
        state.update(iqn=response.iqn, ipv4=response.ipv4, port=response.port)
        return state


ATTACHMENT_STRATEGIES: Dict[AttachmentKind, ParavirtualAttachment] = {
    AttachmentKind.PARAVIRTUAL: ParavirtualAttachment(),
    AttachmentKind.ISCSI: IscsiAttachment(),
}


def strategy_for(kind: AttachmentKind | str | None) -> ParavirtualAttachment:
    if not isinstance(kind, AttachmentKind):
        kind = AttachmentKind.parse(kind)
    return ATTACHMENT_STRATEGIES[kind]


class VolumeManager:
    """Creates, clones, attaches, detaches and deletes block volumes"""

    def __init__(
        self,
        api: Any,
        waiter: LifecycleWaiter,
        compartment_id: str | None = None,
        availability_domain: str | None = None,
        defined_tags: Dict[str, Dict[str, Any]] | None = None,
        console: Console | None = None,
    ) -> None:
        self.api: Any = api
        self.waiter: LifecycleWaiter = waiter
        self.compartment_id: str | None = compartment_id
        self.availability_domain: str | None = availability_domain
        self.defined_tags: Dict[str, Dict[str, Any]] | None = defined_tags
        self.console: Console = console or CONSOLE

    def _wait_available(self, volume_id: str) -> Any:
        return self.waiter.wait_for(
            "volume", volume_id, get_poll(self.api.blockstorage.get_volume, volume_id), LifecycleState.AVAILABLE
        )

    def final_volume_state(self, volume: Any, kind: AttachmentKind) -> Dict[str, Any]:
        return {"id": volume.id, "display_name": volume.display_name, "attachment_type": kind.value}

    def create_volume(self, spec: VolumeSpec) -> Any:
        self.console.print(f"[yellow]Creating <{spec.name}>...[/yellow]")
        details = oci.core.models.CreateVolumeDetails(
            compartment_id=self.compartment_id,
            availability_domain=self.availability_domain,
            display_name=spec.name,
            size_in_gbs=spec.size_in_gbs,
            vpus_per_gb=spec.vpus_per_gb or DEFAULT_VPUS_PER_GB,
            defined_tags=self.defined_tags,
        )
        with translate_errors("volume", spec.name):
            volume_id = self.api.blockstorage.create_volume(details).data.id
            volume = self._wait_available(volume_id)
        self.console.print(f"✅ Finished creating <{spec.name}>")
        return volume

    def clone_volume_display_name(self, volume_id: str) -> str:
        with translate_errors("volume", volume_id):
            return f"{self.api.blockstorage.get_volume(volume_id).data.display_name} (Clone)"

    def clone_volume(self, spec: VolumeSpec) -> Any:
        """Create a new volume sourced from `spec.volume_id`; size and performance are inherited unless set"""
        name = self.clone_volume_display_name(spec.volume_id)
        self.console.print(f"[yellow]Creating <{name}>...[/yellow]")
        details = oci.core.models.CreateVolumeDetails(
            compartment_id=self.compartment_id,
            availability_domain=self.availability_domain,
            display_name=name,
            size_in_gbs=spec.size_in_gbs,
            vpus_per_gb=spec.vpus_per_gb,
            defined_tags=self.defined_tags,
            source_details=oci.core.models.VolumeSourceFromVolumeDetails(id=spec.volume_id),
        )
        with translate_errors("volume", name):
            volume_id = self.api.blockstorage.create_volume(details).data.id
            volume = self._wait_available(volume_id)
        self.console.print(f"✅ Finished creating <{name}>")
        return volume

    def create(self, spec: VolumeSpec) -> Any:
        if spec.is_clone:
            return self.clone_volume(spec)
        return self.create_volume(spec)

    def attach(self, volume: Any, server_id: str, spec: VolumeSpec) -> Dict[str, Any]:
        strategy = strategy_for(spec.attachment_kind)
        self.console.print(f"[yellow]Attaching <{volume.display_name}>...[/yellow]")
        details = strategy.attachment_details(volume, server_id, spec, self.api)
        with translate_errors("volume attachment", volume.display_name):
            attachment_id = self.api.compute.attach_volume(details).data.id
            response = self.waiter.wait_for(
                "volume attachment",
                attachment_id,
                get_poll(self.api.compute.get_volume_attachment, attachment_id),
                LifecycleState.ATTACHED,
            )
        self.console.print(f"✅ Finished attaching <{volume.display_name}>")
        return strategy.final_attachment_state(response)

    def detach(self, attachment: Dict[str, Any]) -> None:
        name = attachment_name(attachment)
        self.console.print(f"[yellow]Detaching <{name}>...[/yellow]")
        with translate_errors("volume attachment", attachment["id"]):
            self.api.compute.detach_volume(attachment["id"])
            self.waiter.wait_for(
                "volume attachment",
                attachment["id"],
                get_poll(self.api.compute.get_volume_attachment, attachment["id"]),
                LifecycleState.DETACHED,
            )
        self.console.print(f"✅ Finished detaching <{name}>")

    def delete(self, volume: Dict[str, Any]) -> None:
        self.console.print(f"[yellow]Deleting <{volume['display_name']}>...[/yellow]")
        with translate_errors("volume", volume["id"]):
            self.api.blockstorage.delete_volume(volume["id"])
            self.waiter.wait_for(
                "volume",
                volume["id"],
                get_poll(self.api.blockstorage.get_volume, volume["id"]),
                LifecycleState.TERMINATED,
            )
        self.console.print(f"✅ Finished deleting <{volume['display_name']}>")

    def clone_boot_volume(self, boot_volume_id: str) -> str:
        """Clone a boot volume to launch an instance from; returns the new boot volume OCID"""
        with translate_errors("boot volume", boot_volume_id):
            source = self.api.blockstorage.get_boot_volume(boot_volume_id).data
        name = f"{source.display_name} (Clone)"
        self.console.print(f"[yellow]Creating <{name}>...[/yellow]")
        details = oci.core.models.CreateBootVolumeDetails(
            compartment_id=self.compartment_id,
            availability_domain=self.availability_domain,
            display_name=name,
            defined_tags=self.defined_tags,
            source_details=oci.core.models.BootVolumeSourceFromBootVolumeDetails(id=boot_volume_id),
        )
        with translate_errors("boot volume", name):
            clone_id = self.api.blockstorage.create_boot_volume(details).data.id
            clone = self.waiter.wait_for(
                "boot volume",
                clone_id,
                get_poll(self.api.blockstorage.get_boot_volume, clone_id),
                LifecycleState.AVAILABLE,
            )
        self.console.print(f"✅ Finished creating <{name}>")
        return clone.id

    def delete_boot_volume(self, boot_volume_id: str) -> None:
        """Delete a boot volume clone that never became part of an instance"""
        self.console.print(f"[yellow]Deleting boot volume <{boot_volume_id}>...[/yellow]")
        with translate_errors("boot volume", boot_volume_id):
            self.api.blockstorage.delete_boot_volume(boot_volume_id)
            self.waiter.wait_for(
                "boot volume",
                boot_volume_id,
                get_poll(self.api.blockstorage.get_boot_volume, boot_volume_id),
                LifecycleState.TERMINATED,
            )
        self.console.print(f"✅ Finished deleting boot volume <{boot_volume_id}>")
