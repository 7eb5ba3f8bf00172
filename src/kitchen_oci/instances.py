"""Compute instance and database system models"""

from __future__ import annotations

import random
from typing import Any, Dict, List

import oci
from rich.console import Console

from kitchen_oci.errors import ResolutionError, translate_errors
from kitchen_oci.lifecycle import LifecycleWaiter, get_poll
from kitchen_oci.models import InstanceKind, LifecycleState, ProvisionRequest
from kitchen_oci.resolver import list_all, oci_pages
from kitchen_oci.support import random_hostname, random_number, random_password, random_string

CONSOLE: Console = Console()

KITCHEN_TAG = "kitchen"
TERMINAL_STATES = (LifecycleState.TERMINATING, LifecycleState.TERMINATED)


def freeform_tags(request: ProvisionRequest) -> Dict[str, str]:
    tags = dict(request.freeform_tags)
    tags[KITCHEN_TAG] = "true"
    return tags


class InstanceModel:
    """Behaviour shared by every kind of launched resource"""

    kind: InstanceKind
    resource_name: str = "instance"

    def __init__(
        self,
        api: Any,
        request: ProvisionRequest,
        waiter: LifecycleWaiter,
        rng: random.Random,
        console: Console | None = None,
    ) -> None:
        self.api: Any = api
        self.request: ProvisionRequest = request
        self.waiter: LifecycleWaiter = waiter
        self.rng: random.Random = rng
        self.console: Console = console or CONSOLE

    def public_ip_allowed(self) -> bool:
        with translate_errors("subnet", self.request.subnet_id):
            subnet = self.api.network.get_subnet(self.request.subnet_id).data
        return not subnet.prohibit_public_ip_on_vnic

    def select_address(self, vnic: Any) -> str:
        """Public address unless private-only is configured or the subnet forbids public addresses"""
        if self.public_ip_allowed() and not self.request.use_private_ip:
            return vnic.public_ip
        return vnic.private_ip

    def launch(self, compartment_id: str, metadata: Dict[str, str], ssh_public_key: str, **kwargs: Any) -> str:
        raise NotImplementedError

    def hostname(self, compartment_id: str, server_id: str) -> str:
        raise NotImplementedError

    def reboot(self, compartment_id: str, server_id: str) -> None:
        raise NotImplementedError

    def terminate(self, server_id: str) -> None:
        raise NotImplementedError


class ComputeInstance(InstanceModel):
    kind = InstanceKind.COMPUTE
    resource_name = "instance"

    def launch_details(
        self,
        compartment_id: str,
        metadata: Dict[str, str],
        image_id: str | None = None,
        boot_volume_id: str | None = None,
    ) -> oci.core.models.LaunchInstanceDetails:
        request = self.request
        display_name = request.display_name or random_hostname(self.rng, request.prefix)

        if boot_volume_id:
            source_details = oci.core.models.InstanceSourceViaBootVolumeDetails(boot_volume_id=boot_volume_id)
        else:
            source_details = oci.core.models.InstanceSourceViaImageDetails(
                image_id=image_id,
                boot_volume_size_in_gbs=request.boot_volume_size_in_gbs,
            )

        instance_options = dict(request.instance_options)
        instance_options.setdefault("are_legacy_imds_endpoints_disabled", True)

        details = oci.core.models.LaunchInstanceDetails(
            availability_domain=request.availability_domain,
            compartment_id=compartment_id,
            display_name=display_name,
            shape=request.shape,
            source_details=source_details,
            create_vnic_details=oci.core.models.CreateVnicDetails(
                assign_public_ip=self.public_ip_allowed(),
                display_name=display_name,
                hostname_label=display_name,
                nsg_ids=request.nsg_ids,
                subnet_id=request.subnet_id,
            ),
            metadata=metadata,
            freeform_tags=freeform_tags(request),
            defined_tags=request.defined_tags,
            capacity_reservation_id=request.capacity_reservation_id,
            agent_config=oci.core.models.LaunchInstanceAgentConfigDetails(
                are_all_plugins_disabled=request.all_plugins_disabled,
                is_management_disabled=request.management_disabled,
                is_monitoring_disabled=request.monitoring_disabled,
            ),
            instance_options=oci.core.models.InstanceOptions(**instance_options),
        )

        if request.shape_config is not None:
            details.shape_config = oci.core.models.LaunchInstanceShapeConfigDetails(
                ocpus=request.shape_config.ocpus,
                memory_in_gbs=request.shape_config.memory_in_gbs,
                baseline_ocpu_utilization=request.shape_config.baseline_ocpu_utilization or "BASELINE_1_1",
            )
        if request.preemptible_instance:
            details.preemptible_instance_config = oci.core.models.PreemptibleInstanceConfigDetails(
                preemption_action=oci.core.models.TerminatePreemptionAction(preserve_boot_volume=True)
            )
        return details

    def launch(
        self,
        compartment_id: str,
        metadata: Dict[str, str],
        ssh_public_key: str,
        image_id: str | None = None,
        boot_volume_id: str | None = None,
    ) -> str:
        details = self.launch_details(compartment_id, metadata, image_id=image_id, boot_volume_id=boot_volume_id)
        self.console.print(f"[yellow]Launching instance <{details.display_name}>...[/yellow]")
        with translate_errors("instance", details.display_name):
            instance_id = self.api.compute.launch_instance(details).data.id
            self.waiter.wait_for(
                "instance", instance_id, get_poll(self.api.compute.get_instance, instance_id), LifecycleState.RUNNING
            )
        self.console.print(f"✅ Instance <{details.display_name}> is running")
        return instance_id

    def hostname(self, compartment_id: str, server_id: str) -> str:
        with translate_errors("vnic attachments", server_id):
            attachments = list_all(
                oci_pages(self.api.compute.list_vnic_attachments, compartment_id, instance_id=server_id)
            )
        if not attachments:
            raise ResolutionError(f"Could not find any VNIC attachments for instance <{server_id}>")

        for attachment in attachments:
            with translate_errors("vnic", attachment.vnic_id):
                vnic = self.api.network.get_vnic(attachment.vnic_id).data
            if vnic.is_primary:
                return self.select_address(vnic)
        raise ResolutionError(f"Could not find a primary VNIC for instance <{server_id}>")

    def reboot(self, compartment_id: str, server_id: str) -> None:
        self.console.print(f"[yellow]Rebooting instance <{server_id}>...[/yellow]")
        with translate_errors("instance", server_id):
            self.api.compute.instance_action(server_id, "SOFTRESET")
            self.waiter.wait_for(
                "instance", server_id, get_poll(self.api.compute.get_instance, server_id), LifecycleState.RUNNING
            )

    def terminate(self, server_id: str) -> None:
        self.api.compute.terminate_instance(server_id)
        self.waiter.wait_for(
            "instance", server_id, get_poll(self.api.compute.get_instance, server_id), TERMINAL_STATES
        )


class DatabaseSystem(InstanceModel):
    kind = InstanceKind.DATABASE
    resource_name = "database system"

    def db_hostname(self) -> str:
        """At most 16 characters, starting with a letter"""
        prefix = self.request.prefix
        long_name = "-".join([prefix, random_string(self.rng, max(25 - len(prefix), 0)), random_string(self.rng, 3)])
        trimmed_name = "-".join([prefix[:12], random_string(self.rng, 3)])
        return long_name if len(long_name) <= len(trimmed_name) else trimmed_name

    def cluster_name(self) -> str:
        """At most 11 characters"""
        prefix = self.request.prefix.split("-")[0]
        if len(prefix) >= 11:
            return prefix[:11]
        return "-".join([prefix, random_string(self.rng, 10 - len(prefix))])

    def database_details(self) -> oci.database.models.CreateDatabaseDetails:
        dbaas = self.request.dbaas
        details = oci.database.models.CreateDatabaseDetails(
            admin_password=dbaas.admin_password or random_password(self.rng, "#_-"),
            character_set=dbaas.character_set,
            ncharacter_set=dbaas.ncharacter_set,
            db_name=dbaas.db_name,
            db_workload=dbaas.db_workload,
            pdb_name=dbaas.pdb_name,
            db_backup_config=oci.database.models.DbBackupConfig(auto_backup_enabled=False),
            defined_tags=self.request.defined_tags,
        )
        if dbaas.db_software_image_id:
            details.database_software_image_id = dbaas.db_software_image_id
        return details

    def db_home_details(self) -> oci.database.models.CreateDbHomeDetails:
        dbaas = self.request.dbaas
        details = oci.database.models.CreateDbHomeDetails(
            database=self.database_details(),
            db_version=dbaas.db_version,
            display_name=f"dbhome{random_number(self.rng, 10)}",
            defined_tags=self.request.defined_tags,
        )
        if dbaas.db_software_image_id:
            details.database_software_image_id = dbaas.db_software_image_id
        return details

    def launch_details(self, compartment_id: str, ssh_public_key: str) -> oci.database.models.LaunchDbSystemDetails:
        request = self.request
        dbaas = request.dbaas
        return oci.database.models.LaunchDbSystemDetails(
            availability_domain=request.availability_domain,
            compartment_id=compartment_id,
            shape=request.shape,
            subnet_id=request.subnet_id,
            nsg_ids=request.nsg_ids,
            hostname=self.db_hostname(),
            display_name="-".join([request.prefix, random_string(self.rng, 4), random_number(self.rng, 2)]),
            cluster_name=self.cluster_name(),
            ssh_public_keys=[ssh_public_key],
            cpu_core_count=dbaas.cpu_core_count,
            database_edition=dbaas.database_edition,
            license_model=dbaas.license_model,
            initial_data_storage_size_in_gb=dbaas.initial_data_storage_size_in_gb,
            node_count=1,
            db_home=self.db_home_details(),
            freeform_tags=freeform_tags(request),
            defined_tags=request.defined_tags,
        )

    def launch(self, compartment_id: str, metadata: Dict[str, str], ssh_public_key: str, **kwargs: Any) -> str:
        details = self.launch_details(compartment_id, ssh_public_key)
        self.console.print(f"[yellow]Launching database system <{details.display_name}>...[/yellow]")
        with translate_errors("database system", details.display_name):
            db_system_id = self.api.database.launch_db_system(details).data.id
            self.waiter.wait_for(
                "database system",
                db_system_id,
                get_poll(self.api.database.get_db_system, db_system_id),
                LifecycleState.AVAILABLE,
            )
        self.console.print(f"✅ Database system <{details.display_name}> is available")
        return db_system_id

    def db_nodes(self, compartment_id: str, server_id: str) -> List[Any]:
        with translate_errors("database nodes", server_id):
            return list_all(oci_pages(self.api.database.list_db_nodes, compartment_id, db_system_id=server_id))

    def hostname(self, compartment_id: str, server_id: str) -> str:
        nodes = [n for n in self.db_nodes(compartment_id, server_id) if n.vnic_id]
        if not nodes:
            raise ResolutionError(f"Could not find a database node with a VNIC for <{server_id}>")
        with translate_errors("vnic", nodes[0].vnic_id):
            vnic = self.api.network.get_vnic(nodes[0].vnic_id).data
        return self.select_address(vnic)

    def reboot(self, compartment_id: str, server_id: str) -> None:
        for node in self.db_nodes(compartment_id, server_id):
            self.console.print(f"[yellow]Rebooting database node <{node.id}>...[/yellow]")
            with translate_errors("database node", node.id):
                self.api.database.db_node_action(node.id, "SOFTRESET")
                self.waiter.wait_for(
                    "database node",
                    node.id,
                    get_poll(self.api.database.get_db_node, node.id),
                    LifecycleState.AVAILABLE,
                )

    def terminate(self, server_id: str) -> None:
        self.api.database.terminate_db_system(server_id)
        self.waiter.wait_for(
            "database system", server_id, get_poll(self.api.database.get_db_system, server_id), TERMINAL_STATES
        )


INSTANCE_MODELS: Dict[InstanceKind, type] = {
    InstanceKind.COMPUTE: ComputeInstance,
    InstanceKind.DATABASE: DatabaseSystem,
}


def instance_model(
    api: Any,
    request: ProvisionRequest,
    waiter: LifecycleWaiter,
    rng: random.Random,
    console: Console | None = None,
) -> InstanceModel:
    """Model for the request's instance kind, with the kind's wait policy applied"""
    model_class = INSTANCE_MODELS[request.instance_kind]
    return model_class(api, request, waiter.with_policy(request.instance_wait), rng, console)
