"""Data model shared by the provisioning and teardown orchestrators"""

from __future__ import annotations

import base64
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

# Persisted state document. Orchestrators never mutate the caller's copy.
StateDocument = Dict[str, Any]


class InstanceKind(str, Enum):
    """Kind of top-level resource being launched"""

    COMPUTE = "compute"
    DATABASE = "database"

    @classmethod
    def parse(cls, value: str | None) -> "InstanceKind":
        if value is None:
            return cls.COMPUTE
        normalized = value.strip().lower()
        if normalized == "dbaas":
            return cls.DATABASE
        return cls(normalized)


class AttachmentKind(str, Enum):
    """Protocol used to expose a block volume to an instance"""

    ISCSI = "iscsi"
    PARAVIRTUAL = "paravirtual"

    @classmethod
    def parse(cls, value: str | None) -> "AttachmentKind":
        if value is None:
            return cls.PARAVIRTUAL
        return cls(value.strip().lower())


class SshKeyType(str, Enum):
    RSA = "rsa"
    ED25519 = "ed25519"


class LifecycleState(str, Enum):
    """Lifecycle states reported by the OCI control plane"""

    PROVISIONING = "PROVISIONING"
    STARTING = "STARTING"
    RUNNING = "RUNNING"
    STOPPING = "STOPPING"
    STOPPED = "STOPPED"
    AVAILABLE = "AVAILABLE"
    UPDATING = "UPDATING"
    ATTACHING = "ATTACHING"
    ATTACHED = "ATTACHED"
    DETACHING = "DETACHING"
    DETACHED = "DETACHED"
    RESTORING = "RESTORING"
    FAULTY = "FAULTY"
    FAILED = "FAILED"
    MAINTENANCE_IN_PROGRESS = "MAINTENANCE_IN_PROGRESS"
    CREATING_IMAGE = "CREATING_IMAGE"
    MOVING = "MOVING"
    TERMINATING = "TERMINATING"
    TERMINATED = "TERMINATED"
    UNKNOWN = "UNKNOWN_ENUM_VALUE"

    @classmethod
    def _missing_(cls, value: object) -> "LifecycleState":
        return cls.UNKNOWN


@dataclass(frozen=True)
class WaitPolicy:
    """How often and for how long a lifecycle wait polls"""

    poll_interval_seconds: float = 10
    max_wait_seconds: float = 1200


DEFAULT_WAIT = WaitPolicy()
DATABASE_WAIT = WaitPolicy(poll_interval_seconds=900, max_wait_seconds=21600)


@dataclass(frozen=True)
class VolumeSpec:
    """A block volume requested in the configuration"""

    name: str
    size_in_gbs: Optional[int] = None
    vpus_per_gb: Optional[int] = None
    type: Optional[str] = None
    device: Optional[str] = None
    volume_id: Optional[str] = None

    @property
    def attachment_kind(self) -> AttachmentKind:
        return AttachmentKind.parse(self.type)

    @property
    def is_clone(self) -> bool:
        return self.volume_id is not None


@dataclass(frozen=True)
class UserDataPart:
    """One part of a multi-part user-data message"""

    type: str
    filename: str
    inline: Optional[str] = None
    path: Optional[str] = None


@dataclass(frozen=True)
class ShapeConfig:
    ocpus: Optional[float] = None
    memory_in_gbs: Optional[float] = None
    baseline_ocpu_utilization: Optional[str] = None


@dataclass(frozen=True)
class DbaasOptions:
    """Database system launch options"""

    db_version: Optional[str] = None
    cpu_core_count: int = 2
    database_edition: str = "ENTERPRISE_EDITION"
    license_model: str = "BRING_YOUR_OWN_LICENSE"
    initial_data_storage_size_in_gb: int = 256
    character_set: str = "AL32UTF8"
    ncharacter_set: str = "AL16UTF16"
    db_workload: str = "OLTP"
    admin_password: Optional[str] = None
    db_name: str = "dbaas1"
    pdb_name: Optional[str] = "pdb001"
    db_software_image_id: Optional[str] = None


@dataclass(frozen=True)
class ProvisionRequest:
    """Immutable description of what `create` should build"""

    instance_name: str = "kitchen"
    compartment_id: Optional[str] = None
    compartment_name: Optional[str] = None
    availability_domain: Optional[str] = None
    shape: Optional[str] = None
    subnet_id: Optional[str] = None
    image_id: Optional[str] = None
    image_name: Optional[str] = None
    boot_volume_id: Optional[str] = None
    boot_volume_size_in_gbs: Optional[int] = None
    instance_kind: InstanceKind = InstanceKind.COMPUTE
    volumes: Tuple[VolumeSpec, ...] = ()

    ssh_keygen: bool = False
    ssh_keytype: SshKeyType = SshKeyType.RSA
    ssh_keypath: str = "~/.ssh/id_rsa.pub"
    key_dir: str = ".kitchen/.ssh"

    freeform_tags: Dict[str, str] = field(default_factory=dict)
    defined_tags: Optional[Dict[str, Dict[str, Any]]] = None
    custom_metadata: Dict[str, str] = field(default_factory=dict)
    user_data: Union[str, Tuple[UserDataPart, ...], None] = None

    setup_winrm: bool = False
    winrm_user: str = "opc"
    winrm_password: Optional[str] = None

    use_private_ip: bool = False
    hostname_prefix: Optional[str] = None
    display_name: Optional[str] = None
    nsg_ids: Optional[List[str]] = None
    shape_config: Optional[ShapeConfig] = None
    preemptible_instance: bool = False
    capacity_reservation_id: Optional[str] = None
    all_plugins_disabled: bool = False
    management_disabled: bool = False
    monitoring_disabled: bool = False
    instance_options: Dict[str, Any] = field(default_factory=dict)
    dbaas: DbaasOptions = field(default_factory=DbaasOptions)

    post_create_script: Union[str, Tuple[str, ...], None] = None
    post_create_reboot: bool = False

    wait: WaitPolicy = DEFAULT_WAIT
    database_wait: WaitPolicy = DATABASE_WAIT

    @property
    def prefix(self) -> str:
        return self.hostname_prefix or self.instance_name

    @property
    def instance_wait(self) -> WaitPolicy:
        if self.instance_kind is InstanceKind.DATABASE:
            return self.database_wait
        return self.wait


@dataclass(frozen=True)
class KeyMaterial:
    """A generated SSH key pair in its on-disk encodings"""

    algorithm: str
    public_blob: bytes
    private_blob: bytes
    comment: str

    @property
    def public_line(self) -> str:
        return " ".join(
            part for part in (self.algorithm, base64.b64encode(self.public_blob).decode("ascii"), self.comment) if part
        )
