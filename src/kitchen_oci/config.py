"""Load and validate the driver configuration"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Tuple

import yaml

from kitchen_oci.api import ApiSettings
from kitchen_oci.errors import ValidationError
from kitchen_oci.models import (
    DATABASE_WAIT,
    DEFAULT_WAIT,
    AttachmentKind,
    DbaasOptions,
    InstanceKind,
    ProvisionRequest,
    ShapeConfig,
    SshKeyType,
    UserDataPart,
    VolumeSpec,
    WaitPolicy,
)

MAX_NSG_IDS = 5


def _volume(data: Mapping[str, Any]) -> VolumeSpec:
    return VolumeSpec(
        name=data.get("name", ""),
        size_in_gbs=data.get("size_in_gbs"),
        vpus_per_gb=data.get("vpus_per_gb"),
        type=data.get("type"),
        device=data.get("device"),
        volume_id=data.get("volume_id"),
    )


def _user_data(data: Any) -> str | Tuple[UserDataPart, ...] | None:
    if data is None or isinstance(data, str):
        return data
    return tuple(
        UserDataPart(
            type=part.get("type", "x-shellscript"),
            filename=part.get("filename", ""),
            inline=part.get("inline"),
            path=part.get("path"),
        )
        for part in data
    )


def _wait(data: Mapping[str, Any] | None, default: WaitPolicy) -> WaitPolicy:
    if not data:
        return default
    return WaitPolicy(
        poll_interval_seconds=data.get("poll_interval_seconds", default.poll_interval_seconds),
        max_wait_seconds=data.get("max_wait_seconds", default.max_wait_seconds),
    )


def _enum(parse: Any, value: Any, field_name: str) -> Any:
    try:
        return parse(value)
    except ValueError:
        raise ValidationError(f"[:{field_name}] {value} is not a supported value")


def request_from_mapping(data: Mapping[str, Any]) -> ProvisionRequest:
    """Build a ProvisionRequest from a parsed configuration mapping"""
    data = dict(data)
    script = data.get("post_create_script")
    shape_config = data.get("shape_config")
    return ProvisionRequest(
        instance_name=data.get("instance_name", "kitchen"),
        compartment_id=data.get("compartment_id"),
        compartment_name=data.get("compartment_name"),
        availability_domain=data.get("availability_domain"),
        shape=data.get("shape"),
        subnet_id=data.get("subnet_id"),
        image_id=data.get("image_id"),
        image_name=data.get("image_name"),
        boot_volume_id=data.get("boot_volume_id"),
        boot_volume_size_in_gbs=data.get("boot_volume_size_in_gbs"),
        instance_kind=_enum(InstanceKind.parse, data.get("instance_type"), "instance_type"),
        volumes=tuple(_volume(v) for v in data.get("volumes") or []),
        ssh_keygen=bool(data.get("ssh_keygen", False)),
        ssh_keytype=_enum(SshKeyType, str(data.get("ssh_keytype", "rsa")).lower(), "ssh_keytype"),
        ssh_keypath=data.get("ssh_keypath", ProvisionRequest.ssh_keypath),
        key_dir=data.get("key_dir", ProvisionRequest.key_dir),
        freeform_tags={str(k): str(v) for k, v in (data.get("freeform_tags") or {}).items()},
        defined_tags=data.get("defined_tags"),
        custom_metadata={str(k): str(v) for k, v in (data.get("custom_metadata") or {}).items()},
        user_data=_user_data(data.get("user_data")),
        setup_winrm=bool(data.get("setup_winrm", False)),
        winrm_user=data.get("winrm_user", ProvisionRequest.winrm_user),
        winrm_password=data.get("winrm_password"),
        use_private_ip=bool(data.get("use_private_ip", False)),
        hostname_prefix=data.get("hostname_prefix"),
        display_name=data.get("display_name"),
        nsg_ids=data.get("nsg_ids"),
        shape_config=ShapeConfig(**shape_config) if shape_config else None,
        preemptible_instance=bool(data.get("preemptible_instance", False)),
        capacity_reservation_id=data.get("capacity_reservation_id"),
        all_plugins_disabled=bool(data.get("all_plugins_disabled", False)),
        management_disabled=bool(data.get("management_disabled", False)),
        monitoring_disabled=bool(data.get("monitoring_disabled", False)),
        instance_options=dict(data.get("instance_options") or {}),
        dbaas=DbaasOptions(**(data.get("dbaas") or {})),
        post_create_script=tuple(script) if isinstance(script, list) else script,
        post_create_reboot=bool(data.get("post_create_reboot", False)),
        wait=_wait(data.get("wait"), DEFAULT_WAIT),
        database_wait=_wait(data.get("database_wait"), DATABASE_WAIT),
    )


def api_settings_from_mapping(data: Mapping[str, Any] | None) -> ApiSettings:
    data = dict(data or {})
    return ApiSettings(
        config_file=data.get("config_file"),
        profile=data.get("profile"),
        use_instance_principals=bool(data.get("use_instance_principals", False)),
        use_token_auth=bool(data.get("use_token_auth", False)),
        proxy_url=data.get("proxy_url"),
        overrides={str(k): str(v) for k, v in (data.get("overrides") or {}).items() if v},
    )


def load_request(path: os.PathLike | str) -> Tuple[ProvisionRequest, ApiSettings]:
    """Read a YAML driver configuration file"""
    config_path = Path(os.path.normpath(path)).expanduser()
    if not config_path.exists():
        raise ValidationError(f"Configuration file not found: '{config_path}'")

    data: Any = yaml.safe_load(config_path.read_text()) or {}
    if not isinstance(data, dict):
        raise ValidationError(f"Configuration file must contain a mapping: '{config_path}'")
    data.setdefault("instance_name", config_path.parent.name or "kitchen")
    try:
        return request_from_mapping(data), api_settings_from_mapping(data.get("oci"))
    except TypeError as e:
        raise ValidationError(f"Invalid configuration in '{config_path}': {e}")


def validate_request(request: ProvisionRequest) -> None:
    """Raise ValidationError listing every problem with the request"""
    problems: List[str] = []

    for field_name in ("shape", "subnet_id", "availability_domain"):
        if not getattr(request, field_name):
            problems.append(f"[:{field_name}] is required")

    if not (request.compartment_id or request.compartment_name):
        problems.append("must specify either compartment_id or compartment_name")

    if request.instance_kind is InstanceKind.COMPUTE:
        if not (request.image_id or request.image_name or request.boot_volume_id):
            problems.append("must specify one of image_id, image_name or boot_volume_id")
        if request.setup_winrm and isinstance(request.user_data, str):
            problems.append("[:user_data] must be a list of parts when setup_winrm is enabled")
    else:
        if not request.dbaas.db_version:
            problems.append("[:dbaas][:db_version] cannot be nil")
        if request.volumes:
            problems.append("[:volumes] block volumes are only supported for compute instances")

    if request.nsg_ids is not None and len(request.nsg_ids) > MAX_NSG_IDS:
        problems.append(f"[:nsg_ids] list cannot be longer than {MAX_NSG_IDS} items")

    for volume in request.volumes:
        if not volume.name and not volume.volume_id:
            problems.append("[:volumes] every volume needs a name or a volume_id")
        try:
            AttachmentKind.parse(volume.type)
        except ValueError:
            problems.append(f"[:volumes][:type] {volume.type} is not a valid volume type for {volume.name}")

    if isinstance(request.user_data, tuple):
        for part in request.user_data:
            if part.path is None and part.inline is None:
                problems.append(f"[:user_data] part {part.filename} needs either path or inline")

    if not request.ssh_keygen and not Path(request.ssh_keypath).expanduser().exists():
        problems.append(f"[:ssh_keypath] public key not found: {request.ssh_keypath}")

    if problems:
        raise ValidationError("; ".join(problems))


def config_summary(request: ProvisionRequest) -> Dict[str, Any]:
    """Flat view of the fields worth echoing before a run"""
    return {
        "instance": request.instance_name,
        "kind": request.instance_kind.value,
        "compartment": request.compartment_id or request.compartment_name,
        "shape": request.shape,
        "image": request.image_id or request.image_name or request.boot_volume_id,
        "volumes": len(request.volumes),
    }
