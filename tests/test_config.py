"""Tests for configuration loading and request validation."""

from dataclasses import replace

import pytest

from kitchen_oci.config import load_request, request_from_mapping, validate_request
from kitchen_oci.errors import ValidationError
from kitchen_oci.models import (
    DATABASE_WAIT,
    AttachmentKind,
    DbaasOptions,
    InstanceKind,
    SshKeyType,
    UserDataPart,
    VolumeSpec,
    WaitPolicy,
)


CONFIG_YAML = """
instance_name: default-ol8
compartment_name: dev
availability_domain: abCD:US-ASHBURN-AD-1
shape: VM.Standard.A1.Flex
subnet_id: ocid1.subnet.oc1..test
image_name: Oracle-Linux-8.9
ssh_keygen: true
ssh_keytype: ED25519
shape_config:
  ocpus: 2
  memory_in_gbs: 16
volumes:
  - name: data
    size_in_gbs: 50
    type: iscsi
  - volume_id: ocid1.volume.oc1..source
user_data:
  - type: x-shellscript
    filename: bootstrap.sh
    inline: echo hi
post_create_script:
  - scripts/one.sh
  - scripts/two.sh
wait:
  poll_interval_seconds: 5
oci:
  profile: DEV
  proxy_url: http://proxy.example.com:80
  overrides:
    region: us-ashburn-1
"""


class TestLoadRequest:
    """Test reading the YAML configuration."""

    def test_full_config(self, tmp_path):
        """Every nested section converts to its dataclass."""
        path = tmp_path / 'kitchen.yml'
        path.write_text(CONFIG_YAML)

        request, settings = load_request(path)

        assert request.instance_name == 'default-ol8'
        assert request.instance_kind is InstanceKind.COMPUTE
        assert request.ssh_keytype is SshKeyType.ED25519
        assert request.shape_config.ocpus == 2
        assert request.volumes[0] == VolumeSpec(name='data', size_in_gbs=50, type='iscsi')
        assert request.volumes[1].is_clone
        assert request.volumes[1].attachment_kind is AttachmentKind.PARAVIRTUAL
        assert request.user_data == (UserDataPart(type='x-shellscript', filename='bootstrap.sh', inline='echo hi'),)
        assert request.post_create_script == ('scripts/one.sh', 'scripts/two.sh')
        assert request.wait == WaitPolicy(poll_interval_seconds=5, max_wait_seconds=1200)
        assert request.database_wait == DATABASE_WAIT
        assert settings.profile == 'DEV'
        assert settings.proxy_url == 'http://proxy.example.com:80'
        assert settings.overrides == {'region': 'us-ashburn-1'}

    def test_instance_name_defaults_to_directory(self, tmp_path):
        """Without instance_name the config's directory name is used."""
        project = tmp_path / 'webapp'
        project.mkdir()
        (project / 'kitchen.yml').write_text('shape: VM.Standard.E4.Flex\n')

        request, _ = load_request(project / 'kitchen.yml')

        assert request.instance_name == 'webapp'

    def test_missing_file(self, tmp_path):
        """A missing file is a validation error."""
        with pytest.raises(ValidationError):
            load_request(tmp_path / 'nope.yml')

    def test_unknown_key_rejected(self, tmp_path):
        """Unknown nested keys are reported as validation errors."""
        path = tmp_path / 'kitchen.yml'
        path.write_text('dbaas:\n  db_versoin: "19.0.0.0"\n')

        with pytest.raises(ValidationError):
            load_request(path)


class TestRequestFromMapping:
    """Test conversion of individual fields."""

    def test_dbaas_alias(self):
        """instance_type dbaas selects the database kind."""
        request = request_from_mapping({'instance_type': 'DBaaS', 'dbaas': {'db_version': '19.0.0.0'}})

        assert request.instance_kind is InstanceKind.DATABASE
        assert request.instance_wait == DATABASE_WAIT
        assert request.dbaas.db_version == '19.0.0.0'
        assert request.dbaas.license_model == 'BRING_YOUR_OWN_LICENSE'

    def test_unknown_instance_type(self):
        """Unsupported kinds are validation errors."""
        with pytest.raises(ValidationError):
            request_from_mapping({'instance_type': 'autonomous'})

    def test_string_user_data_kept(self):
        """A user_data string stays a string."""
        assert request_from_mapping({'user_data': '#!/bin/bash'}).user_data == '#!/bin/bash'


class TestValidateRequest:
    """Test request validation."""

    def test_valid_request(self, compute_request):
        """The fixture request passes."""
        validate_request(compute_request)

    @pytest.mark.parametrize('field_name', ['shape', 'subnet_id', 'availability_domain'])
    def test_required_fields(self, compute_request, field_name):
        """Core placement fields are required."""
        with pytest.raises(ValidationError, match=field_name):
            validate_request(replace(compute_request, **{field_name: None}))

    def test_compartment_required(self, compute_request):
        """Either compartment id or name is needed."""
        with pytest.raises(ValidationError, match='compartment'):
            validate_request(replace(compute_request, compartment_id=None))

    def test_compartment_name_suffices(self, compute_request):
        """A compartment name alone is fine."""
        validate_request(replace(compute_request, compartment_id=None, compartment_name='dev'))

    def test_boot_volume_instead_of_image(self, compute_request):
        """A boot volume is an acceptable launch source."""
        validate_request(replace(compute_request, image_id=None, boot_volume_id='ocid1.bootvolume.oc1..x'))

    def test_too_many_nsgs(self, compute_request):
        """At most five network security groups."""
        with pytest.raises(ValidationError, match='nsg_ids'):
            validate_request(replace(compute_request, nsg_ids=[f'nsg{i}' for i in range(6)]))

    def test_database_rejects_volumes(self, compute_request):
        """Block volumes are a compute feature; database requests with volumes fail."""
        request = replace(
            compute_request,
            instance_kind=InstanceKind.DATABASE,
            dbaas=DbaasOptions(db_version='19.0.0.0'),
            volumes=(VolumeSpec(name='data', size_in_gbs=50),),
        )

        with pytest.raises(ValidationError, match='only supported for compute'):
            validate_request(request)

    def test_database_without_volumes_is_valid(self, compute_request):
        """A database request with a version and no volumes passes."""
        validate_request(replace(
            compute_request, instance_kind=InstanceKind.DATABASE, dbaas=DbaasOptions(db_version='19.0.0.0')
        ))

    def test_bad_volume_type(self, compute_request):
        """Volume types outside the closed set are rejected."""
        with pytest.raises(ValidationError, match='nvme'):
            validate_request(replace(compute_request, volumes=(VolumeSpec(name='data', type='nvme'),)))

    def test_missing_public_key(self, compute_request, tmp_path):
        """Without keygen the public key file must exist."""
        with pytest.raises(ValidationError, match='ssh_keypath'):
            validate_request(replace(compute_request, ssh_keypath=str(tmp_path / 'missing.pub')))

    def test_all_problems_reported(self, compute_request):
        """Every problem is listed in one error."""
        with pytest.raises(ValidationError) as exc_info:
            validate_request(replace(compute_request, shape=None, subnet_id=None))

        assert 'shape' in str(exc_info.value)
        assert 'subnet_id' in str(exc_info.value)
