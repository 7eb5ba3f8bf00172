"""Shared pytest fixtures for kitchen-oci tests."""

import io
import random
import sys
from pathlib import Path

import pytest
from rich.console import Console

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from kitchen_oci.lifecycle import LifecycleWaiter
from kitchen_oci.models import ProvisionRequest


@pytest.fixture
def console():
    """Console writing into a buffer instead of the terminal."""
    return Console(file=io.StringIO(), width=200)


@pytest.fixture
def waiter(console):
    """Waiter that never actually sleeps."""
    return LifecycleWaiter(console=console, sleep=lambda seconds: None)


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def public_key_file(tmp_path):
    path = tmp_path / 'id_rsa.pub'
    path.write_text('ssh-rsa AAAAB3NzaC1yc2EAAAADAQABAAABAQC7 user@workstation\nsecond line ignored\n')
    return path


@pytest.fixture
def compute_request(public_key_file):
    """Minimal valid compute request."""
    return ProvisionRequest(
        instance_name='default-ol8',
        compartment_id='ocid1.compartment.oc1..test',
        availability_domain='abCD:US-ASHBURN-AD-1',
        shape='VM.Standard.E4.Flex',
        subnet_id='ocid1.subnet.oc1..test',
        image_id='ocid1.image.oc1..test',
        ssh_keypath=str(public_key_file),
    )
