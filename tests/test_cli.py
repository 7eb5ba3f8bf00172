"""Tests for the kitchen-oci command line."""

from unittest.mock import patch

from click.testing import CliRunner

from fakes import INSTANCE_ID, FakeApi
from kitchen_oci.cli import main
from kitchen_oci.state import StateFile


def write_config(tmp_path, public_key_file):
    config = tmp_path / 'kitchen.yml'
    config.write_text(
        'instance_name: default-ol8\n'
        'compartment_id: ocid1.compartment.oc1..test\n'
        'availability_domain: abCD:US-ASHBURN-AD-1\n'
        'shape: VM.Standard.E4.Flex\n'
        'subnet_id: ocid1.subnet.oc1..test\n'
        'image_id: ocid1.image.oc1..test\n'
        f'ssh_keypath: {public_key_file}\n'
        'volumes:\n'
        '  - name: data\n'
        '    size_in_gbs: 50\n'
    )
    return config


class TestCreateDestroy:
    """Test create and destroy through the CLI."""

    def test_create_writes_state_and_destroy_removes_it(self, tmp_path, public_key_file):
        """create persists state and destroy clears it."""
        config = write_config(tmp_path, public_key_file)
        state_path = tmp_path / 'state.yml'
        api = FakeApi()
        runner = CliRunner()

        with patch('kitchen_oci.cli.OCIApi', return_value=api):
            result = runner.invoke(main, ['create', '-c', str(config), '-s', str(state_path), '--no-ssh'])
            assert result.exit_code == 0, result.output

            state = StateFile(state_path).read()
            assert state['server_id'] == INSTANCE_ID
            assert state['volumes'][0]['display_name'] == 'data'

            with patch('kitchen_oci.cli.SshChannel'):
                result = runner.invoke(main, ['destroy', '-c', str(config), '-s', str(state_path)])

        assert result.exit_code == 0, result.output
        assert not state_path.exists()
        assert api.instance.lifecycle_state == 'TERMINATED'

    def test_create_failure_aborts(self, tmp_path, public_key_file):
        """Errors are reported and the command aborts."""
        config = tmp_path / 'kitchen.yml'
        config.write_text('shape: VM.Standard.E4.Flex\n')
        runner = CliRunner()

        with patch('kitchen_oci.cli.OCIApi', return_value=FakeApi()):
            result = runner.invoke(main, ['create', '-c', str(config), '-s', str(tmp_path / 'state.yml')])

        assert result.exit_code != 0
        assert 'ValidationError' in result.output


class TestShow:
    """Test rendering recorded state."""

    def test_password_masked(self, tmp_path):
        """Passwords never reach the terminal."""
        state_path = tmp_path / 'state.yml'
        StateFile(state_path).write({'server_id': INSTANCE_ID, 'password': 'hunter2'})

        result = CliRunner().invoke(main, ['show', '-s', str(state_path)])

        assert result.exit_code == 0
        assert 'hunter2' not in result.output
        assert INSTANCE_ID in result.output

    def test_no_state(self, tmp_path):
        """An absent state file is reported, not an error."""
        result = CliRunner().invoke(main, ['show', '-s', str(tmp_path / 'state.yml')])

        assert result.exit_code == 0
        assert 'No state recorded' in result.output
