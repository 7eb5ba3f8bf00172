"""Tests for user-data assembly and the WinRM bootstrap."""

import base64
import email
import gzip
import random
import re

import pytest

from kitchen_oci.errors import ValidationError
from kitchen_oci.models import UserDataPart
from kitchen_oci.user_data import encode_user_data, multi_part_message, winrm_bootstrap


def decode_message(encoded):
    return gzip.decompress(base64.b64decode(encoded)).decode('utf-8')


class TestEncodeUserData:
    """Test the two user-data encodings."""

    def test_string_is_plain_base64(self):
        """A single string is base64 encoded without compression."""
        encoded = encode_user_data('#!/bin/bash\necho hi\n', random.Random(0))

        assert base64.b64decode(encoded) == b'#!/bin/bash\necho hi\n'

    def test_parts_are_gzipped_mime(self, tmp_path):
        """Parts become a gzip-compressed multi-part MIME message."""
        script = tmp_path / 'bootstrap.sh'
        script.write_text('#!/bin/bash\nyum -y update\n')
        parts = (
            UserDataPart(type='x-shellscript', filename='bootstrap.sh', path=str(script)),
            UserDataPart(type='cloud-config', filename='cloud.yml', inline='#cloud-config\npackages: [git]\n'),
        )

        message = email.message_from_string(decode_message(encode_user_data(parts, random.Random(0))))

        assert message.is_multipart()
        payloads = message.get_payload()
        assert [p.get_filename() for p in payloads] == ['bootstrap.sh', 'cloud.yml']
        assert [p.get_content_type() for p in payloads] == ['text/x-shellscript', 'text/cloud-config']
        assert 'yum -y update' in payloads[0].get_payload()
        assert 'packages: [git]' in payloads[1].get_payload()

    def test_boundary_token(self):
        """The boundary is MIMEBOUNDARY_ plus 20 lowercase letters from the injected RNG."""
        parts = (UserDataPart(type='x-shellscript', filename='a.sh', inline='echo a'),)

        message = multi_part_message(parts, random.Random(7))

        match = re.search(r'boundary="(MIMEBOUNDARY_[a-z]{20})"', message)
        assert match
        assert message.rstrip('\n').endswith(f'--{match.group(1)}--')
        assert message == multi_part_message(parts, random.Random(7))

    def test_part_without_content_rejected(self):
        """A part needs a path or inline content."""
        parts = (UserDataPart(type='x-shellscript', filename='empty.sh'),)

        with pytest.raises(ValidationError):
            encode_user_data(parts, random.Random(0))


class TestWinrmBootstrap:
    """Test the rendered WinRM setup script."""

    def test_renders_credentials(self):
        """Username and password are substituted into the script."""
        part = winrm_bootstrap('opc', 'Pa55(word)')

        assert part.type == 'x-shellscript'
        assert part.filename == 'setup_winrm.ps1'
        assert part.inline.startswith('#ps1_sysnative')
        assert 'WinNT://./opc,user' in part.inline
        assert 'SetPassword("Pa55(word)")' in part.inline
        assert '-LocalPort 5986' in part.inline

    def test_password_never_expires_by_default(self):
        """Without expiry the don't-expire user flag is set."""
        assert '0x10000' in winrm_bootstrap('opc', 'x').inline
        assert 'PasswordExpired' in winrm_bootstrap('opc', 'x', expire_password=True).inline
