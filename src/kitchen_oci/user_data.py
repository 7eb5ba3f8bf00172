"""Instance user-data assembly and the Windows WinRM bootstrap script"""

from __future__ import annotations

import base64
import gzip
import random
from pathlib import Path
from typing import Sequence, Union

from jinja2 import Template

from kitchen_oci.errors import ValidationError
from kitchen_oci.models import UserDataPart
from kitchen_oci.support import random_string

WINRM_TEMPLATE: str = """#ps1_sysnative
# Generated bootstrap: enables WinRM over HTTPS and sets the login for {{ username }}
$ErrorActionPreference = "Stop"

$user = [ADSI]"WinNT://./{{ username }},user"
$user.SetPassword("{{ password }}")
$user.SetInfo()
{% if expire_password %}
$user.PasswordExpired = 1
{% else %}
$user.UserFlags.value = $user.UserFlags.value -bor 0x10000
{% endif %}
$user.SetInfo()

$cert = New-SelfSignedCertificate -DnsName $env:COMPUTERNAME -CertStoreLocation Cert:\\LocalMachine\\My
winrm create winrm/config/Listener?Address=*+Transport=HTTPS "@{Hostname=`"$env:COMPUTERNAME`";CertificateThumbprint=`"$($cert.Thumbprint)`"}"
winrm set winrm/config/service/auth '@{Basic="true"}'

New-NetFirewallRule -DisplayName "WinRM HTTPS" -Direction Inbound -LocalPort {{ port }} -Protocol TCP -Action Allow
"""

WINRM_FILENAME = "setup_winrm.ps1"
WINRM_PORT = 5986


def winrm_bootstrap(username: str, password: str, expire_password: bool = False) -> UserDataPart:
    """Render the WinRM setup script as a user-data part"""
    script: str = Template(WINRM_TEMPLATE).render(
        username=username,
        password=password,
        expire_password=expire_password,
        port=WINRM_PORT,
    )
    return UserDataPart(type="x-shellscript", filename=WINRM_FILENAME, inline=script)


def read_part(part: UserDataPart) -> list[str]:
    if part.path:
        content = Path(part.path).expanduser().read_text()
    elif part.inline is not None:
        content = part.inline
    else:
        raise ValidationError(f"Invalid user data part {part.filename}: needs either path or inline")
    return content.split("\n")


def mime_parts(parts: Sequence[UserDataPart], boundary: str) -> list[str]:
    msg: list[str] = []
    for part in parts:
        msg.append(f"--{boundary}")
        msg.append(f'Content-Disposition: attachment; filename="{part.filename}"')
        msg.append("Content-Transfer-Encoding: 7bit")
        msg.append(f"Content-Type: text/{part.type}")
        msg.append("Mime-Version: 1.0")
        msg.append("")
        msg.extend(read_part(part))
        msg.append("")
    msg.append(f"--{boundary}--")
    return msg


def multi_part_message(parts: Sequence[UserDataPart], rng: random.Random) -> str:
    boundary = f"MIMEBOUNDARY_{random_string(rng, 20)}"
    msg = [
        f'Content-Type: multipart/mixed; boundary="{boundary}"',
        "MIME-Version: 1.0",
        "",
    ]
    msg.extend(mime_parts(parts, boundary))
    return "\n".join(msg) + "\n"


def encode_user_data(user_data: Union[str, Sequence[UserDataPart]], rng: random.Random) -> str:
    """Base64 user data for the instance metadata.

    A list of parts becomes a gzip-compressed multi-part MIME message; a plain
    string is base64 encoded as-is.
    """
    if isinstance(user_data, str):
        return base64.b64encode(user_data.encode("utf-8")).decode("ascii")
    message = multi_part_message(user_data, rng)
    return base64.b64encode(gzip.compress(message.encode("utf-8"))).decode("ascii")
