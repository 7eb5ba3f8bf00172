"""Authenticated OCI clients used by the orchestrators"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import oci
from rich.console import Console

from kitchen_oci.errors import ValidationError

CONSOLE: Console = Console()

DEFAULT_CONFIG_FILE = "~/.oci/config"


@dataclass(frozen=True)
class ApiSettings:
    """How to authenticate against OCI"""

    config_file: Optional[str] = None
    profile: Optional[str] = None
    use_instance_principals: bool = False
    use_token_auth: bool = False
    proxy_url: Optional[str] = None
    overrides: Dict[str, str] = field(default_factory=dict)


class OCIApi:
    """Lazily built OCI service clients sharing one config, signer and proxy"""

    def __init__(self, settings: ApiSettings | None = None, console: Console | None = None) -> None:
        self.settings: ApiSettings = settings or ApiSettings()
        self.console: Console = console or CONSOLE
        self._config: dict[str, Any] | None = None
        self._signer: Any = None
        self._clients: dict[type, Any] = {}

    @property
    def config(self) -> dict[str, Any]:
        """OCI config dictionary, with overrides applied"""
        if self._config is None:
            self._config = self._load_config()
        return self._config

    def _load_config(self) -> dict[str, Any]:
        if self.settings.use_instance_principals:
            config: dict[str, Any] = {}
        else:
            config_file = Path(os.path.normpath(self.settings.config_file or DEFAULT_CONFIG_FILE)).expanduser()
            try:
                config = oci.config.from_file(
                    file_location=str(config_file),
                    profile_name=self.settings.profile or oci.config.DEFAULT_PROFILE,
                )
            except oci.exceptions.ConfigFileNotFound:
                if not self.settings.overrides:
                    raise ValidationError(f"OCI config file not found: {config_file}")
                config = {}

        for key, value in self.settings.overrides.items():
            if value:
                config[key] = value
        return config

    @property
    def signer(self) -> Any:
        if self._signer is None:
            if self.settings.use_instance_principals:
                self._signer = oci.auth.signers.InstancePrincipalsSecurityTokenSigner()
            elif self.settings.use_token_auth:
                self._signer = self._token_signer()
        return self._signer

    def _token_signer(self) -> Any:
        token_file = Path(self.config["security_token_file"]).expanduser()
        token: str = token_file.read_text().strip()
        private_key = oci.signer.load_private_key_from_file(
            self.config["key_file"], self.config.get("pass_phrase")
        )
        return oci.auth.signers.SecurityTokenSigner(token, private_key)

    @property
    def tenancy(self) -> str:
        if self.settings.use_instance_principals:
            return self.signer.tenancy_id
        return self.config["tenancy"]

    def _client(self, klass: type) -> Any:
        if klass not in self._clients:
            kwargs: dict[str, Any] = {}
            if self.signer is not None:
                kwargs["signer"] = self.signer
            config = dict(self.config)
            if self.settings.use_instance_principals and "region" not in config:
                config["region"] = self.signer.region
            if not self.settings.use_instance_principals and not self.settings.use_token_auth:
                oci.config.validate_config(config)

            client = klass(config, **kwargs)
            if self.settings.proxy_url:
                client.base_client.session.proxies = {
                    "http": self.settings.proxy_url,
                    "https": self.settings.proxy_url,
                }
            self._clients[klass] = client
        return self._clients[klass]

    @property
    def compute(self) -> oci.core.ComputeClient:
        return self._client(oci.core.ComputeClient)

    @property
    def network(self) -> oci.core.VirtualNetworkClient:
        return self._client(oci.core.VirtualNetworkClient)

    @property
    def blockstorage(self) -> oci.core.BlockstorageClient:
        return self._client(oci.core.BlockstorageClient)

    @property
    def identity(self) -> oci.identity.IdentityClient:
        return self._client(oci.identity.IdentityClient)

    @property
    def database(self) -> oci.database.DatabaseClient:
        return self._client(oci.database.DatabaseClient)
