"""YAML state file round-tripped between create and destroy"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml

from kitchen_oci.models import StateDocument


class StateFile:
    """Reads and writes the state document for one instance"""

    def __init__(self, path: os.PathLike | str) -> None:
        self.path: Path = Path(os.path.normpath(path)).expanduser()

    def read(self) -> StateDocument:
        if not self.path.exists():
            return {}
        data: Any = yaml.safe_load(self.path.read_text())
        return dict(data or {})

    def write(self, state: StateDocument) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        tmp_path.write_text(yaml.safe_dump(dict(state), default_flow_style=False, sort_keys=True))
        tmp_path.replace(self.path)

    def delete(self) -> None:
        if self.path.exists():
            self.path.unlink()
