"""Helpers for writing generated files and reading request files."""
from __future__ import annotations

import json
import logging
import os
import shutil
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional

import yaml

from .constants import BACKUP_TIMESTAMP_FORMAT, BASE_PATH_PLACEHOLDER, COMPOSE_FILENAME, ENV_FILENAME
from .models import GenerateRequest, Service

log = logging.getLogger(__name__)


class OutputWriter:
    """File-backed output for one generation target directory."""

    def __init__(self, output_dir: Path) -> None:
        self.output_dir = Path(output_dir)
        self.compose_path = self.output_dir / COMPOSE_FILENAME
        self.env_path = self.output_dir / ENV_FILENAME

    def write_compose(self, content: str, backup: bool = True) -> Path:
        return self._write(self.compose_path, content, backup=backup, mode=0o644)

    def write_env(self, content: str, backup: bool = True) -> Path:
        # May hold VPN credentials.
        return self._write(self.env_path, content, backup=backup, mode=0o600)

    def backup_existing(self, target: Path, now: Optional[datetime] = None) -> Optional[Path]:
        """Copy ``target`` to ``<name>.backup.<timestamp>`` if it exists."""
        if not target.exists():
            return None
        stamp = (now or datetime.now()).strftime(BACKUP_TIMESTAMP_FORMAT)
        backup_path = target.with_name(f"{target.name}.backup.{stamp}")
        shutil.copy2(target, backup_path)
        log.info("Backed up %s to %s", target, backup_path)
        return backup_path

    def _write(self, target: Path, content: str, backup: bool, mode: int) -> Path:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        if backup:
            self.backup_existing(target)
        target.write_text(content)
        os.chmod(target, mode)
        return target

    # Filesystem helpers ----------------------------------------------------

    def ensure_volume_directories(self, services: Iterable[Service], base_path: str) -> List[str]:
        """Create the host directories of every volume rooted under ``base_path``."""
        root = base_path.rstrip("/") or "/"
        targets = set()
        for service in services:
            for volume in service.volumes:
                if BASE_PATH_PLACEHOLDER not in volume.host:
                    continue
                host_path = volume.resolve_host(root)
                if host_path.startswith(root):
                    targets.add(Path(host_path))

        changes: List[str] = []
        for directory in sorted(targets):
            if directory.exists():
                continue
            directory.mkdir(parents=True, exist_ok=True)
            changes.append(f"created {directory}")
        if changes:
            log.info("Created %d directories for service volumes", len(changes))
        return changes


def load_request(path: Path) -> GenerateRequest:
    """Read a generation request from a YAML or JSON file."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Missing request file at {path}")
    text = path.read_text()
    if path.suffix in (".yaml", ".yml"):
        data = yaml.safe_load(text) or {}
    else:
        data = json.loads(text)
    return GenerateRequest.model_validate(data)

