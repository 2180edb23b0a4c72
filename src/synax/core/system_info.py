"""Host environment facts used to ground repair prompts."""

import getpass
import logging
import os
import platform
import stat
import tempfile
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List

import psutil

logger = logging.getLogger(__name__)

_GB = 1024**3


@dataclass(frozen=True)
class SystemSnapshot:
    """Point-in-time description of the machine the agent runs on."""

    user: str
    os_name: str
    arch: str
    release: str
    cpu_cores: int
    free_memory_gb: float
    total_memory_gb: float
    uptime_hours: float
    home_dir: str
    temp_dir: str
    language: str

    def render(self) -> str:
        return "\n".join(
            [
                f"- User: {self.user}",
                f"- OS: {self.os_name} {self.arch} ({self.release})",
                f"- CPU Cores: {self.cpu_cores}",
                f"- Memory: {self.free_memory_gb:.2f}GB free of {self.total_memory_gb:.2f}GB total",
                f"- Uptime: {self.uptime_hours:.1f} hours",
                f"- Home Directory: {self.home_dir}",
                f"- Temp Directory: {self.temp_dir}",
                f"- System Language: {self.language}",
            ]
        )


def _current_user() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "User"


def collect_snapshot() -> SystemSnapshot:
    """Read the host facts.  Called on every repair, nothing is cached."""
    memory = psutil.virtual_memory()
    return SystemSnapshot(
        user=_current_user(),
        os_name=platform.system().lower(),
        arch=platform.machine(),
        release=platform.release(),
        cpu_cores=psutil.cpu_count() or 1,
        free_memory_gb=memory.available / _GB,
        total_memory_gb=memory.total / _GB,
        uptime_hours=(time.time() - psutil.boot_time()) / 3600,
        home_dir=str(Path.home()),
        temp_dir=tempfile.gettempdir(),
        language=os.environ.get("LANG", "en_US.UTF-8"),
    )


def list_directory(path: str | os.PathLike) -> str:
    """
    Return an ``ls -la`` style listing of *path*.

    Errors are returned as text; the listing is only context for the model.
    """
    try:
        with os.scandir(path) as it:
            entries = sorted(it, key=lambda e: e.name)
            lines: List[str] = []
            for entry in entries:
                try:
                    info = entry.stat(follow_symlinks=False)
                except OSError:
                    lines.append(f"?????????? {entry.name}")
                    continue
                mtime = datetime.fromtimestamp(info.st_mtime).strftime("%b %d %H:%M")
                lines.append(
                    f"{stat.filemode(info.st_mode)} {info.st_size:>10} {mtime} {entry.name}"
                )
    except OSError as exc:
        logger.debug("Cannot list %s: %s", path, exc)
        return f"Error getting directory structure: {exc}"
    return "\n".join(lines) or "No directory structure found."
