from __future__ import annotations

import logging
import os
import pwd
import re
import subprocess
from pathlib import Path
from typing import Iterable, Optional, Sequence, Tuple

from autotune.models import EnvironmentFacts

logger = logging.getLogger("autotune")

ROLE_ROOT = "root"
ROLE_SECONDARY = "secondary"

DEFAULT_PRIMARY_MOUNTS = ("/", "/boot", "/home")


def role_for_mount(mount: str) -> str:
    """Role name of a primary mount point: ``/`` is root, ``/home`` is home."""
    normalized = mount.rstrip("/") or "/"
    if normalized == "/":
        return ROLE_ROOT
    return normalized.lstrip("/")


def detect_role(target: str, primary_mounts: Iterable[str] = DEFAULT_PRIMARY_MOUNTS) -> str:
    normalized = target.rstrip("/") or "/"
    for mount in primary_mounts:
        if normalized == (mount.rstrip("/") or "/"):
            return role_for_mount(mount)
    return ROLE_SECONDARY


def resolve(sysroot: Path, path: str | Path) -> Path:
    """Map an absolute system path into *sysroot*."""
    return sysroot / str(path).lstrip("/")


class EnvironmentScanner:
    """Collect the read-only facts every tuning module receives.

    Checks that look at the running system (``lspci``, ``findmnt``,
    ``/proc``) are only used when *sysroot* is ``/``; for any other root the
    facts come from files below it.
    """

    BOOT_LOADER_CONF = "boot/loader/loader.conf"
    BOOT_ENTRIES_DIR = "boot/loader/entries"

    def scan(
        self,
        sysroot: Path = Path("/"),
        user: Optional[str] = None,
        has_nvidia: Optional[bool] = None,
        entries_dir: str = BOOT_ENTRIES_DIR,
    ) -> EnvironmentFacts:
        live = sysroot.resolve() == Path("/")
        user = user or self.detect_user()
        home, uid, gid = self._account(user)
        if has_nvidia is None:
            has_nvidia = self.detect_nvidia() if live else False
        entries = resolve(sysroot, entries_dir)
        return EnvironmentFacts(
            sysroot=sysroot,
            user=user,
            home=home,
            uid=uid,
            gid=gid,
            cpu_count=os.cpu_count() or 1,
            has_nvidia=has_nvidia,
            root_fstype=self.detect_root_fstype(sysroot, live),
            systemd_boot=entries.is_dir() and resolve(sysroot, self.BOOT_LOADER_CONF).is_file(),
            boot_entries=tuple(sorted(p for p in entries.glob("*.conf") if p.is_file())),
        )

    def detect_user(self) -> Optional[str]:
        """The user who invoked sudo, else the login name, else uid 1000."""
        sudo_user = os.environ.get("SUDO_USER")
        if sudo_user and sudo_user != "root":
            return sudo_user
        login = _command_output(["logname"])
        if login and login.strip() != "root":
            return login.strip()
        try:
            return pwd.getpwuid(1000).pw_name
        except KeyError:
            logger.warning("Could not detect a target user")
            return None

    def detect_nvidia(self) -> bool:
        lspci = _command_output(["lspci"])
        if lspci:
            for line in lspci.splitlines():
                if re.search(r"VGA|3D", line, re.IGNORECASE) and "nvidia" in line.lower():
                    return True
        try:
            modules = Path("/proc/modules").read_text(encoding="utf-8")
        except OSError:
            return False
        return any(line.startswith("nvidia") for line in modules.splitlines())

    def detect_root_fstype(self, sysroot: Path, live: bool = True) -> Optional[str]:
        if live:
            out = _command_output(["findmnt", "-n", "-o", "FSTYPE", "/"])
            if out and out.strip():
                return out.strip()
        return self._fstab_root_fstype(resolve(sysroot, "/etc/fstab"))

    def _fstab_root_fstype(self, fstab: Path) -> Optional[str]:
        try:
            lines = fstab.read_text(encoding="utf-8").splitlines()
        except OSError:
            return None
        for line in lines:
            fields = line.split()
            if len(fields) >= 3 and not fields[0].startswith("#") and fields[1] == "/":
                return fields[2]
        return None

    def _account(self, user: Optional[str]) -> Tuple[Optional[Path], Optional[int], Optional[int]]:
        if not user:
            return None, None, None
        try:
            entry = pwd.getpwnam(user)
        except KeyError:
            return Path("/home") / user, None, None
        return Path(entry.pw_dir), entry.pw_uid, entry.pw_gid


def _command_output(cmd: Sequence[str]) -> Optional[str]:
    try:
        result = subprocess.run(list(cmd), capture_output=True, text=True, check=False)
    except OSError as exc:
        logger.debug("%s unavailable: %s", cmd[0], exc)
        return None
    if result.returncode != 0:
        logger.debug("%s exited %d", " ".join(cmd), result.returncode)
        return None
    return result.stdout
