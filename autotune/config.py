from __future__ import annotations

import copy
import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, FrozenSet, Optional, Tuple

import yaml

from autotune.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULTS_PATH = Path(__file__).resolve().parent / "data" / "defaults.yaml"

KNOWN_MODULES = (
    "pacman",
    "makepkg",
    "initramfs",
    "bootloader",
    "btrfs",
    "sysctl",
    "journald",
)


@dataclass(frozen=True)
class PacmanSettings:
    path: str
    parallel_downloads: int
    flags: Tuple[str, ...]


@dataclass(frozen=True)
class MakepkgSettings:
    filename: str
    jobs: Optional[int]
    compress_zst: str


@dataclass(frozen=True)
class InitramfsSettings:
    path: str
    modules: Tuple[str, ...]
    nvidia_modules: Tuple[str, ...]
    hooks: Tuple[str, ...]
    compression: str
    compression_options: Tuple[str, ...]


@dataclass(frozen=True)
class BootloaderSettings:
    entries_dir: str
    options: Tuple[str, ...]
    nvidia_options: Tuple[str, ...]


@dataclass(frozen=True)
class BtrfsSettings:
    fstab: str
    record_fields: int
    commit: str
    compress: str
    base_options: Tuple[str, ...]
    secondary_options: Tuple[str, ...]
    primary_mounts: Tuple[str, ...]


@dataclass(frozen=True)
class KeyFileSettings:
    path: str
    settings: Tuple[Tuple[str, str], ...]


@dataclass(frozen=True)
class TuningConfig:
    """Immutable run configuration, built once and handed to every module."""

    enabled_modules: FrozenSet[str]
    pacman: PacmanSettings
    makepkg: MakepkgSettings
    initramfs: InitramfsSettings
    bootloader: BootloaderSettings
    btrfs: BtrfsSettings
    sysctl: KeyFileSettings
    journald: KeyFileSettings
    backup_suffix: str

    def enabled(self, module: str) -> bool:
        return module in self.enabled_modules

    def to_dict(self) -> Dict[str, Any]:
        data = _plain(asdict(self))
        data["enabled_modules"] = sorted(self.enabled_modules)
        data["sysctl"]["settings"] = dict(self.sysctl.settings)
        data["journald"]["settings"] = dict(self.journald.settings)
        return data


def load_config(path: Optional[Path] = None, minimal: bool = False) -> TuningConfig:
    raw = _load_yaml(DEFAULTS_PATH)
    if path is not None:
        raw = deep_merge(raw, _load_yaml(path))
        logger.info("Configuration loaded from %s", path)
    return build_config(raw, minimal=minimal)


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def build_config(raw: Dict[str, Any], minimal: bool = False) -> TuningConfig:
    modules = _section(raw, "modules")
    for name, flag in modules.items():
        if name not in KNOWN_MODULES:
            logger.warning(
                "Unknown module '%s' in configuration. Known modules: %s",
                name,
                ", ".join(KNOWN_MODULES),
            )
        if not isinstance(flag, bool):
            raise ConfigError(f"modules.{name}: expected true or false, got {flag!r}")
    enabled = {name for name, flag in modules.items() if flag and name in KNOWN_MODULES}
    if minimal:
        enabled &= set(_str_list(raw, "minimal_modules"))

    pacman = _section(raw, "pacman")
    parallel = pacman.get("parallel_downloads")
    if isinstance(parallel, bool) or not isinstance(parallel, int) or parallel < 1:
        raise ConfigError(f"pacman.parallel_downloads: expected a positive integer, got {parallel!r}")

    makepkg = _section(raw, "makepkg")
    jobs = makepkg.get("jobs", "auto")
    if jobs == "auto":
        jobs = None
    elif isinstance(jobs, bool) or not isinstance(jobs, int) or jobs < 1:
        raise ConfigError(f"makepkg.jobs: expected 'auto' or a positive integer, got {jobs!r}")

    initramfs = _section(raw, "initramfs")
    bootloader = _section(raw, "bootloader")
    btrfs = _section(raw, "btrfs")
    record_fields = btrfs.get("record_fields", 6)
    if isinstance(record_fields, bool) or not isinstance(record_fields, int) or record_fields < 4:
        raise ConfigError(f"btrfs.record_fields: expected an integer >= 4, got {record_fields!r}")

    return TuningConfig(
        enabled_modules=frozenset(enabled),
        pacman=PacmanSettings(
            path=_required(pacman, "pacman", "path"),
            parallel_downloads=parallel,
            flags=_str_list(pacman, "flags"),
        ),
        makepkg=MakepkgSettings(
            filename=_required(makepkg, "makepkg", "filename"),
            jobs=jobs,
            compress_zst=_required(makepkg, "makepkg", "compress_zst"),
        ),
        initramfs=InitramfsSettings(
            path=_required(initramfs, "initramfs", "path"),
            modules=_str_list(initramfs, "modules"),
            nvidia_modules=_str_list(initramfs, "nvidia_modules"),
            hooks=_str_list(initramfs, "hooks"),
            compression=_required(initramfs, "initramfs", "compression"),
            compression_options=_str_list(initramfs, "compression_options"),
        ),
        bootloader=BootloaderSettings(
            entries_dir=_required(bootloader, "bootloader", "entries_dir"),
            options=_str_list(bootloader, "options"),
            nvidia_options=_str_list(bootloader, "nvidia_options"),
        ),
        btrfs=BtrfsSettings(
            fstab=_required(btrfs, "btrfs", "fstab"),
            record_fields=record_fields,
            commit=_required(btrfs, "btrfs", "commit"),
            compress=_required(btrfs, "btrfs", "compress"),
            base_options=_str_list(btrfs, "base_options"),
            secondary_options=_str_list(btrfs, "secondary_options"),
            primary_mounts=_str_list(btrfs, "primary_mounts"),
        ),
        sysctl=_key_file(raw, "sysctl"),
        journald=_key_file(raw, "journald"),
        backup_suffix=_required(_section(raw, "backup"), "backup", "suffix"),
    )


def _load_yaml(path: Path) -> Dict[str, Any]:
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Cannot parse '{path}': {e}\n"
            "Hint: check that indentation is consistent (2 spaces recommended)."
        ) from e
    except OSError as e:
        raise ConfigError(f"Configuration file not readable: {path}") from e

    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Invalid configuration '{path}': the top level must be a mapping.")
    return raw


def _section(raw: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = raw.get(name, {})
    if not isinstance(section, dict):
        raise ConfigError(f"'{name}' must be a mapping.")
    return section


def _required(section: Dict[str, Any], name: str, key: str) -> str:
    value = section.get(key)
    if value is None or isinstance(value, (dict, list)):
        raise ConfigError(f"{name}.{key}: a value is required.")
    return str(value)


def _str_list(section: Dict[str, Any], key: str) -> Tuple[str, ...]:
    value = section.get(key) or []
    if not isinstance(value, list):
        raise ConfigError(f"'{key}' must be a list.")
    return tuple(str(item) for item in value)


def _plain(value: Any) -> Any:
    # yaml.safe_dump refuses tuples
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


def _key_file(raw: Dict[str, Any], name: str) -> KeyFileSettings:
    section = _section(raw, name)
    settings = section.get("settings") or {}
    if not isinstance(settings, dict):
        raise ConfigError(f"{name}.settings must be a mapping.")
    return KeyFileSettings(
        path=_required(section, name, "path"),
        settings=tuple((str(k), str(v)) for k, v in settings.items()),
    )
