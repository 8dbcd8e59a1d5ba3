from pathlib import Path

from autotune.config import load_config
from autotune.engine.controller import ExecutionController
from autotune.models import EnvironmentFacts, ExecutionMode, MutationStatus
from autotune.modules import BtrfsModule, TuningContext
from autotune.modules.storage import btrfs_option_rules

FSTAB = (
    "# /etc/fstab\n"
    "UUID=1111 / btrfs subvol=/@,defaults,compress=zstd:1 0 0\n"
    "UUID=1111 /home btrfs subvol=/@home,defaults,nofail 0 0\n"
    "UUID=2222 /boot vfat defaults,umask=0077 0 2\n"
    "UUID=3333 /games btrfs defaults 0 0\n"
    "UUID=4444 /data ext4 defaults 0 2\n"
)


def context(tmp_path: Path, mode=ExecutionMode.APPLY, fstype="btrfs") -> TuningContext:
    return TuningContext(
        config=load_config(),
        facts=EnvironmentFacts(sysroot=tmp_path, root_fstype=fstype),
        controller=ExecutionController(mode),
    )


def write_fstab(tmp_path: Path) -> Path:
    fstab = tmp_path / "etc" / "fstab"
    fstab.parent.mkdir(parents=True)
    fstab.write_text(FSTAB)
    return fstab


def test_rules_from_defaults():
    rules = btrfs_option_rules(load_config().btrfs)
    assert rules.strip_prefixes == ("compress=", "commit=")
    assert rules.force_add == ("noatime", "ssd", "discard=async", "compress=zstd:3", "commit=60")
    assert set(rules.role_rules) == {"root", "boot", "home", "secondary"}
    assert rules.role_rules["secondary"].add == ("nofail", "x-systemd.device-timeout=5s")
    assert rules.role_rules["home"].remove == ("nofail", "x-systemd.device-timeout=5s")


def test_skipped_on_other_root_filesystem(tmp_path):
    assert BtrfsModule().skip_reason(context(tmp_path, fstype="ext4")) == "root filesystem is ext4, not btrfs"
    assert "unknown" in BtrfsModule().skip_reason(context(tmp_path, fstype=None))
    assert BtrfsModule().skip_reason(context(tmp_path)) is None


def test_fstab_rewritten(tmp_path):
    fstab = write_fstab(tmp_path)

    (result,) = BtrfsModule().apply(context(tmp_path))

    assert result.status is MutationStatus.CHANGED
    assert result.backup_path is not None
    assert result.backup_path.read_text() == FSTAB
    assert fstab.read_text() == (
        "# /etc/fstab\n"
        "UUID=1111\t/\tbtrfs\tcommit=60,compress=zstd:3,discard=async,noatime,ssd,subvol=/@\t0\t0\n"
        "UUID=1111\t/home\tbtrfs\tcommit=60,compress=zstd:3,discard=async,noatime,ssd,subvol=/@home\t0\t0\n"
        "UUID=2222 /boot vfat defaults,umask=0077 0 2\n"
        "UUID=3333\t/games\tbtrfs\tcommit=60,compress=zstd:3,discard=async,noatime,nofail,ssd,"
        "x-systemd.device-timeout=5s\t0\t0\n"
        "UUID=4444 /data ext4 defaults 0 2\n"
    )


def test_fstab_second_run_unchanged(tmp_path):
    fstab = write_fstab(tmp_path)
    ctx = context(tmp_path)

    BtrfsModule().apply(ctx)
    first = fstab.read_text()
    (result,) = BtrfsModule().apply(ctx)

    assert result.status is MutationStatus.UNCHANGED
    assert fstab.read_text() == first
    assert len(list(fstab.parent.glob("fstab.bak.*"))) == 1


def test_fstab_dry_run_matches_apply(tmp_path):
    sim_root = tmp_path / "sim"
    real_root = tmp_path / "real"
    write_fstab(sim_root)
    fstab = write_fstab(real_root)

    (simulated,) = BtrfsModule().apply(context(sim_root, ExecutionMode.SIMULATE))
    BtrfsModule().apply(context(real_root))

    assert simulated.new_content == fstab.read_text()
    assert (sim_root / "etc" / "fstab").read_text() == FSTAB
