from pathlib import Path
from typing import List

from autotune.config import load_config
from autotune.engine.controller import ExecutionController
from autotune.errors import PermissionDenied
from autotune.models import EnvironmentFacts, ExecutionMode, MutationResult
from autotune.modules import TuningContext, TuningModule, select_modules
from autotune.modules.packages import PacmanModule
from autotune.modules.system import JournaldModule, SysctlModule
from autotune.runner import TuningRunner


class ExplodingModule(TuningModule):
    name = "exploding"
    description = "always fails"
    touches_boot = True

    def targets(self, ctx: TuningContext) -> List[Path]:
        return [ctx.path("/etc/locked.conf")]

    def apply(self, ctx: TuningContext) -> List[MutationResult]:
        raise PermissionDenied(self.targets(ctx)[0], "cannot write: Permission denied")


def context(tmp_path: Path, mode=ExecutionMode.APPLY) -> TuningContext:
    return TuningContext(
        config=load_config(),
        facts=EnvironmentFacts(sysroot=tmp_path),
        controller=ExecutionController(mode),
    )


def test_failure_does_not_stop_later_modules(tmp_path):
    report = TuningRunner([ExplodingModule(), SysctlModule()]).run(context(tmp_path), run_id="t1")

    failed, sysctl = report.outcomes
    assert failed.failed
    assert failed.error == "cannot write: Permission denied"
    assert failed.error_path == tmp_path / "etc" / "locked.conf"
    assert not sysctl.failed
    assert sysctl.changed
    assert sysctl.followups == ["sysctl --system"]
    assert (tmp_path / "etc" / "sysctl.d" / "99-desktop-memory.conf").exists()
    assert report.run_id == "t1"
    assert report.reboot_recommended is False


def test_undecodable_file_fails_only_its_module(tmp_path):
    etc = tmp_path / "etc"
    (etc / "systemd").mkdir(parents=True)
    (etc / "pacman.conf").write_bytes(b"[options]\n# caf\xe9\n")
    (etc / "systemd" / "journald.conf").write_text("[Journal]\n#SystemMaxUse=\n")

    report = TuningRunner([PacmanModule(), JournaldModule()]).run(context(tmp_path))

    pacman, journald = report.outcomes
    assert pacman.failed
    assert "not valid UTF-8" in pacman.error
    assert pacman.error_path == etc / "pacman.conf"
    assert (etc / "pacman.conf").read_bytes() == b"[options]\n# caf\xe9\n"
    assert not journald.failed
    assert journald.changed


def test_skipped_module_is_reported(tmp_path):
    report = TuningRunner(select_modules([], only=["bootloader"])).run(context(tmp_path))

    (outcome,) = report.outcomes
    assert outcome.skipped_reason == "systemd-boot not detected"
    assert outcome.results == []


def test_unchanged_module_has_no_followups(tmp_path):
    conf = tmp_path / "etc" / "systemd" / "journald.conf"
    conf.parent.mkdir(parents=True)
    conf.write_text("[Journal]\nSystemMaxUse=256M\n")

    report = TuningRunner([JournaldModule()]).run(context(tmp_path))

    (outcome,) = report.outcomes
    assert not outcome.changed
    assert outcome.followups == []


def test_reboot_recommended_after_boot_change(tmp_path):
    conf = tmp_path / "etc" / "mkinitcpio.conf"
    conf.parent.mkdir(parents=True)
    conf.write_text("MODULES=()\nHOOKS=(base udev)\n")

    report = TuningRunner(select_modules([], only=["initramfs"])).run(context(tmp_path))

    assert report.reboot_recommended is True
    assert report.outcomes[0].followups == ["mkinitcpio -P"]


def test_select_modules():
    names = [m.name for m in select_modules(["pacman", "btrfs", "sysctl"], skip=["btrfs"])]
    assert names == ["pacman", "sysctl"]
    names = [m.name for m in select_modules(["pacman"], only=["journald", "makepkg"])]
    assert names == ["makepkg", "journald"]
