from __future__ import annotations

from pathlib import Path
from typing import List

from autotune.config import KeyFileSettings
from autotune.models import Directive, MutationResult
from autotune.modules.base import TuningContext, TuningModule

SYSCTL_HEADER = "# Desktop memory tuning (zram + swapfile), focused on low latency\n"


def key_directives(settings: KeyFileSettings, section: str | None = None) -> List[Directive]:
    return [Directive.assign(key, value, section=section) for key, value in settings.settings]


class SysctlModule(TuningModule):
    name = "sysctl"
    description = "vm.swappiness and vm.vfs_cache_pressure in a sysctl.d drop-in"
    followups = ("sysctl --system",)

    def targets(self, ctx: TuningContext) -> List[Path]:
        return [ctx.path(ctx.config.sysctl.path)]

    def apply(self, ctx: TuningContext) -> List[MutationResult]:
        (target,) = self.targets(ctx)
        return [
            ctx.controller.apply_directives(
                target, key_directives(ctx.config.sysctl), create=True, seed=SYSCTL_HEADER
            )
        ]


class JournaldModule(TuningModule):
    name = "journald"
    description = "SystemMaxUse in journald.conf"
    followups = ("systemctl restart systemd-journald.service",)

    def targets(self, ctx: TuningContext) -> List[Path]:
        return [ctx.path(ctx.config.journald.path)]

    def apply(self, ctx: TuningContext) -> List[MutationResult]:
        (target,) = self.targets(ctx)
        return [
            ctx.controller.apply_directives(
                target, key_directives(ctx.config.journald, section="Journal")
            )
        ]
