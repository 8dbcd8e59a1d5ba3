from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from autotune.config import BtrfsSettings
from autotune.engine.records import RecordTransformer
from autotune.environment import ROLE_SECONDARY, detect_role, role_for_mount
from autotune.models import MutationResult, OptionRules, RoleRule
from autotune.modules.base import TuningContext, TuningModule

SINGLE_VALUED_PREFIXES = ("compress=", "commit=")


def btrfs_option_rules(settings: BtrfsSettings) -> OptionRules:
    """Mount options for btrfs records.

    Secondary volumes get ``nofail`` and a short device timeout so a missing
    disk cannot hold up boot; root, /boot and /home must never carry them.
    """
    keep_required = RoleRule(remove=settings.secondary_options)
    role_rules = {role_for_mount(mount): keep_required for mount in settings.primary_mounts}
    role_rules[ROLE_SECONDARY] = RoleRule(add=settings.secondary_options)
    return OptionRules(
        strip_prefixes=SINGLE_VALUED_PREFIXES,
        force_add=settings.base_options
        + (f"compress={settings.compress}", f"commit={settings.commit}"),
        role_rules=role_rules,
        placeholder="defaults",
    )


class BtrfsModule(TuningModule):
    name = "btrfs"
    description = "Mount options of btrfs entries in /etc/fstab"
    followups = ("reboot (or remount) to use the new btrfs mount options",)
    touches_boot = True

    def skip_reason(self, ctx: TuningContext) -> Optional[str]:
        if ctx.facts.root_fstype != "btrfs":
            return f"root filesystem is {ctx.facts.root_fstype or 'unknown'}, not btrfs"
        return None

    def targets(self, ctx: TuningContext) -> List[Path]:
        return [ctx.path(ctx.config.btrfs.fstab)]

    def transformer(self, settings: BtrfsSettings) -> RecordTransformer:
        return RecordTransformer(
            field_count=settings.record_fields,
            type_filter="btrfs",
            role_fn=lambda target: detect_role(target, settings.primary_mounts),
            rules=btrfs_option_rules(settings),
        )

    def apply(self, ctx: TuningContext) -> List[MutationResult]:
        (target,) = self.targets(ctx)
        return [ctx.controller.transform_records(target, self.transformer(ctx.config.btrfs))]
