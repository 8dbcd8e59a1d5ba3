from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Sequence

from autotune.config import BootloaderSettings, InitramfsSettings
from autotune.models import Directive, MutationResult, OptionRules
from autotune.modules.base import TuningContext, TuningModule


def shell_array(items: Sequence[str], quote: bool = False) -> str:
    if quote:
        items = [f'"{item}"' for item in items]
    return "(" + " ".join(items) + ")"


class InitramfsModule(TuningModule):
    name = "initramfs"
    description = "MODULES, HOOKS and zstd compression in mkinitcpio.conf"
    followups = ("mkinitcpio -P",)
    touches_boot = True

    def targets(self, ctx: TuningContext) -> List[Path]:
        return [ctx.path(ctx.config.initramfs.path)]

    def directives(self, settings: InitramfsSettings, has_nvidia: bool) -> List[Directive]:
        modules = list(settings.modules)
        if has_nvidia:
            modules.extend(m for m in settings.nvidia_modules if m not in modules)
        return [
            Directive.assign("MODULES", shell_array(modules)),
            Directive.assign("HOOKS", shell_array(settings.hooks)),
            Directive.assign("COMPRESSION", f'"{settings.compression}"'),
            Directive.assign("COMPRESSION_OPTIONS", shell_array(settings.compression_options, quote=True)),
        ]

    def apply(self, ctx: TuningContext) -> List[MutationResult]:
        (target,) = self.targets(ctx)
        directives = self.directives(ctx.config.initramfs, ctx.facts.has_nvidia)
        return [ctx.controller.apply_directives(target, directives)]


class BootloaderModule(TuningModule):
    """Kernel command line of every systemd-boot entry.

    Existing tokens, root= and rootflags= included, keep their order; missing
    ones are appended.
    """

    name = "bootloader"
    description = "Kernel options on the 'options' line of systemd-boot entries"
    followups = ("bootctl update",)
    touches_boot = True

    def skip_reason(self, ctx: TuningContext) -> Optional[str]:
        if not ctx.facts.systemd_boot:
            return "systemd-boot not detected"
        if not ctx.facts.boot_entries:
            return "no .conf entries in the boot loader entries directory"
        return None

    def targets(self, ctx: TuningContext) -> List[Path]:
        return list(ctx.facts.boot_entries)

    def rules(self, settings: BootloaderSettings, has_nvidia: bool) -> OptionRules:
        options = settings.options
        if has_nvidia:
            options = options + settings.nvidia_options
        return OptionRules(force_add=options, delimiter=" ", sort=False)

    def apply(self, ctx: TuningContext) -> List[MutationResult]:
        rules = self.rules(ctx.config.bootloader, ctx.facts.has_nvidia)
        return [
            ctx.controller.rewrite_option_line(entry, "options", rules)
            for entry in self.targets(ctx)
        ]
