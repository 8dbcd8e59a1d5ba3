from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from autotune.config import MakepkgSettings, PacmanSettings
from autotune.models import Directive, MutationResult
from autotune.modules.base import TuningContext, TuningModule

MAKEPKG_HEADER = (
    "# ~/.makepkg.conf: local overrides (generated by cachyos-autotune)\n"
    "# parallel builds and fast package compression\n"
)


class PacmanModule(TuningModule):
    name = "pacman"
    description = "ParallelDownloads and output flags in pacman.conf"

    def targets(self, ctx: TuningContext) -> List[Path]:
        return [ctx.path(ctx.config.pacman.path)]

    def directives(self, settings: PacmanSettings) -> List[Directive]:
        directives = [
            Directive.assign(
                "ParallelDownloads", str(settings.parallel_downloads), " = ", section="options"
            )
        ]
        directives.extend(Directive.bare(flag, section="options") for flag in settings.flags)
        return directives

    def apply(self, ctx: TuningContext) -> List[MutationResult]:
        (target,) = self.targets(ctx)
        return [ctx.controller.apply_directives(target, self.directives(ctx.config.pacman))]


class MakepkgModule(TuningModule):
    """Per-user build flags; the file is created for the user when missing."""

    name = "makepkg"
    description = "MAKEFLAGS and COMPRESSZST in the target user's ~/.makepkg.conf"

    def skip_reason(self, ctx: TuningContext) -> Optional[str]:
        if ctx.facts.home is None:
            return "no target user detected"
        return None

    def targets(self, ctx: TuningContext) -> List[Path]:
        if ctx.facts.home is None:
            return []
        return [ctx.path(ctx.facts.home / ctx.config.makepkg.filename)]

    def directives(self, settings: MakepkgSettings, cpu_count: int) -> List[Directive]:
        jobs = settings.jobs or cpu_count
        return [
            Directive.assign("MAKEFLAGS", f'"-j{jobs}"'),
            Directive.assign("COMPRESSZST", settings.compress_zst),
        ]

    def apply(self, ctx: TuningContext) -> List[MutationResult]:
        (target,) = self.targets(ctx)
        directives = self.directives(ctx.config.makepkg, ctx.facts.cpu_count)
        owner = None
        if ctx.facts.uid is not None and ctx.facts.gid is not None:
            owner = (ctx.facts.uid, ctx.facts.gid)

        return [
            ctx.controller.apply_directives(
                target, directives, create=True, owner=owner, seed=MAKEPKG_HEADER
            )
        ]
