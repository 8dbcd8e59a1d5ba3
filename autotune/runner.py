from __future__ import annotations

import logging
from typing import Optional, Sequence

from autotune.errors import AutotuneError
from autotune.models import ModuleOutcome, RunReport
from autotune.modules.base import TuningContext, TuningModule
from autotune.utils import utc_now_iso

logger = logging.getLogger("autotune")


class TuningRunner:
    """Run modules one after another, best effort.

    A module that fails is recorded with its path and reason and the run
    moves on; mutations already made by earlier modules stay in place.
    """

    def __init__(self, modules: Sequence[TuningModule]) -> None:
        self.modules = list(modules)

    def run(self, ctx: TuningContext, run_id: Optional[str] = None) -> RunReport:
        started = utc_now_iso()
        report = RunReport(
            run_id=run_id or _run_id(started),
            mode=ctx.controller.mode,
            sysroot=ctx.facts.sysroot,
            started_at=started,
        )
        for module in self.modules:
            report.outcomes.append(self.run_module(module, ctx))
        report.reboot_recommended = any(
            outcome.changed and module.touches_boot
            for module, outcome in zip(self.modules, report.outcomes)
        )
        return report

    def run_module(self, module: TuningModule, ctx: TuningContext) -> ModuleOutcome:
        outcome = ModuleOutcome(module=module.name)
        reason = module.skip_reason(ctx)
        if reason:
            logger.warning("Skipping %s: %s", module.name, reason)
            outcome.skipped_reason = reason
            return outcome

        logger.debug("Running %s on %s", module.name, ", ".join(str(p) for p in module.targets(ctx)))
        try:
            outcome.results = module.apply(ctx)
        except AutotuneError as exc:
            logger.error("%s failed on %s: %s", module.name, exc.path, exc.reason)
            outcome.error = exc.reason
            outcome.error_path = exc.path
            return outcome

        if outcome.changed:
            outcome.followups = list(module.followups)
        return outcome


def _run_id(started: str) -> str:
    return started.replace(":", "").replace("-", "").split(".")[0]

