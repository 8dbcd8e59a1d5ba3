from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List

from autotune.models import ExecutionMode, ModuleOutcome, MutationResult, RunReport
from autotune.utils import write_text


class ReportWriter:
    def to_dict(self, report: RunReport) -> Dict[str, Any]:
        return {
            "run_id": report.run_id,
            "mode": report.mode.value,
            "sysroot": str(report.sysroot),
            "started_at": report.started_at,
            "reboot_recommended": report.reboot_recommended,
            "modules": [self._outcome_dict(o) for o in report.outcomes],
        }

    def to_json(self, report: RunReport) -> str:
        return json.dumps(self.to_dict(report), indent=2, ensure_ascii=True)

    def to_markdown(self, report: RunReport, show_diffs: bool = True) -> str:
        title = "Dry run" if report.mode is ExecutionMode.SIMULATE else "Run"
        lines = [f"# cachyos-autotune {title} {report.run_id}", ""]

        by_state = self._group_by_state(report.outcomes)
        for state in ["failed", "changed", "unchanged", "skipped"]:
            items = by_state.get(state, [])
            if not items:
                continue
            lines.append(f"## {state.upper()} ({len(items)})")
            for outcome in items:
                lines.extend(self._outcome_lines(outcome, show_diffs))
            lines.append("")

        followups = [f for o in report.outcomes for f in o.followups]
        if followups:
            lines.append("## Next steps")
            lines.extend(f"- {f}" for f in followups)
            lines.append("")

        return "\n".join(lines)

    def write(self, path: Path, content: str) -> None:
        write_text(path, content)

    def _outcome_lines(self, outcome: ModuleOutcome, show_diffs: bool) -> List[str]:
        if outcome.failed:
            return [f"- **{outcome.module}**: {outcome.error_path}: {outcome.error}"]
        if outcome.skipped_reason:
            return [f"- **{outcome.module}**: {outcome.skipped_reason}"]

        lines = [f"- **{outcome.module}**"]
        for result in outcome.results:
            line = f"  - {result.path}: {result.status.value}"
            if result.detail:
                line += f" ({result.detail})"
            if result.backup_path is not None:
                line += f", backup {result.backup_path}"
            lines.append(line)
            if show_diffs and result.simulated_diff:
                lines.append("")
                lines.append("```diff")
                lines.append(result.simulated_diff)
                lines.append("```")
        return lines

    def _outcome_dict(self, outcome: ModuleOutcome) -> Dict[str, Any]:
        return {
            "module": outcome.module,
            "changed": outcome.changed,
            "skipped_reason": outcome.skipped_reason,
            "error": outcome.error,
            "error_path": str(outcome.error_path) if outcome.error_path else None,
            "followups": outcome.followups,
            "mutations": [self._result_dict(r) for r in outcome.results],
        }

    def _result_dict(self, result: MutationResult) -> Dict[str, Any]:
        return {
            "path": str(result.path),
            "status": result.status.value,
            "changed": result.changed,
            "backup_path": str(result.backup_path) if result.backup_path else None,
            "simulated_diff": result.simulated_diff,
            "detail": result.detail,
        }

    def _group_by_state(self, outcomes: List[ModuleOutcome]) -> Dict[str, List[ModuleOutcome]]:
        by_state: Dict[str, List[ModuleOutcome]] = {}
        for outcome in outcomes:
            if outcome.failed:
                state = "failed"
            elif outcome.skipped_reason:
                state = "skipped"
            elif outcome.changed:
                state = "changed"
            else:
                state = "unchanged"
            by_state.setdefault(state, []).append(outcome)
        return by_state
