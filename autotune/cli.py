from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List, Optional

import typer
import yaml

from autotune.config import KNOWN_MODULES, TuningConfig, load_config
from autotune.engine import ExecutionController
from autotune.environment import EnvironmentScanner
from autotune.errors import ConfigError
from autotune.models import ExecutionMode
from autotune.modules import TuningContext, all_modules, select_modules
from autotune.report.writer import ReportWriter
from autotune.runner import TuningRunner
from autotune.storage.backup import BackupManager

logger = logging.getLogger("autotune")

app = typer.Typer(no_args_is_help=True)

BANNER = "CachyOS AutoTune: safe, idempotent system tuning"

REPORT_FORMATS = ("md", "json")


@app.callback()
def _main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    typer.echo(BANNER, err=True)
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def _parse_modules(modules: str) -> List[str]:
    """Parse comma-separated module names. Returns empty list if none specified."""
    if not modules:
        return []
    parsed = [m.strip() for m in modules.split(",") if m.strip()]
    for name in parsed:
        if name not in KNOWN_MODULES:
            typer.echo(f"Unknown module: {name}. Available: {', '.join(KNOWN_MODULES)}", err=True)
            raise typer.Exit(code=2)
    return parsed


def _load(config: Optional[Path], minimal: bool) -> TuningConfig:
    try:
        return load_config(config, minimal=minimal)
    except ConfigError as exc:
        typer.echo(f"Invalid configuration: {exc}", err=True)
        raise typer.Exit(code=1)


@app.command()
def run(
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Show what would change without writing anything"
    ),
    minimal: bool = typer.Option(False, "--minimal", help="Only the package-manager modules"),
    no_reboot: bool = typer.Option(False, "--no-reboot", help="Do not print the reboot reminder"),
    config: Optional[Path] = typer.Option(
        None, "--config", help="YAML file merged over the built-in defaults"
    ),
    root: Path = typer.Option(
        Path("/"), "--root", help="Tune the system mounted at this path instead of the running one"
    ),
    only: str = typer.Option("", help="Comma-separated modules to run (ignores the module switches)"),
    skip: str = typer.Option("", help="Comma-separated modules to leave out"),
    user: Optional[str] = typer.Option(None, help="Target user for per-user files (default: detected)"),
    nvidia: Optional[bool] = typer.Option(
        None, "--nvidia/--no-nvidia", help="Override NVIDIA GPU detection"
    ),
    report_format: str = typer.Option("md", "--report-format", help="md|json"),
    report: Optional[Path] = typer.Option(None, help="Also write the JSON report to this file"),
) -> None:
    """Apply (or with --dry-run, preview) every enabled tuning module."""
    if report_format not in REPORT_FORMATS:
        typer.echo(f"--report-format must be one of: {', '.join(REPORT_FORMATS)}", err=True)
        raise typer.Exit(code=2)

    live = root.resolve() == Path("/")
    if live and not dry_run and os.geteuid() != 0:
        typer.echo("Run as root: sudo autotune run (or preview with --dry-run)", err=True)
        raise typer.Exit(code=1)

    cfg = _load(config, minimal)
    only_list = _parse_modules(only)
    skip_list = _parse_modules(skip)

    mode = ExecutionMode.SIMULATE if dry_run else ExecutionMode.APPLY
    facts = EnvironmentScanner().scan(
        root, user=user, has_nvidia=nvidia, entries_dir=cfg.bootloader.entries_dir
    )
    logger.info(
        "Target user %s (%s), root fs %s, nvidia=%s, systemd-boot=%s",
        facts.user,
        facts.home,
        facts.root_fstype,
        facts.has_nvidia,
        facts.systemd_boot,
    )
    typer.echo(f"target user: {facts.user or '-'} ({facts.home or '-'})")
    typer.echo(f"mode: {mode.value}")

    controller = ExecutionController(mode, BackupManager(mode, suffix=cfg.backup_suffix))
    ctx = TuningContext(config=cfg, facts=facts, controller=controller)
    modules = select_modules(sorted(cfg.enabled_modules), only_list, skip_list)
    if not modules:
        typer.echo("No modules selected.")
        return

    run_report = TuningRunner(modules).run(ctx)

    writer = ReportWriter()
    if report_format == "json":
        typer.echo(writer.to_json(run_report))
    else:
        typer.echo(writer.to_markdown(run_report))
    if report is not None:
        writer.write(report, writer.to_json(run_report))

    if run_report.reboot_recommended and mode is ExecutionMode.APPLY and not no_reboot:
        typer.echo("Boot, initramfs and fstab changes take full effect after a reboot.")
        typer.echo("Reboot when convenient.")


@app.command(name="list-modules")
def list_modules(
    config: Optional[Path] = typer.Option(None, "--config", help="YAML configuration file"),
    minimal: bool = typer.Option(False, "--minimal", help="Show the --minimal selection"),
) -> None:
    """List tuning modules and whether the configuration enables them."""
    cfg = _load(config, minimal)
    for module in all_modules():
        state = "on " if cfg.enabled(module.name) else "off"
        typer.echo(f"[{state}] {module.name:<11} {module.description}")


@app.command(name="show-config")
def show_config(
    config: Optional[Path] = typer.Option(None, "--config", help="YAML configuration file"),
    minimal: bool = typer.Option(False, "--minimal", help="Apply the --minimal selection"),
) -> None:
    """Print the effective configuration as YAML."""
    cfg = _load(config, minimal)
    typer.echo(yaml.safe_dump(cfg.to_dict(), sort_keys=False), nl=False)
