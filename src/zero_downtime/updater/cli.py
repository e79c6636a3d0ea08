"""CLI for the zero-downtime updater.

Provides command-line interface for applying updates and inspecting the
partition and update state.
"""

import asyncio
import json
import logging
import sys

import click

from zero_downtime.config import load_config
from zero_downtime.errors import ZeroDowntimeError
from zero_downtime.metadata.parser import extract_from_firmware
from zero_downtime.partition.booted import BootedPartition
from zero_downtime.partition.rotation import simulate_sequence
from zero_downtime.system.boot_env import UBootEnvironment
from zero_downtime.updater.orchestrator import (
    UpdateOptions,
    UpdateOrchestrator,
    UpdateResult,
    initialize_orchestrator,
)

logger = logging.getLogger(__name__)


def print_result(result: UpdateResult) -> None:
    """Print an update result."""
    if result.success:
        click.echo(f"✓ Update {result.outcome.value}: {result.from_version} -> {result.to_version}")
    else:
        click.echo(f"✗ Update failed in state {result.state.value}")

    if result.strategy:
        click.echo(f"  Strategy: {result.strategy.value}")
    if result.target_partition:
        click.echo(f"  Partition: {result.target_partition}")
    if result.reasons:
        click.echo(f"  Reasons: {', '.join(result.reasons)}")
    if result.error:
        click.echo(f"  Error: [{result.error.code}] {result.error.message}")
    for warning in result.warnings:
        click.echo(f"  Warning: {warning}")


async def finish(orchestrator: UpdateOrchestrator, result: UpdateResult) -> int:
    """Print a result, then wait for any reboot it scheduled."""
    print_result(result)

    if orchestrator.reboot_scheduler.scheduled:
        click.echo("  Rebooting...")
        await orchestrator.reboot_scheduler.wait()

    return 0 if result.success else 1


@click.group()
@click.option("--config", "config_path", type=click.Path(dir_okay=False), help="Configuration file")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx, config_path, verbose):
    """Zero-downtime firmware updater."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    ctx.obj = load_config(config_path)


@cli.command()
@click.argument("firmware")
@click.option("--force-reboot", is_flag=True, help="Always reboot, even if a live swap is possible")
@click.option("--dry-run", is_flag=True, help="Select a strategy without writing anything")
@click.option("--checksum", help="Expected SHA-256 of the firmware image")
@click.pass_obj
def apply(config, firmware, force_reboot, dry_run, checksum):
    """Apply a firmware update from a path or URL."""

    async def _apply():
        orchestrator = initialize_orchestrator(config)
        options = UpdateOptions(force_reboot=force_reboot, dry_run=dry_run, checksum=checksum)
        result = await orchestrator.apply_update(firmware, options)
        return await finish(orchestrator, result)

    sys.exit(asyncio.run(_apply()))


@cli.command("handle-upload")
@click.pass_obj
def handle_upload(config):
    """Bring a partition written by an uploader into service."""

    async def _handle():
        orchestrator = initialize_orchestrator(config)
        result = await orchestrator.handle_firmware_update()
        return await finish(orchestrator, result)

    sys.exit(asyncio.run(_handle()))


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Print as JSON")
@click.pass_obj
def status(config, as_json):
    """Show update status."""
    orchestrator = initialize_orchestrator(config)
    info = orchestrator.status()

    if as_json:
        click.echo(json.dumps(info, indent=2))
        return

    click.echo(f"Current version: {info['current_version']}")
    click.echo(f"Staged version: {info['staged_version']}")
    click.echo(f"Booted partition: {info['booted_partition']}")
    click.echo(f"Active partition: {info['active_partition']}")
    click.echo(f"Validated: {info['validated']}")
    click.echo(f"Pending swap: {info['pending_swap']}")
    click.echo(f"Last successful swap: {info['last_successful_swap']}")

    if info["recent_history"]:
        click.echo("Recent updates:")
        for record in info["recent_history"]:
            click.echo(
                f"  {record['timestamp']}  {record['from_version']} -> "
                f"{record['to_version']}  {record['outcome']}"
            )


@cli.command()
@click.option("--yes", is_flag=True, help="Skip confirmation prompt")
@click.pass_obj
def rollback(config, yes):
    """Re-apply the code of the recorded current version."""
    if not yes and not click.confirm("Roll back the running code to the recorded current version?"):
        click.echo("Rollback cancelled")
        sys.exit(0)

    async def _rollback():
        orchestrator = initialize_orchestrator(config)
        success = await orchestrator.rollback()

        if success:
            click.echo("✓ Rollback completed successfully")
            return 0

        click.echo("✗ Rollback failed")
        if orchestrator.reboot_scheduler.scheduled:
            click.echo("  Rebooting...")
            await orchestrator.reboot_scheduler.wait()
        return 1

    sys.exit(asyncio.run(_rollback()))


@cli.command()
@click.pass_obj
def reboot(config):
    """Reboot into the partition the boot pointer targets."""

    async def _reboot():
        orchestrator = initialize_orchestrator(config)
        orchestrator.reboot_to_new_partition()
        await orchestrator.reboot_scheduler.wait()
        return 0

    sys.exit(asyncio.run(_reboot()))


@cli.command()
@click.pass_obj
def validate(config):
    """Validate the running firmware and mark it validated."""

    async def _validate():
        orchestrator = initialize_orchestrator(config)
        try:
            result = await orchestrator.validate_current()
        except ZeroDowntimeError as e:
            logger.error(f"Validation failed: {e}")
            return 1

        if result.passed:
            click.echo("✓ Firmware validated")
            return 0

        click.echo(f"✗ Validation failed: {result.failed_check}: {result.reason}")
        return 1

    sys.exit(asyncio.run(_validate()))


@cli.command("init-booted")
@click.pass_obj
def init_booted(config):
    """Record the booted partition in the boot environment."""
    boot_env = UBootEnvironment(config.fw_printenv, config.fw_setenv)
    booted = BootedPartition(boot_env, config.device_map, config.cmdline_path)

    if booted.initialize():
        click.echo(f"✓ Booted partition: {boot_env.booted_partition()}")
        sys.exit(0)

    click.echo("✗ Could not determine booted partition")
    sys.exit(1)


@cli.command()
@click.argument("booted", type=click.Choice(["a", "b", "c"]))
@click.argument("upgrades", type=click.IntRange(min=0))
def simulate(booted, upgrades):
    """Show the boot pointer across consecutive upgrades without reboots."""
    sequence = simulate_sequence(booted, upgrades)
    click.echo(" -> ".join(p.value for p in sequence))


@cli.command()
@click.argument("firmware", type=click.Path(exists=True, dir_okay=False))
@click.pass_obj
def analyze(config, firmware):
    """Compare a firmware image against the running system."""
    orchestrator = initialize_orchestrator(config)

    try:
        candidate = extract_from_firmware(firmware)
        current = orchestrator.current_metadata()
    except ZeroDowntimeError as e:
        logger.error(f"Analysis failed: {e}")
        sys.exit(1)

    verdict = orchestrator.analyzer.analyze(current, candidate)
    report = {
        "current_version": current.version,
        "candidate_version": candidate.version,
        "swap_capable": candidate.swap_capable,
        **verdict.to_dict()
    }
    click.echo(json.dumps(report, indent=2))


if __name__ == "__main__":
    cli()
