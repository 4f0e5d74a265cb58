import json
import logging
import sys
from uuid import UUID

import click
from sqlmodel import Session

from core.config import settings
from core.db import create_db_engine
from log import setup_logging_to_console, setup_logging_to_file
from notifications import telegram_bot
from services.distribution_recorder import DistributionRecorder
from services.merkle_tree import (
    RewardEntry,
    build_merkle_tree,
    export_distribution,
    import_distribution,
    to_pubkey,
)
from services.rate_limit_service import RateLimitService
from services.reward_distribution_service import RewardDistributionService, build_summary
from services.yap_program_service import create_program_service
from utils.extension_utils import to_amount

logger = logging.getLogger("reward_distribution_job")


def load_distribution(recorder: DistributionRecorder, distribution_id: str):
    try:
        distribution_uuid = UUID(distribution_id)
    except ValueError:
        raise click.BadParameter(f"{distribution_id} is not a UUID", param_hint="--distribution-id")
    distribution = recorder.get_distribution(distribution_uuid)
    if distribution is None:
        raise click.ClickException(f"Distribution {distribution_id} not found")
    return distribution


def rebuild_tree(recorder: DistributionRecorder, distribution):
    rewards = recorder.get_distribution_rewards(distribution.id)
    tree = build_merkle_tree(
        RewardEntry(wallet=to_pubkey(r.wallet_address), amount=to_amount(r.amount))
        for r in rewards
    )
    if tree.root_hex != distribution.merkle_root:
        raise click.ClickException(
            f"Rebuilt root {tree.root_hex} does not match stored root {distribution.merkle_root}"
        )
    return tree


def run_distribution(session: Session, notifier=telegram_bot.send_alert_sync) -> dict:
    program = create_program_service()
    recorder = DistributionRecorder(
        session, program, confirm_timeout=settings.SOLANA_CONFIRM_TIMEOUT_SECONDS
    )
    service = RewardDistributionService(
        session,
        rate_limit=RateLimitService(program),
        recorder=recorder,
        notifier=notifier,
    )
    outcome = service.run()
    return build_summary(outcome).model_dump(mode="json", by_alias=True)


@click.group(invoke_without_command=True)
@click.pass_context
def cli(ctx):
    """YAP Reward Distribution Job CLI."""
    ctx.ensure_object(dict)
    if "engine" not in ctx.obj:
        ctx.obj["engine"] = create_db_engine()
    if ctx.invoked_subcommand is None:
        ctx.invoke(run)


@cli.command()
@click.pass_context
def run(ctx):
    """Run one daily distribution cycle."""
    with Session(ctx.obj["engine"]) as session:
        try:
            summary = run_distribution(session)
        except Exception as e:
            logger.error(f"Daily distribution failed: {e}", exc_info=True)
            telegram_bot.send_alert_sync(
                f"<b>YAP distribution failed</b>\n{e}", channel="error"
            )
            sys.exit(1)
    click.echo(json.dumps(summary, indent=2))


@cli.command()
@click.option("--distribution-id", required=True, help="Distribution to submit onchain")
@click.pass_context
def resubmit(ctx, distribution_id: str):
    """Submit the root of a persisted distribution that never landed onchain."""
    with Session(ctx.obj["engine"]) as session:
        recorder = DistributionRecorder(
            session,
            create_program_service(),
            confirm_timeout=settings.SOLANA_CONFIRM_TIMEOUT_SECONDS,
        )
        distribution = load_distribution(recorder, distribution_id)
        if distribution.submitted_at is not None:
            raise click.ClickException(
                f"Distribution {distribution_id} already submitted in {distribution.submit_tx}"
            )

        rebuild_tree(recorder, distribution)
        result = recorder.submit_root(distribution)
        if not result.submitted:
            raise click.ClickException(f"Submission failed: {result.error}")
    click.echo(f"Submitted distribution {distribution_id}: {result.submit_tx}")


@cli.command("verify-root")
@click.option("--distribution-id", required=True)
@click.pass_context
def verify_root(ctx, distribution_id: str):
    """Compare a persisted root with the program config account."""
    with Session(ctx.obj["engine"]) as session:
        recorder = DistributionRecorder(session)
        distribution = load_distribution(recorder, distribution_id)
        matches = create_program_service().verify_merkle_root(
            bytes.fromhex(distribution.merkle_root)
        )
    if not matches:
        raise click.ClickException(
            f"Onchain root does not match distribution {distribution_id}"
        )
    click.echo(f"Onchain root matches {distribution.merkle_root}")


@cli.command()
@click.option("--distribution-id", required=True)
@click.option("--output", required=True, type=click.Path(dir_okay=False, writable=True))
@click.pass_context
def export(ctx, distribution_id: str, output: str):
    """Write a distribution's root and entries as JSON."""
    with Session(ctx.obj["engine"]) as session:
        recorder = DistributionRecorder(session)
        distribution = load_distribution(recorder, distribution_id)
        tree = rebuild_tree(recorder, distribution)

    with open(output, "w") as f:
        json.dump(export_distribution(tree), f, indent=2)
    click.echo(f"Exported {len(tree.entries)} entries to {output}")


@cli.command("import-check")
@click.option("--input", "input_path", required=True, type=click.Path(exists=True, dir_okay=False))
def import_check(input_path: str):
    """Rebuild an exported distribution and check its root."""
    with open(input_path) as f:
        data = json.load(f)
    try:
        tree = import_distribution(data)
    except (KeyError, ValueError) as e:
        raise click.ClickException(f"Invalid distribution file: {e}")
    click.echo(f"Root {tree.root_hex} verified for {len(tree.entries)} entries")


if __name__ == "__main__":
    setup_logging_to_console()
    setup_logging_to_file(app="reward_distribution_job", level=logging.INFO, logger=logger)
    cli()
