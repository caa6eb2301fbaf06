"""Escalation sweep CLI — ``triage-escalation-sweep``.

Connects to the case database and runs the escalation scheduler, either
once (for cron) or as a long-running loop.

Examples::

    # One sweep, then exit
    triage-escalation-sweep --once

    # Sweep every 30 seconds and publish queue statistics after each sweep
    triage-escalation-sweep --interval 30 --publish-stats

Backup supervisors listed in ``ESCALATION_BACKUPS_*`` are treated as
available.  Notifications are POSTed to ``NOTIFICATION_WEBHOOK_URL`` when it
is set, and only logged otherwise.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from triage_core.config import TriageSettings, load_settings
from triage_core.models.case import SweepReport
from triage_core.notifications import SupervisorNotifier
from triage_core.policy import EscalationPolicyTable
from triage_core.queue import ValidationQueue
from triage_core.roster import StaticSupervisorRoster
from triage_core.scheduler import EscalationScheduler

logger = logging.getLogger(__name__)


async def run_sweeps(
    settings: TriageSettings,
    *,
    once: bool = False,
    interval: float | None = None,
    publish_stats: bool = False,
    create_tables: bool = False,
) -> SweepReport | None:
    """Build the scheduler from *settings* and run one sweep or the loop.

    Returns the report of the single sweep when *once* is set.
    """
    # Lazy imports to avoid loading DB machinery at module import time
    from triage_store.engine import create_schema, dispose_engine, get_session_factory
    from triage_store.store import SqlCaseStore

    store = SqlCaseStore(get_session_factory())
    queue = ValidationQueue(store, average_service_minutes=settings.average_service_minutes)
    notifier = SupervisorNotifier.from_settings(settings)
    scheduler = EscalationScheduler(
        store,
        queue,
        EscalationPolicyTable.from_settings(settings),
        notifier,
        StaticSupervisorRoster.from_settings(settings),
        cooldown_minutes=settings.escalation_cooldown_minutes,
    )

    async def after_sweep(report: SweepReport) -> None:
        if publish_stats:
            await notifier.send_queue_status_update(await queue.statistics())

    try:
        if create_tables:
            await create_schema()
        if once:
            report = await scheduler.check_for_timeout_escalations()
            await after_sweep(report)
            return report
        await scheduler.run_forever(
            interval if interval is not None else settings.sweep_interval_seconds,
            after_sweep=after_sweep,
        )
        return None
    finally:
        await dispose_engine()


def cli() -> None:
    """Console-script entry point: ``triage-escalation-sweep``."""
    settings = load_settings()

    parser = argparse.ArgumentParser(
        prog="triage-escalation-sweep",
        description="Escalate triage cases that waited too long for validation.",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        default=False,
        help="Run a single sweep and exit",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help=(
            "Seconds between sweeps "
            "(default: $ESCALATION_SWEEP_INTERVAL_SECONDS, or 60)"
        ),
    )
    parser.add_argument(
        "--publish-stats",
        action="store_true",
        default=False,
        help="Publish a queue status update after each sweep",
    )
    parser.add_argument(
        "--create-schema",
        action="store_true",
        default=False,
        help="Create the triage_cases table first if it does not exist",
    )
    parser.add_argument(
        "--log-level",
        default=settings.log_level,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: $TRIAGE_LOG_LEVEL, or INFO)",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    try:
        report = asyncio.run(
            run_sweeps(
                settings,
                once=args.once,
                interval=args.interval,
                publish_stats=args.publish_stats,
                create_tables=args.create_schema,
            )
        )
    except KeyboardInterrupt:
        logger.info("Interrupted")
        sys.exit(130)

    if report is not None:
        print(
            f"Escalated: {report.escalated}, "
            f"failed cases: {len(report.failed_cases)}, "
            f"failed tiers: {len(report.failed_tiers)}"
        )
        sys.exit(1 if report.failed_tiers or report.failed_cases else 0)
    sys.exit(0)
