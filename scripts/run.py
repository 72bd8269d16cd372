#!/usr/bin/env python3
"""Alerting service entrypoint: wires all components and runs the pipeline.

Usage::

    # Run with default config
    python scripts/run.py

    # Custom config file
    python scripts/run.py --config config/settings.yaml

    # Feed the pipeline with synthetic events
    python scripts/run.py --simulate

    # Override log level
    python scripts/run.py --log-level DEBUG
"""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys
from dataclasses import dataclass

import structlog

from src.api.app import create_app, start_api
from src.core.config import Settings, load_settings
from src.core.logging import setup_logging
from src.delivery.directory import StaticRecipientDirectory
from src.delivery.factory import create_delivery_stack
from src.delivery.metrics import DeliveryMetrics
from src.events.base import EventSource, QueueEventSource
from src.events.simulator import EventSimulator
from src.notifications.store import NotificationStore
from src.pipeline import AlertPipeline
from src.preferences.store import PreferenceStore
from src.rules.evaluator import RuleEvaluator
from src.rules.store import RuleStore

logger = structlog.get_logger(__name__)


@dataclass
class Components:
    rules: RuleStore
    preferences: PreferenceStore
    notifications: NotificationStore
    pipeline: AlertPipeline
    metrics: DeliveryMetrics
    ingest: QueueEventSource
    sources: list[EventSource]


async def build_components(settings: Settings, simulate: bool = False) -> Components:
    """Construct stores, delivery stack, pipeline and event sources."""
    rules = RuleStore()
    await rules.load(settings.rules)
    preferences = PreferenceStore()
    notifications = NotificationStore()

    dispatcher, metrics = create_delivery_stack(settings.channels, settings.dispatch)
    pipeline = AlertPipeline(
        evaluator=RuleEvaluator(rules),
        preferences=preferences,
        notifications=notifications,
        directory=StaticRecipientDirectory(settings.directory),
        dispatcher=dispatcher,
        metrics=metrics,
        store_retry=settings.store_retry,
    )

    ingest = QueueEventSource()
    sources: list[EventSource] = [ingest]
    if simulate or settings.simulator.enabled:
        sources.append(EventSimulator(
            interval_secs=settings.simulator.interval_secs,
            event_types=settings.simulator.event_types or None,
            seed=settings.simulator.seed,
        ))
    for source in sources:
        source.on_event(pipeline.on_event)

    return Components(
        rules=rules,
        preferences=preferences,
        notifications=notifications,
        pipeline=pipeline,
        metrics=metrics,
        ingest=ingest,
        sources=sources,
    )


async def run(args: argparse.Namespace) -> int:
    """Start all components and run until interrupted."""
    settings = load_settings(args.config)
    setup_logging(level=args.log_level)

    c = await build_components(settings, simulate=args.simulate)
    logger.info(
        "service_starting",
        rules=len(settings.rules),
        channels=sorted(
            name for name, cfg in settings.channels if getattr(cfg, "enabled", False)
        ),
        simulate=len(c.sources) > 1,
    )

    runner = None
    if settings.api.enabled:
        app = create_app(
            rules=c.rules,
            preferences=c.preferences,
            notifications=c.notifications,
            pipeline=c.pipeline,
            event_source=c.ingest,
            metrics=c.metrics,
            admin_token=settings.api.admin_token.get_secret_value(),
        )
        runner = await start_api(app, host=settings.api.host, port=settings.api.port)

    for source in c.sources:
        await source.start()

    # ── Wait for shutdown signal ─────────────────────────────────
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            pass  # Windows

    try:
        await stop_event.wait()
    except KeyboardInterrupt:
        logger.info("keyboard_interrupt")

    # ── Graceful shutdown ────────────────────────────────────────
    # API first so nothing is pushed once the ingest queue is flushed.
    logger.info("service_shutting_down")
    if runner is not None:
        await runner.cleanup()

    for source in c.sources:
        try:
            await source.stop()
        except Exception:
            logger.exception("event_source_stop_error", source=source.name)

    await c.pipeline.close()

    logger.info(
        "service_stopped",
        pipeline=c.pipeline.stats,
        delivery=c.metrics.summary(),
    )
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Run the alerting and notification service.",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to settings YAML (default: config/settings.yaml)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level override: DEBUG, INFO, WARNING, ERROR",
    )
    parser.add_argument(
        "--simulate",
        action="store_true",
        help="Generate random events with the built-in simulator",
    )
    args = parser.parse_args()

    code = asyncio.run(run(args))
    sys.exit(code)


if __name__ == "__main__":
    main()
