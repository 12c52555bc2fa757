from __future__ import annotations

import asyncio
import dataclasses
import logging
import signal

from notecard_service.indexing.cli import build_parser
from notecard_service.indexing.config import IndexConfig
from notecard_service.indexing.coordinator import IndexHandle, build_coordinator
from notecard_service.indexing.events import EventChannel, ProgressUpdate, TaskCompleted
from notecard_service.logging_config import generate_run_id, setup_logging

logger = logging.getLogger("notecard_service.indexing")


async def _log_progress(channel: EventChannel) -> None:
    async for event in channel:
        if isinstance(event, TaskCompleted):
            r = event.result
            if r.success:
                logger.debug("Done: %s", r.task_id)
            else:
                logger.warning("Failed: %s :: %s", r.task_id, r.error_message)
        elif isinstance(event, ProgressUpdate):
            s = event.status
            done = s.completed + s.failed
            if done:
                logger.info(
                    "Progress %d/%d (failed=%d, in_flight=%d)", done, s.total, s.failed, s.in_flight
                )
    if channel.dropped:
        logger.info("Progress channel dropped %d events", channel.dropped)


def _install_sigint(handle: IndexHandle) -> None:
    def _on_sigint() -> None:
        logger.warning("Interrupt received; cancelling after in-flight notes finish")
        handle.cancel()

    try:
        asyncio.get_running_loop().add_signal_handler(signal.SIGINT, _on_sigint)
    except NotImplementedError:
        # Windows event loops; Ctrl-C falls back to KeyboardInterrupt
        pass


async def _amain() -> int:
    parser = build_parser()
    args = parser.parse_args()

    run_id = generate_run_id()
    setup_logging(level=args.log_level.upper(), run_id=run_id)

    cfg = IndexConfig.from_env()

    # CLI overrides
    overrides: dict[str, object] = {}
    if args.concurrency and args.concurrency > 0:
        overrides["concurrency"] = args.concurrency
    if args.dry_run:
        overrides["dry_run_enabled"] = True
    if overrides:
        cfg = dataclasses.replace(cfg, **overrides)
    cfg.validate()

    directories = list(args.dir) or list(cfg.scan_directories)
    logger.info(
        "run_id=%s vault=%s provider=%s model=%s dirs=%s dry_run=%s",
        run_id,
        cfg.vault_root,
        cfg.provider,
        cfg.model,
        directories or ["/"],
        cfg.dry_run_enabled,
    )

    coordinator = build_coordinator(cfg)
    channel = EventChannel(cfg.channel_size)
    try:
        handle = await coordinator.start(
            directories,
            dry_run=cfg.dry_run_enabled,
            max_notes=int(args.max_notes or 0),
            concurrency=cfg.concurrency,
            channel=channel,
        )
        _install_sigint(handle)
        consumer = asyncio.create_task(_log_progress(channel))
        try:
            result = await handle.wait()
        finally:
            channel.close()
            await consumer
    finally:
        await coordinator.aclose()

    for err in result.errors:
        logger.error("FAILED %s :: %s", err.path, err.error)
    logger.info("DONE run_id=%s totals=%s cancelled=%s", run_id, result.as_dict(), result.cancelled)
    return 0 if result.failed_notes == 0 else 2


def main() -> None:
    raise SystemExit(asyncio.run(_amain()))


if __name__ == "__main__":
    main()
