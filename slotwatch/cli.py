"""
@file cli.py
@brief Command-line interface for slotwatch.
"""

from __future__ import annotations

import argparse
import json
import os
import sys
import time
from datetime import datetime
from typing import Any, Dict, List, Optional

from .actionlogger import ACTION_LOGGER
from .classifier import ScreenClassifier
from .config import MonitorConfig, load_config
from .element import load_snapshot
from .events import StateChangeEvent
from .exceptions import ConfigError, SlotWatchError
from .logsetup import setup_logging
from .reporter import AlertDeduplicator, OutcomeReporter
from .router import is_safe_to_automate, route
from .service import MonitorService, Trigger
from .simulator import ScriptedDevice, VirtualClock
from .stats import StatsRepository
from .telegram import TelegramNotifier


def _configure_action_logger_from_env() -> None:
    """Configure action logging from environment variables."""
    enabled = os.getenv("SLOTWATCH_ACTION_LOGGING", "").lower() in {"1", "true", "yes", "on"}
    if not enabled:
        ACTION_LOGGER.disable()
        return

    log_file = os.getenv("SLOTWATCH_ACTION_LOG_FILE")
    level = os.getenv("SLOTWATCH_ACTION_LOG_LEVEL", "INFO")
    fmt = os.getenv("SLOTWATCH_ACTION_LOG_FORMAT", "line")
    max_tb_chars = int(os.getenv("SLOTWATCH_ACTION_LOG_MAX_TRACEBACK", "4000"))
    ACTION_LOGGER.configure(
        console=True,
        file_path=log_file,
        level=level,
        format=fmt,
        max_traceback_chars=max_tb_chars,
    )
    ACTION_LOGGER.enable()


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


def _build_reporter(cfg: MonitorConfig) -> OutcomeReporter:
    notifier = TelegramNotifier(cfg.alerts.bot_token, cfg.alerts.chat_id)
    return OutcomeReporter(
        cfg.target.location_name,
        cfg.target.task_name,
        stats=StatsRepository(cfg.stats.db_path),
        notifier=notifier,
        deduplicator=AlertDeduplicator(cfg.alerts.heartbeat_hours, cfg.alerts.state_path),
    )


def simulate(cfg: MonitorConfig, device: ScriptedDevice, max_ticks: int = 500, step: float = 0.5) -> Dict[str, Any]:
    """
    Run one monitoring cycle against a scripted device on a virtual clock.

    @return Mapping with the outcome (or None), final state, tick count and action journal
    """
    clock = VirtualClock()
    wall_start = time.time()
    service = MonitorService(
        cfg,
        device,
        device,
        clock=clock,
        wall_clock=lambda: wall_start + clock(),
    )
    service.start(threaded=False)
    ticks = 0
    try:
        while ticks < max_ticks:
            service.dispatch(Trigger.TICK)
            ticks += 1
            if service.machine.last_outcome is not None:
                break
            clock.advance(step)
    finally:
        final_state = service.machine.state.value
        service.stop()

    outcome = service.machine.last_outcome
    return {
        "outcome": outcome.to_dict() if outcome is not None else None,
        "final_state": final_state,
        "ticks": ticks,
        "virtual_seconds": clock(),
        "journal": list(device.journal),
    }


def _format_record_time(timestamp_ms: int) -> str:
    return datetime.fromtimestamp(timestamp_ms / 1000).strftime("%Y-%m-%d %H:%M:%S")


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    argv = argv if argv is not None else sys.argv[1:]
    _configure_action_logger_from_env()

    p = argparse.ArgumentParser(
        prog="slotwatch",
        description="slotwatch - availability monitor for a mobile scheduling app",
    )
    p.add_argument("--log-level", default=None, help="Diagnostic log level (default: SLOTWATCH_LOG_LEVEL or INFO)")
    p.add_argument("--log-file", default=None, help="Optional diagnostic log file")
    sub = p.add_subparsers(dest="cmd", required=True)

    # -------------------------
    # validate
    # -------------------------
    valp = sub.add_parser("validate", help="Validate a monitor configuration file")
    valp.add_argument("--config", "-c", required=True, help="Path to config YAML")

    # -------------------------
    # classify
    # -------------------------
    clsp = sub.add_parser("classify", help="Classify a saved snapshot (YAML/JSON tree or uiautomator XML)")
    clsp.add_argument("--config", "-c", required=True, help="Path to config YAML")
    clsp.add_argument("--snapshot", "-s", required=True, help="Path to snapshot file")

    # -------------------------
    # simulate
    # -------------------------
    simp = sub.add_parser("simulate", help="Run one cycle against a scripted device")
    simp.add_argument("--config", "-c", required=True, help="Path to config YAML")
    simp.add_argument("--device", "-d", required=True, help="Path to device script YAML")
    simp.add_argument("--max-ticks", type=int, default=500, help="Tick limit (default: 500)")
    simp.add_argument("--step", type=float, default=0.5, help="Virtual seconds between ticks (default: 0.5)")

    # -------------------------
    # run
    # -------------------------
    runp = sub.add_parser("run", help="Monitor a device over adb until interrupted")
    runp.add_argument("--config", "-c", required=True, help="Path to config YAML")
    runp.add_argument("--serial", default=None, help="adb device serial")

    # -------------------------
    # stats
    # -------------------------
    statp = sub.add_parser("stats", help="Show check statistics")
    statp.add_argument("--db", default="slotwatch.db", help="Path to stats database")
    statp.add_argument("--recent", type=int, default=10, help="Number of recent records to list")
    statp.add_argument("--clear", action="store_true", help="Delete all records")

    args = p.parse_args(argv)
    setup_logging(level=args.log_level, log_file=args.log_file)

    # -------------------------
    # Execute commands
    # -------------------------

    if args.cmd == "validate":
        try:
            cfg = load_config(args.config)
        except ConfigError as e:
            print(f"[INVALID] {args.config}\n{e}", file=sys.stderr)
            return 2
        print(f"[VALID] {args.config}")
        print(f"  Location: {cfg.target.location_name}")
        print(f"  Task: {cfg.target.task_name}")
        print(f"  Alerts: {'telegram' if cfg.alerts.telegram_configured else 'disabled'}")
        return 0

    if args.cmd == "classify":
        try:
            cfg = load_config(args.config)
            snapshot = load_snapshot(args.snapshot)
        except SlotWatchError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        classifier = ScreenClassifier(cfg.target.location_name, cfg.target.task_name, cfg.labels)
        result = classifier.classify(snapshot)
        _print_json({
            **result.to_dict(),
            "route": route(result).value,
            "safe_to_automate": is_safe_to_automate(result),
            "scores": [r.to_dict() for r in classifier.score_all(snapshot)],
        })
        return 0

    if args.cmd == "simulate":
        try:
            cfg = load_config(args.config)
            device = ScriptedDevice.load(args.device)
        except SlotWatchError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        result = simulate(cfg, device, max_ticks=args.max_ticks, step=args.step)
        _print_json(result)
        outcome = result["outcome"]
        return 0 if outcome is not None and outcome["success"] else 1

    if args.cmd == "run":
        from .adb import AdbDevice

        try:
            cfg = load_config(args.config)
        except ConfigError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        device = AdbDevice(serial=args.serial)
        service = MonitorService(cfg, device, device, reporter=_build_reporter(cfg))
        service.events.subscribe(
            StateChangeEvent,
            lambda e: print(f"[{datetime.now().strftime('%H:%M:%S')}] {e.text}", flush=True),
        )
        service.run_forever()
        return 0

    if args.cmd == "stats":
        try:
            repo = StatsRepository(args.db)
            if args.clear:
                removed = repo.clear()
                print(f"Cleared {removed} record(s)")
                return 0
            summary = repo.summary()
            records = repo.recent(args.recent)
            by_weekday = repo.slots_by_weekday()
            by_hour = repo.slots_by_hour()
        except SlotWatchError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        _print_json({
            "summary": summary.to_dict(),
            "slots_by_hour": {str(h): c for h, c in by_hour.items()},
            "slots_by_weekday": {str(d): c for d, c in by_weekday.items()},
            "recent": [
                {
                    "time": _format_record_time(r.timestamp_ms),
                    "success": r.is_success,
                    "slots_found": r.slots_found,
                    "slot_days": r.slot_days,
                    "duration_ms": r.duration_ms,
                    "error": r.error_message,
                }
                for r in records
            ],
        })
        return 0

    return 1


if __name__ == "__main__":
    sys.exit(main())
