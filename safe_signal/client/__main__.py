"""
Terminal client for the SOS page.

Run:
    python -m safe_signal.client                 # no GPS → fallback location
    python -m safe_signal.client -1.28 36.82 12  # scripted fix (lat lon accuracy)
    python -m safe_signal.client --deny          # permission denied on every request

Commands:
    sos | locate | add <name> <phone> | del <index> | close | call | quit
"""

from __future__ import annotations

import shlex
import sys
from typing import List

from safe_signal.app.core.config import settings
from safe_signal.app.core.logging_config import get_logger, setup_logging
from safe_signal.client.collaborators import (
    HeadlessMap,
    JsonFileKeyValueStore,
    ScriptedGeolocationProvider,
)
from safe_signal.client.controller import ClientAlertController
from safe_signal.client.models import Coordinate, Fix, LocationErrorCode
from safe_signal.client.reporter import build_reporter
from safe_signal.client.view import render_text

logger = get_logger(__name__)

USAGE = __doc__.split("Commands:")[1].strip()


class _RepeatingGeolocation(ScriptedGeolocationProvider):
    """Answers every request with the same outcome."""

    def __init__(self, outcome):
        super().__init__()
        self._outcome = outcome

    def request_fix(self, options, on_success, on_failure) -> None:
        self.push(self._outcome)
        super().request_fix(options, on_success, on_failure)


def _geolocation_from_args(args: List[str]) -> ScriptedGeolocationProvider:
    if "--deny" in args:
        return _RepeatingGeolocation(LocationErrorCode.PERMISSION_DENIED)
    if len(args) >= 2:
        lat, lon = float(args[0]), float(args[1])
        accuracy = float(args[2]) if len(args) > 2 else None
        return _RepeatingGeolocation(Fix(Coordinate(lat, lon), accuracy))
    return _RepeatingGeolocation(LocationErrorCode.POSITION_UNAVAILABLE)


def _ask(prompt: str) -> bool:
    return input(f"{prompt} [y/N] ").strip().lower() in ("y", "yes")


def main(argv: List[str]) -> int:
    setup_logging(stream=sys.stderr)
    reporter = build_reporter(settings)
    controller = ClientAlertController(
        HeadlessMap(),
        _geolocation_from_args(argv),
        JsonFileKeyValueStore(settings.CONTACTS_STORE_PATH),
        confirm=_ask,
        reporter=reporter,
    )
    controller.initialize()
    print(render_text(controller.view))

    seen_notices = 0
    try:
        while True:
            try:
                line = input("\nsafe-signal> ").strip()
            except EOFError:
                break
            try:
                words = shlex.split(line)
            except ValueError as exc:
                print(f"Could not parse command: {exc}")
                print(USAGE)
                continue
            if not words:
                continue
            cmd, *rest = words

            if cmd in ("quit", "exit"):
                break
            elif cmd == "sos":
                controller.trigger_emergency()
            elif cmd == "locate":
                controller.acquire_location()
            elif cmd == "add" and len(rest) >= 2:
                controller.add_contact(rest[0], " ".join(rest[1:]))
            elif cmd == "del" and len(rest) == 1 and rest[0].lstrip("-").isdigit():
                controller.delete_contact(int(rest[0]))
            elif cmd == "close":
                controller.dismiss_confirmation()
            elif cmd == "call":
                controller.simulate_emergency_call()
            else:
                print(USAGE)
                continue

            for notice in controller.view.notices[seen_notices:]:
                print(f"\n⚠ {notice}")
            seen_notices = len(controller.view.notices)
            print()
            print(render_text(controller.view))
    finally:
        if reporter is not None:
            reporter.close()
    return 0


def run() -> None:
    sys.exit(main(sys.argv[1:]))


if __name__ == "__main__":
    run()
