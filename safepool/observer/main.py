"""Console observer: live alert list for one facility (or all)."""

import argparse
import asyncio
import sys
from typing import List, Optional

import structlog

from ..shared.errors import SafePoolError
from ..shared.logging_config import configure_logging
from .config import config
from .distributor import AlertDistributor
from .gateway import HttpAlertGateway
from .preferences import SEVERITY_FILTERS, JsonFilePreferencesStore, ObserverPreferences

logger = structlog.get_logger(__name__)

HELP = "commands: d <n> dismiss | m toggle mute | s <all|medium|high> | f <facility-id|all> | r reload | q quit"


def render(distributor: AlertDistributor, stream=sys.stdout) -> None:
    """Print the current view."""
    scope = distributor.facility_id or "all facilities"
    flags = " [muted]" if distributor.muted else ""
    stream.write(
        f"\n=== {distributor.open_count} open alert(s) - {scope} - "
        f"severity {distributor.severity_filter}{flags} ===\n"
    )
    for index, alert in enumerate(distributor.visible_alerts(), start=1):
        stream.write(
            f"{index:>3}. {alert.created_at:%Y-%m-%d %H:%M:%S} "
            f"{alert.severity.upper():<6} {alert.trigger_type:<15} "
            f"{alert.description or ''}\n"
        )
    stream.write(f"{HELP}\n")
    stream.flush()


class ObserverConsole:
    """Runs the feed follower and the command reader side by side."""

    def __init__(self, distributor: AlertDistributor, gateway: HttpAlertGateway):
        self.distributor = distributor
        self.gateway = gateway
        self._feed_task: Optional[asyncio.Task] = None

    async def follow_feed(self) -> None:
        """Apply feed changes forever, re-listing after every reconnect."""
        while True:
            try:
                await self.distributor.load()
                render(self.distributor)
                async for change in self.gateway.changes(self.distributor.facility_id):
                    if self.distributor.apply(change):
                        render(self.distributor)
            except SafePoolError as exc:
                logger.warning("alert_feed_disconnected", error=exc.message)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.exception("alert_feed_error", error_type=type(exc).__name__)
            await asyncio.sleep(config.RECONNECT_DELAY)

    def start_feed(self) -> None:
        self._feed_task = asyncio.create_task(self.follow_feed())

    async def stop_feed(self) -> None:
        if self._feed_task:
            self._feed_task.cancel()
            try:
                await self._feed_task
            except asyncio.CancelledError:
                pass
            self._feed_task = None

    async def handle_command(self, line: str) -> bool:
        """Run one console command. Returns False to quit."""
        distributor = self.distributor
        parts = line.strip().split()
        if not parts:
            return True
        command, args = parts[0].lower(), parts[1:]

        if command == "q":
            return False
        if command == "m":
            distributor.set_muted(not distributor.muted)
        elif command == "s" and args:
            try:
                distributor.set_severity_filter(args[0])
            except SafePoolError as exc:
                sys.stdout.write(f"{exc.message}\n")
        elif command == "f" and args:
            await self.stop_feed()
            await distributor.select_facility(None if args[0] == "all" else args[0], reload=False)
            self.start_feed()
            return True
        elif command == "r":
            await distributor.load()
        elif command == "d" and args and args[0].isdigit():
            visible = distributor.visible_alerts()
            index = int(args[0]) - 1
            if 0 <= index < len(visible):
                if not await distributor.dismiss(visible[index].id):
                    sys.stdout.write("dismiss failed, alert restored\n")
        else:
            sys.stdout.write(f"{HELP}\n")

        render(distributor)
        return True

    async def run(self) -> None:
        self.start_feed()
        try:
            while True:
                line = await asyncio.to_thread(sys.stdin.readline)
                if not line or not await self.handle_command(line):
                    return
        finally:
            await self.stop_feed()
            await self.gateway.close()


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="python -m safepool.observer",
        description="Watch pool alerts in the terminal.",
    )
    parser.add_argument("--facility", help="facility id to watch ('all' for every facility)")
    parser.add_argument("--severity", choices=SEVERITY_FILTERS, help="severity filter")
    parser.add_argument("--mute", action="store_true", help="no audible cue for new alerts")
    parser.add_argument("--api-url", default=config.API_BASE_URL, help="safepool web API base URL")
    return parser.parse_args(argv)


async def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point."""
    args = parse_args(argv)
    configure_logging(config.LOG_LEVEL, json_logs=config.is_production())

    store = JsonFilePreferencesStore(
        config.PREFERENCES_PATH,
        defaults=ObserverPreferences(
            selected_facility_id=config.DEFAULT_FACILITY_ID or None,
            severity_filter=config.DEFAULT_SEVERITY_FILTER,
        ),
    )
    gateway = HttpAlertGateway(base_url=args.api_url)
    distributor = AlertDistributor(gateway, store)

    if args.facility:
        distributor.preferences.selected_facility_id = None if args.facility == "all" else args.facility
    if args.severity:
        distributor.preferences.severity_filter = args.severity
    if args.mute:
        distributor.preferences.muted = True
    store.save(distributor.preferences)

    await ObserverConsole(distributor, gateway).run()


def run() -> None:
    """Run the console observer."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
