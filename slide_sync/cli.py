#!/usr/bin/env python3
"""
Command-line driver: sync a JSON slide payload into a .pptx deck.

The deck keeps the index tags between runs, so running the command again
after editing the payload only re-renders the slides that changed.
"""
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from .config import SyncConfig
from .engine import EngineContext, SyncReport
from .plugin import SlideSyncPlugin
from .pptx_host import PptxHost
from .pptx_renderer import PptxBlockRenderer
from .theme_loader import list_available_themes, validate_theme
from .validator import MESSAGE_TYPE

logger = logging.getLogger(__name__)


class DeckSync:
    """
    Owns one deck, its engine context and the plugin handling payloads.
    """

    def __init__(self, deck_path, *, config: Optional[SyncConfig] = None, font_registry=None):
        """Create a new :class:`DeckSync`.

        Parameters
        ----------
        deck_path
            The .pptx file to update. Created on the first successful run when
            it does not exist yet.
        config
            Limits and theme settings; defaults to :class:`SyncConfig`.
        font_registry
            Object with ``has(family, variant)``; defaults to the fonts
            installed on this machine.
        """
        self.config = config or SyncConfig()
        if not validate_theme(self.config.theme):
            raise ValueError(f"Theme '{self.config.theme}' not found. Available themes: {list_available_themes()}")
        self.deck_path = Path(deck_path)
        self.host = PptxHost(self.deck_path, theme=self.config.theme, font_registry=font_registry,
                             debug=self.config.debug)
        self.context = EngineContext(self.host, PptxBlockRenderer, config=self.config)
        self.plugin = SlideSyncPlugin(self.context, on_success=self._save)
        self._known_mtime = self._disk_mtime()

    def _disk_mtime(self) -> Optional[float]:
        try:
            return self.deck_path.stat().st_mtime
        except FileNotFoundError:
            return None

    def reload(self) -> None:
        """Reopen the deck from disk and forget every record and cached handle."""
        self.host.reopen()
        self.context.reset()
        self._known_mtime = self._disk_mtime()
        logger.info(f"Reloaded {self.deck_path}; all slides will be re-rendered")

    def _save(self, report: SyncReport) -> None:
        self.host.save(self.deck_path)
        self._known_mtime = self._disk_mtime()
        logger.info(f"Deck written to {self.deck_path} ({report.summary()})")

    async def sync(self, payload: Any) -> Dict[str, Any]:
        """Handle a payload: a full message, or a bare slide list."""
        mtime = self._disk_mtime()
        if mtime is not None and mtime != self._known_mtime and not self.plugin.queue.busy:
            # Someone else saved the deck since our last write
            self.reload()
        if isinstance(payload, list):
            payload = {"type": MESSAGE_TYPE, "slides": payload}
        return await self.plugin.handle_message(payload)


def load_payload(path: Path) -> Any:
    return json.loads(path.read_text(encoding="utf-8"))


async def watch(deck: DeckSync, payload_path: Path, interval: float = 0.5,
                max_polls: Optional[int] = None) -> None:
    """
    Poll *payload_path* and submit every change without waiting for the
    previous sync, so bursts of saves collapse into the latest one.
    """
    last_mtime = None
    pending = set()
    polls = 0

    def _report(task: asyncio.Task) -> None:
        pending.discard(task)
        response = task.result()
        if response.get("type") == "error":
            logger.error(f"Sync failed: {response.get('message')}")

    while max_polls is None or polls < max_polls:
        polls += 1
        try:
            mtime = payload_path.stat().st_mtime
        except FileNotFoundError:
            mtime = None
        if mtime is not None and mtime != last_mtime:
            last_mtime = mtime
            try:
                payload = load_payload(payload_path)
            except json.JSONDecodeError as exc:
                logger.error(f"Invalid JSON in {payload_path}: {exc}")
            else:
                task = asyncio.ensure_future(deck.sync(payload))
                pending.add(task)
                task.add_done_callback(_report)
        await asyncio.sleep(interval)

    if pending:
        await asyncio.gather(*pending)


def main(argv=None):
    """Command-line entry point for slide synchronization."""
    import argparse

    def _build_parser() -> argparse.ArgumentParser:
        p = argparse.ArgumentParser(prog="slidesync", description="Sync a JSON slide payload into a PPTX deck.")
        p.add_argument("payload", type=Path, help="JSON file with a generate-slides message or a slide list")
        p.add_argument("--deck", "-d", type=Path, required=True, help="PPTX deck to create or update")
        p.add_argument("--theme", "-t", default=None, help="CSS theme to use (default, dark, …)")
        p.add_argument("--config", "-c", type=Path, help="JSON file with SyncConfig values")
        p.add_argument("--debug", action="store_true", help="Enable verbose logging")
        p.add_argument("--watch", "-w", action="store_true", help="Keep running and sync on every payload change")
        p.add_argument("--interval", type=float, default=0.5, help="Polling interval in seconds for --watch")
        return p

    parser = _build_parser()
    args = parser.parse_args(argv)

    # Set up logging
    logging.basicConfig(level=logging.DEBUG if args.debug else logging.INFO, format="%(levelname)s  %(message)s")

    values = {}
    if args.config:
        values.update(json.loads(args.config.read_text(encoding="utf-8")))
    if args.theme:
        values["theme"] = args.theme
    if args.debug:
        values["debug"] = True

    try:
        deck = DeckSync(args.deck, config=SyncConfig.from_mapping(values))
    except ValueError as exc:
        logger.error(str(exc))
        return 1

    if args.watch:
        logger.info(f"Watching {args.payload} (Ctrl+C to stop)")
        try:
            asyncio.run(watch(deck, args.payload, interval=args.interval))
        except KeyboardInterrupt:
            logger.info("Stopped")
        return 0

    if not args.payload.exists():
        logger.error(f"Payload file '{args.payload}' not found")
        return 1
    try:
        payload = load_payload(args.payload)
    except json.JSONDecodeError as exc:
        logger.error(f"Invalid JSON in {args.payload}: {exc}")
        return 1

    response = asyncio.run(deck.sync(payload))
    if response["type"] == "error":
        logger.error(response["message"])
        return 1
    logger.info(f"✅ Synced {response['count']} slides into {args.deck}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
