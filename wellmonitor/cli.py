"""
Run one display image through the extraction and classification pipeline.

Usage:
    python -m wellmonitor.cli extract debug_images/display.jpg
    python -m wellmonitor.cli extract frame.jpg --config wellmonitor.json --providers tesseract
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from .core.errors import ConfigInvalid, NoProviderAvailable, WellMonitorError
from .domain.classifier import classify
from .services.config_store import ConfigStore
from .services.wiring import build_orchestrator

logger = logging.getLogger("wellmonitor.cli")


async def extract_once(image_path: Path, store: ConfigStore) -> dict:
    config = store.current()
    image = image_path.read_bytes()
    orchestrator = build_orchestrator()
    await orchestrator.initialize()
    try:
        try:
            result = await orchestrator.extract(image, config)
        except NoProviderAvailable as e:
            return {
                "image": str(image_path),
                "status": "Unknown",
                "current_amps": None,
                "error": str(e),
                "attempts": [{"provider": a.provider_name, "error": a.error} for a in e.attempts],
            }
        amps, status = classify(result.text, result.confidence, config)
        return {
            "image": str(image_path),
            "status": status.value,
            "current_amps": amps,
            "text": result.text,
            "raw_text": result.raw_text,
            "confidence": round(result.confidence, 3),
            "accepted": result.accepted,
            "provider": result.provider_name,
            "duration_ms": round(result.duration.total_seconds() * 1000.0, 1),
        }
    finally:
        await orchestrator.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="wellmonitor", description="Well pump display tools")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    ex = sub.add_parser("extract", help="OCR and classify a single image")
    ex.add_argument("image", type=Path, help="Captured display image")
    ex.add_argument("--config", type=Path, default=None, help="Config snapshot JSON")
    ex.add_argument("--providers", nargs="+", default=None, help="Override the provider priority")
    ex.add_argument("--min-confidence", type=float, default=None, help="Override minimum confidence")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(stream=sys.stderr, level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(asctime)s %(levelname)s %(name)s - %(message)s")

    if not args.image.is_file():
        print(f"error: {args.image} not found", file=sys.stderr)
        return 2

    try:
        store = ConfigStore.from_file(args.config) if args.config else ConfigStore()
        overrides: dict = {}
        if args.providers:
            overrides["provider_priority"] = args.providers
        if args.min_confidence is not None:
            overrides["minimum_confidence"] = args.min_confidence
        if overrides:
            store.publish(overrides)
    except ConfigInvalid as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    try:
        out = asyncio.run(extract_once(args.image, store))
    except WellMonitorError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    print(json.dumps(out, indent=2))
    return 0 if "error" not in out else 1


if __name__ == "__main__":
    sys.exit(main())
