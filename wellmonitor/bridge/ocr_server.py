#!/usr/bin/env python3
"""
Out-of-process OCR server for the ``python_bridge`` provider.

Reads one JSON request per line on stdin and answers one JSON line on stdout
(see ``wellmonitor.bridge.protocol``). Runs until stdin is closed.

Usage:
    python -m wellmonitor.bridge.ocr_server
    python -m wellmonitor.bridge.ocr_server --psm 7 --whitelist "0123456789.DryAMPSrcyc "
"""

from __future__ import annotations

import argparse
import base64
import binascii
import logging
import sys
import time

from wellmonitor.bridge import protocol
from wellmonitor.providers.tesseract import TesseractConfig, TesseractProvider, clean_text

logger = logging.getLogger("wellmonitor.bridge")


def handle(request: dict, engine: TesseractProvider) -> dict:
    if "image" not in request:
        return protocol.HEALTHY
    try:
        image = base64.b64decode(request["image"], validate=True)
    except (binascii.Error, TypeError) as e:
        return protocol.failure_response(f"invalid base64 image: {e}")

    started = time.perf_counter()
    try:
        text, confidence = engine.read_image(image)
    except Exception as e:
        logger.warning("OCR failed: %s", e)
        return protocol.failure_response(str(e))
    duration_ms = (time.perf_counter() - started) * 1000.0

    if not text:
        return protocol.failure_response("no text extracted from image")
    return protocol.success_response(text, clean_text(text), confidence, "tesseract", int(duration_ms))


def serve(stdin=sys.stdin, stdout=sys.stdout, engine: TesseractProvider | None = None) -> int:
    engine = engine or TesseractProvider()
    for raw in stdin:
        raw = raw.strip()
        if not raw:
            continue
        try:
            request = protocol.parse_line(raw.encode("utf-8"))
        except Exception as e:
            reply = protocol.failure_response(str(e))
        else:
            reply = handle(request, engine)
        stdout.write(protocol.encode_line(reply).decode("utf-8"))
        stdout.flush()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Line-delimited JSON OCR server")
    parser.add_argument("--lang", default="eng", help="Tesseract language")
    parser.add_argument("--oem", type=int, default=3, help="Tesseract engine mode")
    parser.add_argument("--psm", type=int, default=7, help="Tesseract page segmentation mode")
    parser.add_argument("--whitelist", default="", help="Allowed characters")
    return parser


def main() -> int:
    args = build_parser().parse_args()
    # stdout carries the protocol; diagnostics go to stderr
    logging.basicConfig(stream=sys.stderr, level=logging.INFO,
                        format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    engine = TesseractProvider(TesseractConfig(args.lang, args.oem, args.psm, args.whitelist))
    return serve(engine=engine)


if __name__ == "__main__":
    sys.exit(main())
