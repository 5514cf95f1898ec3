#!/usr/bin/env python3
"""
analyze_image.py — Run the full payment-screenshot analysis on a local file.

Usage (from the repository root):
    # Canned "nothing found" vision answers (fast, no API key required)
    python scripts/analyze_image.py receipt.png

    # Real vision backends (requires GEMINI_API_KEY or AI_GATEWAY_API_KEY in .env)
    python scripts/analyze_image.py receipt.png --real

What it does
────────────
  1. Reads the file and encodes it as a base64 data URL, exactly as the
     upload UI does
  2. Runs the same pipeline as POST /api/v1/analyze-payment
  3. Prints the AnalysisResult JSON (camelCase keys, as the API returns it)

Exit status is 0 for an authentic verdict and 1 otherwise, so the script can
be used in shell loops over a folder of samples.
"""

import argparse
import asyncio
import base64
import os
import sys
from pathlib import Path

ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(ROOT))

from dotenv import load_dotenv

load_dotenv(ROOT / ".env")

_MIME_BY_SUFFIX = {".png": "image/png", ".jpg": "image/jpeg", ".jpeg": "image/jpeg"}


def encode_file(path: Path) -> str:
    mime = _MIME_BY_SUFFIX.get(path.suffix.lower(), "application/octet-stream")
    return f"data:{mime};base64,{base64.b64encode(path.read_bytes()).decode('ascii')}"


async def run(path: Path) -> bool:
    # Imported late so the AI_MOCK_MODE choice below reaches Settings.
    from payproof.services.payment_analyzer import analyze_payment

    result = await analyze_payment(encode_file(path), path.name)
    print(result.model_dump_json(by_alias=True, exclude_none=True, indent=2))
    return result.authentic


def main() -> None:
    parser = argparse.ArgumentParser(description="Analyse a payment screenshot for signs of editing.")
    parser.add_argument("path", type=Path, help="PNG or JPEG screenshot to analyse")
    parser.add_argument(
        "--real",
        action="store_true",
        help="Query the configured vision backends instead of mock responses",
    )
    args = parser.parse_args()

    if not args.path.is_file():
        print(f"ERROR: {args.path} is not a file")
        sys.exit(2)

    os.environ["AI_MOCK_MODE"] = "false" if args.real else "true"
    authentic = asyncio.run(run(args.path))
    sys.exit(0 if authentic else 1)


if __name__ == "__main__":
    main()
