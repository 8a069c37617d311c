# tools/doubao_transcribe.py
"""
Stream a local WAV file to Doubao and print results as they arrive.

    python tools/doubao_transcribe.py --wav hello.wav
    python tools/doubao_transcribe.py --wav hello.wav --nostream --segment-ms 100

Credentials come from DOUBAO_APP_KEY / DOUBAO_ACCESS_KEY (a .env file is
honoured) unless --app-key / --access-key are given.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from contextlib import aclosing
from pathlib import Path
from typing import Optional, Sequence

from dotenv import load_dotenv

from adapters.asr.credentials import DoubaoCredentials
from adapters.asr.doubao_streaming import stream_transcription
from adapters.asr.errors import ConfigurationError, DoubaoASRError
from adapters.asr.extraction import extract_confidence, extract_language, extract_text
from audio.wav import check_doubao_format
from config import AppConfig
from protocol.binary import BinaryProtocolError


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Doubao streaming ASR from a WAV file")
    ap.add_argument("--wav", required=True, help="Path to 16kHz mono PCM16 WAV")
    ap.add_argument("--app-key", default=None, help="Overrides DOUBAO_APP_KEY")
    ap.add_argument("--access-key", default=None, help="Overrides DOUBAO_ACCESS_KEY")
    ap.add_argument("--url", default=None, help="WebSocket endpoint (overrides config)")
    ap.add_argument(
        "--nostream",
        action="store_true",
        help="Use the non-streaming endpoint (one cumulative result at the end).",
    )
    ap.add_argument("--segment-ms", type=int, default=None, help="Segment duration in ms")
    return ap


async def run(args: argparse.Namespace, config: AppConfig) -> int:
    try:
        audio = Path(args.wav).read_bytes()
    except OSError as e:
        print(f"[doubao] cannot read {args.wav}: {e.strerror or e}", file=sys.stderr)
        return 2

    check = check_doubao_format(audio)
    if not check.is_wav:
        print(f"[doubao] {args.wav} is not a readable WAV; sending raw bytes", file=sys.stderr)
    elif check.needs_conversion:
        print("[doubao] WARNING: WAV is not 16kHz mono PCM16", file=sys.stderr)

    credentials = DoubaoCredentials.from_raw(
        args.app_key or config.doubao_app_key,
        args.access_key or config.doubao_access_key,
    )
    url = args.url or (config.doubao_nostream_url if args.nostream else config.doubao_stream_url)

    last_text = ""
    count = 0
    try:
        async with aclosing(stream_transcription(
            credentials,
            audio,
            url=url,
            segment_duration_ms=args.segment_ms or config.segment_duration_ms,
            connect_timeout_s=config.connect_timeout_s,
            response_timeout_s=config.response_timeout_s,
        )) as responses:
            async for response in responses:
                count += 1
                text = extract_text(response)
                if text and text != last_text:
                    last_text = text
                    print(f"[{response.payload_sequence}] {text}")
                if response.is_error:
                    print(f"[doubao] server error code={response.code}", file=sys.stderr)
                if response.is_last_package:
                    lang = extract_language(response)
                    conf = extract_confidence(response)
                    print(f"[doubao] final language={lang} confidence={conf}", file=sys.stderr)
                    break
    except ConfigurationError as e:
        print(f"[doubao] configuration error: {e}", file=sys.stderr)
        return 2
    except (DoubaoASRError, BinaryProtocolError) as e:
        print(f"[doubao] transcription failed: {e}", file=sys.stderr)
        return 1

    print(f"[doubao] done: responses={count}", file=sys.stderr)
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)
    return asyncio.run(run(args, AppConfig.load_from_env()))


if __name__ == "__main__":
    raise SystemExit(main())
