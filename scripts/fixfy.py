#!/usr/bin/env python3
"""Fixfy gateway command line.

Usage:
  python scripts/fixfy.py generate --prompt "Scandinavian living room" --provider openai
  python scripts/fixfy.py generate --prompt "Warmer lighting" --image room.jpg --strength 0.4 --out outputs/fixfy
  python scripts/fixfy.py analyze --image room.jpg --provider lovable
  python scripts/fixfy.py estimate --prompt "Repaint a 12x14 ft bedroom"
  python scripts/fixfy.py providers --mode analyze

Notes:
- Loads the nearest .env (existing environment variables win).
- Prints the outbound JSON body; exit code is 0 on success, 1 on failure.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import threading
import time
from pathlib import Path
from typing import Any, Dict, Optional

from fixfy_gateway.api import (
    analysis_request_from_payload,
    estimate_request_from_payload,
    generation_request_from_payload,
    list_providers,
    to_response,
)
from fixfy_gateway.core.config import load_environment
from fixfy_gateway.core.contracts import GatewayResult
from fixfy_gateway.core.dispatcher import Dispatcher
from fixfy_gateway.core.utils import extension_from_mime, is_data_uri, parse_data_uri

DEFAULT_OUT_DIR = "outputs/fixfy"
PROGRESS_INTERVAL = 0.5


def _dispatch_with_progress(dispatcher: Dispatcher, request: Any, label: str) -> GatewayResult:
    """Dispatch on a worker thread, showing elapsed time on a terminal.

    Ctrl-C sets the cancel event, so a job still being polled ends with a
    cancellation failure instead of leaving the provider call dangling.
    """
    cancel = threading.Event()
    outcome: Dict[str, Any] = {}

    def work() -> None:
        try:
            outcome["result"] = dispatcher.dispatch(request, cancel=cancel)
        except BaseException as exc:
            outcome["error"] = exc

    worker = threading.Thread(target=work, daemon=True)
    show = sys.stderr.isatty()
    started = time.monotonic()
    worker.start()
    try:
        while worker.is_alive():
            try:
                worker.join(PROGRESS_INTERVAL)
            except KeyboardInterrupt:
                sys.stderr.write("\nCancelling...\n")
                cancel.set()
                worker.join()
                break
            if show and worker.is_alive():
                sys.stderr.write(f"\r{label}... {time.monotonic() - started:.0f}s")
                sys.stderr.flush()
    finally:
        if show:
            sys.stderr.write("\r\033[K")
            sys.stderr.flush()
    if "error" in outcome:
        raise outcome["error"]
    return outcome["result"]


def _timestamp() -> str:
    return time.strftime("%Y%m%d-%H%M%S", time.gmtime())


def _write_image(reference: str, out_dir: Path, provider: str) -> Optional[Path]:
    """Save a data-URI image; hosted URLs are left for the caller to fetch."""
    if not is_data_uri(reference):
        return None
    data, mime = parse_data_uri(reference)
    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / f"{provider.lower()}-{_timestamp()}.{extension_from_mime(mime)}"
    path.write_bytes(data)
    return path


def _print_body(body: Dict[str, Any]) -> None:
    print(json.dumps(body, indent=2, ensure_ascii=False))


def _generation_payload(args: argparse.Namespace) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "prompt": args.prompt,
        "selectedProvider": args.provider,
        "selectedModel": args.model,
        "width": args.width,
        "height": args.height,
        "strength": args.strength,
    }
    if args.image:
        payload["originalImage"] = Path(args.image).expanduser()
    if args.suggestion:
        payload["selectedSuggestions"] = list(args.suggestion)
        payload["roomType"] = args.room_type
        payload["budget"] = args.budget
    return payload


def _run(args: argparse.Namespace, dispatcher: Dispatcher) -> int:
    if args.command == "providers":
        _print_body({"providers": list_providers(args.mode)})
        return 0

    if args.command == "generate":
        request = generation_request_from_payload(_generation_payload(args))
    elif args.command == "analyze":
        request = analysis_request_from_payload(
            {
                "imageBase64": Path(args.image).expanduser(),
                "selectedProvider": args.provider,
                "selectedModel": args.model,
            }
        )
    else:
        request = estimate_request_from_payload(
            {"prompt": args.prompt, "selectedProvider": args.provider, "selectedModel": args.model}
        )

    result = _dispatch_with_progress(dispatcher, request, f"{args.command.capitalize()} in progress")

    status, body = to_response(result, prompt=getattr(request, "prompt", None) if args.command == "generate" else None)
    if status == 200 and args.command == "generate":
        saved = _write_image(body["imageUrl"], Path(args.out).expanduser().resolve(), result.provider_id)
        if saved is not None:
            body["imageFile"] = str(saved)
            body["imageUrl"] = f"<data-uri:{len(body['imageUrl'])}>"
    _print_body(body)
    return 0 if status == 200 else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Fixfy: route renovation image and analysis requests to AI providers.")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging.")
    sub = parser.add_subparsers(dest="command", required=True)

    gen = sub.add_parser("generate", help="Create or edit a room image")
    gen.add_argument("--prompt", default="", help="Prompt text")
    gen.add_argument("--image", default=None, help="Source image to edit (path)")
    gen.add_argument("--provider", default=None, help="Provider id or alias (default: FIXFY_IMAGE_PROVIDER)")
    gen.add_argument("--model", default=None, help="Optional model override")
    gen.add_argument("--width", type=int, default=1024)
    gen.add_argument("--height", type=int, default=1024)
    gen.add_argument("--strength", type=float, default=0.5, help="Edit strength between 0 and 1")
    gen.add_argument("--suggestion", action="append", help="Renovation suggestion to apply (repeatable)")
    gen.add_argument("--room-type", default=None, help="Room type used with --suggestion")
    gen.add_argument("--budget", default=None, help="Budget used with --suggestion")
    gen.add_argument("--out", default=DEFAULT_OUT_DIR, help=f"Output directory (default: {DEFAULT_OUT_DIR})")

    ana = sub.add_parser("analyze", help="Detect objects and renovation opportunities in a photo")
    ana.add_argument("--image", required=True, help="Room photo (path)")
    ana.add_argument("--provider", default=None, help="Provider id or alias (default: FIXFY_ANALYSIS_PROVIDER)")
    ana.add_argument("--model", default=None, help="Optional model override")

    est = sub.add_parser("estimate", help="Estimate cost and time for a renovation description")
    est.add_argument("--prompt", required=True, help="Project description")
    est.add_argument("--provider", default=None, help="Provider id or alias (default: FIXFY_ESTIMATE_PROVIDER)")
    est.add_argument("--model", default=None, help="Optional model override")

    prov = sub.add_parser("providers", help="List registered providers")
    prov.add_argument("--mode", choices=["generate", "analyze", "estimate"], default=None)
    return parser


def main(argv: Optional[list[str]] = None, dispatcher: Optional[Dispatcher] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    load_environment(Path(__file__).resolve().parent)
    try:
        return _run(args, dispatcher or Dispatcher())
    except KeyboardInterrupt:
        print("\nCancelled.", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
