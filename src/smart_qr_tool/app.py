"""Command line front end for the Smart QR Tool."""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from .config import ERROR_CORRECTION_LEVELS, OUTPUT_FORMATS, AppConfig, GeneratorOptions
from .content import ContentType, action_target
from .errors import QRToolError
from .history import HistoryStore
from .payload import VCardRecord, WiFiEncryption, WiFiRecord
from .service import QRService

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="smart-qr",
        description="Generate QR codes from structured content and decode them from images",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--history-file", type=Path, help="Override the history file location")
    parser.add_argument("--no-history", action="store_true", help="Do not record this action")

    commands = parser.add_subparsers(dest="command", required=True)

    generate = commands.add_parser("generate", help="Create a QR code")
    generate.add_argument(
        "type",
        choices=[content_type.value for content_type in ContentType],
        help="Content type of the payload",
    )
    generate.add_argument("content", nargs="?", default="", help="Text, URL, number or address")
    generate.add_argument("-o", "--output", type=Path, help="Output image path")
    generate.add_argument("--print", dest="print_payload", action="store_true",
                          help="Print the formatted payload")
    generate.add_argument("--no-auto-detect", action="store_true",
                          help="Keep 'text' even when the content looks like another type")

    vcard = generate.add_argument_group("vCard fields")
    vcard.add_argument("--first-name", default="")
    vcard.add_argument("--last-name", default="")
    vcard.add_argument("--organization", default="")
    vcard.add_argument("--phone", default="")
    vcard.add_argument("--email", default="")
    vcard.add_argument("--url", default="")
    vcard.add_argument("--address", default="")

    wifi = generate.add_argument_group("WiFi fields")
    wifi.add_argument("--ssid", default="")
    wifi.add_argument("--password", default="")
    wifi.add_argument(
        "--encryption",
        default="WPA",
        help="One of " + ", ".join(encryption.value for encryption in WiFiEncryption)
        + " (case-insensitive)",
    )
    wifi.add_argument("--hidden", action="store_true")

    render = generate.add_argument_group("rendering")
    render.add_argument("--size", type=int, help="Image width in pixels")
    render.add_argument("--margin", type=int, help="Quiet zone in modules")
    render.add_argument("--error", choices=ERROR_CORRECTION_LEVELS,
                        help="Error correction level: L=7%%, M=15%%, Q=25%%, H=30%%")
    render.add_argument("--fg", help="Foreground colour")
    render.add_argument("--bg", help="Background colour")
    render.add_argument("--version", type=int, help="Symbol version (1-40)")
    render.add_argument("--format", choices=OUTPUT_FORMATS, help="Output format")

    scan = commands.add_parser("scan", help="Decode a QR code from an image")
    scan.add_argument("image", type=Path)
    scan.add_argument("--json", action="store_true", help="Output as JSON")

    camera = commands.add_parser("camera", help="Decode a QR code from the camera")
    camera.add_argument("--timeout", type=float, default=None, help="Give up after N seconds")
    camera.add_argument("--json", action="store_true", help="Output as JSON")

    history = commands.add_parser("history", help="Show or edit the history")
    history_commands = history.add_subparsers(dest="history_command", required=True)
    history_commands.add_parser("list")
    history_commands.add_parser("clear")
    remove = history_commands.add_parser("remove")
    remove.add_argument("item_id")

    commands.add_parser("stats", help="Summarise the history")

    return parser


def _options_from_args(args: argparse.Namespace, service: QRService) -> GeneratorOptions:
    options = service.default_options()
    if args.size is not None:
        options.size = args.size
    if args.margin is not None:
        options.margin = args.margin
    if args.error is not None:
        options.error_correction = args.error
    if args.fg is not None:
        options.foreground = args.fg
    if args.bg is not None:
        options.background = args.bg
    if args.version is not None:
        options.version = args.version
    if args.format is not None:
        options.output_format = args.format
    elif args.output is not None and args.output.suffix.lower() in (".svg", ".jpg", ".jpeg"):
        options.output_format = "svg" if args.output.suffix.lower() == ".svg" else "jpeg"
    return options


def _cmd_generate(args: argparse.Namespace, service: QRService) -> int:
    vcard = wifi = None
    if args.type == ContentType.VCARD.value:
        vcard = VCardRecord(
            first_name=args.first_name,
            last_name=args.last_name,
            organization=args.organization,
            phone=args.phone,
            email=args.email,
            url=args.url,
            address=args.address,
        )
    elif args.type == ContentType.WIFI.value:
        wifi = WiFiRecord(
            ssid=args.ssid,
            password=args.password,
            encryption=args.encryption,
            hidden=args.hidden,
        )

    options = _options_from_args(args, service)
    result = asyncio.run(
        service.generate(
            args.content,
            args.type,
            vcard=vcard,
            wifi=wifi,
            options=options,
            auto_detect_type=not args.no_auto_detect,
        )
    )

    if args.print_payload or args.output is None:
        print(result.payload.text, end="" if result.payload.text.endswith("\n") else "\n")

    if args.output is not None:
        if isinstance(result.image, str):
            args.output.write_text(result.image, encoding="utf-8")
        else:
            args.output.write_bytes(result.image)
        print(f"QR code saved to: {args.output} (sha256 {result.digest})")
    return 0


def _print_scan(result, as_json: bool) -> None:
    if as_json:
        print(
            json.dumps(
                {
                    "content": result.content,
                    "content_type": result.content_type.value,
                    "actions": [
                        {"action": action.value, "target": action_target(action, result.content)}
                        for action in result.actions
                    ],
                },
                indent=2,
            )
        )
        return

    print(result.content)
    print(f"Type: {result.content_type.value}")
    for action in result.actions:
        target = action_target(action, result.content)
        print(f"  {action.value}" + (f" -> {target}" if target else ""))


def _cmd_history(args: argparse.Namespace, store: Optional[HistoryStore]) -> int:
    if store is None:
        print("History is disabled", file=sys.stderr)
        return 1

    if args.history_command == "list":
        for item in store.items:
            print(f"{item.id}\t{item.type}\t{item.content_type.value}\t{item.content!r}")
        return 0
    if args.history_command == "clear":
        store.clear()
        store.save()
        print("History cleared")
        return 0

    if not store.remove(args.item_id):
        print(f"No history item with id {args.item_id}", file=sys.stderr)
        return 1
    store.save()
    return 0


def _cmd_stats(store: Optional[HistoryStore]) -> int:
    if store is None:
        print("History is disabled", file=sys.stderr)
        return 1

    stats = store.stats()
    print(f"Generated: {stats.generated}")
    print(f"Scanned: {stats.scanned}")
    for content_type, count in stats.by_content_type.items():
        print(f"  {content_type.value}: {count}")
    print(f"Most common type: {stats.most_common.value}")
    return 0


def run(argv: Optional[Sequence[str]] = None, config: Optional[AppConfig] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = config or AppConfig.from_env()
        if args.history_file is not None:
            config.history_path = args.history_file

        store = None
        if not args.no_history:
            store = HistoryStore(config.history_path, config.history).load()
        service = QRService(config, store=store)

        if args.command == "generate":
            return _cmd_generate(args, service)
        if args.command == "scan":
            _print_scan(asyncio.run(service.scan_image(args.image)), args.json)
            return 0
        if args.command == "camera":
            _print_scan(asyncio.run(service.scan_camera(args.timeout)), args.json)
            return 0
        if args.command == "history":
            return _cmd_history(args, store)
        return _cmd_stats(store)
    except QRToolError as exc:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except RuntimeError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2


def main(argv: Optional[List[str]] = None) -> int:
    return run(argv)


__all__ = ["build_parser", "run", "main"]
