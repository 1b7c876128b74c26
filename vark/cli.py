"""Command-line interface for vark.

WHY: The document core (codec, budget, providers, credential store) is
useful outside a browser too: turning text into a share link, reading a
link someone sent, checking how much of the URL budget a document uses,
managing provider keys, and dictating into an existing document.

HOW: argparse subcommands, one handler function each. Handlers that talk
to a provider are async and run via asyncio.run(). Results go to stdout,
status and warnings go to stderr so the output can be piped.

RULES:
- Results on stdout, status on stderr
- Exit code 1 on user errors (unknown provider, bad input, failed call)
- --verbose turns on DEBUG logging for the vark package
- --config points the credential store at a specific JSON file
- Python 3.9 compatible, no match/case, no X | Y unions
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

from vark import errors
from vark.config import DEFAULT_PROVIDER, MAX_LOCATOR_LENGTH
from vark.core.budget import measure
from vark.core.codec import decode_content, encode_content
from vark.core.metadata import document_description, document_title
from vark.core.models import Mode
from vark.dictation import DictationSession, ProviderSelection, ValidationStatus
from vark.providers import PROVIDERS, UnknownProviderError, available_providers
from vark.providers.base import AudioData
from vark.storage import CredentialStore, create_store
from vark.sync.controller import SyncController
from vark.sync.history import NavigationHistory, fragment_url, payload_from_url


def _status(msg: str) -> None:
    """Print a status message to stderr, flushed immediately."""
    print(msg, file=sys.stderr, flush=True)


def _fail(msg: str) -> None:
    print("Error: {}".format(msg), file=sys.stderr)
    sys.exit(1)


def _store(args: argparse.Namespace) -> CredentialStore:
    return create_store(path=Path(args.config) if args.config else None)


def _parse_fields(pairs: Optional[List[str]]) -> Dict[str, str]:
    fields = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            _fail("Invalid --field '{}'. Use key=value.".format(pair))
        fields[key.strip()] = value.strip()
    return fields


# ---------------------------------------------------------------------------
# Document commands
# ---------------------------------------------------------------------------


def _cmd_encode(args: argparse.Namespace) -> None:
    if args.stdin or args.text is None:
        text = sys.stdin.read()
    else:
        text = args.text

    payload = encode_content(text, Mode.parse(args.mode))
    usage = measure(payload)
    _status("Usage: {}% ({} of {} chars)".format(usage.percentage, usage.length, MAX_LOCATOR_LENGTH))
    if usage.over_budget:
        _status("Warning: payload exceeds the locator budget; a browser would not save it.")

    if args.base_url:
        print(fragment_url(args.base_url, payload))
    else:
        print(payload)


def _cmd_decode(args: argparse.Namespace) -> None:
    payload = payload_from_url(args.payload)
    state = decode_content(payload)

    if args.json:
        print(json.dumps(
            {
                "content": state.text,
                "mode": state.mode.value,
                "title": document_title(state.text),
                "description": document_description(state.text),
            },
            ensure_ascii=False,
            indent=2,
        ))
        return

    _status("Mode: {}".format(state.mode.value))
    _status("Title: {}".format(document_title(state.text)))
    print(state.text)


def _cmd_usage(args: argparse.Namespace) -> None:
    payload = payload_from_url(args.payload)
    usage = measure(payload)
    print("{}% ({} of {} chars)".format(usage.percentage, usage.length, MAX_LOCATOR_LENGTH))
    if usage.over_budget:
        _status("Over budget.")
        sys.exit(1)


# ---------------------------------------------------------------------------
# Provider commands
# ---------------------------------------------------------------------------


def _cmd_providers(args: argparse.Namespace) -> None:
    configured = set(_store(args).list_configured())
    for key, descriptor in available_providers().items():
        marker = "*" if key in configured else " "
        print("{} {:<8} {}".format(marker, key, descriptor.description))
        for cfg_field in descriptor.config_fields:
            print("      {:<14} {}{}".format(
                cfg_field.key,
                cfg_field.label,
                "" if cfg_field.required else " (optional)",
            ))


async def _cmd_configure(args: argparse.Namespace) -> None:
    store = _store(args)
    try:
        selection = ProviderSelection(store, args.provider)
    except UnknownProviderError as e:
        _fail(str(e))
        return

    record = {"apiKey": args.api_key}
    record.update(_parse_fields(args.field))

    _status("Validating {} key...".format(selection.provider.display_name))
    status = await selection.validate(record)
    if status is ValidationStatus.VALID:
        _status("Key is valid. Saved.")
    elif status is ValidationStatus.RESTRICTED:
        _status(errors.message_for(errors.RESTRICTED))
        _status("Saved anyway.")
    elif selection.failure_code == errors.NETWORK_ERROR:
        _fail(errors.message_for(errors.NETWORK_ERROR))
    else:
        _fail(errors.message_for(errors.AUTH_FAILED))


def _cmd_forget(args: argparse.Namespace) -> None:
    if args.provider not in PROVIDERS:
        _fail(str(UnknownProviderError(args.provider)))
    _store(args).remove(args.provider)
    _status("Removed stored configuration for {}.".format(args.provider))


async def _cmd_transcribe(args: argparse.Namespace) -> None:
    audio_path = Path(args.audio).resolve()
    if not audio_path.is_file():
        _fail("File not found: {}".format(audio_path))

    store = _store(args)
    selection = ProviderSelection(store)
    try:
        status = await selection.select(args.provider)
    except UnknownProviderError as e:
        _fail(str(e))
        return

    if status is ValidationStatus.RESTRICTED:
        _status(errors.message_for(errors.RESTRICTED))

    payload = payload_from_url(args.append_to) if args.append_to else ""
    history = NavigationHistory(payload)
    controller = SyncController(history)
    failures: List[str] = []
    session = DictationSession(
        selection,
        controller,
        on_error=lambda code, message: failures.append(message),
    )

    if not session.start():
        _fail(failures[-1] if failures else errors.message_for(errors.CONFIG_REQUIRED))

    audio = AudioData.from_path(audio_path, mime_type=args.mime_type)
    _status("Transcribing {} with {}...".format(audio_path.name, selection.provider.product_name))
    text = await session.finish(audio)
    if text is None:
        controller.close()
        _fail(failures[-1] if failures else errors.message_for(errors.EMPTY_TRANSCRIPT))

    if not args.append_to:
        controller.close()
        print(text)
        return

    result = controller.commit_now(reason="cli")
    controller.close()
    if result is None or not result.persisted:
        _fail("Document with transcript exceeds the locator budget.")
    _status("Usage: {}%".format(result.usage.percentage))
    print(result.payload)


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the CLI.

    WHY: Separating parser construction from main() makes the CLI
    testable: tests can inspect the parser without running commands.
    """
    parser = argparse.ArgumentParser(
        prog="vark",
        description="Encode documents into share links and dictate into them "
                    "with a pluggable speech-to-text provider.",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging on stderr.",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to the credential store JSON file (default: ~/.vark/config.json).",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    encode = sub.add_parser("encode", help="Encode text into a locator payload.")
    encode.add_argument("text", nargs="?", default=None, help="Document text (default: read stdin).")
    encode.add_argument(
        "--mode",
        default=Mode.EDIT.value,
        choices=[m.value for m in Mode],
        help="Display mode stored with the document (default: %(default)s).",
    )
    encode.add_argument("--stdin", action="store_true", help="Read the document from stdin.")
    encode.add_argument("--base-url", default=None, help="Print a full share link on this URL.")
    encode.set_defaults(handler=_cmd_encode)

    decode = sub.add_parser("decode", help="Decode a payload or share link.")
    decode.add_argument("payload", help="Payload or full share link.")
    decode.add_argument("--json", action="store_true", help="Print content, mode and metadata as JSON.")
    decode.set_defaults(handler=_cmd_decode)

    usage = sub.add_parser("usage", help="Show how much of the locator budget a payload uses.")
    usage.add_argument("payload", help="Payload or full share link.")
    usage.set_defaults(handler=_cmd_usage)

    providers = sub.add_parser("providers", help="List speech-to-text providers.")
    providers.set_defaults(handler=_cmd_providers)

    configure = sub.add_parser("configure", help="Validate and store a provider API key.")
    configure.add_argument("provider", help="Provider key ({}).".format(", ".join(PROVIDERS)))
    configure.add_argument("--api-key", required=True, help="The provider API key.")
    configure.add_argument(
        "--field",
        action="append",
        default=None,
        help="Extra provider field as key=value. Can be specified multiple times.",
    )
    configure.set_defaults(handler=_cmd_configure)

    forget = sub.add_parser("forget", help="Remove a stored provider configuration.")
    forget.add_argument("provider", help="Provider key.")
    forget.set_defaults(handler=_cmd_forget)

    transcribe = sub.add_parser("transcribe", help="Transcribe an audio file.")
    transcribe.add_argument("audio", help="Path to the audio file.")
    transcribe.add_argument(
        "--provider",
        default=DEFAULT_PROVIDER,
        help="Provider key (default: %(default)s).",
    )
    transcribe.add_argument(
        "--append-to",
        default=None,
        help="Payload or share link to append the transcript to; prints the new payload.",
    )
    transcribe.add_argument("--mime-type", default=None, help="Override the audio MIME type.")
    transcribe.set_defaults(handler=_cmd_transcribe)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the CLI.

    RULES:
    - argv=None means use sys.argv (normal CLI invocation)
    - Explicit argv is for testing
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        result = args.handler(args)
        if asyncio.iscoroutine(result):
            asyncio.run(result)
    except KeyboardInterrupt:
        _status("\nCancelled by user.")
        sys.exit(130)
    except ValueError as e:
        _fail(str(e))


if __name__ == "__main__":
    main()
