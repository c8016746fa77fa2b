"""Command line interface for the docxlate translator."""

from __future__ import annotations

import argparse
import json
import logging
import pathlib
import sys
from typing import Iterable, Optional, Tuple

from .container import DocxPackage
from .errors import (
    ConfigurationError,
    DocxlateError,
    OutputWriteError,
    OverwriteRefusedError,
    ParseError,
)
from .providers import TranslationProvider, build_provider, provider_kind
from .structures import HostedApiConfig, LocalModelConfig, TranslationConfig
from .translator import (
    TranslationRunner,
    TranslationSummary,
    derive_output_path,
    validate_paths,
)

DEFAULT_LOCAL_ENDPOINT = "http://localhost:11434"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docxlate",
        description="Translate Word (.docx) documents while preserving layout.",
    )
    subparsers = parser.add_subparsers(dest="command")

    translate = subparsers.add_parser("translate", help="Translate a .docx document.")
    translate.add_argument("input_file", help="Path to the .docx file to translate.")
    translate.add_argument(
        "-t",
        "--target-language",
        help="Destination language (name or ISO-639 code).",
    )
    translate.add_argument(
        "-s",
        "--source-language",
        help="Optional source language hint (default: auto).",
    )
    translate.add_argument(
        "-o",
        "--output",
        help="Output file path. Defaults to <name>_<language>_<timestamp>.docx.",
    )
    translate.add_argument(
        "-p",
        "--provider",
        help="Translation backend: local, hosted or echo (default: from configuration).",
    )
    translate.add_argument("-m", "--model", help="Model identifier for the backend.")
    translate.add_argument("--endpoint", help="Backend URL, overriding the configuration.")
    translate.add_argument("--api-key", help="Hosted API key, overriding the configuration.")
    translate.add_argument(
        "--split-sentences",
        action="store_true",
        help="Translate sentence by sentence instead of whole paragraphs.",
    )
    translate.add_argument(
        "--dump-segments",
        metavar="DIR",
        help="Write processed_segments.json and placeholders.json to DIR.",
    )
    translate.add_argument(
        "-f",
        "--force",
        action="store_true",
        help="Allow overwriting the output file if it already exists.",
    )
    translate.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show detailed progress information.",
    )
    translate.add_argument(
        "--debug-provider",
        action="store_true",
        help="Log complete backend requests and responses for troubleshooting.",
    )

    inspect = subparsers.add_parser("inspect", help="Describe the structure of a .docx file.")
    inspect.add_argument("input_file", help="Path to the .docx file to inspect.")
    return parser


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def resolve_backend(
    args: argparse.Namespace,
) -> Tuple[TranslationConfig, Optional[TranslationProvider], dict]:
    """Work out the backend configuration from flags, falling back to settings.

    Returns the config, an explicit provider (only for echo) and any extra
    defaults read from the settings file.
    """

    kind = provider_kind(args.provider) if args.provider else None
    if kind == "echo":
        config = LocalModelConfig(
            endpoint=args.endpoint or DEFAULT_LOCAL_ENDPOINT,
            model=args.model or "echo",
        )
        return config, build_provider(kind), {}
    if kind == "local" and args.model:
        return LocalModelConfig(args.endpoint or DEFAULT_LOCAL_ENDPOINT, args.model), None, {}
    if kind == "hosted" and args.api_key:
        defaults = HostedApiConfig(api_key=args.api_key)
        config = HostedApiConfig(
            api_key=args.api_key,
            base_url=args.endpoint or defaults.base_url,
            model=args.model or defaults.model,
        )
        return config, None, {}

    from .configuration import build_translation_config, get_settings

    settings = get_settings()
    backend = None
    if kind == "local":
        backend = "local_model"
    elif kind == "hosted":
        backend = "hosted_api"
    config = build_translation_config(
        settings,
        backend=backend,
        model=args.model,
        endpoint=args.endpoint,
        api_key=args.api_key,
    )
    defaults = {
        "source_language": settings.DOCXLATE_SOURCE_LANGUAGE,
        "target_language": settings.DOCXLATE_TARGET_LANGUAGE,
        "split_sentences": settings.DOCXLATE_SPLIT_SENTENCES,
        "provider_debug": settings.DOCXLATE_PROVIDER_DEBUG,
    }
    return config, None, defaults


def execute_translation(args: argparse.Namespace) -> tuple[int, TranslationSummary | None, str | None]:
    """Execute a translation run and return the exit code, summary, and message."""

    try:
        config, provider, defaults = resolve_backend(args)
    except ConfigurationError as exc:
        return 1, None, str(exc)

    target_language = args.target_language or defaults.get("target_language")
    if not target_language:
        return 1, None, "A target language is required (-t/--target-language)."
    source_language = args.source_language or defaults.get("source_language") or "auto"

    input_path = pathlib.Path(args.input_file).expanduser().resolve()
    output_path = (
        pathlib.Path(args.output).expanduser().resolve()
        if args.output
        else derive_output_path(input_path, target_language)
    )

    try:
        validate_paths(input_path, output_path, force_overwrite=args.force)
    except FileNotFoundError as exc:
        return 1, None, str(exc)
    except OverwriteRefusedError as exc:
        return 1, None, str(exc)
    except DocxlateError as exc:
        return 1, None, str(exc)

    output_path.parent.mkdir(parents=True, exist_ok=True)

    try:
        runner = TranslationRunner(
            input_path=input_path,
            output_path=output_path,
            target_language=target_language,
            source_language=source_language,
            config=config,
            provider=provider,
            split_sentences=args.split_sentences or bool(defaults.get("split_sentences")),
            dump_dir=pathlib.Path(args.dump_segments) if args.dump_segments else None,
            provider_debug=args.debug_provider or bool(defaults.get("provider_debug")),
        )
        summary = runner.run()
    except ConfigurationError as exc:
        return 1, None, str(exc)
    except ParseError as exc:
        return 1, None, f"The document could not be read: {exc}"
    except OutputWriteError as exc:
        return 1, None, str(exc)
    except DocxlateError as exc:
        return 1, None, str(exc)
    except KeyboardInterrupt:
        return 1, None, "Translation interrupted by user."

    return 0, summary, None


def print_summary(summary: TranslationSummary) -> None:
    """Output a friendly report once processing completes."""

    print("\nTranslation complete.")
    print(f"  Input file:      {summary.input_path}")
    print(f"  Output file:     {summary.output_path}")
    print(
        "  Segments:        "
        f"{summary.translated_segments} translated / {summary.total_segments} total "
        f"({summary.skipped_segments} skipped, {summary.failed_segments} kept in source language)"
    )
    print(
        f"  Paragraphs:      {summary.matched_paragraphs} rewritten, "
        f"{summary.unmatched_segments} segments unmatched"
    )
    if summary.batches > 1:
        print(
            f"  Batches:         {summary.batches} "
            f"({summary.rolled_back_batches} rolled back)"
        )
    print(f"  Provider:        {summary.provider_name}")
    print(f"  Source language: {summary.source_language}")
    print(f"  Target language: {summary.target_language}")
    if summary.used_fallback:
        print("  Output:          simplified document (original formatting could not be kept)")
    print(f"  Elapsed time:    {summary.elapsed_seconds:.2f} seconds")
    if summary.error_messages:
        print("  Notes:")
        for message in summary.error_messages:
            print(f"    - {message}")


def execute_inspect(args: argparse.Namespace) -> tuple[int, str]:
    path = pathlib.Path(args.input_file).expanduser()
    try:
        package = DocxPackage.open(path)
    except ParseError as exc:
        return 1, str(exc)
    return 0, json.dumps(package.describe_structure(), ensure_ascii=False, indent=2)


def main(argv: Optional[Iterable[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    if args.command is None:
        parser.print_help()
        return 1

    if args.command == "inspect":
        configure_logging(False)
        exit_code, output = execute_inspect(args)
        print(output)
        return exit_code

    configure_logging(args.verbose)
    exit_code, summary, message = execute_translation(args)
    if message:
        print(message)
    if summary:
        print_summary(summary)
    return exit_code


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
