"""CLI entrypoint for STIX extraction.

Subcommands:
    extract   Extract a STIX bundle from a PDF, DOCX, TXT or JSON file
    merge     Merge bundle files, first file wins on duplicate ids
    inspect   Summarize a bundle file
"""

import argparse
import asyncio
import json
import logging
import os
import sys
import warnings
from pathlib import Path

# Suppress LiteLLM's direct prints (must be before import)
os.environ["LITELLM_LOG"] = "ERROR"

# Suppress noisy warnings before any imports
warnings.filterwarnings("ignore", message="Pydantic serializer warnings")
warnings.filterwarnings("ignore", category=UserWarning, module="pydantic")
warnings.filterwarnings("ignore", message="Unclosed client session")
warnings.filterwarnings("ignore", category=ResourceWarning)

# Suppress noisy loggers (HTTP clients, LiteLLM internals)
for logger_name in ["httpx", "httpcore", "litellm", "LiteLLM",
                    "LiteLLM Router", "aiohttp", "asyncio"]:
    logging.getLogger(logger_name).setLevel(logging.ERROR)

import litellm  # noqa: E402 - must be after logging config
from dotenv import load_dotenv  # noqa: E402

load_dotenv()

litellm.suppress_debug_info = True

from stix_extractor.core.config import DEFAULT_PROVIDERS, DocumentConfig  # noqa: E402
from stix_extractor.core.merger import merge_bundles  # noqa: E402
from stix_extractor.core.normalizer import normalize_bundle  # noqa: E402
from stix_extractor.core.text_extraction import DocumentTextExtractor  # noqa: E402
from stix_extractor.pydantic_models.stix import STIXBundle  # noqa: E402


def _guess_mime_type(path: Path) -> str:
    return DocumentConfig.EXTENSION_TYPES.get(path.suffix.lower(), "application/octet-stream")


def _read_bundle(path: Path) -> STIXBundle | None:
    """Load a bundle file through the normalizer, or None with an error printed."""
    if not path.exists():
        print(f"Error: File not found: {path}")
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        print(f"Error: Could not read {path}: {e}")
        return None
    return normalize_bundle(data)


def _write_bundle(bundle: STIXBundle, output: Path) -> None:
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(bundle.to_json(), encoding="utf-8")
    print(f"\n[OUTPUT] {output}")


def _print_type_counts(bundle: STIXBundle) -> None:
    print(f"Bundle {bundle.id}: {len(bundle.objects)} objects")
    for object_type, count in sorted(bundle.type_counts().items()):
        print(f"  {object_type}: {count}")


async def extract(
    file_path: str,
    output: str | None = None,
    label: str | None = None,
    verbose: bool = False,
    log_dir: str | None = None,
) -> STIXBundle | None:
    """Extract text from a file and run the fallback orchestrator on it.

    Returns:
        The extracted bundle, or None if the input file could not be read.
    """
    # Import here so logging config above applies first
    from stix_extractor.orchestrator import FallbackOrchestrator

    path = Path(file_path)
    if not path.exists():
        print(f"Error: File not found: {path}")
        return None

    mime_type = _guess_mime_type(path)
    text = DocumentTextExtractor().extract_text(path.read_bytes(), mime_type)

    configured = [p.name for p in DEFAULT_PROVIDERS if p.resolve_api_key()]
    if not configured:
        keys = ", ".join(v for p in DEFAULT_PROVIDERS for v in p.api_key_env_vars)
        print(f"Warning: no provider API key set ({keys}); the bundle will be empty")

    print(f"\n{'='*50}")
    print(f"Extracting: {path.name}")
    print(f"{'='*50}")
    print(f"  Type: {mime_type}")
    print(f"  Text: {len(text):,} chars")
    print(f"  Providers: {' -> '.join(p.name for p in DEFAULT_PROVIDERS)}")
    print()

    orchestrator = FallbackOrchestrator(verbose=verbose, log_dir=log_dir)
    report = await orchestrator.extract_with_report(text, label or path.name)

    output_file = Path(output) if output else path.with_suffix(".stix.json")
    _write_bundle(report.bundle, output_file)
    _print_type_counts(report.bundle)

    if report.errors.error_count:
        print(f"\n{report.errors.error_count} stage error(s):")
        for error in report.errors.errors:
            print(f"  {error}")

    if len(orchestrator.ledger):
        print(f"\n{orchestrator.ledger.describe()}")

    return report.bundle


def merge(inputs: list[str], output: str) -> STIXBundle | None:
    bundles = []
    for file_path in inputs:
        bundle = _read_bundle(Path(file_path))
        if bundle is None:
            return None
        bundles.append(bundle)

    merged = merge_bundles(bundles)
    _write_bundle(merged, Path(output))
    _print_type_counts(merged)
    return merged


def inspect(file_path: str, types: list[str] | None = None) -> STIXBundle | None:
    """Print type counts, optionally the objects of given types, and warnings."""
    bundle = _read_bundle(Path(file_path))
    if bundle is None:
        return None

    _print_type_counts(bundle)

    if types:
        filtered = bundle.filter_by_type(*types)
        print(f"\nObjects of type {', '.join(types)}:")
        print(json.dumps(filtered.objects, indent=2, ensure_ascii=False))

    known_ids = {obj.get("id") for obj in bundle.objects}
    warnings_found = []
    for obj in bundle.stix_objects():
        for warning in obj.validation_warnings():
            warnings_found.append(f"{obj.id}: {warning}")
        if obj.is_relationship:
            for ref_field in ("source_ref", "target_ref"):
                ref = obj.get_field(ref_field)
                if isinstance(ref, str) and ref not in known_ids:
                    warnings_found.append(f"{obj.id}: {ref_field} {ref} not in bundle")

    if warnings_found:
        print(f"\n{len(warnings_found)} warning(s):")
        for line in warnings_found:
            print(f"  {line}")
    return bundle


def main():
    parser = argparse.ArgumentParser(
        description="STIX 2.1 extraction from threat-intelligence documents",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  stix-extract extract reports/apt_report.pdf -o apt.stix.json
  stix-extract merge a.stix.json b.stix.json -o merged.json
  stix-extract inspect merged.json --type malware --type tool
        """,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    extract_parser = subparsers.add_parser("extract", help="Extract a STIX bundle from a document")
    extract_parser.add_argument("file", help="Path to PDF, DOCX, TXT or JSON file")
    extract_parser.add_argument(
        "-o", "--output",
        default=None,
        help="Output bundle path (default: <file>.stix.json)",
    )
    extract_parser.add_argument(
        "--label",
        default=None,
        help="Document label used in prompts (default: file name)",
    )
    extract_parser.add_argument(
        "--log-dir",
        default=None,
        help="Directory for per-document log files",
    )
    extract_parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose output with DEBUG level logging",
    )

    merge_parser = subparsers.add_parser("merge", help="Merge bundle files (first wins)")
    merge_parser.add_argument("bundles", nargs="+", help="Bundle JSON files in precedence order")
    merge_parser.add_argument("-o", "--output", required=True, help="Merged bundle path")

    inspect_parser = subparsers.add_parser("inspect", help="Summarize a bundle file")
    inspect_parser.add_argument("bundle", help="Bundle JSON file")
    inspect_parser.add_argument(
        "-t", "--type",
        action="append",
        dest="types",
        default=None,
        help="Print objects of this type (repeatable)",
    )

    args = parser.parse_args()

    if args.command == "extract":
        result = asyncio.run(extract(
            file_path=args.file,
            output=args.output,
            label=args.label,
            verbose=args.verbose,
            log_dir=args.log_dir,
        ))
    elif args.command == "merge":
        result = merge(args.bundles, args.output)
    else:
        result = inspect(args.bundle, args.types)

    sys.exit(0 if result is not None else 1)


if __name__ == "__main__":
    main()
