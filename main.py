#!/usr/bin/env python3
"""
Bill Extraction System - Main Entry Point.

This is the main entry point for the bill extraction system.
It provides both a command-line interface and programmatic access
to the extraction pipeline.

Usage:
    Command Line:
        python main.py --input bill.pdf --language hu
        python main.py --input ./bills/ --output results.json --schema fields.yaml
        python main.py --text "Amount due: $124.56 ..." --debug

    Python:
        from main import run_extraction
        report = run_extraction(input_path="bill.pdf")

Exit codes:
    0   every input produced a confident bill
    2   at least one input failed (decode error, low confidence, ...)
    1   usage or runtime error
    130 interrupted

Author: ML Engineering Team
Version: 1.0.0
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

# Add project root to path for imports
PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

# Import project modules
from config import ConfigurationManager
from bill_extraction.utils.logger import setup_logger_from_config, get_logger, set_level
from bill_extraction.utils.helpers import ensure_directory, get_file_extension
from bill_extraction.utils.exceptions import InvalidInputError

PDF_EXTENSIONS = {'.pdf'}
TEXT_EXTENSIONS = {'.txt', '.eml'}
SUPPORTED_EXTENSIONS = PDF_EXTENSIONS | TEXT_EXTENSIONS

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_EXTRACTION_FAILED = 2
EXIT_INTERRUPTED = 130


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Args:
        argv: Argument list; defaults to sys.argv[1:].

    Returns:
        Parsed argument namespace.
    """
    parser = argparse.ArgumentParser(
        description="Bill Extraction System",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    Process single bill:
        python main.py --input bill.pdf

    Process directory with a field schema:
        python main.py --input ./bills/ --schema fields.yaml --user-id u1 --output results.json

    Process an email body:
        python main.py --text "Számla összeg: 45.678 Ft" --language hu
        """
    )

    # Input/Output arguments
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument(
        "--input", "-i",
        type=str,
        help="Input file or directory containing bills (.pdf, .txt, .eml)"
    )
    source.add_argument(
        "--text", "-t",
        type=str,
        help="Raw email/body text to extract from"
    )

    parser.add_argument(
        "--output", "-o",
        type=str,
        default=None,
        help="Write the JSON report to this file (default: stdout)"
    )

    # Processing options
    parser.add_argument(
        "--language", "-l",
        choices=["en", "hu", "auto"],
        default=None,
        help="Document language (default: language.default from config)"
    )

    parser.add_argument(
        "--schema", "-s",
        type=str,
        default=None,
        help="YAML/JSON file with the caller field schema"
    )

    parser.add_argument(
        "--user-id", "-u",
        type=str,
        default=None,
        help="User whose schema is read from a multi-user schema file"
    )

    parser.add_argument(
        "--config", "-c",
        type=str,
        default=None,
        help="Path to custom configuration file"
    )

    parser.add_argument(
        "--no-stemming",
        action="store_true",
        help="Disable the Hungarian stem analysis"
    )

    # Logging options
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging and attach debug traces to results"
    )

    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Only log errors"
    )

    return parser.parse_args(argv)


def initialize_system(args: argparse.Namespace) -> ConfigurationManager:
    """
    Initialize the extraction system with configuration and logging.

    Args:
        args: Parsed command-line arguments.

    Returns:
        Initialized configuration manager.
    """
    # Load configuration
    if args.config:
        ConfigurationManager.reset()
    config = ConfigurationManager(args.config)

    # Setup logging
    logger = setup_logger_from_config()

    if args.debug:
        set_level(logging.DEBUG)
    elif args.quiet:
        set_level(logging.ERROR)

    logger.info("=" * 60)
    logger.info("BILL EXTRACTION SYSTEM")
    logger.info("=" * 60)
    logger.info(f"Version: {config.get('project.version', '1.0.0')}")
    logger.info(f"Input: {args.input or '<text>'}")
    logger.info(f"Output: {args.output or '<stdout>'}")

    return config


def collect_input_files(input_path: str) -> List[Path]:
    """
    Validate the input path and return the files to process.

    Args:
        input_path: File or directory.

    Returns:
        Sorted list of supported files.

    Raises:
        FileNotFoundError: If the input path doesn't exist.
        ValueError: If a single file has an unsupported extension.
    """
    logger = get_logger(__name__)
    path = Path(input_path)

    if not path.exists():
        raise FileNotFoundError(f"Input path not found: {path}")

    if path.is_file():
        if get_file_extension(path) in SUPPORTED_EXTENSIONS:
            return [path]
        raise ValueError(f"Unsupported file type: {path.suffix}")

    files = sorted(
        p for p in path.iterdir()
        if p.is_file() and get_file_extension(p) in SUPPORTED_EXTENSIONS
    )
    if not files:
        logger.warning(f"No supported files found in: {path}")
    else:
        logger.info(f"Found {len(files)} files to process")
    return files


def build_context(
    file_path: Optional[Path] = None,
    text: Optional[str] = None,
    language: Optional[str] = None,
    user_id: Optional[str] = None,
    apply_stemming: Optional[bool] = None,
    debug: bool = False
):
    """Build an ExtractionContext for a file or a text argument."""
    from bill_extraction.input_handler import decode_plain_text
    from bill_extraction.pipeline import ExtractionContext

    if file_path is None:
        return ExtractionContext(
            raw_text=text,
            language=language,
            user_id=user_id,
            apply_stemming=apply_stemming,
            debug=debug,
        )

    data = file_path.read_bytes()
    if get_file_extension(file_path) in PDF_EXTENSIONS:
        return ExtractionContext(
            raw_document=data,
            file_name=file_path.name,
            language=language,
            user_id=user_id,
            apply_stemming=apply_stemming,
            debug=debug,
        )
    return ExtractionContext(
        raw_text=decode_plain_text(data),
        message_id=file_path.stem,
        file_name=file_path.name,
        language=language,
        user_id=user_id,
        apply_stemming=apply_stemming,
        debug=debug,
    )


def run_extraction(
    input_path: Optional[str] = None,
    text: Optional[str] = None,
    language: Optional[str] = None,
    schema_path: Optional[str] = None,
    user_id: Optional[str] = None,
    apply_stemming: Optional[bool] = None,
    debug: bool = False,
    orchestrator=None
) -> Dict[str, Any]:
    """
    Run the bill extraction pipeline over a file, a directory or a text.

    This is the main programmatic entry point for the extraction system.

    Args:
        input_path: Path to input file or directory.
        text: Raw text, used when no input path is given.
        language: "en", "hu" or "auto".
        schema_path: Optional YAML/JSON field schema file.
        user_id: Schema owner for multi-user schema files.
        apply_stemming: Override stemming.enabled.
        debug: Attach debug traces to the results.
        orchestrator: Optional pre-built ExtractionOrchestrator.

    Returns:
        Report dictionary with per-input results, the deduplicated bills
        and summary counts.

    Example:
        >>> report = run_extraction(input_path="bills/")
        >>> for bill in report['bills']:
        ...     print(bill['fields']['vendor'])
    """
    logger = get_logger(__name__)

    # Import pipeline components
    from bill_extraction.pipeline import ExtractionOrchestrator, YamlSchemaProvider
    from bill_extraction.extraction import ExtractionResult, ResultError
    from bill_extraction.reconciliation import deduplicate_bills

    if orchestrator is None:
        provider = YamlSchemaProvider(schema_path) if schema_path else None
        orchestrator = ExtractionOrchestrator(schema_provider=provider)

    if input_path is not None:
        contexts = [
            (str(path), build_context(path, None, language, user_id, apply_stemming, debug))
            for path in collect_input_files(input_path)
        ]
    elif text is not None:
        contexts = [("<text>", build_context(None, text, language, user_id, apply_stemming, debug))]
    else:
        raise InvalidInputError("Either input_path or text is required")

    logger.info(f"Processing {len(contexts)} input(s)...")

    entries = []
    all_bills = []
    succeeded = 0

    for name, context in contexts:
        logger.info(f"Processing: {name}")
        try:
            result = orchestrator.run(context)
        except InvalidInputError as e:
            logger.error(f"Skipping invalid input {name}: {e}")
            result = ExtractionResult(error=ResultError.from_exception(e))
        if result.success:
            succeeded += 1
        all_bills.extend(result.bills)

        entry = {'input': name}
        entry.update(result.to_dict())
        entries.append(entry)

        fields = result.bill.fields if result.bill else None
        logger.info(
            f"  Extracted: Vendor {fields.vendor if fields and fields.vendor else 'N/A'}, "
            f"Amount {fields.amount if fields and fields.amount is not None else 'N/A'}, "
            f"Confidence: {result.confidence:.2f}"
        )

    bills = deduplicate_bills(all_bills)

    return {
        'results': entries,
        'bills': [bill.to_dict() for bill in bills],
        'summary': {
            'inputs': len(entries),
            'succeeded': succeeded,
            'failed': len(entries) - succeeded,
            'bills': len(bills),
        },
    }


def write_report(report: Dict[str, Any], output_path: Optional[str]) -> None:
    """Write the report as JSON to a file or stdout."""
    payload = json.dumps(report, indent=2, ensure_ascii=False, default=str)
    if output_path is None:
        print(payload)
        return
    path = Path(output_path)
    ensure_directory(path.parent)
    path.write_text(payload + "\n", encoding="utf-8")


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main function - entry point for command-line execution.

    Returns:
        Exit code (see module docstring).
    """
    try:
        # Parse command-line arguments
        args = parse_arguments(argv)

        # Initialize system
        initialize_system(args)
        logger = get_logger(__name__)

        # Run extraction
        report = run_extraction(
            input_path=args.input,
            text=args.text,
            language=args.language,
            schema_path=args.schema,
            user_id=args.user_id,
            apply_stemming=False if args.no_stemming else None,
            debug=args.debug
        )

        if not report['results']:
            logger.error("No files to process")
            return EXIT_ERROR

        write_report(report, args.output)

        summary = report['summary']
        logger.info("=" * 60)
        logger.info(
            f"Extraction complete. {summary['succeeded']}/{summary['inputs']} succeeded, "
            f"{summary['bills']} unique bill(s)."
        )
        logger.info("=" * 60)

        return EXIT_OK if summary['failed'] == 0 else EXIT_EXTRACTION_FAILED

    except (FileNotFoundError, ValueError, InvalidInputError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR

    except KeyboardInterrupt:
        print("\nOperation cancelled by user")
        return EXIT_INTERRUPTED

    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        if "--debug" in (argv if argv is not None else sys.argv):
            import traceback
            traceback.print_exc()
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
