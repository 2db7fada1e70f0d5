"""
Command Line Interface for batch image transcoding.
"""

import argparse
import logging
import os
import signal
from typing import Any, Dict, List, Optional

from .config import SUPPORTED_FORMATS, load_config, resolve_config
from .errors import ConfigError, FatalError
from .manifest import Manifest
from .markup import generate_picture, generate_srcset
from .pipeline import Pipeline
from .progress import Progress
from .reporter import Reporter


def setup_logging(verbose: bool, quiet: bool = False) -> logging.Logger:
    """Configure logging."""
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.INFO

    logging.basicConfig(
        level=level,
        format='%(asctime)s [%(levelname)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    logging.getLogger('PIL').setLevel(logging.WARNING)

    return logging.getLogger('imgbatch')


def _int_list(value: str) -> List[int]:
    """Parse '640,1000,1600' into [640, 1000, 1600]."""
    try:
        return [int(v) for v in value.split(',') if v.strip()]
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected comma-separated integers, got '{value}'")


def _format_list(value: str) -> List[str]:
    """Parse 'webp,avif' into ['webp', 'avif']."""
    formats = [v.strip().lower() for v in value.split(',') if v.strip()]
    for fmt in formats:
        if fmt not in SUPPORTED_FORMATS:
            raise argparse.ArgumentTypeError(
                f"unsupported format '{fmt}' (choose from {', '.join(SUPPORTED_FORMATS)})"
            )
    return formats


def get_cli_values(args: argparse.Namespace) -> Dict[str, Any]:
    """Collect build settings given on the command line; None means not given."""
    return {
        'width': args.width,
        'height': args.height,
        'sizes': args.sizes,
        'formats': args.formats,
        'suffix': args.suffix,
        'quality': args.quality,
        'effort': args.effort,
        'concurrency': args.concurrency,
        'pattern': args.pattern,
        'strip_metadata': args.strip_metadata,
        'without_enlargement': args.without_enlargement,
        'verbose': args.verbose,
        'quiet': args.quiet,
        'force': args.force,
        'dry_run': args.dry_run,
    }


def cmd_build(args: argparse.Namespace) -> int:
    """Execute build command."""
    logger = setup_logging(bool(args.verbose), bool(args.quiet))

    file_values = load_config(os.getcwd(), args.config, logger)
    try:
        config = resolve_config(
            input_root=os.path.abspath(args.input),
            output_root=os.path.abspath(args.output),
            file_values=file_values,
            cli_values=get_cli_values(args),
        )
    except ConfigError as e:
        for problem in e.problems:
            logger.error(problem)
        return 1

    if config.verbose:
        logger.setLevel(logging.DEBUG)
    elif config.quiet:
        logger.setLevel(logging.WARNING)

    logger.debug(f"Input: {config.input_root}")
    logger.debug(f"Output: {config.output_root}")
    logger.debug(f"Sizes: {', '.join(str(s) for s in config.effective_sizes)}")
    logger.debug(f"Formats: {', '.join(config.formats)}")

    progress = None
    if not config.quiet:
        progress = Progress(show_files=config.verbose, logger=logger)

    pipeline = Pipeline(config, progress=progress, logger=logger)

    orig_int = signal.getsignal(signal.SIGINT)

    def handle_sigint(signum, frame):
        logger.warning("Interrupt received, finishing in-flight images (Ctrl-C again to abort)")
        pipeline.stop()
        # A second Ctrl-C aborts without persisting
        signal.signal(signal.SIGINT, orig_int)

    signal.signal(signal.SIGINT, handle_sigint)
    try:
        result = pipeline.run()
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except FatalError as e:
        logger.error(f"Error: {e}")
        return 1
    finally:
        signal.signal(signal.SIGINT, orig_int)

    if not config.quiet:
        Reporter().report_run(result)

    if pipeline.stop_requested:
        logger.info("Interrupted by user")
        return 130
    return 0 if result.ok else 1


def _load_manifest(path: str, logger: logging.Logger) -> Optional[Manifest]:
    try:
        return Manifest.load(path)
    except FileNotFoundError:
        logger.error(f"Manifest not found: {path}")
    except (OSError, ValueError, KeyError, TypeError) as e:
        logger.error(f"Failed to load manifest: {e}")
    return None


def cmd_report(args: argparse.Namespace) -> int:
    """Execute report command."""
    logger = setup_logging(args.verbose)

    manifest = _load_manifest(args.manifest, logger)
    if manifest is None:
        return 1

    Reporter().report_manifest(manifest)
    return 0


def cmd_picture(args: argparse.Namespace) -> int:
    """Execute picture command."""
    logger = setup_logging(args.verbose)

    manifest = _load_manifest(args.manifest, logger)
    if manifest is None:
        return 1

    if args.input not in manifest:
        logger.error(f"No manifest entries for: {args.input}")
        return 1

    entries = manifest[args.input]
    if args.format:
        print(generate_srcset(entries, args.format))
    else:
        print(generate_picture(entries, alt=args.alt))
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog='imgbatch',
        description='Resize and convert images into responsive variants',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Workflow:
  1. Build:    imgbatch build images/ public/img --sizes 640,1000 -f webp,avif
  2. Report:   imgbatch report -m public/img/imgbatch-manifest.json
  3. Markup:   imgbatch picture -m public/img/imgbatch-manifest.json photos/cat.jpg

Settings can also come from imgbatch.config.json in the working directory
(or --config PATH). Command line flags take precedence.
"""
    )

    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    # Build command
    build_parser = subparsers.add_parser('build', help='Resize and convert images')
    build_parser.add_argument('input', help='Input directory')
    build_parser.add_argument('output', help='Output directory')
    build_parser.add_argument('-w', '--width', type=int, help='Max width in px (default: 1000)')
    build_parser.add_argument('--height', type=int, help='Max height in px')
    build_parser.add_argument('--sizes', type=_int_list,
                              help='Comma-separated widths (e.g., 640,1000,1600)')
    build_parser.add_argument('-f', '--formats', type=_format_list,
                              help='Comma-separated formats: webp, avif, jpeg (default: webp)')
    build_parser.add_argument('--suffix', help="Filename suffix pattern (default: '{w}w')")
    build_parser.add_argument('--quality', type=int, help='Quality 1-100 (default: 78)')
    build_parser.add_argument('-e', '--effort', type=int, help='Encoder effort 0-9 (default: 6)')
    build_parser.add_argument('-c', '--concurrency', type=int,
                              help='Parallel workers (default: CPU count)')
    build_parser.add_argument('-p', '--pattern', action='append',
                              help='Input glob, repeatable (default: **/*.{jpg,jpeg,JPG,JPEG,png})')
    build_parser.add_argument('--no-strip-metadata', dest='strip_metadata',
                              action='store_const', const=False,
                              help='Keep EXIF/ICC metadata instead of stripping it')
    build_parser.add_argument('--allow-enlarge', dest='without_enlargement',
                              action='store_const', const=False,
                              help='Allow upscaling images smaller than the target')
    build_parser.add_argument('-v', '--verbose', action='store_const', const=True,
                              help='Print each file as it is processed')
    build_parser.add_argument('-q', '--quiet', action='store_const', const=True,
                              help='Suppress all output except errors')
    build_parser.add_argument('--force', action='store_const', const=True,
                              help='Rebuild all images regardless of cache')
    build_parser.add_argument('-n', '--dry-run', action='store_const', const=True,
                              help='Show what would be done without writing files')
    build_parser.add_argument('--config', metavar='PATH',
                              help='Path to config file (default: ./imgbatch.config.json)')

    # Report command
    report_parser = subparsers.add_parser('report', help='Summarize a manifest')
    report_parser.add_argument('-m', '--manifest', required=True, help='Manifest file')
    report_parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')

    # Picture command
    picture_parser = subparsers.add_parser('picture', help='Print <picture> markup for one input')
    picture_parser.add_argument('-m', '--manifest', required=True, help='Manifest file')
    picture_parser.add_argument('input', help='Input key as listed in the manifest')
    picture_parser.add_argument('--alt', default='', help='Alt text for the <img> element')
    picture_parser.add_argument('--format', choices=SUPPORTED_FORMATS,
                                help='Print only the srcset for this format')
    picture_parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')

    return parser


def main(args: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    parsed_args = parser.parse_args(args)

    if not parsed_args.command:
        parser.print_help()
        return 1

    if parsed_args.command == 'build':
        return cmd_build(parsed_args)
    elif parsed_args.command == 'report':
        return cmd_report(parsed_args)
    elif parsed_args.command == 'picture':
        return cmd_picture(parsed_args)

    return 1
