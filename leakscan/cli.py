import argparse
import shlex
import sys
from pathlib import Path
from typing import List, Optional

from .core.config import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_MAX_PARALLEL,
    DEFAULT_TIMEOUT_SECONDS,
    ScanConfig,
    configure_logging,
)
from .core.loader import load_transaction_store
from .core.locator import DEFAULT_BINARY_NAME, PathBinaryLocator
from .core.reporting import Reporter
from .core.service import ScanContext
from .core.transactions import InMemoryTransactionStore


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="leakscan",
        description="Scan captured HTTP traffic for secrets with an external Kingfisher-compatible scanner.",
    )
    sub = p.add_subparsers(dest="mode", required=True)

    # scan mode
    s = sub.add_parser("scan", help="Scan records from one or more capture files.")
    s.add_argument("captures", type=Path, nargs="+", help="HAR or JSON-lines capture file(s).")
    s.add_argument("--ids", default="", help="Comma-separated record ids to scan (default: all).")
    s.add_argument("--binary", default=None, help="Path to the scanner binary (default: search PATH and ~/.local/bin).")
    s.add_argument("--binary-name", default=DEFAULT_BINARY_NAME, help="Executable name to search for.")
    s.add_argument("--batch-size", type=int, default=DEFAULT_BATCH_SIZE, help="Records per scanner invocation.")
    s.add_argument("--max-parallel", type=int, default=DEFAULT_MAX_PARALLEL, help="Scanner invocations running at once.")
    s.add_argument("--timeout", type=float, default=DEFAULT_TIMEOUT_SECONDS, help="Seconds before a scanner invocation is killed.")
    s.add_argument("--output-file", action="store_true", help="Have the scanner write JSON to a file instead of stdout.")
    s.add_argument("--scratch-dir", default=None, help="Directory for temporary artifacts (default: system temp dir).")
    s.add_argument("--out", type=Path, default=Path("./scan_output"), help="Output directory.")
    s.add_argument("--reveal", action="store_true", help="Include unmasked secrets in the JSON reports.")
    s.add_argument("--no-progress", action="store_true", help="Disable the progress bar.")
    s.add_argument("--verbose", action="store_true", help="Enable verbose logging output.")

    # probe mode
    pr = sub.add_parser("probe", help="Show which scanner binary would be used and what it supports.")
    pr.add_argument("--binary", default=None, help="Path to the scanner binary.")
    pr.add_argument("--binary-name", default=DEFAULT_BINARY_NAME, help="Executable name to search for.")
    pr.add_argument("--install", action="store_true", help="Run the installer (install or upgrade) before probing.")
    pr.add_argument("--install-command", default="", help="Installer command line, split shell-style and run without a shell.")
    pr.add_argument("--verbose", action="store_true", help="Enable verbose logging output.")

    return p


def run_scan(args: argparse.Namespace) -> int:
    logger = configure_logging(verbose=args.verbose)
    try:
        config = ScanConfig(
            batch_size=args.batch_size,
            max_parallel=args.max_parallel,
            timeout=args.timeout,
            scratch_dir=args.scratch_dir,
            use_output_file=args.output_file,
            show_progress=not args.no_progress,
        )
    except ValueError as exc:
        print(f"Invalid option: {exc}", file=sys.stderr)
        return 2

    try:
        transactions = load_transaction_store(args.captures)
    except (OSError, ValueError) as exc:
        print(f"Unable to load captures: {exc}", file=sys.stderr)
        return 2
    if not len(transactions):
        print("No records found in the capture file(s). Exiting.", file=sys.stderr)
        return 2

    ids = [i.strip() for i in args.ids.split(",") if i.strip()] or transactions.ids()
    ctx = ScanContext(
        transactions,
        PathBinaryLocator(args.binary_name, explicit_path=args.binary, logger=logger),
        config,
        logger=logger,
    )
    results = ctx.scan(ids)

    Reporter(args.out, include_unmasked=args.reveal).write_all(results, ctx.get_findings(), ctx.get_stats())

    errors = sum(1 for r in results if r.error)
    found = sum(len(r.findings) for r in results)
    print(f"Scanned {len(results)} record(s): {found} finding(s), {errors} error(s). Reports in {args.out}")
    return 1 if errors else 0


def run_probe(args: argparse.Namespace) -> int:
    logger = configure_logging(verbose=args.verbose)
    locator = PathBinaryLocator(
        args.binary_name,
        explicit_path=args.binary,
        install_command=shlex.split(args.install_command),
        logger=logger,
    )
    ctx = ScanContext(InMemoryTransactionStore(), locator, logger=logger)
    if args.install:
        ok, output = ctx.install_scanner()
        print(output)
        if not ok:
            return 2
    binary = locator.locate()
    if not binary:
        print(f"{args.binary_name} binary not found.", file=sys.stderr)
        return 2
    capabilities = ctx.probe.get(binary)
    print(f"binary:  {capabilities.path}")
    print(f"version: {capabilities.version or 'unknown'}")
    print(f"--format json supported: {'yes' if capabilities.supports_format else 'no'}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    if args.mode == "scan":
        return run_scan(args)
    elif args.mode == "probe":
        return run_probe(args)
    else:
        parser.print_help()
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
