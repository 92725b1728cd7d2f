#!/usr/bin/env python3
"""
FleetAdvisor -- IT asset lifecycle triage from MDM, scanner and directory exports.
Reads local CSV files; nothing is uploaded or stored.

Usage:
  python main.py --jamf jamf.csv
  python main.py --jamf jamf.csv --intune intune.csv --users users.csv
  python main.py --jamf jamf.csv --qualys qualys.csv --view critical
  python main.py --intune intune.csv --search chem
  python main.py --jamf jamf.csv --format csv > devices.csv
  python main.py --jamf jamf.csv --summary-only
  python main.py --jamf jamf.csv --endoflife

OS currency uses the built-in table in core/os_policy.py unless --endoflife
is given, in which case supported releases are fetched from endoflife.date.
"""

import argparse
from pathlib import Path
from typing import Optional

from cmdb.merge import load_devices
from cmdb.models import CSV_SOURCES
from core.fetcher import fetch_os_policy
from core.formatter import disable_color, print_devices, print_summary, to_csv, to_json, to_markdown
from core.os_policy import DEFAULT_POLICY
from core.summary import calculate_device_summary
from core.views import DEFAULT_VIEW, VIEWS, filter_devices


def _load_file(path: str) -> Optional[str]:
    """Read a CSV export as text. Returns None (after a message) on failure.

    Resolves symlinks and verifies the path is a regular file before reading,
    so FIFOs and devices are never opened.
    """
    file_path = Path(path).resolve()
    if not file_path.is_file():
        print(f"  [!] '{path}' is not a readable file.")
        return None
    try:
        return file_path.read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as e:
        print(f"  [!] Could not read file '{path}': {e}")
        return None


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="fleet-advisor",
        description="Classify device lifecycle health from Jamf, Intune, Qualys and directory exports.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py --jamf jamf.csv --intune intune.csv
  python main.py --jamf jamf.csv --users users.csv --coreview coreview.csv
  python main.py --intune intune.csv --qualys qualys.csv --view replacement
  python main.py --jamf jamf.csv --format json > fleet.json
        """,
    )
    for source in CSV_SOURCES:
        parser.add_argument(
            f"--{source}",
            metavar="PATH",
            help=f"Path to the {source} CSV export",
        )
    parser.add_argument(
        "--view",
        choices=sorted(VIEWS),
        default=DEFAULT_VIEW,
        metavar="VIEW",
        help=f"Device view: {', '.join(VIEWS)} (default: {DEFAULT_VIEW})",
    )
    parser.add_argument(
        "--search",
        metavar="TEXT",
        help="Case-insensitive match on name, owner, serial, department or model",
    )
    parser.add_argument(
        "--user",
        metavar="TEXT",
        help="Only devices whose owner, owner email or additional owner matches",
    )
    parser.add_argument(
        "--format",
        choices=["terminal", "json", "csv", "markdown"],
        default="terminal",
        metavar="FORMAT",
        help="Output format: terminal (default), json, csv, or markdown",
    )
    parser.add_argument(
        "--summary-only",
        action="store_true",
        help="Print only the fleet summary (terminal and json formats)",
    )
    parser.add_argument(
        "--endoflife",
        action="store_true",
        help="Refresh the OS currency table from endoflife.date before classifying",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable ANSI color codes in terminal output",
    )
    args = parser.parse_args()

    if args.no_color:
        disable_color()

    paths = {source: getattr(args, source) for source in CSV_SOURCES if getattr(args, source)}
    if not paths.get("jamf") and not paths.get("intune"):
        parser.print_help()
        print("\n  [!] At least one of --jamf or --intune is required.")
        return

    blobs: dict[str, str] = {}
    for source, path in paths.items():
        content = _load_file(path)
        if content is not None:
            blobs[source] = content

    policy = DEFAULT_POLICY
    if args.endoflife:
        policy = fetch_os_policy(policy)

    devices = load_devices(blobs, policy=policy)
    if not devices:
        print("  [!] No devices found in the supplied exports.")
        return

    summary = calculate_device_summary(devices)
    selected = filter_devices(devices, args.view, args.search, args.user)

    if args.format == "json":
        print(to_json([] if args.summary_only else selected, summary))

    elif args.format == "csv":
        print(to_csv(selected))

    elif args.format == "markdown":
        print(to_markdown(selected))

    else:
        # terminal (default)
        print_summary(summary)
        if not args.summary_only:
            print_devices(selected, VIEWS[args.view].title.upper())


if __name__ == "__main__":
    main()
