"""
webinf_recon.main
-----------------

Entry point for the WEB-INF source disclosure scanner.

Features:
- Accepts single/multiple targets (CLI or --targets-file): URLs, hosts, IPs
  or CIDR ranges.
- Marker files, decompiler command, timeouts and an investigation cap can be
  set on the command line or in a TOML file (``[webinf]`` table).
- Runs the ReconRunner asynchronously across all targets.  SIGTERM stops the
  crawl after the current class and still writes the reports.

Run examples:
    # Basic
    python3 -m webinf_recon.main https://app.example.com

    # Custom decompiler launcher and a safety cap
    python3 -m webinf_recon.main 10.10.10.10:8080 \
        --decompiler "java -jar /opt/procyon-decompiler.jar" --max-investigations 500

    # Multiple targets from file, extra marker files
    python3 -m webinf_recon.main --targets-file targets.txt --marker web.xml --marker faces-config.xml
"""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from webinf_recon.core import ReconRunner, ScanContext, Target, load_config
from webinf_recon.errors import ConfigError


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="webinf_recon",
        description="Recover Java source code exposed through the /WEB-INF folder.",
    )

    # Targets
    parser.add_argument(
        "targets",
        nargs="*",
        help="Target(s): URL, host, IP or CIDR range (space-separated). You may also use --targets-file.",
    )
    parser.add_argument(
        "--targets-file",
        help="Path to a file with one target per line.",
        default=None,
    )

    # Configuration
    parser.add_argument(
        "--config",
        default=None,
        help="Path to a TOML file with a [webinf] table of options.",
    )
    parser.add_argument(
        "--results-dir",
        default=None,
        help="Directory where per-host session folders are written (default: ./results).",
    )

    # Crawl
    parser.add_argument(
        "--marker",
        dest="marker_files",
        action="append",
        default=None,
        help="Marker file under /WEB-INF/ used to seed class names (repeatable; default: web.xml).",
    )
    parser.add_argument(
        "--max-investigations",
        type=int,
        default=None,
        help="Stop after this many classes per host (default: unbounded).",
    )
    parser.add_argument(
        "--timeout",
        dest="http_timeout",
        type=float,
        default=None,
        help="Per-request HTTP timeout in seconds.",
    )
    parser.add_argument(
        "--user-agent",
        default=None,
        help="User-Agent header sent with every request.",
    )

    # Decompiler
    parser.add_argument(
        "--decompiler",
        default=None,
        help='Procyon launcher, e.g. "procyon" or "java -jar procyon-decompiler.jar".',
    )
    parser.add_argument(
        "--decompile-timeout",
        type=float,
        default=None,
        help="Seconds allowed for decompiling a single class.",
    )

    # Global behavior / UX
    parser.add_argument(
        "--plugin",
        dest="plugins",
        action="append",
        default=None,
        help="Dotted path of an extra plugin module to load (repeatable).",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        default=None,
        help="Disable colorized console output.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=None,
        help="Show debug messages on the console.",
    )

    args = parser.parse_args(argv)
    if args.max_investigations is not None and args.max_investigations < 1:
        parser.error("--max-investigations must be at least 1")
    return args


def _load_targets(args: argparse.Namespace) -> List[str]:
    targets: List[str] = []
    if args.targets:
        targets.extend(args.targets)
    if args.targets_file:
        p = Path(args.targets_file)
        if not p.exists():
            print(f"[!] Targets file not found: {p}", file=sys.stderr)
            sys.exit(2)
        with p.open("r", encoding="utf-8", errors="ignore") as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith("#"):
                    targets.append(line)
    # De-dup while preserving order
    seen, unique = set(), []
    for t in targets:
        if t not in seen:
            seen.add(t)
            unique.append(t)
    return unique


def build_options(args: argparse.Namespace, file_options: Dict[str, Any]) -> Dict[str, Any]:
    """Merge config-file options with CLI flags; flags win."""
    options = dict(file_options)
    for name in ScanContext.option_names():
        value = getattr(args, name, None)
        if value is not None:
            options[name] = value
    if "results_dir" in options:
        options["results_dir"] = Path(options["results_dir"])
    return options


async def _run(ctx: ScanContext, targets: List[Target]) -> None:
    ctx.cancel_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGTERM, ctx.cancel_event.set)
    except (NotImplementedError, RuntimeError):
        # Windows event loops do not support signal handlers
        pass
    await ReconRunner(ctx).run(targets)


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    raw_targets = _load_targets(args)
    if not raw_targets:
        print("[!] No targets provided. Specify positional targets or use --targets-file.", file=sys.stderr)
        sys.exit(2)

    try:
        file_options = load_config(args.config)
    except ConfigError as exc:
        print(f"[!] {exc}", file=sys.stderr)
        sys.exit(2)

    ctx = ScanContext(**build_options(args, file_options))
    targets = [Target(t) for t in raw_targets]
    try:
        asyncio.run(_run(ctx, targets))
    except KeyboardInterrupt:
        print("\n[!] Interrupted by user.", file=sys.stderr)
        sys.exit(130)


if __name__ == "__main__":
    main()
