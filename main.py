#!/usr/bin/env python3
"""dashreport -- CLI entry point.

Usage:
    python main.py --dashboard my-dash-uid
    python main.py --dashboard my-dash-uid --from now-6h --to now --output ops.pdf
    python main.py --help

The Grafana API token is read from ``GRAFANA_API_TOKEN`` (environment or a
``.env`` file) unless ``--token`` is given.
"""

from __future__ import annotations

import argparse
import logging
import shutil
import sys

# ---------------------------------------------------------------------------
# Early setup: configure logging before any dashreport imports
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("dashreport.main")


def _parse_variables(pairs: list[str]) -> dict[str, str]:
    variables: dict[str, str] = {}
    for pair in pairs:
        name, sep, value = pair.partition("=")
        if not sep or not name:
            raise argparse.ArgumentTypeError(f"template variable must look like name=value, got {pair!r}")
        variables[name] = value
    return variables


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="dashreport -- render a Grafana dashboard to PDF",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
Examples:
  python main.py --dashboard Y7kdL2xmz
  python main.py --dashboard tidb-cluster --api-version v4 --from now-3h
  python main.py --dashboard Y7kdL2xmz --var instance=db-1 --config report.yaml
""",
    )
    parser.add_argument(
        "--dashboard", required=True,
        help="Dashboard uid (v5) or slug (v4)",
    )
    parser.add_argument(
        "--from", dest="time_from", default=None,
        help="Start of the time range (default: now-1h)",
    )
    parser.add_argument(
        "--to", dest="time_to", default=None,
        help="End of the time range (default: now)",
    )
    parser.add_argument(
        "--url", default=None,
        help="Grafana root URL (default: $GRAFANA_URL or http://localhost:3000)",
    )
    parser.add_argument(
        "--token", default=None,
        help="Grafana API token (default: $GRAFANA_API_TOKEN)",
    )
    parser.add_argument(
        "--api-version", choices=("v4", "v5"), default="v5",
        help="Grafana URL scheme (default: v5)",
    )
    parser.add_argument(
        "--var", action="append", default=[], metavar="NAME=VALUE",
        help="Template variable passed to every panel render (repeatable)",
    )
    parser.add_argument(
        "--config", default=None,
        help="YAML file overriding any subset of the default layout/timeouts",
    )
    parser.add_argument(
        "--font-dir", default=None,
        help="Directory containing the configured TTF font. Without it the "
             "built-in Helvetica is used, which cannot draw non-Latin "
             "(e.g. CJK) dashboard or panel titles",
    )
    parser.add_argument(
        "--output", "-o", default="report.pdf",
        help="Where to write the PDF (default: report.pdf)",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true",
        help="Enable debug logging",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Generate one report and copy it to ``--output``."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    from dashreport.clients.dashboard_service import create_dashboard_service
    from dashreport.config_loader import ConfigError, load_config, with_font_dir
    from dashreport.constants import DEFAULT_TIME_FROM, DEFAULT_TIME_TO
    from dashreport.report import Report, ReportError
    from dashreport.secrets_loader import TOKEN_ENV_VAR, URL_ENV_VAR, load_secrets
    from dashreport.timerange import TimeRange

    # ------------------------------------------------------------------
    # Step 0: configuration
    # ------------------------------------------------------------------
    try:
        cfg = load_config(args.config)
        variables = _parse_variables(args.var)
        time_range = TimeRange(args.time_from or DEFAULT_TIME_FROM, args.time_to or DEFAULT_TIME_TO)
    except (ConfigError, FileNotFoundError, argparse.ArgumentTypeError, ValueError) as exc:
        logger.error("Invalid configuration: %s", exc)
        return 1

    if args.font_dir:
        cfg = with_font_dir(cfg, args.font_dir)

    secrets = load_secrets()
    service = create_dashboard_service(
        cfg,
        url=args.url or secrets.get(URL_ENV_VAR),
        api_token=args.token or secrets.get(TOKEN_ENV_VAR),
        api_version=args.api_version,
        variables=variables,
    )

    logger.info("=" * 60)
    logger.info("Dashboard: %s", args.dashboard)
    logger.info("Time range: %s (%s to %s)", time_range.formatted(), time_range.from_raw, time_range.to_raw)
    logger.info("=" * 60)

    # ------------------------------------------------------------------
    # Step 1: generate and copy out
    # ------------------------------------------------------------------
    with Report(service, args.dashboard, time_range, cfg) as report:
        try:
            pdf = report.generate()
        except ReportError as exc:
            logger.error("Report generation failed: %s", exc)
            return 1

        try:
            with pdf, open(args.output, "wb") as out:
                shutil.copyfileobj(pdf, out)
        except OSError as exc:
            logger.error("Writing %s failed: %s", args.output, exc)
            return 1

    logger.info("PDF saved: %s", args.output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
