#!/usr/bin/env python3
"""
API Stress Tester command line.

Reads a stress config JSON file and stresses every endpoint in it, one after
another, printing a result line per endpoint and a final report.
"""

import argparse
import os
import sys
from typing import List, Optional

from dotenv import load_dotenv

from api_stress import report
from api_stress.config import DEFAULT_CONFIG_PATH, load_config, load_headers_from_env
from api_stress.errors import ConfigurationError
from api_stress.scheduler import run_all


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="api-stress",
        description="API Stress Tester - Drive API endpoints at a fixed rate and validate every response",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s
  %(prog)s -c ./conf/stress_conf.json
  %(prog)s --host staging.example.com --scheme https
  %(prog)s --only login                 (run a single endpoint)

Environment (.env supported):
  STRESS_CONFIG, STRESS_HOST, STRESS_SCHEME, STRESS_ONLY   defaults for the flags
  API_KEY, BEARER_TOKEN, CUSTOM_HEADERS                    extra request headers
        """
    )
    parser.add_argument("-c", "--config", default=os.getenv("STRESS_CONFIG", DEFAULT_CONFIG_PATH),
                        help=f"Config file path, relative to the current directory (default: {DEFAULT_CONFIG_PATH})")
    parser.add_argument("--host", default=os.getenv("STRESS_HOST"),
                        help="Override the host of every endpoint")
    parser.add_argument("--scheme", default=os.getenv("STRESS_SCHEME"), choices=["http", "https"],
                        help="Override the scheme of every endpoint")
    parser.add_argument("--only", default=os.getenv("STRESS_ONLY"),
                        help="Only run the endpoint with this name")
    parser.add_argument("--no-color", action="store_true",
                        help="Disable colored output")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)

    if args.no_color:
        report.set_color(False)

    config_path = os.path.join(os.getcwd(), args.config)

    try:
        config = load_config(config_path)
    except ConfigurationError as e:
        print(report.paint(f"Error: {e}", report.RED))
        return 1

    report.print_info(f"[config path] {config_path}")

    if args.only and not any(api.name == args.only for api in config.apis):
        report.print_warning(f"No endpoint named '{args.only}' in {config_path}")

    try:
        summaries = run_all(
            config,
            host=args.host,
            scheme=args.scheme,
            only=args.only,
            extra_headers=load_headers_from_env(),
        )
    except KeyboardInterrupt:
        print(report.paint("\nStress test interrupted by user", report.YELLOW))
        return 130

    report.print_final_report(summaries)

    # Exit with error if any request failed
    return 0 if all(s.passed for s in summaries) else 1


if __name__ == "__main__":
    sys.exit(main())
