"""
Command line entry point: replay a player session through CMCD, or decode CMCD from a request.
"""
import argparse
import json
import os
import sys
from typing import Optional

import yaml
from dacite import DaciteError

from .cmcd_parser import decode_cmcd, parse_cmcd_from_path, parse_cmcd_from_query_string, parse_cmcd_value
from .config import CmcdConfig, read_config_by_env
from .otel_exporter import WarnOnceReporter, create_logger_provider
from .replay import SessionFile, read_session_by_file, replay


def _print_step(step, verbose: bool) -> None:
    print(f"[{step.index}] {step.event_type}")
    for uri in step.uris:
        print(f"  uri: {uri}")
    for name, value in sorted(step.headers.items()):
        print(f"  {name}: {value}")
    if verbose and step.result is not None and not step.result.applied:
        detail = f" ({step.result.error_code}: {step.result.error})" if step.result.error_code else ""
        print(f"  {step.result.status.value}{detail}", file=sys.stderr)


def run_replay(
    session: SessionFile,
    config: Optional[CmcdConfig] = None,
    endpoint: Optional[str] = None,
    insecure: bool = True,
    service_name: str = "cmcd-client",
    verbose: bool = False,
) -> int:
    """
    Replay a session and print every outbound request with its CMCD data.
    config replaces the session's own config when given.
    Returns the number of requests printed.
    """
    if verbose:
        print(f"Replaying {len(session.events)} events", file=sys.stderr)

    provider = None
    reporter = None
    if endpoint:
        provider, logger = create_logger_provider(
            service_name=service_name, endpoint=endpoint, insecure=insecure
        )
        reporter = WarnOnceReporter(logger)
    count = 0
    try:
        for step in replay(session, config=config, reporter=reporter):
            _print_step(step, verbose)
            count += 1
    finally:
        if provider is not None:
            provider.shutdown()
    if verbose:
        print(f"Summary: {count} requests", file=sys.stderr)
    return count


def run_decode(value: str) -> dict:
    """Decode CMCD from a URL/path with a query, a raw query string, or a bare CMCD value."""
    if "?" in value:
        pairs = parse_cmcd_from_path(value)
    elif "&" in value or (value.lower().startswith("cmcd") and "=" in value):
        pairs = parse_cmcd_from_query_string(value)
    else:
        pairs = parse_cmcd_value(value)
    return decode_cmcd(pairs)


def _build_config(args: argparse.Namespace, base: CmcdConfig) -> CmcdConfig:
    return CmcdConfig(
        enabled=False if args.disabled else (True if args.enabled else base.enabled),
        use_headers=args.use_headers or base.use_headers,
        session_id=args.session_id if args.session_id is not None else base.session_id,
        content_id=args.content_id if args.content_id is not None else base.content_id,
    )


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Compute Common Media Client Data (CTA-5004) for player requests"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    replay_parser = sub.add_parser(
        "replay",
        help="Replay a YAML/JSON player session and print each request with CMCD applied",
    )
    replay_parser.add_argument("session", metavar="SESSION_FILE", help="Session file (.yaml, .yml or .json)")
    replay_parser.add_argument(
        "--enabled",
        action="store_true",
        help="Force CMCD on (default: session file config, or CMCD_ENABLED)",
    )
    replay_parser.add_argument(
        "--disabled",
        action="store_true",
        help="Force CMCD off; requests are printed unchanged",
    )
    replay_parser.add_argument(
        "--use-headers",
        action="store_true",
        help="Send CMCD as CMCD-* headers instead of a query argument (default: CMCD_USE_HEADERS)",
    )
    replay_parser.add_argument(
        "--session-id",
        default=None,
        help="Session id (default: CMCD_SESSION_ID, else a random UUID)",
    )
    replay_parser.add_argument(
        "--content-id",
        default=None,
        help="Content id (default: CMCD_CONTENT_ID)",
    )
    replay_parser.add_argument(
        "--endpoint",
        default=os.environ.get("OTEL_EXPORTER_OTLP_ENDPOINT"),
        help="OTLP gRPC endpoint for CMCD warnings (default: OTEL_EXPORTER_OTLP_ENDPOINT; unset means no export)",
    )
    replay_parser.add_argument(
        "--no-insecure",
        action="store_true",
        help="Use TLS for OTLP (default is insecure=true)",
    )
    replay_parser.add_argument(
        "--service-name",
        default=os.environ.get("OTEL_SERVICE_NAME", "cmcd-client"),
        help="Service name for resource (default: cmcd-client)",
    )
    replay_parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Print progress and degraded requests to stderr",
    )

    decode_parser = sub.add_parser(
        "decode",
        help="Decode CMCD from a URL, a query string (CMCD=...) or a raw value (br=3200,ot=v)",
    )
    decode_parser.add_argument("value", metavar="VALUE")

    args = parser.parse_args(argv)

    if args.command == "decode":
        print(json.dumps(run_decode(args.value), indent=2, sort_keys=True))
        return 0

    try:
        session = read_session_by_file(args.session)
        config = _build_config(args, read_config_by_env(session.config))
        run_replay(
            session,
            config=config,
            endpoint=args.endpoint,
            insecure=not args.no_insecure,
            service_name=args.service_name,
            verbose=args.verbose,
        )
        return 0
    except (OSError, ValueError, yaml.YAMLError, DaciteError) as e:
        print(f"ERROR: {type(e).__name__}: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
