"""
Application entry point — CLI parsing and dependency wiring.

Composition root: loads settings, creates concrete adapters, bundles them
into a RecoveryContext and hands it to the reconciliation driver.

This is the ONLY place where concrete adapter classes are instantiated.
Everything else depends on Protocol interfaces.

usage:
  orphan-finder parse-ca-log --config <path> --log-file <path>
  orphan-finder parse-der --config <path> --der-file <path> --regID <registration-id>

Exit status: 0 on success, 1 on a fatal error, 2 on usage errors.
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence
from pathlib import Path

import structlog
from railway import ErrorCode, LoggingExecutionContext

from orphan_finder import __version__
from orphan_finder.adapters.ocsp_client import HttpOcspGenerator, build_ssl_context
from orphan_finder.adapters.repository import PsycopgCertificateStore
from orphan_finder.adapters.x509_classifier import X509OrphanClassifier
from orphan_finder.config import AppSettings
from orphan_finder.pipeline import RecoveryContext
from orphan_finder.reconciler import reconcile_log_file, recover_der_file

DESCRIPTION = (
    "Reads orphaned certificates from a CA log or a DER file and adds them to the database"
)
COMMAND_HELP = """\
command descriptions:
  parse-ca-log    Parses CA logs to add multiple orphaned certificates
  parse-der       Parses a single orphaned DER certificate file and adds it to the database
"""


def configure_structlog(log_level: str = "INFO") -> None:
    """
    Configure structlog for human-readable console logging.

    Unknown level names fall back to INFO.
    """
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="orphan-finder",
        description=DESCRIPTION,
        epilog=COMMAND_HELP,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command", required=True, metavar="command")

    ca_log = subparsers.add_parser("parse-ca-log", help="Parse CA logs to add orphaned certificates")
    ca_log.add_argument(
        "--config",
        required=True,
        help="File path to the configuration file for this service",
    )
    ca_log.add_argument("--log-file", required=True, help="Path to CA log file to parse")

    der = subparsers.add_parser("parse-der", help="Add a single orphaned DER certificate")
    der.add_argument(
        "--config",
        required=True,
        help="File path to the configuration file for this service",
    )
    der.add_argument("--der-file", required=True, help="Path to DER certificate file")
    der.add_argument(
        "--regID",
        dest="reg_id",
        type=int,
        default=0,
        help="Registration ID of user who requested the certificate",
    )
    return parser


def _create_context(settings: AppSettings) -> RecoveryContext:
    """
    Instantiate all concrete adapters from application settings.

    Creates the X.509 classifier, the PostgreSQL store and the HTTP OCSP
    generator, and fixes the backdate for the run.
    """
    tls = settings.tls
    verify = (
        build_ssl_context(ca_cert=tls.ca_cert, cert_file=tls.cert_file, key_file=tls.key_file)
        if tls is not None
        else True
    )
    return RecoveryContext(
        classifier=X509OrphanClassifier(),
        store=PsycopgCertificateStore(
            dsn=settings.storage.get_dsn(),
            connect_timeout=settings.storage.connect_timeout_seconds,
        ),
        ocsp_generator=HttpOcspGenerator(
            url=settings.ocsp_generator.url,
            timeout=settings.ocsp_generator.timeout_seconds,
            verify=verify,
        ),
        backdate=settings.backdate,
    )


def _run_parse_ca_log(args: argparse.Namespace, settings: AppSettings, context: RecoveryContext) -> int:
    log = structlog.get_logger()
    result = LoggingExecutionContext(operation="ParseCaLog").execute(
        lambda: reconcile_log_file(Path(args.log_file), context, workers=settings.workers)
    )
    if result.is_failure():
        log.error("app.fatal_error", error=result.error().detail())
        return 1
    return 0


def _run_parse_der(args: argparse.Namespace, context: RecoveryContext) -> int:
    log = structlog.get_logger()
    result = LoggingExecutionContext(operation="ParseDer").execute(
        lambda: recover_der_file(Path(args.der_file), args.reg_id, context)
    )
    if result.is_failure():
        failure = result.error()
        log.error("app.fatal_error", error_code=failure.code.value, error=failure.detail())
        return 1
    outcome = result.value()
    log.info("app.der_processed", stored=outcome.stored, orphan_type=str(outcome.orphan_type))
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Parse arguments, wire dependencies and run the chosen recovery mode."""
    parser = build_parser()
    args = parser.parse_args(argv)

    # A zero registration id is indistinguishable from the flag being unset.
    if args.command == "parse-der" and args.reg_id == 0:
        parser.print_usage(sys.stderr)
        print(f"{parser.prog} parse-der: error: --regID is required", file=sys.stderr)  # noqa: T201
        return 2

    try:
        settings = AppSettings.from_file(args.config)
    except Exception as e:
        print(f"FATAL: Configuration error — {e}", file=sys.stderr)  # noqa: T201
        return 1

    configure_structlog(settings.log_level)
    log = structlog.get_logger()
    log.info(
        "app.starting",
        version=__version__,
        command=args.command,
        backdate=str(settings.backdate),
        workers=settings.workers,
    )

    try:
        context = _create_context(settings)
    except (OSError, ValueError) as e:
        log.error("app.init_error", error=str(e), code=ErrorCode.CONFIGURATION_ERROR.value)
        return 1

    if args.command == "parse-ca-log":
        return _run_parse_ca_log(args, settings, context)
    return _run_parse_der(args, context)


if __name__ == "__main__":
    sys.exit(main())
