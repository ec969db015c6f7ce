"""Command-line entry point: run audits against a site and write a report."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

import structlog

from page_audit.audits import AuditManager, AuditRunner
from page_audit.config import load_config
from page_audit.reporting import ReportWriter


def configure_logging(level: str = "INFO") -> None:
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="ISO"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(level.upper())),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="page-audit",
        description="Inspect pages of a live site and assert on what they render.",
    )
    ap.add_argument("--config", default=None, help="YAML config file (default: $PAGE_AUDIT_CONFIG)")
    ap.add_argument("--base-url", default=None, help="Site to audit (overrides config)")
    ap.add_argument("--audit", action="append", dest="audits", default=[], help="Audit name; repeat to run several")
    ap.add_argument("--audits-dir", default=None, help="Directory with YAML/JSON audit definitions")
    ap.add_argument("--reports-dir", default=None, help="Directory for the JSON/HTML report")
    ap.add_argument("--report-name", default=None)
    ap.add_argument("--list", action="store_true", help="List available audits and exit")
    return ap


async def _amain(argv: list[str]) -> int:
    args = build_parser().parse_args(argv)
    config = load_config(args.config)
    configure_logging(config.log_level)
    logger = structlog.get_logger("page_audit.cli")

    manager = AuditManager(args.audits_dir, config=config)
    if args.list:
        for name, audit in manager.all_audits().items():
            print(f"{name:<18} {audit.path:<12} {audit.description}")
        return 0

    try:
        audits = manager.select(args.audits)
    except KeyError as e:
        logger.error("Audit selection failed", error=str(e))
        return 2

    async with AuditRunner(config=config, base_url=args.base_url) as runner:
        reports = await runner.run_suite(audits)

    report_data = ReportWriter(config, reports_directory=args.reports_dir).write(reports, args.report_name)

    summary = report_data["summary"]
    print("\n" + "=" * 50)
    print("PAGE AUDIT SUMMARY")
    print("=" * 50)
    print(f"Audits: {summary['total']}")
    print(f"Passed: {summary['passed']}")
    print(f"Failed: {summary['failed']}")
    print(f"Total failures: {summary['total_failures']}")

    for report in reports:
        if report.ok:
            continue
        print(f"\n- {report.name}:")
        if report.error:
            print(f"    error: {report.error}")
        for rule_name, verdicts in report.failures_by_rule.items():
            offenders = sum(v.offender_count for v in verdicts)
            print(f"    {rule_name}: {verdicts[0].message} ({offenders} offender(s))")

    print(f"\nReport saved: {report_data['json_path']}")
    return 0 if summary["failed"] == 0 else 1


def main() -> None:
    try:
        rc = asyncio.run(_amain(sys.argv[1:]))
    except KeyboardInterrupt:
        rc = 130
    sys.exit(int(rc))


if __name__ == "__main__":
    main()
