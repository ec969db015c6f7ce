"""Report generation for audit runs."""

import json
from datetime import datetime
from pathlib import Path
from typing import Any

import structlog
from jinja2 import Environment, FileSystemLoader, select_autoescape

from ..config import AuditConfig, get_config
from ..models import RunReport
from .aggregator import summarize_reports

logger = structlog.get_logger(__name__)


class ReportWriter:
    """Writes RunReports to the reports directory as JSON (and HTML when templates are present)."""

    def __init__(self, config: AuditConfig | None = None, reports_directory: str | None = None):
        self.config = config or get_config()
        self.reports_dir = Path(reports_directory or self.config.reports_directory)
        self.reports_dir.mkdir(parents=True, exist_ok=True)

        template_dir = Path(__file__).parent / "templates"
        if template_dir.exists():
            self.jinja_env = Environment(
                loader=FileSystemLoader(str(template_dir)),
                autoescape=select_autoescape(["html", "j2"]),
            )
        else:
            self.jinja_env = None

    def build_suite_report(self, reports: list[RunReport], report_name: str | None = None) -> dict[str, Any]:
        """Assemble the suite-level report document."""
        if report_name is None:
            timestamp = datetime.utcnow().strftime("%Y%m%d_%H%M%S")
            report_name = f"page_audit_{timestamp}"

        # Group failing rules by category across all runs
        failure_groups: dict[str, list[dict[str, Any]]] = {}
        for report in reports:
            for rule_name, verdicts in report.failures_by_rule.items():
                category = self._categorize_rule(rule_name)
                for verdict in verdicts:
                    failure_groups.setdefault(category, []).append({"audit": report.name, **verdict.to_dict()})
            if report.error:
                failure_groups.setdefault("collection", []).append({"audit": report.name, "error": report.error})

        return {
            "report_name": report_name,
            "generation_timestamp": datetime.utcnow().isoformat(),
            "summary": dict(summarize_reports(reports)),
            "audits": [report.to_dict() for report in reports],
            "failure_analysis": {
                "failure_groups": failure_groups,
                "most_common_category": max(failure_groups, key=lambda k: len(failure_groups[k])) if failure_groups else None,
            },
        }

    def write(self, reports: list[RunReport], report_name: str | None = None) -> dict[str, Any]:
        """Persist a suite report and return the report document."""
        report_data = self.build_suite_report(reports, report_name)
        name = report_data["report_name"]

        json_path = self.reports_dir / f"{name}.json"
        with open(json_path, "w", encoding="utf-8") as f:
            json.dump(report_data, f, indent=2, default=str)
        report_data["json_path"] = str(json_path)

        if self.jinja_env is not None:
            template = self.jinja_env.get_template("report.html.j2")
            html_path = self.reports_dir / f"{name}.html"
            html_path.write_text(template.render(report=report_data), encoding="utf-8")
            report_data["html_path"] = str(html_path)

        logger.info(
            "Generated audit report",
            report=name,
            audits=report_data["summary"]["total"],
            failed=report_data["summary"]["failed"],
        )
        return report_data

    def _categorize_rule(self, rule_name: str) -> str:
        """Map a rule name to a coarse failure category."""
        name = rule_name.lower()

        if name.startswith("console") or "event" in name:
            return "console"
        elif "transparent" in name or "background" in name or "contrast" in name or "color" in name:
            return "color"
        elif "font" in name or "lineheight" in name:
            return "font"
        elif "click" in name or "link" in name or "form" in name:
            return "interaction"
        elif name.startswith("count") or "title" in name:
            return "structure"
        else:
            return "other"
