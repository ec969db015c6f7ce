"""Loading and organizing audit definitions."""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog
import yaml

from ..config import AuditConfig, get_config
from .definitions import PROBES, Audit, builtin_audits


logger = structlog.get_logger(__name__)


class AuditManager:
    """Manages audit definitions: the built-in set plus YAML/JSON files in a directory."""

    def __init__(self, audits_directory: Optional[str] = None, config: Optional[AuditConfig] = None):
        self.config = config or get_config()
        self.audits_directory = Path(audits_directory or self.config.audits_directory)

    def load_audit_data(self, audit_file: str) -> Dict[str, Any]:
        """Load a single audit definition from file."""
        audit_path = self.audits_directory / audit_file

        if not audit_path.exists():
            raise FileNotFoundError(f"Audit file not found: {audit_path}")

        logger.debug("Loading audit definition", file=audit_file)

        if audit_path.suffix.lower() == ".json":
            with open(audit_path, "r") as f:
                return json.load(f)
        elif audit_path.suffix.lower() in [".yaml", ".yml"]:
            with open(audit_path, "r") as f:
                return yaml.safe_load(f)
        else:
            raise ValueError(f"Unsupported audit file format: {audit_path.suffix}")

    def load_file_audits(self) -> List[Audit]:
        """Load all audit definitions from the audits directory."""
        audits: List[Audit] = []

        if not self.audits_directory.exists():
            logger.debug("Audits directory does not exist", directory=str(self.audits_directory))
            return audits

        for pattern in ["*.json", "*.yaml", "*.yml"]:
            for audit_file in sorted(self.audits_directory.glob(pattern)):
                try:
                    data = self.load_audit_data(audit_file.name)
                    if not self.validate_audit_data(data):
                        continue
                    audits.append(Audit.from_dict(data))
                    logger.debug("Loaded audit definition", file=audit_file.name)
                except Exception as e:
                    logger.error("Failed to load audit definition", file=audit_file.name, error=str(e))

        logger.info("Loaded audit definitions", count=len(audits))
        return audits

    def all_audits(self) -> Dict[str, Audit]:
        """Built-in audits, overridden by file audits of the same name."""
        audits = builtin_audits()
        for audit in self.load_file_audits():
            if audit.name in audits:
                logger.info("File audit overrides built-in audit", audit=audit.name)
            audits[audit.name] = audit
        return audits

    def select(self, names: Optional[List[str]] = None) -> List[Audit]:
        """Pick audits by name, in the order given; all audits when no names are given."""
        audits = self.all_audits()
        if not names:
            return list(audits.values())
        missing = [n for n in names if n not in audits]
        if missing:
            raise KeyError(f"Unknown audit(s): {', '.join(missing)}")
        return [audits[n] for n in names]

    def validate_audit_data(self, audit_data: Dict[str, Any]) -> bool:
        """Validate an audit definition for required fields."""
        if not isinstance(audit_data, dict):
            logger.error("Audit definition must be a mapping")
            return False

        if "name" not in audit_data:
            logger.error("Missing required field in audit definition", field="name")
            return False

        rules = audit_data.get("rules", [])
        if not isinstance(rules, list):
            logger.error("Rules must be a list", audit=audit_data["name"])
            return False

        for i, rule in enumerate(rules):
            if not isinstance(rule, dict) or "type" not in rule:
                logger.error("Each rule must be a mapping with a type", audit=audit_data["name"], rule_index=i)
                return False

        probes = audit_data.get("probes", [])
        if not isinstance(probes, list) or any(p not in PROBES for p in probes):
            logger.error("Unknown probe in audit definition", audit=audit_data["name"], probes=probes)
            return False

        return True

    def save_audit_data(self, audit_data: Dict[str, Any], filename: Optional[str] = None) -> str:
        """Save an audit definition to file."""
        if filename is None:
            filename = f"{str(audit_data.get('name', 'audit')).lower().replace(' ', '_')}.yaml"

        audit_path = self.audits_directory / filename
        audit_path.parent.mkdir(parents=True, exist_ok=True)

        with open(audit_path, "w") as f:
            yaml.dump(audit_data, f, default_flow_style=False, indent=2, sort_keys=False)

        logger.info("Saved audit definition", file=filename)
        return str(audit_path)
