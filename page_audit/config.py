"""Configuration management for page audits."""

import os
from typing import Optional

import yaml
from pydantic import BaseModel, Field


class ViewportConfig(BaseModel):
    """Browser viewport used for every audit page."""
    width: int = Field(default=1280, description="Viewport width in CSS pixels")
    height: int = Field(default=720, description="Viewport height in CSS pixels")


class AuditConfig(BaseModel):
    """Main configuration for the audit harness."""

    # Target site
    base_url: str = Field(default="http://kalm.lk/", description="Site the audits address")
    log_level: str = Field(default="INFO", description="Logging level")

    # Browser settings
    browser_headless: bool = Field(default=True, description="Run browser in headless mode")
    chromium_path: Optional[str] = Field(default=None, description="Chromium executable; Playwright's bundled build when unset")
    viewport: ViewportConfig = Field(default_factory=ViewportConfig)

    # Readiness and interaction bounds
    navigation_timeout: int = Field(default=30, description="Navigation timeout in seconds")
    wait_until: str = Field(default="networkidle", description="Readiness condition passed to page.goto")
    click_timeout_ms: int = Field(default=5000, description="Bound for a single button/link click")
    submit_timeout_ms: int = Field(default=3000, description="Bound for the form submit click")

    # Output settings
    reports_directory: str = Field(default="reports", description="Directory for audit reports")
    artifacts_directory: str = Field(default=".", description="Directory screenshots are written under")
    audits_directory: str = Field(default="audits", description="Directory with YAML/JSON audit definitions")
    screenshot_on_failure: bool = Field(default=True, description="Capture a screenshot when an audit errors")


def load_config(config_path: Optional[str] = None) -> AuditConfig:
    """Load configuration from file or environment variables."""
    if config_path is None:
        config_path = os.getenv("PAGE_AUDIT_CONFIG", "config/page_audit.yaml")

    config_data = {}

    # Load from file if exists
    if os.path.exists(config_path):
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}

    # Override with environment variables
    env_overrides = {
        "base_url": os.getenv("PAGE_AUDIT_BASE_URL"),
        "log_level": os.getenv("LOG_LEVEL"),
        "browser_headless": os.getenv("BROWSER_HEADLESS"),
        "chromium_path": os.getenv("CHROMIUM_PATH"),
        "navigation_timeout": os.getenv("PAGE_AUDIT_NAVIGATION_TIMEOUT"),
        "click_timeout_ms": os.getenv("PAGE_AUDIT_CLICK_TIMEOUT_MS"),
        "reports_directory": os.getenv("PAGE_AUDIT_REPORTS_DIR"),
    }

    # Filter out None values and convert types
    for key, value in env_overrides.items():
        if value is not None:
            if key in ["navigation_timeout", "click_timeout_ms"]:
                value = int(value)
            elif key in ["browser_headless"]:
                value = value.lower() in ("true", "1", "yes")
            config_data[key] = value

    return AuditConfig(**config_data)


def get_config() -> AuditConfig:
    """Get the global configuration instance."""
    return load_config()
