"""Startup checks: config validity, API keys, catalog, audio devices."""

from dataclasses import dataclass, field

from maktaba.audio import input_device_available
from maktaba.catalog import Catalog
from maktaba.config_loader import validate_config
from maktaba.credentials import CredentialPool
from maktaba.logging_config import get_logger

log = get_logger(__name__)


@dataclass
class CheckResult:
    name: str
    status: str  # "pass", "fail", "warn"
    detail: str = ""


@dataclass
class HealthReport:
    checks: list[CheckResult] = field(default_factory=list)

    @property
    def has_critical_failure(self) -> bool:
        return any(c.status == "fail" for c in self.checks)

    def summary_lines(self) -> list[str]:
        lines = []
        for c in self.checks:
            icon = {"pass": "[green]PASS[/green]", "fail": "[red]FAIL[/red]", "warn": "[yellow]WARN[/yellow]"}
            lines.append(f"  {icon.get(c.status, c.status):>20s}  {c.name}: {c.detail}")
        return lines


def check_config(config: dict) -> CheckResult:
    errors = validate_config(config)
    if errors:
        return CheckResult("Config", "fail", "; ".join(errors))
    return CheckResult("Config", "pass", "Valid")


def check_credentials(pool: CredentialPool) -> CheckResult:
    if pool.is_empty:
        return CheckResult("API keys", "fail", "None set. Export GOOGLE_KEY_1 .. GOOGLE_KEY_4")
    return CheckResult("API keys", "pass", f"{len(pool)} key(s): {', '.join(pool.masked())}")


def check_catalog(catalog: Catalog) -> CheckResult:
    if len(catalog) == 0:
        return CheckResult("Catalog", "warn", "No books loaded")
    return CheckResult("Catalog", "pass", f"{len(catalog)} books")


def check_audio_input() -> CheckResult:
    if input_device_available():
        return CheckResult("Audio input", "pass", "Microphone available")
    return CheckResult("Audio input", "warn", "No input device found (voice mode unavailable)")


def run_health_checks(config: dict, catalog: Catalog) -> HealthReport:
    """Run all startup checks and return a report."""
    report = HealthReport()
    report.checks.append(check_config(config))
    report.checks.append(check_credentials(CredentialPool(config.get("gemini", {}).get("api_keys") or [])))
    report.checks.append(check_catalog(catalog))
    report.checks.append(check_audio_input())
    return report
