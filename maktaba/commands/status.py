"""Status command - show configuration, key and device status."""

from rich.console import Console

from maktaba.commands import load_runtime
from maktaba.health import run_health_checks

console = Console()


def run(args):
    """Run the status command."""
    config, catalog = load_runtime(args)

    console.print(f"📚 {catalog.bot_name} status\n")
    console.print("=" * 60)
    report = run_health_checks(config, catalog)
    for line in report.summary_lines():
        console.print(line)
    console.print("=" * 60)

    gemini = config.get("gemini", {})
    console.print(f"\nText endpoint: {gemini.get('endpoint')}")
    console.print(f"Timeout: {gemini.get('timeout')}s, retry server errors: {gemini.get('retry_server_errors')}")
    console.print(f"Live model: {config.get('live', {}).get('model')}")

    if report.has_critical_failure:
        raise SystemExit(1)
