#!/usr/bin/env python3
"""perfwatch - CLI Entry Point."""
import sys
import json
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

import click
from rich.console import Console
from rich.table import Table

from __version__ import __version__

console = Console()

SEVERITY_STYLES = {"critical": "bold white on red", "warning": "bold yellow", "info": "bold blue"}


def _init_components(config_path=None, verbose=False):
    """Lazy initialization of all components."""
    from utils.logger import setup_logging
    from config import load_config
    from monitor.telemetry import create_telemetry_source
    from monitor.engine import AnalyticsEngine

    config = load_config(config_path)
    setup_logging("DEBUG" if verbose else config["logging"]["level"], config["logging"].get("file"))

    source = create_telemetry_source(config)
    engine = AnalyticsEngine(source, config)
    return {"config": config, "source": source, "engine": engine}


@click.group()
@click.option("--config", "config_path", default=None, help="Path to config YAML")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.version_option(__version__, prog_name="perfwatch")
@click.pass_context
def cli(ctx, config_path, verbose):
    """perfwatch - performance analytics, alerting, and capacity reports."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose


def _get_components(ctx):
    if "_components" not in ctx.obj:
        ctx.obj["_components"] = _init_components(ctx.obj.get("config_path"), ctx.obj.get("verbose"))
    return ctx.obj["_components"]


# ──────────────────────────────────────────────────────
# RUN
# ──────────────────────────────────────────────────────
@cli.command()
@click.option("--port", default=None, type=int, help="Port to bind to")
@click.option("--host", default=None, type=str, help="Host to bind to")
@click.pass_context
def run(ctx, port, host):
    """Start the engine loops and serve the query API."""
    from web.app import create_app

    c = _get_components(ctx)
    web_cfg = c["config"].get("web", {})
    host = host or web_cfg.get("host", "0.0.0.0")
    port = port or web_cfg.get("port", 5000)

    engine = c["engine"]
    app = create_app(c["config"], engine)

    console.print("\n[bold cyan]perfwatch -- analytics engine[/bold cyan]\n")
    console.print(f"  API:   http://localhost:{port}/api/analytics/performance/overview")
    console.print(f"  Tick:  every {engine.tick_interval_ms / 1000:.0f}s")
    console.print("\n  Press Ctrl+C to stop.\n")

    engine.start()
    try:
        app.run(host=host, port=port, debug=False)
    finally:
        engine.shutdown()


# ──────────────────────────────────────────────────────
# TICK
# ──────────────────────────────────────────────────────
@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Output snapshot as JSON")
@click.pass_context
def tick(ctx, as_json):
    """Run a single sampling/evaluation tick and show the result."""
    c = _get_components(ctx)
    engine = c["engine"]
    try:
        result = engine.tick()
    finally:
        engine.shutdown()

    if as_json:
        click.echo(json.dumps(result.snapshot.to_dict(), indent=2))
        return

    snap = result.snapshot
    if snap.degraded:
        console.print("[yellow]Telemetry source unavailable - degraded snapshot[/yellow]")
    console.print(
        f"Response {snap.performance.avg_response_time_ms:.0f}ms | "
        f"{snap.performance.throughput_rps:.1f} rps | errors {snap.performance.error_rate_pct:.1f}% | "
        f"cpu {snap.resources.cpu_pct:.0f}% | mem {snap.resources.mem_pct:.0f}%"
    )

    if result.triggered:
        console.print("\n[bold yellow]Alerts triggered:[/bold yellow]")
        for a in result.triggered:
            style = SEVERITY_STYLES.get(a.severity.value, "")
            console.print(f"  [{style}][{a.severity.value.upper()}][/] {a.rule_name}: {a.message}")
    else:
        console.print("[green]All clear - no alerts triggered[/green]")

    for b in result.bottlenecks:
        console.print(f"  [dim]bottleneck[/dim] {b.type} ({b.severity}): {b.current_value:.0f} > {b.threshold_value}")


# ──────────────────────────────────────────────────────
# RULES
# ──────────────────────────────────────────────────────
@cli.command()
@click.pass_context
def rules(ctx):
    """List the effective alert rules."""
    c = _get_components(ctx)
    table = Table(title="Alert Rules", show_header=True)
    table.add_column("ID", style="dim")
    table.add_column("Name")
    table.add_column("Threshold")
    table.add_column("Severity")
    table.add_column("Cooldown")
    table.add_column("Channels")
    table.add_column("Enabled")
    for r in c["engine"].rules.get_all_rules():
        channels = ", ".join(sorted(ch.value for ch in r.channels))
        table.add_row(
            r.id, r.name, f"{r.threshold:g}", r.severity.value,
            f"{r.cooldown_ms // 1000}s", channels,
            "[green]✓[/green]" if r.enabled else "[red]✗[/red]",
        )
    console.print(table)
    c["engine"].shutdown()


# ──────────────────────────────────────────────────────
# HEALTH
# ──────────────────────────────────────────────────────
@cli.command()
@click.pass_context
def health(ctx):
    """Take one sample and print the health score breakdown."""
    c = _get_components(ctx)
    engine = c["engine"]
    try:
        engine.tick()
        score = engine.health_score()
    finally:
        engine.shutdown()

    table = Table(title=f"Health: {score['overall']:.1f} ({score['grade']}, {score['status']})", show_header=True)
    table.add_column("Component")
    table.add_column("Score", justify="right")
    for name, value in score["breakdown"].items():
        table.add_row(name, f"{value:.1f}")
    console.print(table)


# ──────────────────────────────────────────────────────
# ALERTS HISTORY
# ──────────────────────────────────────────────────────
@cli.command("alerts-history")
@click.option("--limit", default=100, type=int, help="Maximum alerts to show")
@click.option("--url", default="http://localhost:5000", help="Base URL of a running perfwatch server")
def alerts_history(limit, url):
    """Show alert history from a running server."""
    import requests

    try:
        resp = requests.get(f"{url.rstrip('/')}/api/analytics/alerts/history",
                            params={"limit": limit}, timeout=10)
        body = resp.json()
    except (requests.RequestException, ValueError) as e:
        console.print(f"[red]✗[/red] Could not reach {url}: {e}")
        sys.exit(1)

    if not body.get("success"):
        console.print(f"[red]✗[/red] {body.get('message')}: {body.get('error')}")
        sys.exit(1)

    alerts = body["data"]
    if not alerts:
        console.print("[dim]No alerts in history[/dim]")
        return
    table = Table(title=f"Alert History (latest {len(alerts)})", show_header=True)
    table.add_column("Triggered", style="dim")
    table.add_column("Severity")
    table.add_column("Rule")
    table.add_column("Status")
    table.add_column("Resolved", style="dim")
    for a in alerts:
        table.add_row(a["triggered_at"][:19], a["severity"], a["rule_name"], a["status"],
                      (a["resolved_at"] or "")[:19])
    console.print(table)


if __name__ == "__main__":
    cli()
