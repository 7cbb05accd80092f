#!/usr/bin/env python3
"""CLI tool for issuesync operations."""

import asyncio
import os
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from .common import setup_logging
from .config import CONFIG_PATH_ENV, load_config
from .graph.connector import GraphConnectorService
from .models.queue import WorkItemQueue
from .orchestration import (
    ORCHESTRATOR_NAME,
    BootstrapActivities,
    DurableEngine,
    OrchestrationStatus,
    register_bootstrap,
)
from .service import IssueSyncService
from .worker import NotificationWorker

console = Console()


def _mask(value: str) -> str:
    return "*" * len(value) if value else "Not set"


@click.group()
@click.option("--config", "config_path", default="config.yml", help="Configuration file path")
@click.pass_context
def cli(ctx, config_path):
    """Sync GitHub issues into a Microsoft Graph connector."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


@cli.command()
@click.option("--host", default="0.0.0.0", help="Host to bind to")
@click.option("--port", default=8080, help="Port to bind to")
@click.option("--reload", is_flag=True, help="Enable auto-reload")
@click.pass_context
def serve(ctx, host, port, reload):
    """Start the webhook and management API server."""
    try:
        config_path = ctx.obj["config_path"]
        if config_path and Path(config_path).exists():
            os.environ[CONFIG_PATH_ENV] = str(Path(config_path).resolve())
            console.print(f"📄 Config: {config_path}")

        console.print("🚀 Starting issuesync server...")
        console.print(f"📡 Host: {host}")
        console.print(f"🔌 Port: {port}")
        console.print(f"🔄 Reload: {reload}")

        import uvicorn
        uvicorn.run(
            "issuesync.ingest.server:create_app",
            factory=True,
            host=host,
            port=port,
            reload=reload,
            log_level="info"
        )

    except KeyboardInterrupt:
        console.print("⏹️  Server stopped by user")
    except Exception as e:
        console.print(f"❌ Server failed: {e}", style="red")
        sys.exit(1)


@cli.command()
@click.option("--block-ms", type=int, help="How long to block waiting for a message (overrides config)")
@click.pass_context
def worker(ctx, block_ms):
    """Run a worker process that re-syncs queued issues."""
    try:
        config = load_config(ctx.obj["config_path"])
        setup_logging(config.log_dir)

        console.print("🚀 Starting worker...")
        console.print(f"🔗 Redis: {config.queue.redis_url}")
        console.print(f"📦 Stream: {config.queue.stream_name}")

        consumer = NotificationWorker(IssueSyncService.from_config(config), WorkItemQueue(config.queue))
        consumer.install_signal_handlers()
        asyncio.run(consumer.run(block_ms))

    except KeyboardInterrupt:
        console.print("⏹️  Worker stopped by user")
    except Exception as e:
        console.print(f"❌ Worker failed: {e}", style="red")
        sys.exit(1)


@cli.command()
@click.option("--delete", is_flag=True, help="Delete the connection instead of creating it")
@click.pass_context
def bootstrap(ctx, delete):
    """Create the connection and schema, then crawl every issue."""
    try:
        config = load_config(ctx.obj["config_path"])
        setup_logging(config.log_dir)

        if delete:
            console.print(f"🗑️  Deleting connection {config.graph.connector_id}...")
            GraphConnectorService(config.graph, config.github).delete_connection()
            console.print("✅ Connection deleted")
            return

        sync_service = IssueSyncService.from_config(config)
        engine = DurableEngine()
        register_bootstrap(engine, BootstrapActivities(sync_service.connector, sync_service))
        instance_id = engine.start_new(
            ORCHESTRATOR_NAME, {"poll_interval": config.graph.schema_poll_interval}
        )

        console.print(f"🔄 Bootstrapping connection {config.graph.connector_id} ({instance_id})...")
        state = asyncio.run(engine.run(instance_id))

        output = state.output or {}
        if state.status != OrchestrationStatus.COMPLETED or not output.get("success"):
            detail = output.get("detail") or state.failure
            console.print(f"❌ Bootstrap failed ({output.get('reason', state.status.value)}): {detail}",
                          style="red")
            sys.exit(1)

        crawl = output["crawl"]
        console.print(f"✅ Crawled {crawl['total']} issues: {crawl['succeeded']} ingested, "
                      f"{crawl['failed']} failed in {crawl['elapsed_seconds']:.1f}s")

    except Exception as e:
        console.print(f"❌ Bootstrap failed: {e}", style="red")
        sys.exit(1)


@cli.command()
@click.argument("issue_number", type=int)
@click.pass_context
def sync_issue(ctx, issue_number):
    """Re-fetch one issue and upsert it into the connector."""
    try:
        config = load_config(ctx.obj["config_path"])
        service = IssueSyncService.from_config(config)

        console.print(f"🔍 Syncing issue #{issue_number} from {config.github.full_name}...")
        document = service.sync_issue(issue_number)
        console.print(f"✅ Issue #{document.issue_number} synced: {document.title}")

    except Exception as e:
        console.print(f"❌ Error syncing issue: {e}", style="red")
        sys.exit(1)


@cli.command()
@click.pass_context
def config(ctx):
    """Show current configuration."""
    try:
        cfg = load_config(ctx.obj["config_path"])

        table = Table(title="issuesync Configuration")
        table.add_column("Setting", style="cyan")
        table.add_column("Value", style="green")

        table.add_row("Repository", cfg.github.full_name)
        table.add_row("GitHub Token", _mask(cfg.github.token))
        table.add_row("Webhook Secret", _mask(cfg.github.webhook_secret))
        table.add_row("Log Webhook Payloads", str(cfg.github.log_webhook_payloads))
        table.add_row("Rate Limit Retries", str(cfg.github.rate_limit_retries))
        table.add_row("Graph Client ID", cfg.graph.client_id or "Not set")
        table.add_row("Graph Client Secret", _mask(cfg.graph.client_secret))
        table.add_row("Graph Tenant ID", cfg.graph.tenant_id or "Not set")
        table.add_row("Connector ID", cfg.graph.connector_id or "Not set")
        table.add_row("Result Template", cfg.graph.result_template_path)
        table.add_row("Schema Poll Interval", f"{cfg.graph.schema_poll_interval:g}s")
        table.add_row("Redis URL", cfg.queue.redis_url)
        table.add_row("Queue Stream", cfg.queue.stream_name)
        table.add_row("Max Deliveries", str(cfg.queue.max_deliveries))
        table.add_row("Log Directory", str(cfg.log_dir))

        console.print(table)

    except Exception as e:
        console.print(f"❌ Failed to load configuration: {e}", style="red")
        sys.exit(1)


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
