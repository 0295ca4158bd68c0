"""Command line interface for redisbench."""

import sys
from pathlib import Path
from typing import Any, Dict, Optional
import click
import requests
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from .api.master_client import MasterClient
from .core.config import BenchConfig, ConfigLoader, StoreBackend, load_env_config, merge_configs
from .core.errors import BenchmarkError
from .core.runner import BenchmarkRunner, RunReport
from .core.sink import read_samples
from .utils.latency_recorder import summarize_samples
from .utils.logging import setup_logging, get_logger


console = Console()
logger = get_logger("cli")


@click.group()
@click.option('--log-level', default=None, help='Logging level')
@click.option('--log-file', help='Log file path')
@click.pass_context
def cli(ctx, log_level, log_file):
    """Redis latency and throughput benchmark."""
    ctx.ensure_object(dict)
    ctx.obj['log_level'] = log_level
    ctx.obj['log_file'] = log_file

    # Setup logging
    setup_logging(level=log_level or 'INFO', log_file=log_file)


def _load_config(config_file: Optional[str], overrides: Dict[str, Any]) -> BenchConfig:
    base = ConfigLoader.load(config_file) if config_file else BenchConfig()
    config = merge_configs(base, load_env_config())
    explicit = {
        name: value for name, value in overrides.items()
        if value is not None and not (isinstance(value, (list, tuple)) and not value)
    }
    return merge_configs(config, BenchConfig(**explicit))


@cli.command()
@click.option('--config', '-c', 'config_file', type=click.Path(exists=True, dir_okay=False),
              help='YAML configuration file')
@click.option('--redis-addr', '-a', multiple=True, help='Redis address host:port (repeat for cluster)')
@click.option('--read-addr', '-r', multiple=True, help='Read endpoint host:port (repeatable)')
@click.option('--password', help='Redis password')
@click.option('--db', type=int, help='Redis database')
@click.option('--backend', type=click.Choice([b.value for b in StoreBackend]), help='Store backend')
@click.option('--clients', '-n', type=int, help='Number of concurrent workers')
@click.option('--times', '-t', type=int, help='Operations per worker')
@click.option('--size', '-d', type=int, help='Payload size in bytes')
@click.option('--wait', '-w', type=float, help='Seconds to wait between write and read')
@click.option('--key-prefix', help='Key prefix')
@click.option('--peers', '-m', help='Comma separated peer addresses, the first is master')
@click.option('--node-addr', help="This node's address within the peer set")
@click.option('--bind-host', help='Host the master endpoint binds to')
@click.option('--settle-timeout', type=float, help='Master settlement deadline in seconds (0 = none)')
@click.option('--master-wait-timeout', type=float, help='Seconds a worker waits for the master')
@click.option('--sample-dir', help='Directory for sample logs')
@click.option('--cleanup/--no-cleanup', default=None, help='Delete benchmark keys after the run')
@click.pass_context
def run(ctx, config_file, redis_addr, read_addr, password, db, backend, clients, times, size, wait,
        key_prefix, peers, node_addr, bind_host, settle_timeout, master_wait_timeout, sample_dir, cleanup):
    """Run the benchmark on this node."""
    try:
        config = _load_config(config_file, {
            'redis_addrs': redis_addr,
            'read_addrs': read_addr,
            'password': password,
            'db': db,
            'backend': backend,
            'client_num': clients,
            'test_times': times,
            'data_size': size,
            'wait_time': wait,
            'key_prefix': key_prefix,
            'peers': peers,
            'node_addr': node_addr,
            'rpc_bind_host': bind_host,
            'settle_timeout': settle_timeout,
            'master_wait_timeout': master_wait_timeout,
            'sample_dir': sample_dir,
            'cleanup_enabled': cleanup,
        })

        # command line logging options win over the config file
        setup_logging(
            level=ctx.obj.get('log_level') or config.log_level,
            log_file=ctx.obj.get('log_file') or config.log_file
        )

        report = BenchmarkRunner(config).run()
        _display_run_report(report)

    except (BenchmarkError, ValidationError) as e:
        logger.error(f"Benchmark failed: {e}")
        console.print(f"[red]✗ Benchmark failed: {e}[/red]")
        sys.exit(1)


def _display_run_report(report: RunReport) -> None:
    """Display per-phase results of this node."""
    console.print(f"\n[bold]Node {report.order} ({report.role})[/bold]")

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Phase", style="cyan")
    table.add_column("Times", style="green")
    table.add_column("Duration", style="green")
    table.add_column("TPS", style="green")
    table.add_column("p90 ms", style="yellow")
    table.add_column("p95 ms", style="yellow")
    table.add_column("p99 ms", style="yellow")
    table.add_column("min ms", style="yellow")
    table.add_column("max ms", style="yellow")

    for phase_report in report.phases.values():
        result = phase_report.node_result
        latency = phase_report.latency
        table.add_row(
            phase_report.phase,
            f"{result.total_operations:,}",
            f"{result.duration_seconds:.3f}s",
            str(result.throughput_per_second),
            f"{latency.p90_ms:.3f}",
            f"{latency.p95_ms:.3f}",
            f"{latency.p99_ms:.3f}",
            f"{latency.min_ms:.3f}",
            f"{latency.max_ms:.3f}",
        )
    console.print(table)

    summaries = [p.summary for p in report.phases.values() if p.summary is not None]
    if report.role == "worker":
        console.print(f"[blue]See summary info on node 1 ({report.master_addr})[/blue]")
    elif report.role == "master" and summaries:
        _display_summaries(summaries)


def _display_summaries(summaries) -> None:
    """Display cluster-wide summaries on the master."""
    table = Table(show_header=True, header_style="bold magenta", title="Cluster Summary")
    table.add_column("Phase", style="cyan")
    table.add_column("Nodes", style="white")
    table.add_column("Times", style="green")
    table.add_column("Duration", style="green")
    table.add_column("TPS", style="green")
    table.add_column("p99 ms", style="yellow")
    table.add_column("Missing", style="red")

    for summary in summaries:
        table.add_row(
            summary.phase,
            str(summary.node_count),
            f"{summary.total_operations:,}",
            f"{summary.duration_seconds:.3f}s",
            str(summary.throughput_per_second),
            f"{summary.latency.p99_ms:.3f}" if summary.latency else "-",
            ", ".join(str(order) for order in summary.missing_nodes) or "-",
        )
    console.print(table)


@cli.command()
@click.option('--config', '-c', 'config_file', required=True, type=click.Path(exists=True, dir_okay=False),
              help='Configuration file to validate')
def validate(config_file):
    """Validate a configuration file."""
    try:
        console.print(f"[blue]Validating config: {config_file}[/blue]")
        config = ConfigLoader.load(config_file)
        config.validate_topology()
    except (BenchmarkError, ValidationError) as e:
        console.print(f"[red]✗ Validation failed: {e}[/red]")
        sys.exit(1)

    console.print("[green]✓ Valid configuration[/green]")

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Redis", ", ".join(config.redis_addrs))
    table.add_row("Read endpoints", ", ".join(config.effective_read_addrs))
    table.add_row("Clients", str(config.client_num))
    table.add_row("Times per client", str(config.test_times))
    table.add_row("Data size", f"{config.data_size} bytes")
    table.add_row("Mode", "multi-node" if config.is_multi_node else "standalone")
    if config.is_multi_node:
        table.add_row("Peers", ", ".join(config.peers))
        table.add_row("Node", config.node_addr)

    console.print(table)


@cli.command()
@click.argument('files', nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
def percentiles(files):
    """Print latency statistics of existing sample logs."""
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("File", style="cyan")
    table.add_column("Samples", style="white")
    table.add_column("p90 ms", style="yellow")
    table.add_column("p95 ms", style="yellow")
    table.add_column("p99 ms", style="yellow")
    table.add_column("min ms", style="green")
    table.add_column("max ms", style="green")

    try:
        for file_path in files:
            samples = read_samples(file_path)
            if samples.size == 0:
                table.add_row(Path(file_path).name, "0", "-", "-", "-", "-", "-")
                continue
            snapshot = summarize_samples(samples)
            label = "Write" if "write" in Path(file_path).name else "Read"
            logger.info(f"{label} percentile - {snapshot.describe()}")
            table.add_row(
                Path(file_path).name,
                str(snapshot.count),
                f"{snapshot.p90_ms:.6f}",
                f"{snapshot.p95_ms:.6f}",
                f"{snapshot.p99_ms:.6f}",
                f"{snapshot.min_ms:.6f}",
                f"{snapshot.max_ms:.6f}",
            )
    except BenchmarkError as e:
        console.print(f"[red]✗ {e}[/red]")
        sys.exit(1)

    console.print(table)


@cli.command('health-check')
@click.option('--master', '-m', 'master_addr', required=True, help='Master address host:port')
def health_check(master_addr):
    """Check the master endpoint of a multi-node run."""
    client = MasterClient(master_addr, timeout=5.0)
    try:
        health = client.health()
    except requests.RequestException as e:
        console.print(f"[red]✗ {master_addr}: {e}[/red]")
        sys.exit(1)
    finally:
        client.close()

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Master", style="cyan")
    table.add_column("Status", style="white")
    table.add_column("Role", style="green")
    table.add_column("Peers", style="yellow")
    table.add_row(
        master_addr,
        f"[green]✓ {health.get('status', 'unknown')}[/green]",
        str(health.get('role')),
        ", ".join(health.get('peers', [])),
    )
    console.print(table)


def main():
    """Entry point for the redisbench CLI."""
    cli()


if __name__ == '__main__':
    main()
