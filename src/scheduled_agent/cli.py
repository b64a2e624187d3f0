"""Command line entry point: agent server, sample provider and benchmark tools."""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from scheduled_agent.agent.runtime import create_llm
from scheduled_agent.benchmark.agent_client import HttpAgentClient
from scheduled_agent.benchmark.dataset import load_dataset
from scheduled_agent.benchmark.harness import BenchmarkHarness
from scheduled_agent.benchmark.judge import LLMJudge
from scheduled_agent.benchmark.report import (
    accuracy_pairs,
    list_result_files,
    load_results,
    summarize,
)
from scheduled_agent.benchmark.stats import BenchmarkStats, format_progress
from scheduled_agent.config import Settings
from scheduled_agent.obs.logconfig import configure_logging

console = Console()

app = typer.Typer(
    name="scheduled-agent",
    help="Tool-scheduling agent, sample MCP provider and A/B benchmark",
    rich_markup_mode="rich",
    no_args_is_help=True,
)
benchmark_app = typer.Typer(
    name="benchmark",
    help="Run and inspect scheduler vs. no-scheduler benchmarks",
    rich_markup_mode="rich",
    no_args_is_help=True,
)
app.add_typer(benchmark_app, name="benchmark")


@app.callback()
def main_callback(
    log_level: str = typer.Option("INFO", "--log-level", help="Python logging level"),
):
    """Scheduled agent command line."""
    configure_logging(log_level.upper())


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Bind address"),
    port: int = typer.Option(3002, help="Bind port"),
):
    """Serve the agent HTTP API."""
    import uvicorn

    console.print(f"[green]Agent API listening on http://{host}:{port}[/]")
    uvicorn.run("scheduled_agent.api.main:app", host=host, port=port)


@app.command()
def provider(
    host: str = typer.Option("127.0.0.1", help="Bind address"),
    port: int = typer.Option(3005, help="Bind port"),
    path: str = typer.Option("/mcp", help="MCP endpoint path"),
):
    """Serve the sample `scrape-fast` MCP tool provider over HTTP."""
    from scheduled_agent.providers.sample_server import run

    run(host=host, port=port, path=path)


@benchmark_app.command("run")
def run_benchmark(
    dataset: Path = typer.Argument(..., exists=True, dir_okay=False, help="Dataset JSON file"),
    agent_url: str = typer.Option("http://localhost:3002", help="Agent API base URL"),
    concurrency: int = typer.Option(None, min=1, help="Questions processed at once"),
    limit: int = typer.Option(None, min=1, help="Only run the first N questions"),
    output_dir: Path = typer.Option(None, help="Directory for result files"),
    deadline: float = typer.Option(None, min=0.0, help="Stop after this many seconds"),
    randomize: bool = typer.Option(False, help="Randomize which arm is issued first"),
):
    """Ask every dataset question with and without the scheduler and judge both."""
    settings = Settings.from_env()
    updates: dict[str, object] = {"randomize_order": randomize}
    if concurrency:
        updates["concurrency"] = concurrency
    if output_dir:
        updates["output_dir"] = output_dir
    if deadline:
        updates["deadline_seconds"] = deadline
    config = settings.benchmark.model_copy(update=updates)

    judge_llm = create_llm(settings.llm.for_judge())
    if judge_llm is None:
        console.print("[red]No judge model configured; set JUDGE_PROVIDER and its API key.[/]")
        raise typer.Exit(1)

    items = load_dataset(dataset)
    if limit:
        items = items[:limit]

    async def _run():
        async with HttpAgentClient(agent_url) as agent:
            harness = BenchmarkHarness(agent, LLMJudge(judge_llm), config, on_progress=_render)
            return await harness.run(items)

    summary = asyncio.run(_run())
    if summary.timed_out:
        console.print("[yellow]Deadline reached before every question finished.[/]")
    console.print(f"Benchmark complete. Results saved to [bold]{summary.output_file}[/]")


@benchmark_app.command("summarize")
def summarize_results(
    result_file: Path = typer.Argument(None, help="Result file (defaults to the newest)"),
    output_dir: Path = typer.Option(Path("benchmark-results"), help="Result directory"),
):
    """Print accuracy and latency for a saved benchmark run."""
    path = result_file or _newest(output_dir)
    trials = load_results(path)
    stats = summarize(trials)

    console.print(f"[bold]{path.name}[/]")
    table = Table(title="Benchmark Summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Scheduler", justify="right")
    table.add_column("No Scheduler", justify="right")
    table.add_row(
        "Accuracy",
        f"{stats.scheduled_accuracy:.2f}%",
        f"{stats.unscheduled_accuracy:.2f}%",
    )
    table.add_row(
        "Avg time",
        f"{stats.avg_scheduled_ms:.2f}ms",
        f"{stats.avg_unscheduled_ms:.2f}ms",
    )
    console.print(table)
    direction = "faster" if stats.scheduler_faster else "slower"
    console.print(
        f"Questions: {stats.processed}. Scheduler is "
        f"{stats.latency_delta_percent:.2f}% {direction}."
    )


@benchmark_app.command("accuracy")
def list_accuracy(
    output_dir: Path = typer.Option(Path("benchmark-results"), help="Result directory"),
):
    """Print (scheduled, unscheduled) correctness tuples for every result file."""
    files = list_result_files(output_dir)
    if not files:
        console.print(f"[yellow]No result files in {output_dir}[/]")
        raise typer.Exit(0)
    for path in files:
        console.print(f"[bold]{path.name}[/]")
        console.print(accuracy_pairs(load_results(path)), soft_wrap=True)


def _render(stats: BenchmarkStats, total: int) -> None:
    title, _, body = format_progress(stats, total).partition("\n")
    console.print(Panel(body.strip(), title=title.strip("= ")))


def _newest(output_dir: Path) -> Path:
    files = list_result_files(output_dir)
    if not files:
        console.print(f"[red]No result files in {output_dir}[/]")
        raise typer.Exit(1)
    return files[0]


def main():
    app()


if __name__ == "__main__":
    main()
