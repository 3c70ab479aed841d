"""Typer CLI for driving and inspecting the qos kernel."""

from __future__ import annotations

from dataclasses import asdict
import json

import typer

from . import __version__
from .bootstrap import build_kernel
from .budget import compute_allowance
from .config import KernelSettings, load_settings, settings_to_dict
from .driver import BusyProcess, SimulatedHost, TickDriver
from .errors import ConfigError, ProcessRegistryError, SchedulerError, StoreError
from .logging import configure_logging
from .models import HostContext
from .process import default_registry
from .store import open_store

app = typer.Typer(help="Budget-aware cooperative process kernel.")
config_app = typer.Typer(help="Config commands.")
app.add_typer(config_app, name="config")

BUSY_KIND = "busy"


def _settings_or_exit(**overrides: object) -> KernelSettings:
    try:
        return load_settings(**{key: value for key, value in overrides.items() if value is not None})
    except ConfigError as exc:
        typer.secho(f"Invalid configuration: {exc}", err=True, fg=typer.colors.RED)
        raise typer.Exit(2) from exc


@app.command("version")
def version() -> None:
    typer.echo(__version__)


@app.command("allowance")
def allowance(
    reserve: list[float] = typer.Option(
        None,
        "--reserve",
        help="Reserve level(s) to evaluate; defaults to a sweep from 0 to bucket_max.",
    ),
    tick_limit: float = typer.Option(500.0, "--tick-limit", help="Hard per-tick compute ceiling."),
    baseline_rate: float = typer.Option(20.0, "--baseline-rate", help="Fixed baseline compute rate."),
    cold_start: bool = typer.Option(False, "--cold-start", help="Apply the first-tick boost."),
    as_json: bool = typer.Option(False, "--json", help="Render the table as JSON."),
) -> None:
    settings = _settings_or_exit()
    levels = reserve or [settings.bucket_max * step / 20 for step in range(21)]
    rows = []
    for level in levels:
        host = HostContext(
            tick=0,
            tick_limit=tick_limit,
            baseline_rate=baseline_rate,
            reserve=level,
            cpu_used=lambda: 0.0,
            cold_start=cold_start,
        )
        rows.append({"reserve": level, "allowance": round(compute_allowance(host, settings), 4)})

    if as_json:
        typer.echo(json.dumps(rows, indent=2))
        return
    for row in rows:
        typer.echo(f"{row['reserve']:>10.1f}  {row['allowance']:>10.4f}")


@app.command("simulate")
def simulate(
    ticks: int = typer.Option(10, "--ticks", min=1, help="Number of ticks to drive."),
    workers: int = typer.Option(5, "--workers", min=0, help="Busy processes to seed on first run."),
    work_ms: float = typer.Option(2.0, "--work-ms", min=0.0, help="Process time burned per worker run."),
    reserve: float = typer.Option(10000.0, "--reserve", help="Starting reserve level."),
    tick_limit: float = typer.Option(500.0, "--tick-limit", help="Hard per-tick compute ceiling."),
    baseline_rate: float = typer.Option(20.0, "--baseline-rate", help="Fixed baseline compute rate."),
    detached: bool = typer.Option(False, "--detached", help="Run without budget limits."),
    store_backend: str | None = typer.Option(
        None, "--store", help="Durable store backend: memory, sqlite or redis."
    ),
    as_json: bool = typer.Option(False, "--json", help="Render tick summaries as JSON lines."),
) -> None:
    settings = _settings_or_exit(store_backend=store_backend)
    configure_logging(settings.log_level)

    try:
        store = open_store(settings)
        registry = default_registry(settings.root_process_kind)
        registry.register(BUSY_KIND, BusyProcess)
        kernel = build_kernel(settings, store=store, registry=registry)
        if kernel.scheduler.get_process_count() == 0:
            for _ in range(workers):
                kernel.scheduler.launch_process(BUSY_KIND, {"work_ms": work_ms})

        host = SimulatedHost(
            tick_limit=tick_limit,
            baseline_rate=baseline_rate,
            reserve=reserve,
            bucket_max=settings.bucket_max,
            detached=detached,
        )
        summaries = TickDriver(kernel, host).run(ticks)
        store.close()
    except (StoreError, SchedulerError, ProcessRegistryError) as exc:
        typer.secho(f"Simulation failed: {exc}", err=True, fg=typer.colors.RED)
        raise typer.Exit(2) from exc

    for summary in summaries:
        if as_json:
            typer.echo(json.dumps(asdict(summary), sort_keys=True))
        else:
            typer.echo(
                f"tick {summary.tick}: ran {summary.processes_run}/{summary.process_count} "
                f"used {summary.cpu_used:.2f}/{summary.allowance:.2f} "
                f"reserve {summary.reserve:.0f} stop={summary.stop_reason}"
            )


@config_app.command("show")
def config_show() -> None:
    settings = _settings_or_exit()
    typer.echo(json.dumps(settings_to_dict(settings), indent=2, sort_keys=True))


def main() -> None:
    app()


if __name__ == "__main__":
    main()
