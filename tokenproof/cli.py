"""CLI entry point for tokenproof."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated

import typer
import yaml
from rich import print as rprint
from rich.progress import BarColumn, Progress, TextColumn
from rich.table import Table

from tokenproof.chains import Chain
from tokenproof.config import TokenProofConfig, load_config
from tokenproof.config.loader import DEFAULT_CONFIG_TEMPLATE
from tokenproof.errors import SnapshotNotFoundError, TokenProofError
from tokenproof.logging_setup import configure_logging
from tokenproof.merkle.hashing import from_hex, verify_proof
from tokenproof.rebuild.status import RebuildState
from tokenproof.records.seed import seed_tokens
from tokenproof.records.sqlite_source import SQLiteRecordSource
from tokenproof.runtime import Runtime, build_runtime
from tokenproof.service.bootstrap import bootstrap, load_published

app = typer.Typer(
    name="tokenproof",
    help="Merkle membership proofs for citizen tokens, one tree per chain.",
)

config_app = typer.Typer(help="Manage tokenproof configuration.")
app.add_typer(config_app, name="config")

# Global state
_config: TokenProofConfig | None = None


def _get_config() -> TokenProofConfig:
    if _config is None:
        return load_config()
    return _config


@app.callback()
def main(
    config: Annotated[
        str | None, typer.Option("--config", "-c", help="Path to tokenproof.yaml")
    ] = None,
) -> None:
    """Global options."""
    global _config
    try:
        _config = load_config(config)
    except ValueError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    configure_logging(_config.log_level)


def _load_served(rt: Runtime) -> None:
    """Load the committed snapshot generation, or exit with a hint."""
    try:
        load_published(rt.holder, rt.store, rt.orchestrator.chains)
    except SnapshotNotFoundError as e:
        rprint(f"[yellow]{e}[/yellow] Run [bold]tokenproof rebuild[/bold] first.")
        raise typer.Exit(1)
    except TokenProofError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


def _roots_table(roots: dict[str, str], title: str) -> Table:
    table = Table(title=title)
    table.add_column("chain", style="cyan")
    table.add_column("root", style="green")
    for chain, root in roots.items():
        table.add_row(chain, root)
    return table


@app.command()
def serve(
    rebuild: bool = typer.Option(False, "--rebuild", help="Ignore snapshots and rebuild first"),
    host: str | None = typer.Option(None, "--host", help="Bind address"),
    port: int | None = typer.Option(None, "--port", help="Bind port"),
) -> None:
    """Load (or build) the trees, then serve proofs over HTTP."""
    import uvicorn

    from tokenproof.api import create_app

    cfg = _get_config()
    rt = build_runtime(cfg)
    try:
        bootstrap(
            rt.holder, rt.store, rt.orchestrator,
            force_rebuild=rebuild or cfg.server.rebuild_on_start,
        )
    except TokenProofError as e:
        rprint(f"[red]Failed to start server:[/red] {e}")
        raise typer.Exit(1)

    bind_host = host or cfg.server.host
    bind_port = port or cfg.server.port
    rprint(f"[green]Merkle proof server running on[/green] {bind_host}:{bind_port}")
    uvicorn_level = "warning" if cfg.log_level == "warn" else cfg.log_level
    uvicorn.run(create_app(rt), host=bind_host, port=bind_port, log_level=uvicorn_level)


@app.command()
def rebuild() -> None:
    """Rebuild every chain's tree from the record store and commit a new generation."""
    cfg = _get_config()
    rt = build_runtime(cfg)
    orchestrator = rt.orchestrator

    try:
        orchestrator.start_rebuild()
    except TokenProofError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    with Progress(
        TextColumn("[bold]{task.description}"),
        BarColumn(),
        TextColumn("{task.percentage:>3.0f}%"),
    ) as progress:
        overall = progress.add_task("overall", total=100)
        per_chain = {
            chain: progress.add_task(chain.value, total=100) for chain in orchestrator.chains
        }
        while True:
            status = orchestrator.wait(timeout=0.5)
            progress.update(overall, completed=status.overall)
            for chain, task_id in per_chain.items():
                progress.update(task_id, completed=status.chain_progress.get(chain, 0))
            if status.state != RebuildState.running:
                break

    if status.state != RebuildState.completed:
        rprint(f"[red]Rebuild failed:[/red] {status.error}")
        raise typer.Exit(1)

    rprint(_roots_table(rt.proofs.root_hashes(), f"Generation {status.generation}"))


@app.command()
def roots() -> None:
    """Show the root hash of every chain in the committed generation."""
    rt = build_runtime(_get_config())
    _load_served(rt)
    rprint(_roots_table(rt.proofs.root_hashes(), f"Generation {rt.proofs.generation()}"))


@app.command()
def proof(
    chain: str = typer.Argument(..., help="Chain, e.g. ETH"),
    citizen_id: str = typer.Argument(..., help="Citizen id"),
    token: str = typer.Argument(..., help="Token value (decimal or 0x-hex)"),
    verify: bool = typer.Option(False, "--verify", help="Check the proof against the root"),
    as_json: bool = typer.Option(False, "--json", help="Machine-readable output"),
) -> None:
    """Print the inclusion proof for a citizen token."""
    rt = build_runtime(_get_config())
    _load_served(rt)
    try:
        result = rt.proofs.get_proof(chain, citizen_id, token)
    except TokenProofError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    valid = None
    if verify:
        valid = verify_proof(
            from_hex(result.leaf), [from_hex(p) for p in result.proof], from_hex(result.root)
        )

    if as_json:
        data = result.model_dump(mode="json")
        if valid is not None:
            data["valid"] = valid
        typer.echo(json.dumps(data))
    else:
        table = Table(title=f"{result.chain.value} proof ({len(result.proof)} node(s))")
        table.add_column("#", justify="right", style="dim")
        table.add_column("sibling", style="green")
        for i, node in enumerate(result.proof):
            table.add_row(str(i), node)
        rprint(table)
        rprint(f"[dim]Leaf:[/dim] {result.leaf}")
        rprint(f"[dim]Root:[/dim] {result.root}")
        if valid is not None:
            rprint("[green]Proof verifies.[/green]" if valid else "[red]Proof does NOT verify.[/red]")

    if valid is False:
        raise typer.Exit(1)


@app.command()
def seed(
    citizens: int = typer.Option(100, "--citizens", help="Number of citizens"),
    tokens_per_chain: int = typer.Option(100, "--tokens-per-chain", help="Tokens per citizen per chain"),
    chains: Annotated[
        list[str] | None, typer.Option("--chain", help="Chain to seed (repeatable)")
    ] = None,
) -> None:
    """Fill the record store with random tokens for development."""
    cfg = _get_config()
    try:
        targets = [Chain.parse(c) for c in chains] if chains else list(cfg.tree.chains)
        source = SQLiteRecordSource(cfg.database.path, timeout=cfg.database.timeout)
    except TokenProofError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    try:
        inserted = seed_tokens(source, citizens, tokens_per_chain, targets)
        stats = source.stats()
    except (TokenProofError, ValueError) as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    finally:
        source.close()

    rprint(f"[green]Seeded[/green] {inserted} token(s) into {cfg.database.path}")
    table = Table(title="Tokens per chain")
    table.add_column("chain", style="cyan")
    table.add_column("count", justify="right", style="green")
    for chain_name, count in sorted(stats.items()):
        table.add_row(chain_name, str(count))
    rprint(table)


@config_app.command("show")
def config_show() -> None:
    """Print the resolved configuration as YAML."""
    cfg = _get_config()
    rprint(yaml.safe_dump(cfg.model_dump(mode="json"), sort_keys=False))


@config_app.command("init")
def config_init(
    path: str = typer.Option("tokenproof.yaml", "--path", help="Where to write the config"),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing file"),
) -> None:
    """Write a commented default config file."""
    dest = Path(path)
    if dest.exists() and not force:
        rprint(f"[yellow]{dest} already exists.[/yellow] Use --force to overwrite.")
        raise typer.Exit(1)
    dest.write_text(DEFAULT_CONFIG_TEMPLATE)
    rprint(f"[green]Wrote[/green] {dest}")
