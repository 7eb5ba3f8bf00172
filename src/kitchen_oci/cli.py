#!/usr/bin/env python3
"""kitchen-oci CLI"""

from __future__ import annotations

import os
from typing import Any

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from kitchen_oci.api import OCIApi
from kitchen_oci.channel import SshChannel
from kitchen_oci.config import config_summary, load_request
from kitchen_oci.lifecycle import LifecycleWaiter
from kitchen_oci.provision import ProvisioningOrchestrator
from kitchen_oci.state import StateFile
from kitchen_oci.teardown import TeardownOrchestrator

CONSOLE = Console()


@click.group()
def main():
    """Provision and tear down OCI test instances"""


@main.command()
@click.option("--config", "-c", "config_path", default="kitchen.yml", help="Driver configuration file")
@click.option("--state", "-s", "state_path", default=".kitchen/state.yml", help="State file path")
@click.option("--no-ssh", is_flag=True, help="Skip waiting for SSH and running post create scripts")
def create(config_path: os.PathLike | str, state_path: os.PathLike | str, no_ssh: bool):
    """Create the instance, volumes and attachments described by the configuration"""
    state_file = StateFile(state_path)
    try:
        request, settings = load_request(config_path)
        CONSOLE.print(
            Panel.fit(
                "\n".join(f"[cyan]{k}[/cyan]: {v}" for k, v in config_summary(request).items()),
                title="[bold blue]kitchen-oci create[/bold blue]",
                border_style="blue",
            )
        )
        orchestrator = ProvisioningOrchestrator(
            OCIApi(settings, CONSOLE),
            waiter=LifecycleWaiter(request.wait, CONSOLE),
            channel=None if no_ssh else SshChannel(console=CONSOLE),
            on_state=state_file.write,
            console=CONSOLE,
        )
        state = orchestrator.create(request, state_file.read())
        state_file.write(state)
        display_state(state)

    except Exception as e:
        CONSOLE.print(f"\n[bold red]❌ Error: {e.__class__.__name__}: {e}[/bold red]")
        CONSOLE.print(f"[dim]Partial state kept in {state_file.path}; run destroy to clean up[/dim]")
        raise click.Abort()


@main.command()
@click.option("--config", "-c", "config_path", default="kitchen.yml", help="Driver configuration file")
@click.option("--state", "-s", "state_path", default=".kitchen/state.yml", help="State file path")
def destroy(config_path: os.PathLike | str, state_path: os.PathLike | str):
    """Destroy everything recorded in the state file"""
    state_file = StateFile(state_path)
    try:
        request, settings = load_request(config_path)
        state = state_file.read()
        if not state:
            CONSOLE.print("[yellow]Nothing to destroy[/yellow]")
            return

        orchestrator = TeardownOrchestrator(
            OCIApi(settings, CONSOLE),
            request=request,
            waiter=LifecycleWaiter(request.wait, CONSOLE),
            channel=SshChannel(console=CONSOLE),
            on_state=state_file.write,
            console=CONSOLE,
        )
        remaining = orchestrator.destroy(state)
        if remaining:
            state_file.write(remaining)
        else:
            state_file.delete()

    except Exception as e:
        CONSOLE.print(f"\n[bold red]❌ Error: {e.__class__.__name__}: {e}[/bold red]")
        raise click.Abort()


@main.command()
@click.option("--state", "-s", "state_path", default=".kitchen/state.yml", help="State file path")
def show(state_path: os.PathLike | str):
    """Show the recorded state"""
    state = StateFile(state_path).read()
    if not state:
        CONSOLE.print("[yellow]No state recorded[/yellow]")
        return
    display_state(state)


def display_state(state: dict[str, Any]):
    """Display the state document in a table"""
    table = Table(title="Instance State", show_header=True, header_style="bold magenta")
    table.add_column("Key", style="cyan", width=20)
    table.add_column("Value", style="white")

    for key, value in state.items():
        if key == "password":
            value = "********"
        elif isinstance(value, list):
            value = "\n".join(f"{item.get('display_name', '')} <{item.get('id', '')}>" for item in value)
        table.add_row(key.replace("_", " ").title(), str(value))

    CONSOLE.print("\n")
    CONSOLE.print(table)


if __name__ == "__main__":
    main()
