#!/usr/bin/python3

import click

from playbook.artifacts import read_node_config
from playbook.node_config import read_chain_info
from playbook.options import artifact_option

ROLLUP_FIELDS = ("rollup", "bridge", "inbox", "sequencer-inbox", "stake-token", "deployed-at")


@click.command(name="show-chain")
@artifact_option
def cli(artifact):
    """Show the chain recorded in a node config artifact."""
    node_config = read_node_config(artifact)
    try:
        chain_info = read_chain_info(node_config)
    except ValueError as e:
        raise click.ClickException(str(e))

    chain_config = chain_info["chain-config"]
    arbitrum = chain_config.get("arbitrum", {})
    mode = "AnyTrust" if arbitrum.get("DataAvailabilityCommittee") else "Rollup"

    click.secho("\nChain Information", fg="green")
    click.secho(f"    Chain ID:     {chain_config['chainId']}", fg="cyan")
    click.secho(f"    Chain Name:   {chain_info.get('chain-name')}", fg="cyan")
    click.secho(f"    Mode:         {mode}", fg="cyan")
    click.secho(f"    Owner:        {arbitrum.get('InitialChainOwner')}", fg="cyan")
    click.secho(f"    Parent Chain: {chain_info.get('parent-chain-id')}", fg="cyan")

    rollup = chain_info.get("rollup", {})
    click.secho("\nCore Contracts", fg="yellow")
    for index, field in enumerate(ROLLUP_FIELDS, start=1):
        click.secho(f"    {index}. {field} {rollup.get(field)}", fg="cyan")


if __name__ == "__main__":
    cli()
