#!/usr/bin/python3
from pathlib import Path

import click
from ape import networks
from ape.cli import ConnectedProviderCommand, network_option

from playbook.artifacts import write_node_config
from playbook.constants import DEFAULT_ARTIFACT_FILENAME, DEFAULT_CHAIN_NAME
from playbook.context import ParentChain, ParentChainClient
from playbook.errors import PlaybookError
from playbook.node_config import ConfigDeriver
from playbook.options import (
    batch_poster_key_option,
    output_option,
    parent_chain_rpc_option,
    tx_hash_option,
    validator_key_option,
)


@click.command(cls=ConnectedProviderCommand, name="derive-node-config")
@network_option(required=True)
@tx_hash_option
@batch_poster_key_option
@validator_key_option
@parent_chain_rpc_option
@output_option
@click.option("--chain-name", help="Name of the chain", default=DEFAULT_CHAIN_NAME)
def cli(network, tx_hash, batch_poster_key, validator_key, parent_chain_rpc, output, chain_name):
    """Rebuild the node configuration of an already deployed chain from its creation tx."""
    client = ParentChainClient(networks.provider)
    parent_chain = ParentChain(chain_id=client.chain_id, rpc_url=parent_chain_rpc)

    try:
        node_configuration = ConfigDeriver(client).derive(
            txn_hash=tx_hash,
            parent_chain=parent_chain,
            batch_poster_private_key=batch_poster_key,
            validator_private_key=validator_key,
            chain_name=chain_name,
        )
    except PlaybookError as e:
        raise click.ClickException(str(e))

    try:
        output_filepath = write_node_config(
            node_configuration.render(), filepath=output or Path(DEFAULT_ARTIFACT_FILENAME)
        )
    except PlaybookError as e:
        raise click.ClickException(str(e))
    click.secho(f"Chain ID: {node_configuration.chain_id}", fg="green")
    click.secho(f"Node config written to {output_filepath}", fg="green")


if __name__ == "__main__":
    cli()
