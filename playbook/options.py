from pathlib import Path

import click

from playbook.types import MinInt, PrivateKey, TransactionHash
from playbook.utils import list_params_files

params_option = click.option(
    "--params",
    "-p",
    "params_name",
    help="Name of a bundled rollup params file",
    type=click.Choice(list_params_files()),
    default="arb-sepolia",
    show_default=True,
)

params_file_option = click.option(
    "--params-file",
    help="Path to a custom rollup params file; overrides --params",
    type=click.Path(dir_okay=False, exists=True, path_type=Path),
    required=False,
)

chain_id_option = click.option(
    "--chain-id",
    "-c",
    help="Chain ID of the new chain; a random one is suggested when omitted",
    type=MinInt(1),
    required=False,
)

parent_chain_rpc_option = click.option(
    "--parent-chain-rpc",
    help="Parent chain RPC URL written into the node config",
    envvar="PARENT_CHAIN_RPC",
    required=True,
)

output_option = click.option(
    "--output",
    "-o",
    help="Filepath of the node config artifact; defaults to the params file setting",
    type=click.Path(dir_okay=False, exists=False, path_type=Path),
    required=False,
)

autosign_option = click.option(
    "--autosign",
    help="Sign transactions and accept prompts without asking",
    is_flag=True,
    default=False,
)

tx_hash_option = click.option(
    "--tx-hash",
    "-t",
    help="Hash of the rollup creation transaction",
    type=TransactionHash(),
    required=True,
)

batch_poster_key_option = click.option(
    "--batch-poster-key",
    help="Private key of the batch poster",
    envvar="BATCH_POSTER_PRIVATE_KEY",
    type=PrivateKey(),
    required=True,
)

validator_key_option = click.option(
    "--validator-key",
    help="Private key of the validator",
    envvar="VALIDATOR_PRIVATE_KEY",
    type=PrivateKey(),
    required=True,
)

artifact_option = click.option(
    "--artifact",
    "-a",
    help="Filepath of a node config artifact",
    type=click.Path(dir_okay=False, exists=True, path_type=Path),
    default="node-config.json",
    show_default=True,
)
