#!/usr/bin/python3

import typing
from pathlib import Path

import click
from ape import networks
from ape.api import AccountAPI
from ape.cli import ConnectedProviderCommand, account_option, network_option

from playbook.confirm import _confirm_chain_deployment, _prompt_chain_id
from playbook.context import RuntimeContext
from playbook.errors import PlaybookError
from playbook.options import (
    autosign_option,
    chain_id_option,
    output_option,
    params_file_option,
    params_option,
    parent_chain_rpc_option,
)
from playbook.orchestrator import ChainDeployment
from playbook.params import RollupParameters
from playbook.utils import (
    _load_yaml,
    get_artifact_filepath,
    params_filepath_from_name,
    suggest_chain_id,
)


def prepare_deployment(
    params_filepath: Path,
    account: AccountAPI,
    parent_chain_rpc: str,
    output: typing.Optional[Path] = None,
) -> typing.Tuple[RuntimeContext, RollupParameters, Path]:
    """
    Loads and validates the rollup parameters against the connected network
    and builds the runtime context for one deployment.
    """
    provider = networks.provider
    config = _load_yaml(params_filepath)
    parameters = RollupParameters.from_config(config, connected_chain_id=provider.chain_id)
    artifact_filepath = output or get_artifact_filepath(config)
    context = RuntimeContext.from_provider(
        deployer=account, provider=provider, rpc_url=parent_chain_rpc
    )
    return context, parameters, artifact_filepath


def _print_deployment_info(context: RuntimeContext, params_filepath: Path, artifact: Path):
    print(
        f"Account: {context.deployer.address}",
        f"Params: {params_filepath}",
        f"Artifact: {artifact}",
        f"Parent Chain: {context.parent_chain.name} ({context.parent_chain.chain_id})",
        f"Parent Chain RPC: {context.parent_chain.rpc_url}",
        f"Network: {networks.provider.network.name}",
        sep="\n",
    )


@click.command(cls=ConnectedProviderCommand, name="deploy-chain")
@network_option(required=True)
@account_option()
@params_option
@params_file_option
@chain_id_option
@parent_chain_rpc_option
@output_option
@autosign_option
def cli(network, account, params_name, params_file, chain_id, parent_chain_rpc, output, autosign):
    """Deploy a new rollup chain and write its node configuration."""
    click.secho("\n▸ Deploy New Chain\n", fg="cyan", bold=True)

    params_filepath = params_file or params_filepath_from_name(params_name)
    try:
        context, parameters, artifact_filepath = prepare_deployment(
            params_filepath=params_filepath,
            account=account,
            parent_chain_rpc=parent_chain_rpc,
            output=output,
        )
    except ValueError as e:
        raise click.ClickException(str(e))

    if autosign:
        account.set_autosign(True)
    _print_deployment_info(context, params_filepath, artifact_filepath)

    if chain_id is None:
        suggested_chain_id = suggest_chain_id()
        chain_id = suggested_chain_id if autosign else _prompt_chain_id(suggested_chain_id)
    if not autosign:
        _confirm_chain_deployment(chain_id, deployer=context.deployer.address)

    deployment = ChainDeployment(
        context=context,
        parameters=parameters,
        chain_id=chain_id,
        artifact_filepath=artifact_filepath,
    )
    try:
        output_filepath = deployment.run()
    except PlaybookError as e:
        click.secho(f"✖ {e}", fg="red")
        if deployment.result is not None:
            txn_hash = deployment.result.transaction_hash
            raise click.ClickException(
                f"Chain {chain_id} was created in transaction {txn_hash} but its node config "
                "was not written; recover it with 'ape run derive_node_config' "
                "using the transaction hash and keys printed above."
            )
        raise click.ClickException(
            "Chain deployment failed; restart with a new chain id to try again."
        )

    click.secho(f"✔ Node config written to \"{output_filepath}\"", fg="green")


if __name__ == "__main__":
    cli()
