from enum import Enum
from pathlib import Path
from typing import List, Optional

from web3 import Web3

from playbook.accounts import (
    NodeAccount,
    batch_poster_account,
    provision_accounts,
    validator_account,
    validator_addresses,
)
from playbook.artifacts import check_artifact_filepath, write_node_config
from playbook.constants import NODE_ROLES, ZERO_ADDRESS
from playbook.context import RuntimeContext
from playbook.errors import PreconditionError
from playbook.funding import fund_accounts
from playbook.node_config import ConfigDeriver, NodeConfiguration, read_chain_config
from playbook.params import DeploymentPlan, RollupParameters
from playbook.rollup import DeploymentResult, RollupDeployer


class DeploymentState(Enum):
    IDLE = "idle"
    CHECK_BALANCE = "check balance"
    PROVISION = "provision"
    FUND = "fund"
    DEPLOY = "deploy"
    DERIVE_CONFIG = "derive config"
    PERSIST = "persist"
    DONE = "done"
    FAILED = "failed"


STEPS = {
    DeploymentState.CHECK_BALANCE: "Checking the deployer balance...",
    DeploymentState.PROVISION: "Generating the validator keys...",
    DeploymentState.FUND: "Sending test tokens to the validator accounts...",
    DeploymentState.DEPLOY: "Deploying the rollup contracts...",
    DeploymentState.DERIVE_CONFIG: "Deriving the node configuration...",
    DeploymentState.PERSIST: "Generating node configuration file...",
}


class ChainDeployment:
    """
    Runs one chain deployment attempt from a fresh set of keys to a written node config.
    Steps run strictly in order and a failure in any of them ends the attempt;
    funded accounts and the creation transaction are never compensated, so a failed
    attempt is retried with a new ChainDeployment and a new chain id.
    """

    def __init__(
        self,
        context: RuntimeContext,
        parameters: RollupParameters,
        chain_id: int,
        artifact_filepath: Path,
        rollup_deployer: Optional[RollupDeployer] = None,
        config_deriver: Optional[ConfigDeriver] = None,
    ):
        self.context = context
        self.parameters = parameters
        self.artifact_filepath = artifact_filepath
        self.plan: DeploymentPlan = parameters.plan(
            chain_id=chain_id, owner_address=context.deployer.address
        )
        self.funding_requirement = parameters.funding_requirement(len(NODE_ROLES))
        self.rollup_deployer = rollup_deployer or RollupDeployer(
            deployer=context.deployer, parameters=parameters
        )
        self.config_deriver = config_deriver or ConfigDeriver(
            client=context.client, abi=parameters.abi
        )

        self.state = DeploymentState.IDLE
        self.failed_state: Optional[DeploymentState] = None
        self.node_accounts: List[NodeAccount] = list()
        self.result: Optional[DeploymentResult] = None
        self.node_configuration: Optional[NodeConfiguration] = None
        self.output_filepath: Optional[Path] = None

    @property
    def chain_id(self) -> int:
        return self.plan.chain_id

    def _transition(self, state: DeploymentState) -> None:
        self.state = state
        if state in STEPS:
            position = list(STEPS).index(state) + 1
            print(f"[{position}/{len(STEPS)}] {STEPS[state]}")

    def run(self) -> Path:
        if self.state != DeploymentState.IDLE:
            raise RuntimeError(
                f"Chain deployment already {self.state.value}; start a new one with a new chain id."
            )

        print(f"\nStarting deployment of chain {self.chain_id}...")
        try:
            self._check_balance()
            self._provision()
            self._fund()
            self._deploy()
            self._derive_config()
            self._persist()
        except Exception:
            self._fail()
            raise

        self.state = DeploymentState.DONE
        return self.output_filepath

    def _fail(self) -> None:
        self.failed_state = self.state
        self.state = DeploymentState.FAILED
        print(f"x Chain deployment failed during '{self.failed_state.value}'.")
        if self.result is not None:
            # the chain exists on the parent chain; only the artifact is missing
            batch_poster = batch_poster_account(self.node_accounts)
            validator = validator_account(self.node_accounts)
            print(
                f"(i) Rollup was created in transaction {self.result.transaction_hash}.",
                "Recover the node config with 'ape run derive_node_config' using:",
                f"\t--tx-hash {self.result.transaction_hash}",
                f"\tBATCH_POSTER_PRIVATE_KEY={batch_poster.private_key}",
                f"\tVALIDATOR_PRIVATE_KEY={validator.private_key}",
                sep="\n",
            )

    def _check_balance(self) -> None:
        self._transition(DeploymentState.CHECK_BALANCE)
        check_artifact_filepath(self.artifact_filepath)
        self._check_deployment_params()
        try:
            balance = self.context.deployer_balance()
        except Exception as e:
            raise PreconditionError(
                f"Could not read the balance of deployer {self.context.deployer.address}: {e}"
            ) from e
        if not self.funding_requirement.is_met(balance):
            raise PreconditionError(
                f"Insufficient balance to deploy chain: deployer {self.context.deployer.address} "
                f"has {Web3.from_wei(balance, 'ether')} ETH, needs at least "
                f"{self.funding_requirement.describe()}. Please top up the account."
            )

    def _check_deployment_params(self) -> None:
        """Resolves the createRollup arguments with placeholder accounts before any transfer."""
        placeholders = [ZERO_ADDRESS] * len(NODE_ROLES)
        try:
            self.parameters.prepare_deployment_params(
                plan=self.plan, validators=placeholders[:-1], batch_posters=placeholders[-1:]
            )
        except RollupParameters.Invalid as e:
            raise PreconditionError(
                f"Invalid deployment parameters for chain {self.chain_id}: {e}"
            ) from e

    def _provision(self) -> None:
        self._transition(DeploymentState.PROVISION)
        self.node_accounts = provision_accounts(NODE_ROLES)
        for node_account in self.node_accounts:
            print(f"\t{node_account.role.value}: {node_account.address}")

    def _fund(self) -> None:
        self._transition(DeploymentState.FUND)
        fund_accounts(
            deployer=self.context.deployer,
            node_accounts=self.node_accounts,
            amount=self.parameters.per_account_funding,
            required_confirmations=self.parameters.required_confirmations,
        )

    def _deploy(self) -> None:
        self._transition(DeploymentState.DEPLOY)
        self.result = self.rollup_deployer.deploy(
            plan=self.plan,
            validators=validator_addresses(self.node_accounts),
            batch_poster=batch_poster_account(self.node_accounts).address,
        )
        print(f"\tRollup created in transaction {self.result.transaction_hash}")

    def _derive_config(self) -> None:
        self._transition(DeploymentState.DERIVE_CONFIG)
        self.node_configuration = self.config_deriver.derive(
            txn_hash=self.result.transaction_hash,
            parent_chain=self.context.parent_chain,
            batch_poster_private_key=batch_poster_account(self.node_accounts).private_key,
            validator_private_key=validator_account(self.node_accounts).private_key,
            chain_name=self.parameters.chain_name,
        )

    def _persist(self) -> None:
        self._transition(DeploymentState.PERSIST)
        node_config = self.node_configuration.render()
        self.output_filepath = write_node_config(node_config, filepath=self.artifact_filepath)
        chain_config = read_chain_config(node_config)
        print(f"\nChain deployed successfully!\n  Chain ID:       {chain_config['chainId']}")
