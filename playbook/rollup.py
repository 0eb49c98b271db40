from typing import Any, List, NamedTuple, Sequence

from ape.api import AccountAPI, ReceiptAPI
from eth_typing import ChecksumAddress
from hexbytes import HexBytes
from web3 import Web3

from playbook.errors import DeploymentError
from playbook.params import CREATE_ROLLUP_METHOD, DeploymentPlan, RollupParameters


class DeploymentResult(NamedTuple):
    transaction_hash: str
    confirmed: bool


def _normalize_hash(txn_hash: Any) -> str:
    return Web3.to_hex(HexBytes(txn_hash))


class RollupDeployer:
    """
    Submits the single createRollup transaction for a deployment plan.
    Either a confirmed transaction hash comes back or DeploymentError is raised.
    """

    def __init__(self, deployer: AccountAPI, parameters: RollupParameters, factory: Any = None):
        self.deployer = deployer
        self.parameters = parameters
        self._factory = factory

    @property
    def factory(self) -> Any:
        if self._factory is None:
            from ape import Contract

            self._factory = Contract(self.parameters.rollup_creator, abi=self.parameters.abi)
        return self._factory

    def _get_kwargs(self) -> dict:
        kwargs = {"sender": self.deployer, "value": self.parameters.retryables_fee}
        if self.parameters.required_confirmations is not None:
            kwargs["required_confirmations"] = self.parameters.required_confirmations
        return kwargs

    def deploy(
        self,
        plan: DeploymentPlan,
        validators: Sequence[ChecksumAddress],
        batch_poster: ChecksumAddress,
    ) -> DeploymentResult:
        try:
            deploy_params = self.parameters.prepare_deployment_params(
                plan=plan, validators=validators, batch_posters=[batch_poster]
            )
        except RollupParameters.Invalid as e:
            raise DeploymentError(str(e)) from e
        self._print_deployment_info(plan, validators, batch_poster)

        method = getattr(self.factory, CREATE_ROLLUP_METHOD)
        try:
            receipt = method(deploy_params.to_abi(), **self._get_kwargs())
        except Exception as e:
            raise DeploymentError(f"Rollup creation failed with error: {e}") from e

        return self._result_from_receipt(receipt)

    @staticmethod
    def _result_from_receipt(receipt: ReceiptAPI) -> DeploymentResult:
        txn_hash = getattr(receipt, "txn_hash", None)
        if not txn_hash:
            raise DeploymentError("Rollup creation returned no transaction hash.")
        txn_hash = _normalize_hash(txn_hash)
        if getattr(receipt, "failed", False):
            raise DeploymentError(f"Rollup creation transaction {txn_hash} reverted.")
        return DeploymentResult(transaction_hash=txn_hash, confirmed=True)

    def _print_deployment_info(
        self,
        plan: DeploymentPlan,
        validators: List[ChecksumAddress],
        batch_poster: ChecksumAddress,
    ) -> None:
        print(
            f"\nTransacting RollupCreator[{self.parameters.rollup_creator[:10]}].createRollup",
            f"\tChain ID: {plan.chain_id}",
            f"\tOwner: {plan.owner_address}",
            f"\tBase Stake: {plan.base_stake}",
            f"\tValidators: {', '.join(validators)}",
            f"\tBatch Poster: {batch_poster}",
            sep="\n",
        )
