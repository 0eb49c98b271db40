from typing import List, NamedTuple, Optional, Sequence

from ape.api import AccountAPI, ReceiptAPI
from web3 import Web3

from playbook.accounts import NodeAccount
from playbook.constants import DEPLOYER_GAS_RESERVE_UNITS
from playbook.errors import FundingError


class FundingRequirement(NamedTuple):
    base_stake: int
    per_account: int
    funded_accounts: int
    reserve_units: int = DEPLOYER_GAS_RESERVE_UNITS

    @property
    def minimum_balance(self) -> int:
        """The deployer balance needed before the first transfer is issued."""
        return self.base_stake + self.per_account * (self.funded_accounts + self.reserve_units)

    def is_met(self, balance: int) -> bool:
        return balance >= self.minimum_balance

    def describe(self) -> str:
        return (
            f"{Web3.from_wei(self.minimum_balance, 'ether')} ETH "
            f"(base stake {Web3.from_wei(self.base_stake, 'ether')} + "
            f"{self.funded_accounts + self.reserve_units} x "
            f"{Web3.from_wei(self.per_account, 'ether')})"
        )


def fund_accounts(
    deployer: AccountAPI,
    node_accounts: Sequence[NodeAccount],
    amount: int,
    required_confirmations: Optional[int] = None,
) -> List[ReceiptAPI]:
    """
    Sends `amount` wei from the deployer to each node account, one at a time
    and in provisioning order, since every transfer consumes the next deployer nonce.
    The first failure stops the loop; transfers already confirmed stay on-chain.
    """
    kwargs = {}
    if required_confirmations is not None:
        kwargs["required_confirmations"] = required_confirmations

    receipts = list()
    for index, node_account in enumerate(node_accounts, start=1):
        print(
            f"\tSending {Web3.from_wei(amount, 'ether')} ETH to "
            f"{node_account.role.value} {node_account.address}"
        )
        try:
            receipt = deployer.transfer(node_account.address, amount, **kwargs)
        except Exception as e:
            raise FundingError(
                f"Transfer {index}/{len(node_accounts)} to {node_account.role.value} "
                f"{node_account.address} failed: {e}"
            ) from e

        if getattr(receipt, "failed", False):
            raise FundingError(
                f"Transfer {index}/{len(node_accounts)} to {node_account.role.value} "
                f"{node_account.address} was not successful (tx {receipt.txn_hash})."
            )
        receipts.append(receipt)

    return receipts
