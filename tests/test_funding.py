import pytest
from web3 import Web3

from playbook.accounts import provision_accounts
from playbook.errors import FundingError
from playbook.funding import FundingRequirement, fund_accounts

from conftest import FakeDeployer, FakeReceipt, random_hash

PER_ACCOUNT = Web3.to_wei(0.001, "ether")
BASE_STAKE = Web3.to_wei(0.00001, "ether")


def test_funding_requirement():
    requirement = FundingRequirement(
        base_stake=BASE_STAKE, per_account=PER_ACCOUNT, funded_accounts=3
    )
    # three node accounts plus one unit kept back for the deployer's gas
    assert requirement.minimum_balance == BASE_STAKE + 4 * PER_ACCOUNT
    assert requirement.is_met(Web3.to_wei(0.005, "ether"))
    assert requirement.is_met(requirement.minimum_balance)
    assert not requirement.is_met(requirement.minimum_balance - 1)
    assert not requirement.is_met(0)
    assert "0.00401" in requirement.describe()


def test_fund_accounts_in_order():
    deployer = FakeDeployer()
    node_accounts = provision_accounts()

    receipts = fund_accounts(deployer=deployer, node_accounts=node_accounts, amount=PER_ACCOUNT)

    assert len(receipts) == 3
    assert deployer.transfers == [(a.address, PER_ACCOUNT) for a in node_accounts]


@pytest.mark.parametrize("fail_at", [1, 2, 3])
def test_fund_accounts_stops_at_first_failure(fail_at):
    deployer = FakeDeployer(fail_at=fail_at)
    node_accounts = provision_accounts()

    with pytest.raises(FundingError, match=f"Transfer {fail_at}/3"):
        fund_accounts(deployer=deployer, node_accounts=node_accounts, amount=PER_ACCOUNT)

    # nothing is attempted after the failed transfer
    assert len(deployer.transfers) == fail_at
    assert [t[0] for t in deployer.transfers] == [
        a.address for a in node_accounts[:fail_at]
    ]


def test_fund_accounts_failed_receipt():
    class RevertingDeployer(FakeDeployer):
        def transfer(self, account, value, **kwargs):
            super().transfer(account, value, **kwargs)
            return FakeReceipt(random_hash(), failed=True)

    deployer = RevertingDeployer()
    with pytest.raises(FundingError, match="was not successful"):
        fund_accounts(deployer=deployer, node_accounts=provision_accounts(), amount=PER_ACCOUNT)
    assert len(deployer.transfers) == 1


def test_fund_accounts_on_local_chain(accounts):
    deployer = accounts[0]
    node_accounts = provision_accounts()

    receipts = fund_accounts(deployer=deployer, node_accounts=node_accounts, amount=PER_ACCOUNT)

    assert len(receipts) == 3
    assert not any(receipt.failed for receipt in receipts)
    for node_account in node_accounts:
        assert deployer.provider.get_balance(node_account.address) == PER_ACCOUNT
