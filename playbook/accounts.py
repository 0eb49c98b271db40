from typing import Callable, List, NamedTuple, Sequence

from eth_account import Account
from eth_account.signers.local import LocalAccount
from eth_typing import ChecksumAddress

from playbook.constants import NODE_ROLES, NodeRole
from playbook.errors import ProvisioningError


class NodeAccount(NamedTuple):
    """An operator keypair generated for one node role."""

    role: NodeRole
    private_key: str
    address: ChecksumAddress


def _to_node_account(role: NodeRole, account: LocalAccount) -> NodeAccount:
    private_key = account.key.hex()
    if not private_key.startswith("0x"):
        private_key = f"0x{private_key}"
    return NodeAccount(role=role, private_key=private_key, address=account.address)


def provision_accounts(
    roles: Sequence[NodeRole] = NODE_ROLES,
    create_account: Callable[[], LocalAccount] = Account.create,
) -> List[NodeAccount]:
    """
    Generates one fresh keypair per role, in the same order as the roles.
    Keys come from eth-account, which draws its entropy from the OS CSPRNG.
    """
    node_accounts = list()
    for role in roles:
        try:
            account = create_account()
        except Exception as e:
            raise ProvisioningError(f"Could not generate a {role.value} key: {e}") from e
        node_accounts.append(_to_node_account(role=role, account=account))

    addresses = {node_account.address for node_account in node_accounts}
    if len(addresses) != len(node_accounts):
        raise ProvisioningError("Generated node accounts are not unique.")

    return node_accounts


def validator_addresses(node_accounts: Sequence[NodeAccount]) -> List[ChecksumAddress]:
    return [a.address for a in node_accounts if a.role == NodeRole.VALIDATOR]


def batch_poster_account(node_accounts: Sequence[NodeAccount]) -> NodeAccount:
    for node_account in node_accounts:
        if node_account.role == NodeRole.BATCH_POSTER:
            return node_account
    raise ValueError("No batch poster account was provisioned.")


def validator_account(node_accounts: Sequence[NodeAccount]) -> NodeAccount:
    """Returns the validator whose key is written into the node config."""
    for node_account in node_accounts:
        if node_account.role == NodeRole.VALIDATOR:
            return node_account
    raise ValueError("No validator account was provisioned.")
