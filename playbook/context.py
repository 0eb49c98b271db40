import typing
from typing import Any, NamedTuple

from ape.api import AccountAPI, ProviderAPI
from eth_typing import ChecksumAddress
from hexbytes import HexBytes

from playbook.constants import ARBITRUM_PARENT_CHAINS
from playbook.utils import get_chain_name


class ParentChain(NamedTuple):
    """The base chain the rollup settles to, as the node will see it."""

    chain_id: int
    rpc_url: str

    @property
    def name(self) -> str:
        return get_chain_name(self.chain_id)

    @property
    def is_arbitrum(self) -> bool:
        return self.chain_id in ARBITRUM_PARENT_CHAINS


class ParentChainClient:
    """
    Read access to the parent chain through a connected ape provider.
    Every call blocks until the node responds.
    """

    def __init__(self, provider: ProviderAPI):
        self.provider = provider

    @property
    def chain_id(self) -> int:
        return self.provider.chain_id

    def get_balance(self, address: ChecksumAddress) -> int:
        return self.provider.get_balance(address)

    def get_transaction(self, txn_hash: typing.Union[str, bytes]) -> typing.Mapping[str, Any]:
        return self.provider.web3.eth.get_transaction(HexBytes(txn_hash))

    def get_transaction_receipt(
        self, txn_hash: typing.Union[str, bytes]
    ) -> typing.Mapping[str, Any]:
        return self.provider.web3.eth.get_transaction_receipt(HexBytes(txn_hash))


class RuntimeContext:
    """
    Everything one deployment run needs from its environment.
    Built once per invocation and handed to each stage.
    """

    def __init__(self, deployer: AccountAPI, client: ParentChainClient, parent_chain: ParentChain):
        self.deployer = deployer
        self.client = client
        self.parent_chain = parent_chain

    @classmethod
    def from_provider(
        cls, deployer: AccountAPI, provider: ProviderAPI, rpc_url: str
    ) -> "RuntimeContext":
        client = ParentChainClient(provider)
        parent_chain = ParentChain(chain_id=client.chain_id, rpc_url=rpc_url)
        return cls(deployer=deployer, client=client, parent_chain=parent_chain)

    def deployer_balance(self) -> int:
        return self.client.get_balance(self.deployer.address)
