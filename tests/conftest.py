import os
from pathlib import Path

import pytest
from eth_abi import encode as abi_encode
from eth_utils import event_abi_to_log_topic, function_abi_to_4byte_selector, to_checksum_address
from hexbytes import HexBytes
from web3 import Web3

from playbook.context import ParentChain, RuntimeContext
from playbook.node_config import ROLLUP_CREATED_EVENT, get_event_abi
from playbook.params import CREATE_ROLLUP_METHOD, RollupParameters, get_input_types, get_method_abi
from playbook.utils import _load_yaml, load_rollup_creator_abi, params_filepath_from_name

# Common constants
ARBITRUM_SEPOLIA = 421614
PARENT_CHAIN_RPC = "https://sepolia-rollup.arbitrum.io/rpc"
ROLLUP_CREATOR = to_checksum_address("0xd2ec8376b1df436fab18120e416d3f2bec61275b")
DEPLOYER_ADDRESS = "0x5B38Da6a701c568545dCfcB03FcB875f56beddC4"
DEPLOYED_AT_BLOCK = 93_337_123

CORE_CONTRACT_EVENT_ARGUMENTS = (
    "inboxAddress",
    "outbox",
    "rollupEventInbox",
    "challengeManager",
    "adminProxy",
    "sequencerInbox",
    "bridge",
    "upgradeExecutor",
    "validatorUtils",
    "validatorWalletCreator",
)


# Utility functions
def random_address():
    return to_checksum_address(os.urandom(20))


def random_hash():
    return Web3.to_hex(os.urandom(32))


def encode_create_rollup(deploy_params):
    method_abi = get_method_abi(load_rollup_creator_abi(), CREATE_ROLLUP_METHOD)
    selector = function_abi_to_4byte_selector(method_abi)
    return HexBytes(selector + abi_encode(get_input_types(method_abi), [deploy_params]))


def rollup_created_log(factory_address, core_contracts):
    event_abi = get_event_abi(load_rollup_creator_abi(), ROLLUP_CREATED_EVENT)
    topics = [
        HexBytes(event_abi_to_log_topic(event_abi)),
        HexBytes(abi_encode(["address"], [core_contracts["rollupAddress"]])),
        HexBytes(abi_encode(["address"], [core_contracts["nativeToken"]])),
    ]
    data = abi_encode(
        ["address"] * len(CORE_CONTRACT_EVENT_ARGUMENTS),
        [core_contracts[name] for name in CORE_CONTRACT_EVENT_ARGUMENTS],
    )
    return {"address": factory_address, "topics": topics, "data": HexBytes(data)}


def unrelated_log(address=None):
    # e.g. an OwnershipTransferred or Initialized log from one of the new contracts
    return {
        "address": address or random_address(),
        "topics": [HexBytes(os.urandom(32)), HexBytes(bytes(12) + os.urandom(20))],
        "data": HexBytes(bytes(32)),
    }


def random_core_contracts():
    core_contracts = {name: random_address() for name in CORE_CONTRACT_EVENT_ARGUMENTS}
    core_contracts["rollupAddress"] = random_address()
    core_contracts["nativeToken"] = "0x" + "0" * 40
    return core_contracts


# Fakes
class FakeReceipt:
    def __init__(self, txn_hash, failed=False):
        self.txn_hash = txn_hash
        self.failed = failed


class FakeDeployer:
    """Records transfers in order; can be told to fail the k-th one."""

    def __init__(self, address=DEPLOYER_ADDRESS, fail_at=None):
        self.address = address
        self.fail_at = fail_at
        self.transfers = list()

    def transfer(self, account, value, **kwargs):
        self.transfers.append((account, value))
        if self.fail_at is not None and len(self.transfers) == self.fail_at:
            raise RuntimeError("replacement transaction underpriced")
        return FakeReceipt(random_hash())


class FakeClient:
    def __init__(self, balance=0):
        self.balances = dict()
        self.default_balance = balance
        self.transactions = dict()
        self.receipts = dict()

    def get_balance(self, address):
        return self.balances.get(address, self.default_balance)

    def get_transaction(self, txn_hash):
        return self.transactions[txn_hash]

    def get_transaction_receipt(self, txn_hash):
        return self.receipts[txn_hash]


class FakeFactory:
    """
    Stands in for the RollupCreator: records each createRollup call and
    publishes the matching transaction and receipt on the fake client.
    """

    def __init__(self, client, address=ROLLUP_CREATOR, revert=False, shuffle_logs=False):
        self.client = client
        self.address = address
        self.revert = revert
        self.shuffle_logs = shuffle_logs
        self.calls = list()
        self.core_contracts = random_core_contracts()

    def createRollup(self, deploy_params, sender=None, value=0, **kwargs):
        self.calls.append((deploy_params, sender, value))
        if self.revert:
            raise RuntimeError("execution reverted: ChainIdNotSet")

        txn_hash = random_hash()
        self.client.transactions[txn_hash] = {
            "hash": HexBytes(txn_hash),
            "from": sender.address,
            "to": self.address,
            "value": value,
            "input": encode_create_rollup(deploy_params),
        }
        logs = [
            unrelated_log(),
            unrelated_log(),
            rollup_created_log(self.address, self.core_contracts),
            unrelated_log(),
        ]
        if self.shuffle_logs:
            logs.reverse()
        self.client.receipts[txn_hash] = {
            "transactionHash": HexBytes(txn_hash),
            "status": 1,
            "blockNumber": DEPLOYED_AT_BLOCK,
            "logs": logs,
        }
        return FakeReceipt(txn_hash)


# Fixtures
@pytest.fixture
def params_config():
    return _load_yaml(params_filepath_from_name("arb-sepolia"))


@pytest.fixture
def rollup_parameters(params_config):
    return RollupParameters.from_config(params_config, connected_chain_id=ARBITRUM_SEPOLIA)


@pytest.fixture
def parent_chain():
    return ParentChain(chain_id=ARBITRUM_SEPOLIA, rpc_url=PARENT_CHAIN_RPC)


@pytest.fixture
def deployer():
    return FakeDeployer()


@pytest.fixture
def client():
    return FakeClient(balance=Web3.to_wei(0.005, "ether"))


@pytest.fixture
def factory(client):
    return FakeFactory(client)


@pytest.fixture
def context(deployer, client, parent_chain):
    return RuntimeContext(deployer=deployer, client=client, parent_chain=parent_chain)


@pytest.fixture
def artifact_filepath(tmp_path) -> Path:
    return tmp_path / "node-config.json"
