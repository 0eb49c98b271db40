import json
import typing
from typing import Any, Dict, List, NamedTuple, Optional, Sequence

from eth_abi import decode as abi_decode
from eth_abi.exceptions import DecodingError as ABIDecodingError
from eth_typing import ChecksumAddress
from eth_utils import (
    collapse_if_tuple,
    event_abi_to_log_topic,
    function_abi_to_4byte_selector,
    to_checksum_address,
)
from hexbytes import HexBytes
from web3 import Web3
from web3.exceptions import TransactionNotFound
from eth_typing import ABI, ABIEvent, ABIFunction

from playbook.constants import DEFAULT_CHAIN_NAME
from playbook.context import ParentChain
from playbook.errors import DecodingError, RPCError
from playbook.params import CREATE_ROLLUP_METHOD, get_input_types, get_method_abi
from playbook.utils import load_rollup_creator_abi

ROLLUP_CREATED_EVENT = "RollupCreated"

# RollupCreated argument name -> core contract name used in node configs
CORE_CONTRACT_NAMES = {
    "rollupAddress": "rollup",
    "nativeToken": "nativeToken",
    "inboxAddress": "inbox",
    "outbox": "outbox",
    "rollupEventInbox": "rollupEventInbox",
    "challengeManager": "challengeManager",
    "adminProxy": "adminProxy",
    "sequencerInbox": "sequencerInbox",
    "bridge": "bridge",
    "upgradeExecutor": "upgradeExecutor",
    "validatorUtils": "validatorUtils",
    "validatorWalletCreator": "validatorWalletCreator",
}


class CreateRollupInputs(NamedTuple):
    """The parts of the createRollup calldata the node config depends on."""

    chain_id: int
    chain_config: Dict[str, Any]
    stake_token: ChecksumAddress
    owner: ChecksumAddress
    validators: List[ChecksumAddress]
    batch_posters: List[ChecksumAddress]


class CoreContracts(NamedTuple):
    rollup: ChecksumAddress
    native_token: ChecksumAddress
    inbox: ChecksumAddress
    outbox: ChecksumAddress
    rollup_event_inbox: ChecksumAddress
    challenge_manager: ChecksumAddress
    admin_proxy: ChecksumAddress
    sequencer_inbox: ChecksumAddress
    bridge: ChecksumAddress
    upgrade_executor: ChecksumAddress
    validator_utils: ChecksumAddress
    validator_wallet_creator: ChecksumAddress
    deployed_at_block_number: int

    @classmethod
    def from_event_arguments(cls, arguments: Dict[str, Any], block_number: int) -> "CoreContracts":
        named = {CORE_CONTRACT_NAMES[k]: to_checksum_address(v) for k, v in arguments.items()}
        return cls(
            rollup=named["rollup"],
            native_token=named["nativeToken"],
            inbox=named["inbox"],
            outbox=named["outbox"],
            rollup_event_inbox=named["rollupEventInbox"],
            challenge_manager=named["challengeManager"],
            admin_proxy=named["adminProxy"],
            sequencer_inbox=named["sequencerInbox"],
            bridge=named["bridge"],
            upgrade_executor=named["upgradeExecutor"],
            validator_utils=named["validatorUtils"],
            validator_wallet_creator=named["validatorWalletCreator"],
            deployed_at_block_number=int(block_number),
        )

    def as_dict(self) -> Dict[str, Any]:
        """Core contracts keyed by contract role, in camelCase."""
        return {
            "rollup": self.rollup,
            "nativeToken": self.native_token,
            "inbox": self.inbox,
            "outbox": self.outbox,
            "rollupEventInbox": self.rollup_event_inbox,
            "challengeManager": self.challenge_manager,
            "adminProxy": self.admin_proxy,
            "sequencerInbox": self.sequencer_inbox,
            "bridge": self.bridge,
            "upgradeExecutor": self.upgrade_executor,
            "validatorUtils": self.validator_utils,
            "validatorWalletCreator": self.validator_wallet_creator,
            "deployedAtBlockNumber": self.deployed_at_block_number,
        }


#
# Calldata
#


def _name_components(components: Sequence[Dict], values: Sequence[Any]) -> Dict[str, Any]:
    named = dict()
    for component, value in zip(components, values):
        if component["type"] == "tuple":
            value = _name_components(component["components"], value)
        named[component["name"]] = value
    return named


def decode_create_rollup_input(
    calldata: typing.Union[str, bytes], method_abi: ABIFunction
) -> CreateRollupInputs:
    """Recovers the createRollup arguments exactly as they were submitted on-chain."""
    data = HexBytes(calldata)
    selector = function_abi_to_4byte_selector(method_abi)
    if data[:4] != selector:
        raise DecodingError(
            f"Transaction input is not a {method_abi['name']} call "
            f"(selector {Web3.to_hex(data[:4])} != {Web3.to_hex(selector)}); "
            "wrong transaction hash or unsupported factory version."
        )

    try:
        values = abi_decode(get_input_types(method_abi), bytes(data[4:]))
    except (ABIDecodingError, ValueError, OverflowError) as e:
        raise DecodingError(f"Could not decode {method_abi['name']} calldata: {e}") from e

    deploy_params = _name_components(method_abi["inputs"][0]["components"], values[0])
    config = deploy_params["config"]
    try:
        chain_config = json.loads(config["chainConfig"])
    except ValueError as e:
        raise DecodingError(f"Chain config embedded in calldata is not valid JSON: {e}") from e
    if not isinstance(chain_config, dict) or "chainId" not in chain_config:
        raise DecodingError("Chain config embedded in calldata has no chainId.")
    if chain_config["chainId"] != config["chainId"]:
        raise DecodingError(
            f"Chain config embedded in calldata is for chain {chain_config['chainId']}, "
            f"but the rollup is created with chain id {config['chainId']}."
        )

    return CreateRollupInputs(
        chain_id=config["chainId"],
        chain_config=chain_config,
        stake_token=to_checksum_address(config["stakeToken"]),
        owner=to_checksum_address(config["owner"]),
        validators=[to_checksum_address(a) for a in deploy_params["validators"]],
        batch_posters=[to_checksum_address(a) for a in deploy_params["batchPosters"]],
    )


#
# Receipt
#


def get_event_abi(abi: ABI, name: str) -> ABIEvent:
    event_abis = [entry for entry in abi if entry.get("type") == "event" and entry["name"] == name]
    if len(event_abis) != 1:
        raise ValueError(f"Expected exactly one '{name}' event in ABI, got {len(event_abis)}")
    return event_abis[0]


def _decode_log(log: typing.Mapping[str, Any], event_abi: ABIEvent) -> Dict[str, Any]:
    topics = [HexBytes(t) for t in log["topics"]]
    indexed_inputs = [i for i in event_abi["inputs"] if i["indexed"]]
    data_inputs = [i for i in event_abi["inputs"] if not i["indexed"]]
    if len(topics) != len(indexed_inputs) + 1:
        raise DecodingError(
            f"{event_abi['name']} log has {len(topics)} topics, "
            f"expected {len(indexed_inputs) + 1}."
        )

    arguments = dict()
    try:
        for abi_input, topic in zip(indexed_inputs, topics[1:]):
            (arguments[abi_input["name"]],) = abi_decode([abi_input["type"]], bytes(topic))
        data_values = abi_decode(
            [collapse_if_tuple(i) for i in data_inputs], bytes(HexBytes(log["data"]))
        )
    except (ABIDecodingError, ValueError, OverflowError) as e:
        raise DecodingError(f"Could not decode {event_abi['name']} log: {e}") from e

    for abi_input, value in zip(data_inputs, data_values):
        arguments[abi_input["name"]] = value

    # restore ABI order regardless of indexed/data split
    return {i["name"]: arguments[i["name"]] for i in event_abi["inputs"]}


def decode_core_contracts(
    receipt: typing.Mapping[str, Any],
    event_abi: ABIEvent,
    factory_address: Optional[ChecksumAddress] = None,
) -> CoreContracts:
    """
    Finds the factory's RollupCreated event among all receipt logs,
    wherever it sits in log order, and decodes the core contract addresses.
    """
    topic = event_abi_to_log_topic(event_abi)
    matches = list()
    for log in receipt["logs"]:
        topics = log.get("topics") or []
        if not topics or HexBytes(topics[0]) != topic:
            continue
        if factory_address and to_checksum_address(log["address"]) != factory_address:
            continue
        matches.append(log)

    if not matches:
        raise DecodingError(
            f"No {event_abi['name']} event found in receipt; "
            "wrong transaction hash or unsupported factory version."
        )
    if len(matches) > 1:
        raise DecodingError(f"Found {len(matches)} {event_abi['name']} events, expected one.")

    arguments = _decode_log(matches[0], event_abi)
    return CoreContracts.from_event_arguments(arguments, block_number=receipt["blockNumber"])


#
# Node config
#


def _strip_private_key_prefix(private_key: str) -> str:
    return private_key[2:] if private_key.startswith("0x") else private_key


class NodeConfiguration(NamedTuple):
    chain_name: str
    chain_config: Dict[str, Any]
    core_contracts: CoreContracts
    stake_token: ChecksumAddress
    batch_poster_private_key: str
    validator_private_key: str
    parent_chain_id: int
    parent_chain_rpc_url: str
    parent_chain_is_arbitrum: bool

    @property
    def chain_id(self) -> int:
        return self.chain_config["chainId"]

    def render(self) -> Dict[str, Any]:
        return prepare_node_config(self)


def prepare_node_config(configuration: NodeConfiguration) -> Dict[str, Any]:
    """Renders a node configuration into the nitro node config layout."""
    core_contracts = configuration.core_contracts
    chain_info = [
        {
            "chain-id": configuration.chain_id,
            "parent-chain-id": configuration.parent_chain_id,
            "parent-chain-is-arbitrum": configuration.parent_chain_is_arbitrum,
            "chain-name": configuration.chain_name,
            "chain-config": configuration.chain_config,
            "rollup": {
                "bridge": core_contracts.bridge,
                "inbox": core_contracts.inbox,
                "sequencer-inbox": core_contracts.sequencer_inbox,
                "rollup": core_contracts.rollup,
                "validator-utils": core_contracts.validator_utils,
                "validator-wallet-creator": core_contracts.validator_wallet_creator,
                "stake-token": configuration.stake_token,
                "deployed-at": core_contracts.deployed_at_block_number,
            },
        }
    ]

    node_config = {
        "chain": {
            "info-json": json.dumps(chain_info),
            "name": configuration.chain_name,
        },
        "parent-chain": {
            "connection": {"url": configuration.parent_chain_rpc_url},
        },
        "http": {
            "addr": "0.0.0.0",
            "port": 8449,
            "vhosts": ["*"],
            "corsdomain": ["*"],
            "api": ["eth", "net", "web3", "arb", "debug"],
        },
        "node": {
            "sequencer": True,
            "delayed-sequencer": {
                "enable": True,
                "use-merge-finality": False,
                "finalize-distance": 1,
            },
            "batch-poster": {
                "max-size": 90000,
                "enable": True,
                "parent-chain-wallet": {
                    "private-key": _strip_private_key_prefix(
                        configuration.batch_poster_private_key
                    ),
                },
            },
            "staker": {
                "enable": True,
                "strategy": "MakeNodes",
                "parent-chain-wallet": {
                    "private-key": _strip_private_key_prefix(configuration.validator_private_key),
                },
            },
            "dangerous": {"no-sequencer-coordinator": True},
        },
        "execution": {
            "forwarding-target": "",
            "sequencer": {
                "enable": True,
                "max-tx-data-size": 85000,
                "max-block-speed": "250ms",
            },
            "caching": {"archive": True},
        },
    }

    if configuration.chain_config.get("arbitrum", {}).get("DataAvailabilityCommittee"):
        node_config["node"]["data-availability"] = {
            "enable": True,
            "sequencer-inbox-address": core_contracts.sequencer_inbox,
            "parent-chain-node-url": configuration.parent_chain_rpc_url,
            "rest-aggregator": {"enable": True, "urls": []},
            "rpc-aggregator": {"enable": True, "assumed-honest": 1, "backends": []},
        }

    return node_config


def read_chain_info(node_config: Dict[str, Any]) -> Dict[str, Any]:
    """Reads the chain info entry back out of a rendered node config."""
    try:
        chain_info = json.loads(node_config["chain"]["info-json"])[0]
        chain_info["chain-config"]["chainId"]
    except (KeyError, IndexError, TypeError, ValueError) as e:
        raise ValueError(f"Node config has no chain config: {e}") from e
    return chain_info


def read_chain_config(node_config: Dict[str, Any]) -> Dict[str, Any]:
    return read_chain_info(node_config)["chain-config"]


class ConfigDeriver:
    """
    Rebuilds the deployed chain from the parent chain itself: the chain config
    from the creation calldata and the core contracts from the receipt logs.
    """

    def __init__(self, client, abi: Optional[ABI] = None):
        self.client = client
        self.abi = abi or load_rollup_creator_abi()
        self.method_abi = get_method_abi(self.abi, CREATE_ROLLUP_METHOD)
        self.event_abi = get_event_abi(self.abi, ROLLUP_CREATED_EVENT)

    def _fetch(self, fetch, txn_hash: str, what: str) -> typing.Mapping[str, Any]:
        try:
            result = fetch(txn_hash)
        except TransactionNotFound as e:
            raise DecodingError(f"{what} {txn_hash} not found.") from e
        except Exception as e:
            raise RPCError(f"Could not fetch {what.lower()} {txn_hash}: {e}") from e
        if not result:
            raise DecodingError(f"{what} {txn_hash} not found.")
        return result

    def decode_transaction(
        self, txn_hash: str
    ) -> typing.Tuple[CreateRollupInputs, ChecksumAddress]:
        transaction = self._fetch(self.client.get_transaction, txn_hash, "Transaction")
        if not transaction.get("to"):
            raise DecodingError(
                f"Transaction {txn_hash} is a contract creation, not a factory call."
            )
        calldata = transaction.get("input", transaction.get("data"))
        inputs = decode_create_rollup_input(calldata, self.method_abi)
        return inputs, to_checksum_address(transaction["to"])

    def decode_receipt(self, txn_hash: str, factory_address: ChecksumAddress) -> CoreContracts:
        receipt = self._fetch(self.client.get_transaction_receipt, txn_hash, "Receipt")
        if receipt.get("status", 1) != 1:
            raise DecodingError(f"Transaction {txn_hash} failed on-chain; nothing was deployed.")
        return decode_core_contracts(
            receipt, event_abi=self.event_abi, factory_address=factory_address
        )

    def derive(
        self,
        txn_hash: str,
        parent_chain: ParentChain,
        batch_poster_private_key: str,
        validator_private_key: str,
        chain_name: str = DEFAULT_CHAIN_NAME,
    ) -> NodeConfiguration:
        inputs, factory_address = self.decode_transaction(txn_hash)
        core_contracts = self.decode_receipt(txn_hash, factory_address=factory_address)
        return NodeConfiguration(
            chain_name=chain_name,
            chain_config=inputs.chain_config,
            core_contracts=core_contracts,
            stake_token=inputs.stake_token,
            batch_poster_private_key=batch_poster_private_key,
            validator_private_key=validator_private_key,
            parent_chain_id=parent_chain.chain_id,
            parent_chain_rpc_url=parent_chain.rpc_url,
            parent_chain_is_arbitrum=parent_chain.is_arbitrum,
        )
