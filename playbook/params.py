import json
import typing
from collections import OrderedDict
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, NamedTuple, Optional, Sequence

from eth_typing import ChecksumAddress
from eth_utils import collapse_if_tuple, is_address, is_hex, to_checksum_address
from web3 import Web3
from eth_typing import ABI, ABIFunction

from playbook.constants import (
    ARBITRUM_PARENT_CHAINS,
    BASE_STAKE,
    DEFAULT_ARBOS_VERSION,
    DEFAULT_CHAIN_NAME,
    DEFAULT_CONFIRM_PERIOD_BLOCKS,
    DEFAULT_EXTRA_CHALLENGE_TIME_BLOCKS,
    DEFAULT_MAX_FEE_PER_GAS_FOR_RETRYABLES,
    DEFAULT_SEQUENCER_INBOX_MAX_TIME_VARIATION,
    DEFAULT_WASM_MODULE_ROOT,
    MAX_DATA_SIZE_ARBITRUM_PARENT,
    MAX_DATA_SIZE_L1_PARENT,
    NODE_ROLES,
    PER_ACCOUNT_FUNDING,
    ZERO_ADDRESS,
)
from playbook.errors import ParamsFileError
from playbook.funding import FundingRequirement
from playbook.utils import load_rollup_creator_abi, validate_config

CREATE_ROLLUP_METHOD = "createRollup"

CHAIN_CONFIG_JSON_FORMAT = {"separators": (",", ":")}

w3 = Web3()


class DeploymentPlan(NamedTuple):
    """What is being deployed; fixed for the lifetime of one attempt."""

    chain_id: int
    owner_address: ChecksumAddress
    base_stake: int
    chain_config: typing.Dict[str, Any]


# Chain config


def prepare_chain_config(
    chain_id: int,
    initial_chain_owner: ChecksumAddress,
    overrides: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Builds the chain configuration document embedded in the creation transaction."""
    arbitrum = {
        "EnableArbOS": True,
        "AllowDebugPrecompiles": False,
        "DataAvailabilityCommittee": False,
        "InitialArbOSVersion": DEFAULT_ARBOS_VERSION,
        "InitialChainOwner": initial_chain_owner,
        "GenesisBlockNum": 0,
        "MaxCodeSize": 24576,
        "MaxInitCodeSize": 49152,
    }
    arbitrum.update(overrides or dict())

    return {
        "chainId": chain_id,
        "homesteadBlock": 0,
        "daoForkBlock": None,
        "daoForkSupport": True,
        "eip150Block": 0,
        "eip150Hash": "0x" + "0" * 64,
        "eip155Block": 0,
        "eip158Block": 0,
        "byzantiumBlock": 0,
        "constantinopleBlock": 0,
        "petersburgBlock": 0,
        "istanbulBlock": 0,
        "muirGlacierBlock": 0,
        "berlinBlock": 0,
        "londonBlock": 0,
        "clique": {"period": 0, "epoch": 0},
        "arbitrum": arbitrum,
    }


def serialize_chain_config(chain_config: Dict[str, Any]) -> str:
    return json.dumps(chain_config, **CHAIN_CONFIG_JSON_FORMAT)


# Factory parameters


class RollupDeploymentParams(NamedTuple):
    """The single struct argument of RollupCreator.createRollup."""

    confirm_period_blocks: int
    extra_challenge_time_blocks: int
    stake_token: ChecksumAddress
    base_stake: int
    wasm_module_root: bytes
    owner: ChecksumAddress
    loser_stake_escrow: ChecksumAddress
    chain_id: int
    chain_config: str
    genesis_block_num: int
    sequencer_inbox_max_time_variation: typing.Tuple[int, int, int, int]
    validators: typing.Tuple[ChecksumAddress, ...]
    max_data_size: int
    native_token: ChecksumAddress
    deploy_factories_to_l2: bool
    max_fee_per_gas_for_retryables: int
    batch_posters: typing.Tuple[ChecksumAddress, ...]

    def to_abi(self) -> tuple:
        """Returns the nested tuple in ABI component order."""
        config = (
            self.confirm_period_blocks,
            self.extra_challenge_time_blocks,
            self.stake_token,
            self.base_stake,
            self.wasm_module_root,
            self.owner,
            self.loser_stake_escrow,
            self.chain_id,
            self.chain_config,
            self.genesis_block_num,
            tuple(self.sequencer_inbox_max_time_variation),
        )
        return (
            config,
            list(self.validators),
            self.max_data_size,
            self.native_token,
            self.deploy_factories_to_l2,
            self.max_fee_per_gas_for_retryables,
            list(self.batch_posters),
        )


def get_method_abi(abi: ABI, name: str) -> ABIFunction:
    method_abis = [
        entry for entry in abi if entry.get("type") == "function" and entry["name"] == name
    ]
    if len(method_abis) != 1:
        raise ValueError(f"Expected exactly one '{name}' method in ABI, got {len(method_abis)}")
    return method_abis[0]


def get_input_types(method_abi: ABIFunction) -> List[str]:
    return [collapse_if_tuple(abi_input) for abi_input in method_abi["inputs"]]


def _validate_method_args(method_abi: ABIFunction, args: Sequence[Any]) -> None:
    """Validates the transaction arguments against the function ABI."""
    input_types = get_input_types(method_abi)
    if len(input_types) != len(args):
        raise RollupParameters.Invalid(
            f"'{method_abi['name']}' requires {len(input_types)} arg(s), got {len(args)}"
        )
    for position, (input_type, arg) in enumerate(zip(input_types, args)):
        if not w3.is_encodable(input_type, arg):
            raise RollupParameters.Invalid(
                f"'{method_abi['name']}' argument at position {position} "
                f"does not match the expected ABI type '{input_type}'"
            )


def _parse_ether(value: Any, name: str) -> int:
    try:
        return Web3.to_wei(Decimal(str(value)), "ether")
    except (InvalidOperation, ValueError):
        raise ParamsFileError(f"'{name}' is not a valid ether amount: {value}")


def _parse_bytes32(value: Any, name: str) -> bytes:
    if not isinstance(value, str) or not is_hex(value):
        raise ValueError(f"'{name}' must be a quoted hex string: {value}")
    value = bytes(Web3.to_bytes(hexstr=value))
    if len(value) != 32:
        raise ValueError(f"'{name}' must be 32 bytes, got {len(value)}")
    return value


def _parse_address(value: Any, name: str) -> ChecksumAddress:
    if not isinstance(value, str) or not is_address(value):
        raise ParamsFileError(f"'{name}' is not a valid address: {value}")
    return to_checksum_address(value)


class RollupParameters:
    """
    Represents the factory call defaults from a params file plus the
    funding amounts, and resolves them against a deployment plan.
    """

    class Invalid(ParamsFileError):
        """Raised when the resolved rollup parameters do not fit the factory ABI"""

    def __init__(
        self,
        parent_chain_id: int,
        rollup_creator: ChecksumAddress,
        rollup_defaults: OrderedDict,
        chain_overrides: Dict[str, Any],
        base_stake: int = BASE_STAKE,
        per_account_funding: int = PER_ACCOUNT_FUNDING,
        retryables_fee: int = 0,
        required_confirmations: Optional[int] = None,
        chain_name: str = DEFAULT_CHAIN_NAME,
        abi: Optional[ABI] = None,
    ):
        self.parent_chain_id = parent_chain_id
        self.rollup_creator = rollup_creator
        self.rollup_defaults = rollup_defaults
        self.chain_overrides = chain_overrides
        self.base_stake = base_stake
        self.per_account_funding = per_account_funding
        self.retryables_fee = retryables_fee
        self.required_confirmations = required_confirmations
        self.chain_name = chain_name
        self.abi = abi or load_rollup_creator_abi()
        self.method_abi = get_method_abi(self.abi, CREATE_ROLLUP_METHOD)

    @classmethod
    def from_config(
        cls, config: typing.Dict, connected_chain_id: Optional[int] = None
    ) -> "RollupParameters":
        """Loads the rollup parameters from a parsed params YAML file."""
        print("Processing rollup parameters...")
        parent_chain_id = validate_config(config, connected_chain_id=connected_chain_id)
        deployment = config["deployment"]

        funding = config.get("funding") or dict()
        base_stake = _parse_ether(funding.get("base_stake", "0.00001"), "base_stake")
        per_account = _parse_ether(funding.get("per_account", "0.001"), "per_account")

        rollup = OrderedDict(config.get("rollup") or dict())
        retryables_fee = int(rollup.pop("retryables_fee", 0))
        rollup_defaults = cls._default_rollup_parameters(parent_chain_id)
        unknown = set(rollup) - set(rollup_defaults)
        if unknown:
            raise ParamsFileError(f"Unknown rollup parameter(s): {', '.join(sorted(unknown))}")
        max_time_variation = rollup.pop("sequencer_inbox_max_time_variation", None) or dict()
        rollup_defaults["sequencer_inbox_max_time_variation"].update(max_time_variation)
        rollup_defaults.update(rollup)
        for name in ("stake_token", "native_token", "loser_stake_escrow"):
            rollup_defaults[name] = _parse_address(rollup_defaults[name], name)

        node = config.get("node") or dict()
        return cls(
            parent_chain_id=parent_chain_id,
            rollup_creator=to_checksum_address(deployment["rollup_creator"]),
            rollup_defaults=rollup_defaults,
            chain_overrides=dict(config.get("chain") or dict()),
            base_stake=base_stake,
            per_account_funding=per_account,
            retryables_fee=retryables_fee,
            required_confirmations=deployment.get("required_confirmations"),
            chain_name=node.get("chain_name", DEFAULT_CHAIN_NAME),
        )

    @classmethod
    def _default_rollup_parameters(cls, parent_chain_id: int) -> OrderedDict:
        if parent_chain_id in ARBITRUM_PARENT_CHAINS:
            max_data_size = MAX_DATA_SIZE_ARBITRUM_PARENT
        else:
            max_data_size = MAX_DATA_SIZE_L1_PARENT
        return OrderedDict(
            {
                "confirm_period_blocks": DEFAULT_CONFIRM_PERIOD_BLOCKS,
                "extra_challenge_time_blocks": DEFAULT_EXTRA_CHALLENGE_TIME_BLOCKS,
                "stake_token": ZERO_ADDRESS,
                "wasm_module_root": DEFAULT_WASM_MODULE_ROOT,
                "loser_stake_escrow": ZERO_ADDRESS,
                "genesis_block_num": 0,
                "sequencer_inbox_max_time_variation": dict(
                    DEFAULT_SEQUENCER_INBOX_MAX_TIME_VARIATION
                ),
                "max_data_size": max_data_size,
                "native_token": ZERO_ADDRESS,
                "deploy_factories_to_l2": False,
                "max_fee_per_gas_for_retryables": DEFAULT_MAX_FEE_PER_GAS_FOR_RETRYABLES,
            }
        )

    def funding_requirement(self, funded_accounts: int = len(NODE_ROLES)) -> FundingRequirement:
        return FundingRequirement(
            base_stake=self.base_stake,
            per_account=self.per_account_funding,
            funded_accounts=funded_accounts,
        )

    def plan(self, chain_id: int, owner_address: ChecksumAddress) -> DeploymentPlan:
        chain_config = prepare_chain_config(
            chain_id=chain_id,
            initial_chain_owner=owner_address,
            overrides=self.chain_overrides,
        )
        return DeploymentPlan(
            chain_id=chain_id,
            owner_address=owner_address,
            base_stake=self.base_stake,
            chain_config=chain_config,
        )

    def prepare_deployment_params(
        self,
        plan: DeploymentPlan,
        validators: Sequence[ChecksumAddress],
        batch_posters: Sequence[ChecksumAddress],
    ) -> RollupDeploymentParams:
        """Resolves the createRollup struct for a single deployment plan."""
        try:
            params = self._build_deployment_params(
                plan=plan, validators=validators, batch_posters=batch_posters
            )
        except (KeyError, TypeError, ValueError) as e:
            raise RollupParameters.Invalid(f"Could not resolve createRollup parameters: {e}") from e
        _validate_method_args(method_abi=self.method_abi, args=[params.to_abi()])
        return params

    def _build_deployment_params(
        self,
        plan: DeploymentPlan,
        validators: Sequence[ChecksumAddress],
        batch_posters: Sequence[ChecksumAddress],
    ) -> RollupDeploymentParams:
        defaults = self.rollup_defaults
        max_time_variation = defaults["sequencer_inbox_max_time_variation"]
        return RollupDeploymentParams(
            confirm_period_blocks=int(defaults["confirm_period_blocks"]),
            extra_challenge_time_blocks=int(defaults["extra_challenge_time_blocks"]),
            stake_token=defaults["stake_token"],
            base_stake=plan.base_stake,
            wasm_module_root=_parse_bytes32(defaults["wasm_module_root"], "wasm_module_root"),
            owner=plan.owner_address,
            loser_stake_escrow=defaults["loser_stake_escrow"],
            chain_id=plan.chain_id,
            chain_config=serialize_chain_config(plan.chain_config),
            genesis_block_num=int(defaults["genesis_block_num"]),
            sequencer_inbox_max_time_variation=(
                int(max_time_variation["delayBlocks"]),
                int(max_time_variation["futureBlocks"]),
                int(max_time_variation["delaySeconds"]),
                int(max_time_variation["futureSeconds"]),
            ),
            validators=tuple(validators),
            max_data_size=int(defaults["max_data_size"]),
            native_token=defaults["native_token"],
            deploy_factories_to_l2=bool(defaults["deploy_factories_to_l2"]),
            max_fee_per_gas_for_retryables=int(defaults["max_fee_per_gas_for_retryables"]),
            batch_posters=tuple(batch_posters),
        )
