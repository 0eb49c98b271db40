from enum import Enum
from pathlib import Path

from web3 import Web3

import playbook

#
# Filesystem
#

PLAYBOOK_DIR = Path(playbook.__file__).parent
PARAMS_DIR = PLAYBOOK_DIR / "params"
ABI_DIR = PLAYBOOK_DIR / "abi"
ROLLUP_CREATOR_ABI_FILEPATH = ABI_DIR / "RollupCreator.json"

DEFAULT_ARTIFACT_FILENAME = "node-config.json"

#
# Roles
#


class NodeRole(Enum):
    VALIDATOR = "validator"
    BATCH_POSTER = "batchPoster"


# we need one batch poster and two validators for this playbook
NODE_ROLES = (NodeRole.VALIDATOR, NodeRole.VALIDATOR, NodeRole.BATCH_POSTER)

#
# Funding
#

BASE_STAKE = Web3.to_wei(0.00001, "ether")
PER_ACCOUNT_FUNDING = Web3.to_wei(0.001, "ether")

# the deployer pays for its own gas out of one extra funding unit
DEPLOYER_GAS_RESERVE_UNITS = 1

#
# Parent chains
#

ARBITRUM_PARENT_CHAINS = {
    42161: "Arbitrum One",
    42170: "Arbitrum Nova",
    421614: "Arbitrum Sepolia",
    412346: "Arbitrum Local",
}

SUPPORTED_PARENT_CHAINS = {
    1: "Ethereum",
    1337: "Ethereum Local",
    8453: "Base",
    84532: "Base Sepolia",
    11155111: "Sepolia",
    **ARBITRUM_PARENT_CHAINS,
}

#
# Rollup defaults (nitro-contracts v2.1 RollupCreator)
#

ZERO_ADDRESS = "0x" + "0" * 40

# ArbOS 32 (consensus-v32)
DEFAULT_WASM_MODULE_ROOT = "0x184884e1eb9fefdc158f6c8ac912bb183bf3cf83f0090317e0bc4ac5860baa39"
DEFAULT_ARBOS_VERSION = 32

DEFAULT_CONFIRM_PERIOD_BLOCKS = 150
DEFAULT_EXTRA_CHALLENGE_TIME_BLOCKS = 0
DEFAULT_SEQUENCER_INBOX_MAX_TIME_VARIATION = {
    "delayBlocks": 5760,
    "futureBlocks": 48,
    "delaySeconds": 86400,
    "futureSeconds": 3600,
}

# batch size limits differ when the parent chain is itself an arbitrum chain
MAX_DATA_SIZE_L1_PARENT = 117964
MAX_DATA_SIZE_ARBITRUM_PARENT = 104857

DEFAULT_MAX_FEE_PER_GAS_FOR_RETRYABLES = Web3.to_wei(0.1, "gwei")

#
# Chain ids
#

MIN_SUGGESTED_CHAIN_ID = 10_000_000
MAX_SUGGESTED_CHAIN_ID = 10_000_000_000

# chain ids are uint256 in the factory call
MAX_CHAIN_ID = 2**256 - 1

#
# Node
#

DEFAULT_CHAIN_NAME = "My Orbit Chain"
