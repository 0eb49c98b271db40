import json
import secrets
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from eth_utils import is_address
from eth_typing import ABI

from playbook.constants import (
    DEFAULT_ARTIFACT_FILENAME,
    MAX_SUGGESTED_CHAIN_ID,
    MIN_SUGGESTED_CHAIN_ID,
    PARAMS_DIR,
    ROLLUP_CREATOR_ABI_FILEPATH,
    SUPPORTED_PARENT_CHAINS,
)
from playbook.errors import ParamsFileError


def _load_yaml(filepath: Path) -> dict:
    """Loads a YAML file."""
    with open(filepath, "r") as file:
        return yaml.safe_load(file)


def _load_json(filepath: Path) -> dict:
    """Loads a JSON file."""
    with open(filepath, "r") as file:
        return json.load(file)


def load_rollup_creator_abi(filepath: Path = ROLLUP_CREATOR_ABI_FILEPATH) -> ABI:
    """Returns the ABI of the supported RollupCreator factory."""
    return _load_json(filepath)


def get_artifact_filepath(config: Dict, output_dir: Optional[Path] = None) -> Path:
    """Returns the filepath of the node config artifact."""
    artifact_config = config.get("artifacts") or {}
    artifact_dir = Path(output_dir or artifact_config.get("dir", "."))
    filename = artifact_config.get("filename", DEFAULT_ARTIFACT_FILENAME)
    if not filename:
        raise ParamsFileError("artifact filename is not set in params file.")
    return artifact_dir / filename


def validate_config(config: Dict, connected_chain_id: Optional[int] = None) -> int:
    """
    Checks the params file and returns the parent chain id it targets.
    When a connected chain id is given it must match the params file.
    """
    print("Validating parameters YAML...")
    if not isinstance(config, dict):
        raise ParamsFileError("Malformed params YAML.")

    deployment = config.get("deployment")
    if not deployment:
        raise ParamsFileError("deployment is not set in params file.")

    parent_chain_id = deployment.get("parent_chain_id")
    if not parent_chain_id:
        raise ParamsFileError("parent_chain_id is not set in params file.")

    parent_chain_id = int(parent_chain_id)
    if parent_chain_id not in SUPPORTED_PARENT_CHAINS:
        raise ParamsFileError(
            f"Parent chain {parent_chain_id} is not supported; "
            f"expected one of {sorted(SUPPORTED_PARENT_CHAINS)}."
        )

    rollup_creator = deployment.get("rollup_creator")
    if not isinstance(rollup_creator, str):
        # unquoted hex is parsed as an integer by YAML
        raise ParamsFileError("rollup_creator must be a quoted address in params file.")
    if not is_address(rollup_creator) or int(rollup_creator, 16) == 0:
        raise ParamsFileError("rollup_creator address is not set in params file.")

    if connected_chain_id is not None and parent_chain_id != connected_chain_id:
        raise ParamsFileError(
            f"parent_chain_id in params file ({parent_chain_id}) does not match "
            f"chain_id of current network ({connected_chain_id})."
        )

    return parent_chain_id


def params_filepath_from_name(name: str) -> Path:
    p = PARAMS_DIR / f"{name}.yml"
    if not p.exists():
        raise ValueError(f"No params file found for '{name}'")

    return p


def list_params_files() -> List[str]:
    return sorted(p.stem for p in PARAMS_DIR.glob("*.yml"))


def get_chain_name(chain_id: int) -> str:
    """Returns the name of a supported parent chain given its chain ID."""
    try:
        return SUPPORTED_PARENT_CHAINS[chain_id]
    except KeyError:
        raise ValueError(f"Chain ID {chain_id} is not a supported parent chain.")


def suggest_chain_id() -> int:
    """Returns a random chain id to offer when the operator does not pick one."""
    span = MAX_SUGGESTED_CHAIN_ID - MIN_SUGGESTED_CHAIN_ID
    return MIN_SUGGESTED_CHAIN_ID + secrets.randbelow(span)
