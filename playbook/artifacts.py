import json
from pathlib import Path
from typing import Any, Dict

from playbook.errors import ArtifactError, PreconditionError
from playbook.node_config import read_chain_config
from playbook.utils import _load_json

STANDARD_NODE_CONFIG_JSON_FORMAT = {"indent": 2}


def check_artifact_filepath(filepath: Path) -> None:
    """
    Checks that the artifact does not exist yet and that its parent
    directory does, so persisting cannot fail after the chain is deployed.
    """
    if filepath.exists():
        raise PreconditionError(f"Node config already exists at {filepath}")
    if not filepath.parent.exists():
        raise PreconditionError(f"Parent directory of {filepath} does not exist.")


def _fallback_filepath(filepath: Path, chain_id: int) -> Path:
    return filepath.with_suffix(f".{chain_id}.json")


def write_node_config(node_config: Dict[str, Any], filepath: Path, silent: bool = False) -> Path:
    """
    Writes the node config artifact. An existing file is never overwritten;
    the config is written next to it under a chain id suffix instead.
    """
    if filepath.exists():
        chain_id = read_chain_config(node_config)["chainId"]
        filepath = _fallback_filepath(filepath, chain_id)
        if not silent:
            print(
                "Node config already exists.\n"
                f"Writing to {filepath} to avoid overwriting existing data."
            )
        if filepath.exists():
            raise ArtifactError(f"Node config already exists at {filepath}")

    try:
        filepath.parent.mkdir(parents=True, exist_ok=True)
        with open(filepath, "x") as file:
            json.dump(node_config, file, **STANDARD_NODE_CONFIG_JSON_FORMAT)
    except OSError as e:
        raise ArtifactError(f"Could not write node config to {filepath}: {e}") from e

    if not silent:
        print(f"(i) Node config written to {filepath}!")
    return filepath


def read_node_config(filepath: Path) -> Dict[str, Any]:
    if not filepath.exists():
        raise FileNotFoundError(f"No node config found at {filepath}")
    return _load_json(filepath)


def chain_id_from_artifact(filepath: Path) -> int:
    """Reads back the deployed chain id from a node config artifact."""
    node_config = read_node_config(filepath)
    return read_chain_config(node_config)["chainId"]
