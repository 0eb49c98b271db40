import sys
from typing import Optional

from eth_typing import ChecksumAddress

from playbook.constants import MAX_CHAIN_ID


def _prompt_chain_id(suggested_chain_id: int) -> int:
    """Asks the user for a chain id, defaulting to the suggested one."""
    while True:
        answer = input(
            f"Enter Chain ID (leave empty to use random chain id: {suggested_chain_id}): "
        ).strip()
        if not answer:
            return suggested_chain_id
        try:
            chain_id = int(answer)
        except ValueError:
            chain_id = 0
        if 0 < chain_id <= MAX_CHAIN_ID:
            return chain_id
        print(f"'{answer}' is not a valid chain id.")


def _confirm_chain_deployment(chain_id: int, deployer: Optional[ChecksumAddress] = None) -> None:
    """Asks the user to confirm the deployment of a chain with the given chain id."""
    if deployer:
        print(f"Deployer: {deployer}")
    answer = input(f"Deploy chain with Chain ID: {chain_id} Y/N? ")
    if answer.lower().strip() == "n":
        print("Chain deployment cancelled.")
        sys.exit(-1)
