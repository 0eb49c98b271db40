import json

import pytest
from eth_abi import encode as abi_encode
from hexbytes import HexBytes

from playbook.accounts import (
    batch_poster_account,
    provision_accounts,
    validator_account,
    validator_addresses,
)
from playbook.errors import DecodingError, RPCError
from playbook.node_config import (
    ROLLUP_CREATED_EVENT,
    ConfigDeriver,
    decode_core_contracts,
    decode_create_rollup_input,
    get_event_abi,
    read_chain_config,
    read_chain_info,
)
from playbook.params import CREATE_ROLLUP_METHOD, get_method_abi
from playbook.rollup import RollupDeployer

from conftest import (
    DEPLOYED_AT_BLOCK,
    DEPLOYER_ADDRESS,
    FakeFactory,
    encode_create_rollup,
    random_address,
    random_hash,
    rollup_created_log,
    unrelated_log,
)

CHAIN_ID = 412346


@pytest.fixture
def node_accounts():
    return provision_accounts()


@pytest.fixture
def deploy(deployer, rollup_parameters, node_accounts):
    def _deploy(factory, chain_id=CHAIN_ID):
        rollup_deployer = RollupDeployer(
            deployer=deployer, parameters=rollup_parameters, factory=factory
        )
        plan = rollup_parameters.plan(chain_id=chain_id, owner_address=deployer.address)
        return plan, rollup_deployer.deploy(
            plan=plan,
            validators=validator_addresses(node_accounts),
            batch_poster=batch_poster_account(node_accounts).address,
        )

    return _deploy


@pytest.fixture
def deriver(client, rollup_parameters):
    return ConfigDeriver(client=client, abi=rollup_parameters.abi)


def test_decode_create_rollup_input(deploy, factory, client, deriver, node_accounts):
    plan, result = deploy(factory)
    transaction = client.transactions[result.transaction_hash]

    inputs = decode_create_rollup_input(transaction["input"], deriver.method_abi)

    # the chain config is recovered exactly as submitted
    assert inputs.chain_config == plan.chain_config
    assert inputs.chain_id == CHAIN_ID
    assert inputs.chain_config["chainId"] == CHAIN_ID
    assert inputs.owner == DEPLOYER_ADDRESS
    assert inputs.validators == validator_addresses(node_accounts)
    assert inputs.batch_posters == [batch_poster_account(node_accounts).address]


def test_decode_wrong_selector(deriver):
    calldata = HexBytes("0xa9059cbb") + abi_encode(["address", "uint256"], [random_address(), 1])
    with pytest.raises(DecodingError, match="not a createRollup call"):
        decode_create_rollup_input(calldata, deriver.method_abi)


def test_decode_truncated_calldata(deploy, factory, client, deriver):
    _, result = deploy(factory)
    calldata = client.transactions[result.transaction_hash]["input"]
    with pytest.raises(DecodingError):
        decode_create_rollup_input(calldata[:100], deriver.method_abi)


@pytest.mark.parametrize("shuffle_logs", [False, True])
def test_decode_core_contracts(deploy, client, deriver, shuffle_logs):
    factory = FakeFactory(client, shuffle_logs=shuffle_logs)
    _, result = deploy(factory)
    receipt = client.receipts[result.transaction_hash]

    core_contracts = decode_core_contracts(
        receipt, event_abi=deriver.event_abi, factory_address=factory.address
    )

    assert core_contracts.rollup == factory.core_contracts["rollupAddress"]
    assert core_contracts.inbox == factory.core_contracts["inboxAddress"]
    assert core_contracts.sequencer_inbox == factory.core_contracts["sequencerInbox"]
    assert core_contracts.bridge == factory.core_contracts["bridge"]
    assert core_contracts.upgrade_executor == factory.core_contracts["upgradeExecutor"]
    assert core_contracts.validator_utils == factory.core_contracts["validatorUtils"]
    wallet_creator = factory.core_contracts["validatorWalletCreator"]
    assert core_contracts.validator_wallet_creator == wallet_creator
    assert core_contracts.deployed_at_block_number == DEPLOYED_AT_BLOCK

    contracts = core_contracts.as_dict()
    assert contracts["rollup"] == factory.core_contracts["rollupAddress"]
    assert contracts["deployedAtBlockNumber"] == DEPLOYED_AT_BLOCK


def test_decode_core_contracts_missing_event(deriver):
    receipt = {"status": 1, "blockNumber": 1, "logs": [unrelated_log(), unrelated_log()]}
    with pytest.raises(DecodingError, match="No RollupCreated event"):
        decode_core_contracts(receipt, event_abi=deriver.event_abi)


def test_decode_core_contracts_ignores_other_emitters(factory, deriver):
    # same event emitted by some other contract
    log = rollup_created_log(random_address(), factory.core_contracts)
    receipt = {"status": 1, "blockNumber": 1, "logs": [log]}
    with pytest.raises(DecodingError):
        decode_core_contracts(receipt, event_abi=deriver.event_abi, factory_address=factory.address)
    assert decode_core_contracts(receipt, event_abi=deriver.event_abi)


def test_decode_core_contracts_duplicate_event(factory, deriver):
    log = rollup_created_log(factory.address, factory.core_contracts)
    receipt = {"status": 1, "blockNumber": 1, "logs": [log, log]}
    with pytest.raises(DecodingError, match="expected one"):
        decode_core_contracts(receipt, event_abi=deriver.event_abi)


def test_derive(deploy, factory, deriver, parent_chain, node_accounts):
    _, result = deploy(factory)
    batch_poster = batch_poster_account(node_accounts)
    validator = validator_account(node_accounts)

    configuration = deriver.derive(
        txn_hash=result.transaction_hash,
        parent_chain=parent_chain,
        batch_poster_private_key=batch_poster.private_key,
        validator_private_key=validator.private_key,
        chain_name="Test Chain",
    )

    assert configuration.chain_id == CHAIN_ID
    assert configuration.parent_chain_id == parent_chain.chain_id
    assert configuration.parent_chain_is_arbitrum
    assert configuration.core_contracts.rollup == factory.core_contracts["rollupAddress"]

    node_config = configuration.render()
    assert read_chain_config(node_config) == configuration.chain_config
    assert node_config["chain"]["name"] == "Test Chain"
    assert node_config["parent-chain"]["connection"]["url"] == parent_chain.rpc_url

    # keys are written without the 0x prefix
    node = node_config["node"]
    batch_poster_key = node["batch-poster"]["parent-chain-wallet"]["private-key"]
    assert batch_poster_key == batch_poster.private_key[2:]
    assert node["staker"]["parent-chain-wallet"]["private-key"] == validator.private_key[2:]

    chain_info = read_chain_info(node_config)
    assert chain_info["chain-id"] == CHAIN_ID
    assert chain_info["parent-chain-id"] == parent_chain.chain_id
    assert chain_info["parent-chain-is-arbitrum"] is True
    rollup = chain_info["rollup"]
    assert rollup["rollup"] == factory.core_contracts["rollupAddress"]
    assert rollup["sequencer-inbox"] == factory.core_contracts["sequencerInbox"]
    assert rollup["deployed-at"] == DEPLOYED_AT_BLOCK

    # the bundled params enable AnyTrust
    data_availability = node["data-availability"]
    assert data_availability["enable"] is True
    assert data_availability["sequencer-inbox-address"] == factory.core_contracts["sequencerInbox"]

    # survives a trip through the artifact file format
    assert read_chain_config(json.loads(json.dumps(node_config))) == configuration.chain_config


def test_derive_rollup_mode_has_no_data_availability(
    deploy, factory, deriver, parent_chain, rollup_parameters, node_accounts
):
    rollup_parameters.chain_overrides = dict()
    _, result = deploy(factory)
    configuration = deriver.derive(
        txn_hash=result.transaction_hash,
        parent_chain=parent_chain,
        batch_poster_private_key=batch_poster_account(node_accounts).private_key,
        validator_private_key=validator_account(node_accounts).private_key,
    )
    assert "data-availability" not in configuration.render()["node"]


def test_derive_failed_transaction(deploy, factory, client, deriver, parent_chain):
    _, result = deploy(factory)
    client.receipts[result.transaction_hash]["status"] = 0
    with pytest.raises(DecodingError, match="failed on-chain"):
        deriver.derive(
            txn_hash=result.transaction_hash,
            parent_chain=parent_chain,
            batch_poster_private_key=random_hash(),
            validator_private_key=random_hash(),
        )


def test_derive_contract_creation(client, deriver, parent_chain):
    txn_hash = random_hash()
    client.transactions[txn_hash] = {"to": None, "input": HexBytes("0x6080")}
    with pytest.raises(DecodingError, match="contract creation"):
        deriver.derive(
            txn_hash=txn_hash,
            parent_chain=parent_chain,
            batch_poster_private_key=random_hash(),
            validator_private_key=random_hash(),
        )


def test_read_chain_info_malformed():
    with pytest.raises(ValueError):
        read_chain_info({"chain": {"info-json": "[]"}})
    with pytest.raises(ValueError):
        read_chain_info({"chain": {}})


def test_rollup_creator_abi(rollup_parameters):
    assert get_method_abi(rollup_parameters.abi, CREATE_ROLLUP_METHOD)
    assert get_event_abi(rollup_parameters.abi, ROLLUP_CREATED_EVENT)
    with pytest.raises(ValueError):
        get_event_abi(rollup_parameters.abi, "RollupUpgraded")


def test_derive_parent_chain_unreachable(client, deriver, parent_chain):
    def get_transaction(txn_hash):
        raise ConnectionError("node unreachable")

    client.get_transaction = get_transaction
    with pytest.raises(RPCError, match="node unreachable"):
        deriver.derive(
            txn_hash=random_hash(),
            parent_chain=parent_chain,
            batch_poster_private_key=random_hash(),
            validator_private_key=random_hash(),
        )


def test_derive_receipt_unreachable(deploy, factory, client, deriver, parent_chain):
    _, result = deploy(factory)

    def get_transaction_receipt(txn_hash):
        raise TimeoutError("request timed out")

    client.get_transaction_receipt = get_transaction_receipt
    with pytest.raises(RPCError, match="timed out"):
        deriver.decode_receipt(result.transaction_hash, factory_address=factory.address)


def test_decode_inconsistent_chain_id(rollup_parameters, deriver, node_accounts):
    plan = rollup_parameters.plan(chain_id=CHAIN_ID, owner_address=DEPLOYER_ADDRESS)
    params = rollup_parameters.prepare_deployment_params(
        plan=plan,
        validators=validator_addresses(node_accounts),
        batch_posters=[batch_poster_account(node_accounts).address],
    )
    # the chain config still says CHAIN_ID
    calldata = encode_create_rollup(params._replace(chain_id=CHAIN_ID + 1).to_abi())

    with pytest.raises(DecodingError, match="chain id 412347"):
        decode_create_rollup_input(calldata, deriver.method_abi)
