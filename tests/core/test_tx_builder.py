import pytest
from eth_utils import function_signature_to_4byte_selector

from boundless.core.models import DirectCallSpec, TransactionType
from boundless.core.tx_builder import (
    AAVE_SUPPLY_SELECTOR,
    ERC20_ALLOWANCE_SELECTOR,
    ERC20_APPROVE_SELECTOR,
    ERC20_BALANCE_OF_SELECTOR,
    MAX_UINT256,
    TransactionBuilder,
    decode_uint256,
    encode_approve,
    encode_supply,
)

POOL = "0xA238Dd80C259a72e81d7e4664a9801593F98d1c5"
USDC = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"
OWNER = "0x1111111111111111111111111111111111111111"


@pytest.mark.parametrize(
    "selector,signature",
    [
        (ERC20_APPROVE_SELECTOR, "approve(address,uint256)"),
        (ERC20_ALLOWANCE_SELECTOR, "allowance(address,address)"),
        (ERC20_BALANCE_OF_SELECTOR, "balanceOf(address)"),
        (AAVE_SUPPLY_SELECTOR, "supply(address,uint256,address,uint16)"),
    ],
)
def test_selectors_match_signatures(selector, signature):
    assert selector == "0x" + function_signature_to_4byte_selector(signature).hex()


def test_supply_calldata_layout():
    data = encode_supply(USDC, 1_000_000, OWNER)

    assert data.startswith(AAVE_SUPPLY_SELECTOR)
    words = [data[10 + i * 64: 10 + (i + 1) * 64] for i in range(4)]
    assert len(data) == 10 + 4 * 64
    assert words[0] == USDC[2:].lower().zfill(64)
    assert int(words[1], 16) == 1_000_000
    assert words[2] == OWNER[2:].zfill(64)
    assert int(words[3], 16) == 0


def test_encoding_rejects_bad_inputs():
    with pytest.raises(ValueError):
        encode_approve("0x1234", 1)
    with pytest.raises(ValueError):
        encode_approve(POOL, MAX_UINT256 + 1)
    with pytest.raises(ValueError):
        encode_supply(USDC, 1, OWNER, referral_code=70_000)


def test_decode_uint256():
    assert decode_uint256("0x" + format(42, "064x")) == 42
    assert decode_uint256("0x") == 0


def test_build_approve_defaults_to_unlimited():
    tx = TransactionBuilder.build_erc20_approve(8453, OWNER, USDC, POOL)

    assert tx.tx_type == TransactionType.APPROVE
    assert tx.to_address == USDC.lower()
    assert tx.data == encode_approve(POOL, MAX_UINT256)
    assert tx.to_dict()["chainId"] == hex(8453)


def test_build_direct_deposit_uses_spec_calldata():
    spec = DirectCallSpec(
        chain_id=8453,
        target_contract=POOL,
        encoded_call=encode_supply(USDC, 5, OWNER),
        amount=5,
        token=USDC,
    )

    tx = TransactionBuilder.build_direct_deposit(spec, OWNER)

    assert tx.tx_type == TransactionType.SUPPLY
    assert tx.to_address == POOL.lower()
    assert tx.data == spec.encoded_call


def test_build_from_step_request_accepts_hex_fields():
    tx = TransactionBuilder.build_from_step_request(
        {
            "to": "0x2222222222222222222222222222222222222222",
            "from": OWNER,
            "data": "0xdeadbeef",
            "value": "0x0de0b6b3a7640000",
            "gasLimit": "0x30d40",
            "chainId": 42161,
        }
    )

    assert tx.tx_type == TransactionType.BRIDGE
    assert tx.chain_id == 42161
    assert tx.value == 10**18
    assert tx.gas_limit == 200_000

    with pytest.raises(ValueError):
        TransactionBuilder.build_from_step_request({"data": "0x"})
