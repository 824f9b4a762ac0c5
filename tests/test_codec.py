import pytest

from account_multisig import actions as act
from account_multisig.catalog import default_catalog
from account_multisig.bcs import BcsWriter, normalize_address
from account_multisig.codec import decode_action, decode_any, encode_action, peek_kind
from account_multisig.errors import CodecError, MalformedPayload, UnknownActionKind, UnknownKind

SUI = "0x2::sui::SUI"
ALICE = "0xa11ce"
BOB = "0xb0b"
COIN = "0xc01"

SAMPLE_ACTIONS = [
    act.ConfigMultisig(
        global_threshold=2,
        members=[
            act.MemberSpec(ALICE, 2, ("admin",)),
            act.MemberSpec(BOB, 1),
        ],
        roles=[act.RoleSpec("admin", 2)],
    ),
    act.ConfigDeps(deps=[act.Dependency("AccountProtocol", "0x10c8", 3)]),
    act.BorrowCap("0x5::treasury::AdminCap", "0x5::treasury::rotate"),
    act.DisableRules(SUI, mint=True, update_icon=True),
    act.UpdateMetadata(SUI, name="Sui", icon_url="https://example.invalid/sui.png"),
    act.MintAndTransfer(SUI, [10, 20], [ALICE, BOB]),
    act.MintAndVest(SUI, 500, 1_000, 2_000, BOB),
    act.WithdrawAndBurn(SUI, COIN, 7),
    act.TakeNfts("gallery", ["0x1001", "0x1002"], BOB),
    act.ListNfts("gallery", ["0x1001"], [99]),
    act.WithdrawAndTransferToVault(SUI, COIN, 40, "treasury"),
    act.WithdrawAndTransfer(["0x1001", COIN], [ALICE, BOB]),
    act.WithdrawAndVest(COIN, 5, 10, ALICE),
    act.SpendAndTransfer("treasury", SUI, [1, 2, 3], [ALICE, BOB, ALICE]),
    act.SpendAndVest("treasury", SUI, 100, 0, 86_400_000, BOB),
    act.UpgradePackage("core", bytes(range(32))),
    act.RestrictPolicy("core", act.Policy.DEP_ONLY),
]


@pytest.mark.parametrize("action", SAMPLE_ACTIONS, ids=lambda a: a.kind)
def test_round_trip_every_kind(action):
    data = encode_action(action)

    assert decode_action(action.kind, data) == action
    assert peek_kind(data) == action.kind


def test_every_registered_kind_has_a_sample():
    assert sorted(a.kind for a in SAMPLE_ACTIONS) == sorted(default_catalog().kinds())


def test_layout_is_version_discriminant_then_fields():
    data = encode_action(act.RestrictPolicy("pkg", act.Policy.ADDITIVE))

    discriminant = default_catalog().lookup("restrict_policy").discriminant
    assert data == bytes([1, discriminant, 3]) + b"pkg" + bytes([128])


def test_encoding_is_deterministic_and_normalizes_addresses():
    short = act.SpendAndTransfer("treasury", "0x2::sui::SUI", [5], ["0xb0b"])
    padded = act.SpendAndTransfer(
        "treasury",
        "0x0000000000000000000000000000000000000000000000000000000000000002::sui::SUI",
        [5],
        ["0x" + "b0b".rjust(64, "0")],
    )

    assert short == padded
    assert encode_action(short) == encode_action(padded)


def test_trailing_bytes_are_rejected():
    data = encode_action(SAMPLE_ACTIONS[-1]) + b"\x00"

    with pytest.raises(MalformedPayload, match="trailing"):
        decode_action("restrict_policy", data)


def test_truncated_payload_is_rejected():
    data = encode_action(act.MintAndTransfer(SUI, [10, 20], [ALICE, BOB]))

    with pytest.raises(MalformedPayload, match="truncated"):
        decode_action("mint_and_transfer", data[:-5])


def test_payload_of_another_kind_is_rejected():
    data = encode_action(act.RestrictPolicy("core", act.Policy.IMMUTABLE))

    with pytest.raises(MalformedPayload, match="discriminant"):
        decode_action("config_deps", data)


def test_invalid_bool_byte_is_rejected():
    data = bytearray(encode_action(act.DisableRules(SUI, mint=True)))
    data[-1] = 2

    with pytest.raises(MalformedPayload, match="bool"):
        decode_action("disable_rules", bytes(data))


def test_unknown_policy_value_is_rejected():
    data = bytearray(encode_action(act.RestrictPolicy("core", act.Policy.ADDITIVE)))
    data[-1] = 7

    with pytest.raises(MalformedPayload):
        decode_action("restrict_policy", bytes(data))


def test_unsupported_version_is_rejected():
    data = bytearray(encode_action(SAMPLE_ACTIONS[0]))
    data[0] = 9

    with pytest.raises(MalformedPayload, match="version"):
        decode_any(bytes(data))


def test_unknown_kind_is_reported():
    with pytest.raises(UnknownKind) as excinfo:
        decode_action("rename_account", b"\x01\x00")

    assert isinstance(excinfo.value, CodecError)
    assert excinfo.value.kind == "rename_account"


def test_unknown_discriminant_is_reported():
    with pytest.raises(UnknownActionKind):
        peek_kind(bytes([1, 0x7F]))


def test_out_of_range_amount_cannot_be_encoded():
    action = act.MintAndTransfer(SUI, [2**64], [ALICE])

    with pytest.raises(CodecError, match="amounts"):
        encode_action(action)


def test_decode_any_uses_the_header():
    action = act.SpendAndVest("treasury", SUI, 100, 0, 10, BOB)

    assert decode_any(encode_action(action)) == action


def test_dict_form_rebuilds_the_action():
    for action in (SAMPLE_ACTIONS[0], SAMPLE_ACTIONS[4], SAMPLE_ACTIONS[15], SAMPLE_ACTIONS[16]):
        assert type(action).from_dict(action.to_dict()) == action


def test_mismatched_pairs_are_rejected_on_decode():
    writer = BcsWriter().u8(1)
    writer.uleb128(default_catalog().lookup("spend_and_transfer").discriminant)
    writer.string("treasury").string(SUI)
    writer.sequence([5, 6], lambda w, amount: w.u64(amount))
    writer.sequence([normalize_address(BOB)], lambda w, address: w.address(address))

    with pytest.raises(MalformedPayload, match="amounts has 2 entries"):
        decode_action("spend_and_transfer", writer.getvalue())


def test_locally_invalid_payload_is_rejected_on_decode():
    data = encode_action(act.RestrictPolicy("core", act.Policy.DEP_ONLY))
    compatible = data[:-1] + bytes([act.Policy.COMPATIBLE])

    with pytest.raises(MalformedPayload, match="compatible"):
        decode_action("restrict_policy", compatible)


@pytest.mark.parametrize("overlong", [b"\x80\x00", b"\x81\x80\x00"])
def test_overlong_uleb128_is_rejected(overlong):
    data = bytes([1]) + overlong

    with pytest.raises(MalformedPayload, match="non-canonical"):
        peek_kind(data)
