import pytest

from rpcconnect.idempotency import IdempotencyLevel


def test_known_level_strings():
    assert str(IdempotencyLevel(0)) == "idempotency_unknown"
    assert str(IdempotencyLevel(1)) == "no_side_effects"
    assert str(IdempotencyLevel(2)) == "idempotent"
    assert IdempotencyLevel(1) is IdempotencyLevel.NO_SIDE_EFFECTS
    assert IdempotencyLevel(2) is IdempotencyLevel.IDEMPOTENT


def test_unlisted_level_string_uses_value():
    assert str(IdempotencyLevel(7)) == "idempotency_7"
    assert f"{IdempotencyLevel(7)}" == str(IdempotencyLevel(7))


def test_levels_round_trip_through_int():
    for level in IdempotencyLevel:
        assert IdempotencyLevel(int(level)) is level


def test_unlisted_levels_are_stable():
    assert IdempotencyLevel(9) is IdempotencyLevel(9)
    assert IdempotencyLevel(9) == 9


def test_default_is_zero():
    assert IdempotencyLevel(0) is IdempotencyLevel.UNKNOWN


def test_non_integer_rejected():
    with pytest.raises(ValueError):
        IdempotencyLevel("idempotent")