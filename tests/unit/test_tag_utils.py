import pytest

from utils.tag_utils import (identity_keys, is_battle_tag, normalize_tag, normalize_toon,
                             tag_name_part, tags_equal)


@pytest.mark.parametrize("value", ["Foo_123", "Foo#123", "  FOO#123 ", "fOo_123", "", "plain"])
def test_normalize_is_idempotent(value):
    assert normalize_tag(normalize_tag(value)) == normalize_tag(value)


def test_underscore_and_case_are_equivalent():
    assert normalize_tag("Foo_123") == normalize_tag("Foo#123")
    assert tags_equal("ALPHA#123", "alpha_123")
    assert not tags_equal("Alpha#123", "Alpha#124")
    assert not tags_equal("", "")


def test_identity_keys_include_name_portion():
    assert identity_keys("Bravo#456") == ("bravo#456", "bravo")
    assert identity_keys("Bravo") == ("bravo",)
    assert identity_keys(None) == ()
    assert tag_name_part("Bravo_456") == "bravo"


def test_is_battle_tag():
    assert is_battle_tag("Alpha#123")
    assert is_battle_tag("Alpha_123")
    assert not is_battle_tag("Alpha")
    assert not is_battle_tag("Al#123")


def test_normalize_toon_strips_region_digit():
    assert normalize_toon("1-S2-1-11050989") == "S2-1-11050989"
    assert normalize_toon("S2-1-11050989") == "S2-1-11050989"
    assert normalize_toon(" 2-S2-2-42 ") == "S2-2-42"
    assert normalize_toon(None) == ""
    assert normalize_toon("unrelated") == "unrelated"
