import uuid

from app.models.cart import CartItem
from app.services.collision import decide_add, options_equal, pick_variant_key, variant_key_for


def _line(quantity=1, options=None):
    return CartItem(
        user_id=uuid.uuid4(),
        product_id=uuid.uuid4(),
        quantity=quantity,
        selected_options=options if options is not None else {},
    )


def test_no_existing_line_inserts():
    decision = decide_add(None, 2, {"size": "M"})
    assert decision.action == "insert"
    assert decision.merged_quantity is None


def test_same_options_merge_and_sum_quantity():
    decision = decide_add(_line(1, {"size": "M"}), 1, {"size": "M"})
    assert decision.action == "merge"
    assert decision.merged_quantity == 2


def test_key_order_does_not_matter():
    existing = _line(3, {"size": "M", "metal": "gold"})
    decision = decide_add(existing, 2, {"metal": "gold", "size": "M"})
    assert decision.action == "merge"
    assert decision.merged_quantity == 5


def test_different_value_conflicts():
    decision = decide_add(_line(1, {"size": "M"}), 1, {"size": "L"})
    assert decision.action == "conflict"
    assert decision.merged_quantity is None


def test_missing_key_is_not_a_default():
    assert not options_equal({"size": "M"}, {"size": "M", "engraving": ""})
    assert decide_add(_line(1, {"size": "M"}), 1, {"size": "M", "engraving": ""}).action == "conflict"


def test_none_options_equal_empty():
    assert options_equal(None, {})
    assert decide_add(_line(1, {}), 1, None).action == "merge"


def test_variant_key_is_stable_and_order_insensitive():
    a = variant_key_for({"size": "M", "metal": "gold"})
    b = variant_key_for({"metal": "gold", "size": "M"})
    assert a == b
    assert a != variant_key_for({"size": "L", "metal": "gold"})
    assert len(a) == 40


def test_pick_variant_key_prefers_plain_identity():
    assert pick_variant_key({"size": "M"}, []) == ""
    assert pick_variant_key({"size": "M"}, ["abc"]) == ""


def test_pick_variant_key_skips_taken_hashes():
    base = variant_key_for({"size": "L"})

    assert pick_variant_key({"size": "L"}, [""]) == base
    assert pick_variant_key({"size": "L"}, ["", base]) == f"{base}-1"
    assert pick_variant_key({"size": "L"}, ["", base, f"{base}-1"]) == f"{base}-2"
