# app/services/collision.py
"""
Decides what "add to cart" means when the product may already be in the cart.

    insert   -> no line yet, create one
    merge    -> same options, bump quantity
    conflict -> different options, the customer must choose
                Replace or Add Separate
"""
import hashlib
import json
from dataclasses import dataclass
from typing import Any, Iterable, Literal, Mapping

from app.models.cart import CartItem

AddAction = Literal["insert", "merge", "conflict"]


@dataclass(frozen=True)
class AddDecision:
    action: AddAction
    merged_quantity: int | None = None


def options_equal(
    left: Mapping[str, Any] | None,
    right: Mapping[str, Any] | None,
) -> bool:
    """
    Key-by-key, value-by-value comparison. A missing key is absent, it is
    never filled with a default, so {"size": "M"} != {"size": "M", "engraving": ""}.
    """
    return dict(left or {}) == dict(right or {})


def decide_add(
    existing: CartItem | None,
    proposed_quantity: int,
    proposed_options: Mapping[str, Any] | None,
) -> AddDecision:
    if existing is None:
        return AddDecision("insert")

    if options_equal(existing.selected_options, proposed_options):
        return AddDecision("merge", existing.quantity + proposed_quantity)

    return AddDecision("conflict")


def variant_key_for(options: Mapping[str, Any] | None) -> str:
    """
    Stable identity suffix for a line added separately: sha1 of the
    options serialized with sorted keys.
    """
    canonical = json.dumps(dict(options or {}), sort_keys=True, separators=(",", ":"))
    return hashlib.sha1(canonical.encode("utf-8")).hexdigest()


def pick_variant_key(options: Mapping[str, Any] | None, taken: Iterable[str]) -> str:
    """
    Identity for a line given the keys other lines of the same product hold.

    "" while no other line uses it, else the options hash (suffixed if a
    stale row already owns that hash).
    """
    taken = set(taken)
    if "" not in taken:
        return ""
    base = variant_key_for(options)
    key, n = base, 1
    while key in taken:
        key = f"{base}-{n}"
        n += 1
    return key
