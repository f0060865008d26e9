"""Line-item calculation for transportation and grinding bills."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, replace
from decimal import Decimal

from fdbms.models import (
    JUTE_BAGS,
    PP_BAGS,
    BillItem,
    BillMode,
    GrindingCommodity,
)
from fdbms.numbers import ZERO, round2, to_decimal, to_int

HUNDRED = Decimal("100")


@dataclass(frozen=True)
class ModeConfig:
    """Weight constants for the two transportation modes."""

    kg_per_bag: Decimal = Decimal("20")
    pp_bag_bardana_kg: Decimal = Decimal("0.115")
    jute_bag_bardana_kg: Decimal = Decimal("1.0")


def _coerce_mode(mode: object) -> BillMode:
    if isinstance(mode, BillMode):
        return mode
    try:
        return BillMode(str(mode).strip().title())
    except ValueError:
        return BillMode.NORMAL


def compute_line_item(item: BillItem, config: ModeConfig | None = None) -> BillItem:
    """Recompute every derived field of a transportation line item.

    Numeric inputs are coerced first; invalid or missing values count as 0.
    In Normal mode the net weight is ``bags * kg_per_bag`` and all Bardana-only
    fields are cleared. In Bardana mode the bag count is the sum of PP and jute
    bags, and packaging weight only counts the bag types that are flagged.
    """
    config = config or ModeConfig()
    mode = _coerce_mode(item.mode)
    rate = to_decimal(item.rate_per_kg)
    bags = to_int(item.bags)
    pp_bags = to_int(item.pp_bags)
    jute_bags = to_int(item.jute_bags)
    net_kg = to_decimal(item.net_kg)
    bag_types = frozenset(item.bag_types or ())

    if mode is BillMode.NORMAL:
        gross_kg = bags * config.kg_per_bag
        bardana_kg = ZERO
        net_kg = gross_kg
        pp_bags = 0
        jute_bags = 0
        bag_types = frozenset()
    else:
        bags = pp_bags + jute_bags
        pp_bardana = pp_bags * config.pp_bag_bardana_kg if PP_BAGS in bag_types else ZERO
        jute_bardana = (
            jute_bags * config.jute_bag_bardana_kg if JUTE_BAGS in bag_types else ZERO
        )
        bardana_kg = pp_bardana + jute_bardana
        gross_kg = net_kg + bardana_kg

    return replace(
        item,
        mode=mode,
        rate_per_kg=rate,
        bags=bags,
        pp_bags=pp_bags,
        jute_bags=jute_bags,
        bag_types=bag_types,
        gross_kg=gross_kg,
        bardana_kg=bardana_kg,
        net_kg=net_kg,
        amount=round2(net_kg * rate),
    )


def compute_line_items(
    items: Iterable[BillItem], config: ModeConfig | None = None
) -> list[BillItem]:
    return [compute_line_item(item, config) for item in items]


def compute_commodity(commodity: GrindingCommodity) -> GrindingCommodity:
    """Recompute a grinding commodity amount from its quantity and rate per 100 kg."""
    quantity = to_decimal(commodity.quantity_kgs)
    rate = to_decimal(commodity.rate_per_100kg)
    return replace(
        commodity,
        quantity_kgs=quantity,
        rate_per_100kg=rate,
        amount=round2(quantity * rate / HUNDRED),
    )
