"""Utilities for loading billing rate schedules from YAML files."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml  # type: ignore[import-untyped]

from fdbms.config.settings import get_settings
from fdbms.deductions import (
    GRINDING_RATES,
    INCOME_TAX,
    TRANSPORT_RATES,
    RateBasis,
    RateSchedule,
    StatutoryLine,
)
from fdbms.line_items import ModeConfig
from fdbms.models import OtherDeductions

TRANSPORT_FILE = "transportation.yaml"
GRINDING_FILE = "grinding.yaml"


class RateConfigError(ValueError):
    """Raised when a rate schedule file is malformed."""


def _rates_dir(rates_dir: Path | None) -> Path:
    if rates_dir is not None:
        return rates_dir
    return get_settings().rates_dir


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise RateConfigError(f"{path.name}: top level must be a mapping")
    return data


def _decimal(path: Path, key: str, value: Any) -> Decimal:
    try:
        result = Decimal(str(value))
    except InvalidOperation as exc:
        raise RateConfigError(f"{path.name}: invalid rate for {key!r}: {value!r}") from exc
    if not result.is_finite() or result < 0:
        raise RateConfigError(f"{path.name}: invalid rate for {key!r}: {value!r}")
    return result


def _parse_schedule(path: Path, data: dict[str, Any], default: RateSchedule) -> RateSchedule:
    raw_lines = data.get("deductions")
    if raw_lines is None:
        return default
    if not isinstance(raw_lines, list):
        raise RateConfigError(f"{path.name}: deductions must be a list")

    lines: list[StatutoryLine] = []
    seen: set[str] = set()
    for entry in raw_lines:
        if not isinstance(entry, dict) or "key" not in entry or "rate" not in entry:
            raise RateConfigError(f"{path.name}: each deduction needs a key and a rate")
        key = str(entry["key"]).strip()
        if key in seen:
            raise RateConfigError(f"{path.name}: duplicate deduction {key!r}")
        try:
            basis = RateBasis(str(entry.get("basis", RateBasis.GRAND_TOTAL.value)))
        except ValueError as exc:
            raise RateConfigError(
                f"{path.name}: unknown basis for {key!r}: {entry.get('basis')!r}"
            ) from exc
        # Lines based on income tax read the already computed income tax line.
        if basis is RateBasis.INCOME_TAX and INCOME_TAX not in seen:
            raise RateConfigError(
                f"{path.name}: {key!r} must come after the {INCOME_TAX!r} line"
            )
        seen.add(key)
        lines.append(
            StatutoryLine(
                key=key,
                label=str(entry.get("label", key)),
                rate=_decimal(path, key, entry["rate"]),
                basis=basis,
            )
        )

    return RateSchedule(name=str(data.get("name", default.name)), lines=tuple(lines))


@lru_cache
def load_transport_rates(rates_dir: Path | None = None) -> RateSchedule:
    """Load the transportation deduction schedule, falling back to built-in rates."""
    path = _rates_dir(rates_dir) / TRANSPORT_FILE
    return _parse_schedule(path, _load_yaml(path), TRANSPORT_RATES)


@lru_cache
def load_grinding_rates(rates_dir: Path | None = None) -> RateSchedule:
    """Load the grinding deduction schedule, falling back to built-in rates."""
    path = _rates_dir(rates_dir) / GRINDING_FILE
    return _parse_schedule(path, _load_yaml(path), GRINDING_RATES)


@lru_cache
def load_mode_config(rates_dir: Path | None = None) -> ModeConfig:
    """Load Normal/Bardana weight constants for transportation items."""
    path = _rates_dir(rates_dir) / TRANSPORT_FILE
    mode = _load_yaml(path).get("mode") or {}
    if not isinstance(mode, dict):
        raise RateConfigError(f"{path.name}: mode must be a mapping")

    default = ModeConfig()
    return ModeConfig(
        kg_per_bag=_decimal(path, "kg_per_bag", mode.get("kg_per_bag", default.kg_per_bag)),
        pp_bag_bardana_kg=_decimal(
            path, "pp_bag_bardana_kg", mode.get("pp_bag_bardana_kg", default.pp_bag_bardana_kg)
        ),
        jute_bag_bardana_kg=_decimal(
            path,
            "jute_bag_bardana_kg",
            mode.get("jute_bag_bardana_kg", default.jute_bag_bardana_kg),
        ),
    )


@lru_cache
def load_commodity_rates(rates_dir: Path | None = None) -> dict[str, Decimal]:
    """Load default grinding rates per 100 kg, keyed by commodity name."""
    path = _rates_dir(rates_dir) / GRINDING_FILE
    raw = _load_yaml(path).get("commodity_rates") or {}
    if not isinstance(raw, dict):
        raise RateConfigError(f"{path.name}: commodity_rates must be a mapping")
    return {str(name): _decimal(path, str(name), rate) for name, rate in raw.items()}


@lru_cache
def load_other_deduction_defaults(rates_dir: Path | None = None) -> OtherDeductions:
    """Load the empty-bag and bran price rates for new grinding bills."""
    path = _rates_dir(rates_dir) / GRINDING_FILE
    raw = _load_yaml(path).get("other_deductions") or {}
    if not isinstance(raw, dict):
        raise RateConfigError(f"{path.name}: other_deductions must be a mapping")

    default = OtherDeductions()
    return OtherDeductions(
        e_bags_rate=_decimal(path, "e_bags_rate", raw.get("e_bags_rate", default.e_bags_rate)),
        bran_rate=_decimal(
            path, "bran_price_rate", raw.get("bran_price_rate", default.bran_rate)
        ),
    )
