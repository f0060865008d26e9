"""Configuration module for the FDBMS billing core."""

from fdbms.config.logging import configure_logging, get_logger
from fdbms.config.rates_loader import (
    RateConfigError,
    load_commodity_rates,
    load_grinding_rates,
    load_mode_config,
    load_other_deduction_defaults,
    load_transport_rates,
)
from fdbms.config.settings import FlatSettings, get_settings

__all__ = [
    "FlatSettings",
    "get_settings",
    "configure_logging",
    "get_logger",
    "RateConfigError",
    "load_mode_config",
    "load_transport_rates",
    "load_grinding_rates",
    "load_commodity_rates",
    "load_other_deduction_defaults",
]
