"""FDBMS - billing core for food-department transportation and grinding bills."""

__version__ = "0.1.0"

from fdbms.billing import prepare_grinding_bill, prepare_transport_bill, upsert_bill
from fdbms.config import configure_logging, get_settings
from fdbms.deductions import (
    GRINDING_RATES,
    TRANSPORT_RATES,
    RateSchedule,
    compute_deductions,
    compute_grinding_totals,
    compute_transport_totals,
)
from fdbms.lifecycle import (
    Rejected,
    UnifiedBill,
    mark_processed,
    process_batch,
    report_in_range,
    send_to_ag,
    unified_queue,
)
from fdbms.line_items import ModeConfig, compute_commodity, compute_line_item
from fdbms.models import (
    BillItem,
    BillMode,
    BillStatus,
    BillType,
    Contract,
    GrindingBill,
    GrindingCommodity,
    TransportBill,
    User,
)
from fdbms.persistence import guarded_save
from fdbms.reconcile import merge_bills, merge_import, reconstruct_bills, replace_all
from fdbms.reports import (
    budget_status,
    contractor_statement,
    contractor_summary,
    deduction_summary,
    monthly_summary,
    route_summary,
)
from fdbms.sequencing import next_bill_number

__all__ = [
    # Version
    "__version__",
    # Records
    "BillItem",
    "BillMode",
    "BillStatus",
    "BillType",
    "Contract",
    "GrindingBill",
    "GrindingCommodity",
    "TransportBill",
    "User",
    # Calculation
    "ModeConfig",
    "compute_line_item",
    "compute_commodity",
    "RateSchedule",
    "TRANSPORT_RATES",
    "GRINDING_RATES",
    "compute_deductions",
    "compute_transport_totals",
    "compute_grinding_totals",
    # Bills
    "prepare_transport_bill",
    "prepare_grinding_bill",
    "upsert_bill",
    "next_bill_number",
    # Lifecycle
    "Rejected",
    "UnifiedBill",
    "send_to_ag",
    "mark_processed",
    "unified_queue",
    "report_in_range",
    "process_batch",
    # Import and persistence
    "merge_import",
    "replace_all",
    "merge_bills",
    "reconstruct_bills",
    "guarded_save",
    # Reports
    "contractor_summary",
    "monthly_summary",
    "route_summary",
    "deduction_summary",
    "contractor_statement",
    "budget_status",
    # Config
    "get_settings",
    "configure_logging",
]
