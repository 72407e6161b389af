"""Timeline and invoicing calculators."""

from installer_ops.calculators.invoice_deriver import (
    InvoiceLineItemDeriver,
    InvoicingNotAllowedError,
)
from installer_ops.calculators.line_builder import (
    LineItemBuilder,
    OtherCostsCommentRequiredError,
)
from installer_ops.calculators.rate_resolver import RateResolver
from installer_ops.calculators.timeline import (
    TimelineAggregator,
    active_bars_for_day,
    build_day_grid,
    overlaps_window,
)
from installer_ops.calculators.window import compute_window, format_header_title, shift_anchor

__all__ = [
    "InvoiceLineItemDeriver",
    "InvoicingNotAllowedError",
    "LineItemBuilder",
    "OtherCostsCommentRequiredError",
    "RateResolver",
    "TimelineAggregator",
    "active_bars_for_day",
    "build_day_grid",
    "compute_window",
    "format_header_title",
    "overlaps_window",
    "shift_anchor",
]
