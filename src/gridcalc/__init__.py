"""gridcalc -- spreadsheet formula engine with incremental recalculation."""

__version__ = "0.3.0"
__core_api_version__ = 1
