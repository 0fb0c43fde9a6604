"""Reports over saved master records."""

from expense_records.queries.reports import MasterRecordReports

__all__ = ["MasterRecordReports"]
