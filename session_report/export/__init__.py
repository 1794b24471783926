from .csv_export import check_writable, report_columns, write_report

__all__ = [
    "check_writable",
    "report_columns",
    "write_report",
]
