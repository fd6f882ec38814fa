import csv
import logging
import os
from datetime import date as dt_date

from domain.errors import PersistenceError
from domain.reports import LedgerReport

logger = logging.getLogger(__name__)

DATA_HEADERS = ["wallet", "date", "type", "category", "amount", "id", "transfer_id"]


def _record_type(transaction) -> str:
    if transaction.is_transfer:
        return "transfer"
    return transaction.type


def transaction_rows(report: LedgerReport) -> list[list[str]]:
    rows: list[list[str]] = []
    for wallet, transaction in sorted(report.transactions(), key=lambda item: item[1].date):
        rows.append(
            [
                wallet.name,
                transaction.date.isoformat()
                if isinstance(transaction.date, dt_date)
                else str(transaction.date),
                _record_type(transaction),
                transaction.category,
                f"{transaction.amount:.2f}",
                transaction.id,
                transaction.transfer_id or "",
            ]
        )
    return rows


def export_transactions_to_csv(report: LedgerReport, filepath: str) -> int:
    """Write every transaction of the report to CSV. Returns the row count."""
    rows = transaction_rows(report)
    try:
        directory = os.path.dirname(filepath)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(filepath, "w", newline="", encoding="utf-8") as csvfile:
            writer = csv.writer(csvfile)
            writer.writerow(DATA_HEADERS)
            writer.writerows(rows)
    except OSError as exc:
        raise PersistenceError(f"Failed to export CSV to {filepath}: {exc}") from exc
    logger.info("CSV export completed path=%s rows=%s", filepath, len(rows))
    return len(rows)
