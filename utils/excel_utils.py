import logging
import os

from openpyxl import Workbook
from openpyxl.utils.exceptions import IllegalCharacterError

from domain.errors import PersistenceError
from domain.reports import LedgerReport
from utils.csv_utils import DATA_HEADERS, transaction_rows

logger = logging.getLogger(__name__)

BUDGET_HEADERS = ["category", "limit", "spent", "remaining", "over_budget"]
WALLET_HEADERS = ["wallet", "transactions", "balance"]


def _fill_workbook(wb: Workbook, report: LedgerReport, rows: list[list[str]]) -> None:
    ws = wb.active
    if ws is not None:
        ws.title = "Transactions"
        ws.append(DATA_HEADERS)
        for row in rows:
            ws.append(row[:4] + [float(row[4])] + row[5:])

    wallets_ws = wb.create_sheet("Wallets")
    wallets_ws.append(WALLET_HEADERS)
    for wallet in report.wallets():
        wallets_ws.append([wallet.name, len(wallet.transactions), float(wallet.balance)])

    budget_ws = wb.create_sheet("Budget")
    budget_ws.append(BUDGET_HEADERS)
    for item in report.budget_state():
        budget_ws.append(
            [
                item.name,
                float(item.budget_limit) if item.is_limited else "no limit",
                float(item.spent),
                float(item.remaining) if item.remaining is not None else "unlimited",
                "yes" if item.is_over_budget else "no",
            ]
        )

    summary = report.finance_summary()
    budget_ws.append([])
    budget_ws.append(["TOTAL INCOME", float(summary.total_income)])
    budget_ws.append(["TOTAL EXPENSES", float(summary.total_expenses)])


def export_ledger_to_xlsx(report: LedgerReport, filepath: str) -> int:
    """Export transactions, wallets and budget state to XLSX.

    Returns the number of transaction rows written.
    """
    wb = Workbook()
    rows = transaction_rows(report)
    try:
        _fill_workbook(wb, report, rows)
        directory = os.path.dirname(filepath)
        if directory:
            os.makedirs(directory, exist_ok=True)
        wb.save(filepath)
    except IllegalCharacterError as exc:
        raise PersistenceError(
            f"Failed to export XLSX to {filepath}: data contains characters "
            f"not allowed in a worksheet"
        ) from exc
    except OSError as exc:
        raise PersistenceError(f"Failed to export XLSX to {filepath}: {exc}") from exc
    finally:
        wb.close()
    logger.info("XLSX export completed path=%s rows=%s", filepath, len(rows))
    return len(rows)
