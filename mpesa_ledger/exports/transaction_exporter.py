import csv
from io import BytesIO, StringIO
from typing import Iterable

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter

from mpesa_ledger.exports.transaction_normalizer import TRANSACTION_COLUMNS, normalize_transaction_row
from mpesa_ledger.schemas.transaction import TransactionRead

MONEY_FIELDS = ("amount", "balance")
DATE_FORMAT = "%Y-%m-%d %H:%M"
EXCEL_DATE_FORMAT = "yyyy-mm-dd hh:mm"
EXCEL_MONEY_FORMAT = "#,##0.00"

HEADERS = [label for label, _ in TRANSACTION_COLUMNS]
FIELDS = [field for _, field in TRANSACTION_COLUMNS]


def transactions_to_csv(transactions: Iterable[TransactionRead]) -> StringIO:
    """One row per transaction; money as plain 2-decimal strings, dates as local time."""
    buffer = StringIO()
    writer = csv.writer(buffer)
    writer.writerow(HEADERS)

    for tx in transactions:
        row = normalize_transaction_row(tx)
        row["date"] = row["date"].strftime(DATE_FORMAT)
        for field in MONEY_FIELDS:
            row[field] = f"{row[field]:.2f}"
        writer.writerow([row[field] for field in FIELDS])

    buffer.seek(0)
    return buffer


def transactions_to_excel(transactions: Iterable[TransactionRead], sheet_name: str = "M-PESA Transactions") -> BytesIO:
    wb = Workbook()
    ws = wb.active
    # Excel caps sheet titles at 31 characters
    ws.title = sheet_name[:31]

    ws.append(HEADERS)
    for cell in ws[1]:
        cell.font = Font(bold=True)
    ws.freeze_panes = "A2"

    date_col = FIELDS.index("date") + 1
    money_cols = [FIELDS.index(field) + 1 for field in MONEY_FIELDS]

    for tx in transactions:
        row = normalize_transaction_row(tx)
        for field in MONEY_FIELDS:
            row[field] = float(row[field])
        ws.append([row[field] for field in FIELDS])

        r = ws.max_row
        ws.cell(row=r, column=date_col).number_format = EXCEL_DATE_FORMAT
        for col in money_cols:
            ws.cell(row=r, column=col).number_format = EXCEL_MONEY_FORMAT

    for idx, header in enumerate(HEADERS, start=1):
        width = max([len(header)] + [len(str(c.value or "")) for c in ws[get_column_letter(idx)]])
        ws.column_dimensions[get_column_letter(idx)].width = min(width + 2, 60)

    output = BytesIO()
    wb.save(output)
    output.seek(0)
    return output
