"""Bank statement CSV parsing."""

import csv
from pathlib import Path
from typing import Any, Optional

from ledgerkit.utils.amount_parser import parse_amount
from ledgerkit.utils.date_parser import parse_date

# Accepted header names for each statement field, compared case-insensitively
COLUMN_ALIASES = {
    "date": ("date", "transaction date", "posting date", "value date"),
    "description": ("description", "details", "narrative", "memo", "payee"),
    "amount": ("amount", "transaction amount"),
    "balance": ("balance", "running balance", "closing balance"),
    "reference": ("reference", "ref", "reference number", "cheque number"),
    "money_in": ("credit", "money in", "deposit", "paid in"),
    "money_out": ("debit", "money out", "withdrawal", "paid out"),
}


def _resolve_columns(fieldnames: list[str]) -> dict[str, str]:
    normalized = {name.strip().lower(): name for name in fieldnames if name}
    columns = {}
    for field, aliases in COLUMN_ALIASES.items():
        for alias in aliases:
            if alias in normalized:
                columns[field] = normalized[alias]
                break
    return columns


def _cell(row: dict[str, Optional[str]], columns: dict[str, str], field: str) -> Optional[str]:
    column = columns.get(field)
    if column is None:
        return None
    value = row.get(column)
    if value is None or not value.strip():
        return None
    return value.strip()


def read_statement_csv(csv_file_path: str) -> tuple[list[dict[str, Any]], list[str]]:
    """Read a bank statement CSV into rows for ``ReconciliationMatcher.import_lines``.

    The file needs date, description and balance columns, plus either an
    amount column (signed, positive is money in) or separate money-in and
    money-out columns. The delimiter is detected from the first kilobyte.

    Args:
        csv_file_path: Path to CSV file

    Returns:
        Tuple of (parsed rows, error messages for rows that could not be parsed)

    Raises:
        FileNotFoundError: If CSV file doesn't exist
        ValueError: If required columns are missing
    """
    csv_path = Path(csv_file_path)
    if not csv_path.exists():
        raise FileNotFoundError(f"CSV file not found: {csv_file_path}")

    rows: list[dict[str, Any]] = []
    errors: list[str] = []

    with open(csv_path, "r", encoding="utf-8-sig", newline="") as f:
        sample = f.read(1024)
        f.seek(0)
        try:
            delimiter = csv.Sniffer().sniff(sample, delimiters=",;\t|").delimiter
        except csv.Error:
            delimiter = ","

        reader = csv.DictReader(f, delimiter=delimiter)
        if reader.fieldnames is None:
            raise ValueError("CSV file has no columns")

        columns = _resolve_columns(list(reader.fieldnames))
        missing = [field for field in ("date", "description", "balance") if field not in columns]
        if "amount" not in columns and not ("money_in" in columns or "money_out" in columns):
            missing.append("amount")
        if missing:
            raise ValueError(f"CSV file missing required columns: {', '.join(missing)}")

        # Row 1 is the header
        for row_num, row in enumerate(reader, start=2):
            try:
                date_str = _cell(row, columns, "date")
                if date_str is None:
                    errors.append(f"Row {row_num}: Missing date")
                    continue
                balance_str = _cell(row, columns, "balance")
                if balance_str is None:
                    errors.append(f"Row {row_num}: Missing balance")
                    continue

                if "amount" in columns:
                    amount_str = _cell(row, columns, "amount")
                    if amount_str is None:
                        errors.append(f"Row {row_num}: Missing amount")
                        continue
                    amount = parse_amount(amount_str)
                else:
                    money_in = _cell(row, columns, "money_in")
                    money_out = _cell(row, columns, "money_out")
                    if money_in is None and money_out is None:
                        errors.append(f"Row {row_num}: Missing amount")
                        continue
                    amount = abs(parse_amount(money_in or "0")) - abs(parse_amount(money_out or "0"))

                rows.append(
                    {
                        "date": parse_date(date_str),
                        "description": _cell(row, columns, "description"),
                        "amount": amount,
                        "balance": parse_amount(balance_str),
                        "reference": _cell(row, columns, "reference"),
                    }
                )
            except ValueError as e:
                errors.append(f"Row {row_num}: {e}")

    return rows, errors
