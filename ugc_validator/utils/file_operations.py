"""File operations for loading reward code batches and shop order exports."""
import logging
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import pandas as pd

logger = logging.getLogger(__name__)

# Accepted header names, compared case-insensitively
CODE_COLUMN_CANDIDATES = ("code", "discount code", "discount_code", "reward code")
ORDER_COLUMN_CANDIDATES = ("order", "order number", "order_number", "order id", "order_id", "ordernumber")
EMAIL_COLUMN_CANDIDATES = ("email", "e-mail", "order email", "order_email", "customer email")


def _load_csv(file_path: str) -> pd.DataFrame:
    """
    Read a CSV file as strings.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the file is empty or not a CSV
    """
    path = Path(file_path)

    if not path.exists():
        raise FileNotFoundError(f"File not found: {file_path}")

    if path.suffix.lower() != '.csv':
        raise ValueError(f"Unsupported file format: {path.suffix}. Supported formats: .csv")

    try:
        df = pd.read_csv(path, dtype=str, encoding='utf-8-sig')
    except pd.errors.EmptyDataError:
        raise ValueError(f"File is empty or has no data: {file_path}")
    except pd.errors.ParserError as e:
        raise ValueError(f"Invalid CSV format: {str(e)}")

    if df.empty or len(df.columns) == 0:
        raise ValueError(f"CSV file is empty: {file_path}")
    return df


def _find_column(df: pd.DataFrame, candidates: Sequence[str]) -> Optional[str]:
    for column in df.columns:
        if str(column).strip().lower() in candidates:
            return column
    return None


def _clean(series: pd.Series) -> pd.Series:
    return series.fillna("").astype(str).str.strip()


def read_reward_codes_csv(file_path: str) -> List[str]:
    """
    Read reward codes from a CSV file.

    Uses the first column whose header matches CODE_COLUMN_CANDIDATES, or the
    first column otherwise. Blank cells and duplicates are dropped; order is kept.
    """
    df = _load_csv(file_path)
    column = _find_column(df, CODE_COLUMN_CANDIDATES) or df.columns[0]

    codes = _clean(df[column])
    codes = codes[codes != ""].drop_duplicates()

    logger.info(f"Read {len(codes)} reward codes from {Path(file_path).name} (column '{column}')")
    return codes.tolist()


def read_orders_csv(file_path: str) -> List[Tuple[str, str]]:
    """
    Read (order number, email) pairs from a shop order export.

    The order column is matched by header, falling back to the first column.
    The email column is optional. Rows without an order number are skipped and
    only the first row per order number is kept.
    """
    df = _load_csv(file_path)
    order_column = _find_column(df, ORDER_COLUMN_CANDIDATES) or df.columns[0]
    email_column = _find_column(df, EMAIL_COLUMN_CANDIDATES)

    orders = pd.DataFrame({
        "order_id": _clean(df[order_column]),
        "email": _clean(df[email_column]) if email_column is not None else "",
    })
    orders = orders[orders["order_id"] != ""].drop_duplicates(subset="order_id")

    logger.info(f"Read {len(orders)} orders from {Path(file_path).name} (column '{order_column}')")
    return list(orders.itertuples(index=False, name=None))
