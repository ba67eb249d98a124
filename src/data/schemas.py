"""
Price-series schema and validation.

**Conceptual**: Every price series entering the engine, whether fetched from a
vendor or read from a cached CSV, passes through the same canonical frame:

    timestamp  datetime64[ns, UTC]   strictly ascending, no duplicates
    price      float                 finite, > 0

Vendors hand back messy data (unsorted rows, repeated timestamps from a
snapshot at the edge of a window, NaN prices). normalize_price_frame() cleans
what can be cleaned (sort, dedup, UTC) and validate_price_frame() rejects
what can't (missing columns, NaN or non-positive prices).
"""

import pandas as pd

PRICE_SERIES_COLUMNS = ["timestamp", "price"]


class SchemaValidationError(Exception):
    """
    Raised when a price frame does not conform to the canonical schema.

    Messages include the source (file path or market) so the bad input is
    easy to find.
    """
    pass


def normalize_price_frame(df: pd.DataFrame, context: str | None = None) -> pd.DataFrame:
    """
    Coerce a (timestamp, price) frame to the canonical form.

    Steps:
      1. Parse timestamps and convert to UTC (naive timestamps are taken as UTC).
      2. Sort ascending by timestamp.
      3. Drop duplicate timestamps, keeping the last row for each.
      4. Validate.

    Args:
        df: Frame with at least 'timestamp' and 'price' columns.
        context: Source description for error messages.

    Returns:
        New frame with exactly PRICE_SERIES_COLUMNS, index reset.

    Raises:
        SchemaValidationError: If columns are missing or values are invalid.
    """
    ctx = f"{context}: " if context else ""

    missing = set(PRICE_SERIES_COLUMNS) - set(df.columns)
    if missing:
        raise SchemaValidationError(
            f"{ctx}Missing required columns: {sorted(missing)}. "
            f"Found columns: {list(df.columns)}."
        )

    frame = df[PRICE_SERIES_COLUMNS].copy()
    try:
        if pd.api.types.is_datetime64_any_dtype(frame["timestamp"]):
            frame["timestamp"] = pd.to_datetime(frame["timestamp"], utc=True)
        else:
            frame["timestamp"] = pd.to_datetime(frame["timestamp"], utc=True, format="ISO8601")
    except (TypeError, ValueError) as e:
        raise SchemaValidationError(
            f"{ctx}'timestamp' column contains non-parseable values. Error: {e}"
        )
    frame["price"] = pd.to_numeric(frame["price"], errors="coerce")

    frame = (
        frame.sort_values("timestamp", kind="stable")
        .drop_duplicates(subset="timestamp", keep="last")
        .reset_index(drop=True)
    )

    validate_price_frame(frame, context=context)
    return frame


def validate_price_frame(df: pd.DataFrame, context: str | None = None) -> None:
    """
    Check that a frame is already canonical.

    Raises:
        SchemaValidationError: On missing columns, NaN/non-positive prices, or
                               timestamps that are not strictly ascending.
    """
    ctx = f"{context}: " if context else ""

    missing = set(PRICE_SERIES_COLUMNS) - set(df.columns)
    if missing:
        raise SchemaValidationError(f"{ctx}Missing required columns: {sorted(missing)}.")

    if df["price"].isna().any():
        raise SchemaValidationError(
            f"{ctx}'price' has {int(df['price'].isna().sum())} missing or non-numeric values."
        )
    if (df["price"] <= 0).any():
        raise SchemaValidationError(f"{ctx}'price' has non-positive values.")

    if len(df) > 1 and not df["timestamp"].is_monotonic_increasing:
        raise SchemaValidationError(f"{ctx}Timestamps are not in ascending order.")
    if df["timestamp"].duplicated().any():
        raise SchemaValidationError(f"{ctx}Duplicate timestamps found.")
