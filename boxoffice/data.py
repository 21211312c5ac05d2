"""
data.py - Data loading, schema checks and the train/test partition
"""

import numpy as np
import pandas as pd
from pathlib import Path
from typing import Dict, Tuple
from sklearn.model_selection import train_test_split

from .config import (
    ID_COLUMN,
    TARGET_COLUMN,
    LABEL_COLUMN,
    RANDOM_STATE,
    TRAIN_SIZE,
    STRATIFY_BINS,
    MAX_NONFINITE_TARGET_FRACTION,
    REQUIRED_COLUMNS,
    NUMERIC_COLUMNS,
)


class SchemaError(ValueError):
    """Input table does not have the expected columns or types."""


def validate_schema(df: pd.DataFrame) -> None:
    """Fail fast on missing columns, non-numeric numeric columns or duplicate ids."""
    missing = [col for col in REQUIRED_COLUMNS if col not in df.columns]
    if missing:
        raise SchemaError(f"Missing required columns: {missing}")

    wrong_type = [col for col in NUMERIC_COLUMNS if not pd.api.types.is_numeric_dtype(df[col])]
    if wrong_type:
        raise SchemaError(f"Columns expected to be numeric: {wrong_type}")

    duplicated = df[ID_COLUMN].duplicated()
    if duplicated.any():
        raise SchemaError(f"{duplicated.sum()} duplicated values in '{ID_COLUMN}'")


def load_raw_data(filepath: Path) -> pd.DataFrame:
    """Load the raw TMDB CSV and check its schema."""
    print(f"\n[Data] Loading {filepath}...")
    df = pd.read_csv(filepath, low_memory=False)
    validate_schema(df)
    print(f"[Data] Loaded {len(df):,} rows x {len(df.columns)} columns")
    return df


def split_data(
    df: pd.DataFrame,
    train_size: float = TRAIN_SIZE,
    random_state: int = RANDOM_STATE
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    Stratified train/test split on log revenue.

    The target is binned into quantile groups so that both partitions see
    the same revenue distribution. Same seed + same input = same split.

    Raises:
        ValueError: if too many records have a non-finite log revenue
    """
    print(f"[Data] Splitting ({train_size*100:.0f}/{(1-train_size)*100:.0f}, stratified on log {TARGET_COLUMN})...")

    with np.errstate(divide='ignore', invalid='ignore'):
        log_target = np.log(df[TARGET_COLUMN].astype(float))
    finite = np.isfinite(log_target)

    bad_fraction = 1 - finite.mean()
    if bad_fraction > MAX_NONFINITE_TARGET_FRACTION:
        raise ValueError(
            f"{bad_fraction:.1%} of '{TARGET_COLUMN}' values have no finite log "
            f"(limit {MAX_NONFINITE_TARGET_FRACTION:.1%})"
        )
    if not finite.all():
        print(f"[Data]   -> Dropping {(~finite).sum():,} records with non-finite log {TARGET_COLUMN}")
        df = df[finite]
        log_target = log_target[finite]

    strata = pd.qcut(log_target, q=STRATIFY_BINS, labels=False, duplicates='drop')
    train_df, test_df = train_test_split(
        df, train_size=train_size, random_state=random_state, stratify=strata
    )

    train_df = train_df.assign(**{LABEL_COLUMN: "train"})
    test_df = test_df.assign(**{LABEL_COLUMN: "test"})
    print(f"[Data] Train={len(train_df):,}, Test={len(test_df):,}")
    return train_df, test_df


def load_and_split(filepath: Path) -> Dict[str, pd.DataFrame]:
    """Main entry point: load → validate → split."""
    df = load_raw_data(filepath)
    train_df, test_df = split_data(df)
    return {'train': train_df, 'test': test_df}
