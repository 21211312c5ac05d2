"""
parsing.py
==========
Feature extraction from the semi-structured text columns of the TMDB dump.

Columns such as genres, cast, crew or production_companies hold Python-repr
lists of dicts rendered as text, e.g.

    [{'id': 18, 'name': 'Drama'}, {'id': 35, 'name': 'Comedy'}]

Quoting is inconsistent (names containing an apostrophe are double-quoted),
so the text is never evaluated. Every helper works on the raw string with a
literal or regex match and degrades to 0 / "Missing" when nothing matches.
Names that are double-quoted in the source are skipped by the value patterns.
"""

import re

import numpy as np
import pandas as pd

from .config import (
    MISSING_SENTINEL,
    ENTRY_MARKER,
    COUNT_FIELDS,
    GENDER_CODES,
    CREW_ROLES,
    FIRST_VALUE_FIELDS,
)


# ============================================================================
# PRIMITIVES
# ============================================================================

def _as_text(series: pd.Series) -> pd.Series:
    """NaN-safe string view of a column."""
    return series.fillna("").astype(str)


def _value_pattern(key: str) -> str:
    """Regex capturing the single-quoted value of `'key': '...'`."""
    return rf"'{re.escape(key)}': '(.+?)'"


def count(series: pd.Series, marker: str = ENTRY_MARKER) -> pd.Series:
    """
    Count occurrences of a literal marker in every cell.

    With the default marker this is the number of embedded entries.
    Empty lists, NaN and the "Missing" sentinel count as 0.
    """
    return _as_text(series).str.count(re.escape(marker)).astype(int)


def count_with_predicate(series: pd.Series, predicate_text: str) -> pd.Series:
    """
    Count entries whose embedded field equals a value, given as the literal
    text of the pair, e.g. "'gender': 1" or "'job': 'Director'".
    """
    return _as_text(series).str.count(re.escape(predicate_text)).astype(int)


def first_value(series: pd.Series, key: str) -> pd.Series:
    """First listed value for `key`, or "Missing" when absent."""
    extracted = _as_text(series).str.extract(_value_pattern(key), expand=False)
    return extracted.fillna(MISSING_SENTINEL)


def extract_all_sorted(series: pd.Series, key: str, sep: str = "|") -> pd.Series:
    """
    Extract every value for `key`, sort them and join into one canonical
    string. The result does not depend on the order of entries in the source.
    """
    pattern = _value_pattern(key)

    def _canonical(values):
        if not values:
            return MISSING_SENTINEL
        return sep.join(sorted(values))

    return _as_text(series).str.findall(pattern).apply(_canonical)


# ============================================================================
# STAGE
# ============================================================================

def parse_structured_fields(df: pd.DataFrame) -> pd.DataFrame:
    """
    Derive counts, gender/role counts, first values and canonical genre
    strings from the embedded text columns.

    Args:
        df: Imputed DataFrame (text columns may still hold "Missing")

    Returns:
        Copy of df with the parsed columns appended
    """
    df = df.copy()
    print("\n[Parser] Extracting features from embedded text fields...")

    # ── Entry counts ──────────────────────────────────────────────────────
    for field, column in COUNT_FIELDS.items():
        df[column] = count(df[field])

    # ── Gender buckets for cast and crew ──────────────────────────────────
    for field in ('cast', 'crew'):
        for code in GENDER_CODES:
            df[f"{field}_gender_{code}"] = count_with_predicate(df[field], f"'gender': {code}")

    # ── Crew roles ────────────────────────────────────────────────────────
    for column, job in CREW_ROLES.items():
        df[column] = count_with_predicate(df['crew'], f"'job': '{job}'")

    # ── First listed names ────────────────────────────────────────────────
    for field, column in FIRST_VALUE_FIELDS.items():
        df[column] = first_value(df[field], 'name')
        missing = (df[column] == MISSING_SENTINEL).sum()
        print(f"[Parser]   -> {column}: {missing:,} records without a match")

    df['genres_all'] = extract_all_sorted(df['genres'], 'name')

    empty_cast = (df['cast_count'] == 0).sum()
    print(f"[Parser]   -> {len(COUNT_FIELDS)} count features, "
          f"{np.sum(df['genres_all'] != MISSING_SENTINEL):,} records with genres, "
          f"{empty_cast:,} without cast")
    return df
