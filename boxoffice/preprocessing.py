"""
preprocessing.py
================
Imputation, feature assembly and encoding for the box-office pipeline.
All transformations follow the scikit-learn fit/transform pattern: every
statistic is learned on the training partition and applied unchanged to
both partitions.

Pipeline flow:
    1. Train/Test split (80/20, stratified on log revenue)
    2. Imputer          - medians, modes, "Missing" sentinel, release dates
    3. Parser           - counts and names from the embedded text fields
    4. FeatureAssembler - calendar, flags, company/language vocabularies
    5. BudgetEstimator  - KNN replacement of placeholder budgets
    6. FeatureEncoder   - one-hot encoding aligned to the training schema

Each stage returns a new DataFrame; no stage mutates its input.
"""

import numpy as np
import pandas as pd
from typing import Any, Dict, List, Optional

from .config import (
    TARGET_COLUMN,
    TARGET_LOG,
    LABEL_COLUMN,
    RANDOM_STATE,
    REQUIRED_COLUMNS,
    NUMERIC_COLUMNS,
    MISSING_SENTINEL,
    IMPUTE_STRATEGIES,
    PIVOT_YEAR,
    GENRES,
    TOP_COMPANIES_KNOWN,
    TOP_COMPANIES_KEEP,
    TOP_LANGUAGES_KEEP,
    OTHER_CATEGORY,
    STUDIO_DOMAINS,
    CATEGORICAL_FEATURES,
    DROP_FEATURES,
)
from .data import split_data
from .parsing import parse_structured_fields, extract_all_sorted
from .budget import BudgetEstimator


class ImputationError(ValueError):
    """A statistic needed for imputation cannot be computed from the training data."""


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def sanitize_column_names(df: pd.DataFrame) -> pd.DataFrame:
    """
    Sanitize column names to be compatible with LightGBM.

    LightGBM does not support special JSON characters: [ ] < > : " , { } .
    Company names end up in one-hot column names, so they are cleaned here
    and any resulting duplicates get a numeric suffix.
    """
    replacements = {
        '[': '(', ']': ')', '<': 'lt', '>': 'gt',
        ':': '_', '"': '', ',': '_', '{': '(', '}': ')', '.': '_', ' ': '_'
    }

    new_columns = []
    for col in df.columns:
        new_col = str(col)
        for char, replacement in replacements.items():
            new_col = new_col.replace(char, replacement)
        new_columns.append(new_col)

    # Resolve duplicates by appending _1, _2, ...
    final_columns = []
    seen = {}
    for col in new_columns:
        if col in seen:
            seen[col] += 1
            final_columns.append(f"{col}_{seen[col]}")
        else:
            seen[col] = 0
            final_columns.append(col)

    df.columns = final_columns
    return df


def disambiguate_two_digit_year(year: int, pivot_year: int = PIVOT_YEAR) -> int:
    """Map a two-digit year to the 1900s when above the pivot's remainder, else the 2000s."""
    pivot = pivot_year % 100
    return 1900 + year if year > pivot else 2000 + year


def parse_release_dates(series: pd.Series, pivot_year: int = PIVOT_YEAR) -> pd.Series:
    """
    Parse m/d/yy release dates with an explicit century pivot.

    Four-digit years are kept as they are. Unparseable values become NaT.
    """
    parts = series.astype(str).str.extract(r'^\s*(\d{1,2})/(\d{1,2})/(\d{2}|\d{4})\s*$')
    month = pd.to_numeric(parts[0], errors='coerce')
    day = pd.to_numeric(parts[1], errors='coerce')
    year = pd.to_numeric(parts[2], errors='coerce')

    year = year.map(
        lambda y: y if np.isnan(y) or y >= 100 else disambiguate_two_digit_year(int(y), pivot_year)
    ).astype(float)

    stamp = (year * 10000 + month * 100 + day).astype('Int64').astype(str)
    return pd.to_datetime(stamp, format='%Y%m%d', errors='coerce')


def _top_values(series: pd.Series, n: int) -> List[str]:
    """Most frequent values (sentinel excluded), ties broken alphabetically."""
    counts = series[series != MISSING_SENTINEL].value_counts()
    counts = counts.sort_index().sort_values(ascending=False, kind='mergesort')
    return counts.index[:n].tolist()


# ============================================================================
# IMPUTER
# ============================================================================

class Imputer:
    """
    Column-wise imputation fitted on the training partition.

    State fitted on training data:
        - statistics: column -> median / mode value (IMPUTE_STRATEGIES)
        - median_release_date: median of the disambiguated release dates
    """

    def __init__(self, strategies: Optional[Dict[str, str]] = None, pivot_year: int = PIVOT_YEAR):
        self.strategies = dict(IMPUTE_STRATEGIES if strategies is None else strategies)
        self.pivot_year = pivot_year
        self.statistics: Dict[str, Any] = {}
        self.median_release_date: Optional[pd.Timestamp] = None
        self._is_fitted = False

    def fit(self, df: pd.DataFrame) -> 'Imputer':
        """Compute medians/modes and the median release date on training data."""
        print("\n[Imputer.fit] Computing imputation statistics on training data...")

        for col, strategy in self.strategies.items():
            values = df[col].dropna()
            if values.empty:
                raise ImputationError(f"No non-missing training values for '{col}' ({strategy})")

            if strategy == 'median':
                self.statistics[col] = values.median()
            elif strategy == 'mode':
                self.statistics[col] = values.mode().iloc[0]
            else:
                raise ValueError(f"Unknown imputation strategy '{strategy}' for '{col}'")
            print(f"[Imputer.fit]   -> {col}: {strategy} = {self.statistics[col]!r}")

        dates = parse_release_dates(df['release_date'], self.pivot_year).dropna()
        if dates.empty:
            raise ImputationError("No parseable training release dates")
        self.median_release_date = dates.median()
        print(f"[Imputer.fit]   -> release_date: median = {self.median_release_date.date()}")

        self._is_fitted = True
        return self

    def transform(self, df: pd.DataFrame) -> pd.DataFrame:
        """Fill missing values using the fitted statistics."""
        if not self._is_fitted:
            raise RuntimeError("Imputer must be fitted before transform. Call .fit() first.")

        df = df.copy()

        for col, value in self.statistics.items():
            missing = df[col].isna().sum()
            if missing > 0:
                df[col] = df[col].fillna(value)
                print(f"[Imputer]   -> {col}: filled {missing:,} values with {value!r}")

        release = parse_release_dates(df['release_date'], self.pivot_year)
        missing_dates = release.isna().sum()
        df['release_dt'] = release.fillna(self.median_release_date)
        if missing_dates > 0:
            print(f"[Imputer]   -> release_date: filled {missing_dates:,} with training median")

        text_cols = set(df.select_dtypes(include=['object', 'string']).columns)
        text_cols |= {c for c in REQUIRED_COLUMNS if c not in NUMERIC_COLUMNS}
        text_cols -= set(self.statistics) | {LABEL_COLUMN}
        for col in sorted(text_cols):
            missing = df[col].isna().sum()
            if missing > 0:
                df[col] = df[col].astype(object).fillna(MISSING_SENTINEL)
                print(f"[Imputer]   -> {col}: filled {missing:,} with '{MISSING_SENTINEL}'")

        return df

    def fit_transform(self, df: pd.DataFrame) -> pd.DataFrame:
        return self.fit(df).transform(df)


# ============================================================================
# FEATURE ASSEMBLER
# ============================================================================

class FeatureAssembler:
    """
    Derives model features from imputed and parsed records.

    State fitted on training data:
        - known_companies: top-20 first production companies
        - kept_companies:  top-200 first production companies (rest -> "Other")
        - kept_languages:  top original languages (rest -> "Other")
        - count_medians:   median non-zero cast/crew counts (replace zeros)
    """

    def __init__(
        self,
        top_known: int = TOP_COMPANIES_KNOWN,
        top_keep: int = TOP_COMPANIES_KEEP,
        top_languages: int = TOP_LANGUAGES_KEEP
    ):
        self.top_known = top_known
        self.top_keep = top_keep
        self.top_languages = top_languages
        self.known_companies: List[str] = []
        self.kept_companies: List[str] = []
        self.kept_languages: List[str] = []
        self.count_medians: Dict[str, float] = {}
        self._is_fitted = False

    def fit(self, df: pd.DataFrame) -> 'FeatureAssembler':
        print("\n[FeatureAssembler.fit] Building vocabularies from training data...")

        self.known_companies = _top_values(df['first_company'], self.top_known)
        self.kept_companies = _top_values(df['first_company'], self.top_keep)
        self.kept_languages = _top_values(df['original_language'], self.top_languages)
        print(f"[FeatureAssembler.fit]   -> {len(self.known_companies)} well-known companies, "
              f"{len(self.kept_companies)} kept companies, {len(self.kept_languages)} languages")

        for col in ('cast_count', 'crew_count'):
            non_zero = df.loc[df[col] > 0, col]
            if non_zero.empty:
                raise ImputationError(f"No training record with a non-zero '{col}'")
            self.count_medians[col] = float(non_zero.median())
            print(f"[FeatureAssembler.fit]   -> {col}: median = {self.count_medians[col]:.1f}")

        self._is_fitted = True
        return self

    def transform(self, df: pd.DataFrame) -> pd.DataFrame:
        if not self._is_fitted:
            raise RuntimeError("FeatureAssembler must be fitted before transform. Call .fit() first.")

        df = df.copy()
        print("[FeatureAssembler] Deriving features...")

        # ── 1. Calendar ───────────────────────────────────────────────
        release = df['release_dt']
        df['release_year'] = release.dt.year
        df['release_month'] = release.dt.month
        df['release_day'] = release.dt.day
        df['release_week'] = release.dt.isocalendar().week.astype(int)
        df['release_dow'] = release.dt.dayofweek
        df['release_quarter'] = "Q" + release.dt.quarter.astype(str)
        df['release_decade'] = ((df['release_year'] // 10) * 10).astype(str) + "s"
        df['released_before_2000'] = (df['release_year'] < 2000).astype(int)
        df['released_before_1980'] = (df['release_year'] < 1980).astype(int)

        # ── 2. Availability flags ─────────────────────────────────────
        df['has_homepage'] = (df['homepage'] != MISSING_SENTINEL).astype(int)
        df['has_tagline'] = (df['tagline'] != MISSING_SENTINEL).astype(int)
        df['has_collection'] = (df['belongs_to_collection'] != MISSING_SENTINEL).astype(int)
        df['is_released'] = (df['status'] == 'Released').astype(int)

        homepage = df['homepage'].str.lower()
        for domain, column in STUDIO_DOMAINS.items():
            df[column] = homepage.str.contains(domain, regex=False).astype(int)

        # ── 3. Text lengths ───────────────────────────────────────────
        for col in ('title', 'overview'):
            df[f"{col}_length"] = np.where(df[col] == MISSING_SENTINEL, 0, df[col].str.len())

        # ── 4. Genre indicators ───────────────────────────────────────
        genre_sets = df['genres_all'].str.split('|').apply(set)
        for genre in GENRES:
            column = "genre_" + genre.lower().replace(' ', '_')
            df[column] = genre_sets.apply(lambda names: genre in names).astype(int)

        # ── 5. Company vocabulary ─────────────────────────────────────
        known = set(self.known_companies)
        companies = extract_all_sorted(df['production_companies'], 'name').str.split('|')
        df['known_company_count'] = companies.apply(lambda names: sum(n in known for n in names))
        df['is_independent'] = (~df['first_company'].isin(known)).astype(int)
        df['first_company'] = df['first_company'].where(
            df['first_company'].isin(self.kept_companies), OTHER_CATEGORY
        )
        df['original_language'] = df['original_language'].where(
            df['original_language'].isin(self.kept_languages), OTHER_CATEGORY
        )

        # ── 6. Empty cast/crew lists are treated as missing ──────────
        for col, median in self.count_medians.items():
            zeros = (df[col] == 0).sum()
            if zeros > 0:
                df[col] = df[col].replace(0, median)
                print(f"[FeatureAssembler]   -> {col}: replaced {zeros:,} zero counts with {median:.1f}")

        return df

    def fit_transform(self, df: pd.DataFrame) -> pd.DataFrame:
        return self.fit(df).transform(df)


# ============================================================================
# ENCODING
# ============================================================================

class FeatureEncoder:
    """
    Turns the assembled table into the numeric model matrix.

    Raw text columns and identifiers are dropped, categoricals are one-hot
    encoded and the output is aligned to the columns seen at fit time.
    """

    def __init__(self, categorical_features=CATEGORICAL_FEATURES, drop_features=DROP_FEATURES):
        self.categorical_features = list(categorical_features)
        self.drop_features = list(drop_features)
        self.columns: List[str] = []
        self.column_map: Dict[str, str] = {}
        self._is_fitted = False

    def _encode(self, df: pd.DataFrame) -> pd.DataFrame:
        """One-hot encode with the raw dummy names (sanitized later via column_map)."""
        exclude = set(self.drop_features) | {TARGET_COLUMN, TARGET_LOG}
        df = df.drop(columns=[c for c in df.columns if c in exclude])
        df = df.drop(columns=df.select_dtypes(include=['datetime64']).columns)
        present = [c for c in self.categorical_features if c in df.columns]
        return pd.get_dummies(df, columns=present, dtype=int)

    def fit(self, df: pd.DataFrame) -> 'FeatureEncoder':
        encoded = self._encode(df)

        # Drop any residual non-numeric columns (extra raw fields)
        non_numeric = encoded.select_dtypes(exclude=[np.number]).columns.tolist()
        if non_numeric:
            encoded = encoded.drop(columns=non_numeric)
            print(f"[FeatureEncoder.fit] Dropped {len(non_numeric)} residual non-numeric columns")

        # Raw -> sanitized names are fixed here so colliding categories keep
        # the same suffix in every partition.
        raw_columns = encoded.columns.tolist()
        self.columns = sanitize_column_names(encoded).columns.tolist()
        self.column_map = dict(zip(raw_columns, self.columns))
        self._is_fitted = True
        print(f"[FeatureEncoder.fit] Model matrix has {len(self.columns)} features")
        return self

    def transform(self, df: pd.DataFrame) -> pd.DataFrame:
        if not self._is_fitted:
            raise RuntimeError("FeatureEncoder must be fitted before transform. Call .fit() first.")

        encoded = self._encode(df)
        known = [c for c in encoded.columns if c in self.column_map]
        X = (
            encoded[known]
            .rename(columns=self.column_map)
            .reindex(columns=self.columns, fill_value=0)
            .astype(float)
        )

        if X.isna().any().any():
            nan_cols = X.columns[X.isna().any()].tolist()
            raise RuntimeError(f"Missing values left in model features: {nan_cols}")
        return X

    def fit_transform(self, df: pd.DataFrame) -> pd.DataFrame:
        return self.fit(df).transform(df)


# ============================================================================
# COMPLETE PIPELINE
# ============================================================================

def build_features(df: pd.DataFrame, imputer: Imputer, assembler: FeatureAssembler,
                   fit: bool = False) -> pd.DataFrame:
    """Run impute → parse → assemble on one partition."""
    df = imputer.fit_transform(df) if fit else imputer.transform(df)
    df = parse_structured_fields(df)
    df = assembler.fit_transform(df) if fit else assembler.transform(df)
    return df


def prepare_data(df: pd.DataFrame, random_state: int = RANDOM_STATE,
                 budget_estimator: Optional[BudgetEstimator] = None) -> Dict[str, Any]:
    """
    Complete data preparation pipeline: split → impute → parse → assemble →
    budget imputation → encode.

    Args:
        df: Raw DataFrame (loaded from CSV)
        random_state: Random seed for the partition
        budget_estimator: Unfitted estimator (default settings when None)

    Returns:
        Dictionary with keys:
            X_train, X_test     — numeric feature matrices
            y_train, y_test     — log revenue
            train_df, test_df   — assembled tables (for reporting)
            imputer, assembler, budget_estimator, encoder — fitted stages
    """
    print("\n" + "=" * 70)
    print(" DATA PREPARATION PIPELINE")
    print("=" * 70)

    # ── Step 1: Partition ────────────────────────────────────────────
    train_df, test_df = split_data(df, random_state=random_state)

    # ── Step 2: Impute / parse / assemble (fit on train only) ────────
    imputer = Imputer()
    assembler = FeatureAssembler()
    train_df = build_features(train_df, imputer, assembler, fit=True)
    test_df = build_features(test_df, imputer, assembler, fit=False)

    # ── Step 3: Budget imputation (fit on train only) ────────────────
    budget_estimator = budget_estimator or BudgetEstimator()
    train_df = budget_estimator.fit_transform(train_df)
    test_df = budget_estimator.transform(test_df)

    # ── Step 4: Target ───────────────────────────────────────────────
    train_df[TARGET_LOG] = np.log(train_df[TARGET_COLUMN])
    test_df[TARGET_LOG] = np.log(test_df[TARGET_COLUMN])

    # ── Step 5: Encode ───────────────────────────────────────────────
    encoder = FeatureEncoder()
    X_train = encoder.fit_transform(train_df)
    X_test = encoder.transform(test_df)

    y_train = train_df[TARGET_LOG]
    y_test = test_df[TARGET_LOG]

    print("\n" + "=" * 70)
    print(" DATA PREPARATION COMPLETE")
    print("=" * 70)
    print(f"  X_train: {X_train.shape}    X_test: {X_test.shape}")
    print(f"  y_train mean: {y_train.mean():.3f}  |  y_test mean: {y_test.mean():.3f}")

    return {
        'X_train': X_train, 'X_test': X_test,
        'y_train': y_train, 'y_test': y_test,
        'train_df': train_df, 'test_df': test_df,
        'imputer': imputer, 'assembler': assembler,
        'budget_estimator': budget_estimator, 'encoder': encoder,
    }
