"""
budget.py
=========
KNN estimator for placeholder budgets.

About 28-30% of the training films report a budget of a few dollars (or 0),
which is a placeholder rather than a real figure. A scaled k-nearest-neighbour
regressor is fitted on the films with a plausible budget and predicts a
replacement for every film at or below the threshold. Budgets above the
threshold are never modified.

The regressor works on log budget so that a handful of blockbusters do not
dominate the neighbour averages; predictions are exponentiated back.
"""

import numpy as np
import pandas as pd
from typing import Optional, Sequence
from sklearn.model_selection import GridSearchCV, RepeatedKFold
from sklearn.neighbors import KNeighborsRegressor
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import StandardScaler

from .config import (
    RANDOM_STATE,
    N_JOBS,
    BUDGET_COLUMN,
    BUDGET_LOG,
    BUDGET_THRESHOLD,
    BUDGET_PREDICTORS,
    BUDGET_NEIGHBORS_GRID,
    BUDGET_CV_FOLDS,
    BUDGET_CV_REPEATS,
)


class BudgetEstimator:
    """
    Fit on the training partition, transform both partitions.

    Attributes (after fit):
        model:        fitted StandardScaler + KNeighborsRegressor pipeline
        best_k:       neighbour count picked by repeated k-fold CV
        cv_rmse:      mean CV RMSE (log budget) of the picked neighbour count
    """

    def __init__(
        self,
        threshold: float = BUDGET_THRESHOLD,
        predictors: Sequence[str] = BUDGET_PREDICTORS,
        neighbors_grid: Sequence[int] = BUDGET_NEIGHBORS_GRID,
        n_splits: int = BUDGET_CV_FOLDS,
        n_repeats: int = BUDGET_CV_REPEATS,
        random_state: int = RANDOM_STATE
    ):
        self.threshold = threshold
        self.predictors = list(predictors)
        self.neighbors_grid = list(neighbors_grid)
        self.n_splits = n_splits
        self.n_repeats = n_repeats
        self.random_state = random_state

        self.model: Optional[Pipeline] = None
        self.best_k: Optional[int] = None
        self.cv_rmse: Optional[float] = None

    def is_unknown(self, df: pd.DataFrame) -> pd.Series:
        """Budgets at or below the threshold (or missing) are placeholders."""
        return ~(df[BUDGET_COLUMN] > self.threshold)

    def fit(self, df: pd.DataFrame) -> 'BudgetEstimator':
        print("\n[Budget] Fitting KNN budget estimator...")
        known = ~self.is_unknown(df)
        print(f"[Budget]   -> {known.sum():,} plausible budgets, "
              f"{(~known).sum():,} placeholders ({(~known).mean():.1%})")

        X = df.loc[known, self.predictors].astype(float)
        y = np.log(df.loc[known, BUDGET_COLUMN].astype(float))

        pipeline = Pipeline([
            ('scaler', StandardScaler()),
            ('knn', KNeighborsRegressor()),
        ])
        cv = RepeatedKFold(
            n_splits=self.n_splits, n_repeats=self.n_repeats, random_state=self.random_state
        )
        # Neighbour counts larger than a training fold score NaN and rank last
        search = GridSearchCV(
            pipeline,
            param_grid={'knn__n_neighbors': self.neighbors_grid},
            scoring='neg_root_mean_squared_error',
            cv=cv,
            error_score=np.nan,
            n_jobs=N_JOBS,
        )
        search.fit(X, y)

        if np.isnan(search.best_score_):
            raise RuntimeError("Budget estimator: every neighbour count failed cross-validation")

        self.model = search.best_estimator_
        self.best_k = search.best_params_['knn__n_neighbors']
        self.cv_rmse = -search.best_score_
        print(f"[Budget]   -> Best k={self.best_k} (CV RMSE on log budget: {self.cv_rmse:.3f})")
        return self

    def transform(self, df: pd.DataFrame) -> pd.DataFrame:
        """Replace placeholder budgets with predictions; add log budget and a flag."""
        if self.model is None:
            raise RuntimeError("BudgetEstimator must be fitted before transform. Call .fit() first.")

        df = df.copy()
        unknown = self.is_unknown(df)
        df['budget_imputed'] = unknown.astype(int)

        if unknown.any():
            X = df.loc[unknown, self.predictors].astype(float)
            df[BUDGET_COLUMN] = df[BUDGET_COLUMN].astype(float)
            df.loc[unknown, BUDGET_COLUMN] = np.exp(self.model.predict(X))
            print(f"[Budget]   -> Imputed {unknown.sum():,} budgets")

        df[BUDGET_LOG] = np.log(df[BUDGET_COLUMN])
        return df

    def fit_transform(self, df: pd.DataFrame) -> pd.DataFrame:
        return self.fit(df).transform(df)
