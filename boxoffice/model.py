"""
model.py
========
Candidate training, cross-validated comparison and final model selection.

This module handles the lifecycle of the candidate regressors:
1. Instantiation (based on config.MODELS)
2. Grid search on one shared set of CV folds
3. Comparison of the per-fold RMSE distributions
4. Selection of the final model and feature importance

Design Pattern:
    A 'FoldAssignment' is materialized once and handed to every candidate,
    so all of them are scored on exactly the same train/validation rows.
    A 'ModelManager' keeps the trained candidates and their CV results.
"""

import time
from typing import Any, Dict, Iterator, List, NamedTuple, Optional, Tuple

import lightgbm as lgb
import numpy as np
import pandas as pd
from sklearn.base import clone
from sklearn.ensemble import BaggingRegressor, RandomForestRegressor
from sklearn.model_selection import ParameterGrid, RepeatedKFold, cross_val_score
from sklearn.tree import DecisionTreeRegressor

from .config import (
    MODELS,
    RANDOM_STATE,
    CV_FOLDS,
    CV_REPEATS,
    N_JOBS,
    TOP_FEATURES,
)


# ============================================================================
# 1. SHARED FOLDS
# ============================================================================

class FoldAssignment:
    """
    Fixed (train_idx, val_idx) pairs for repeated k-fold cross-validation.

    Implements the scikit-learn splitter protocol so it can be passed as
    ``cv=`` anywhere; the same index pairs are yielded on every call.
    """

    def __init__(
        self,
        n_samples: int,
        n_splits: int = CV_FOLDS,
        n_repeats: int = CV_REPEATS,
        random_state: int = RANDOM_STATE
    ):
        splitter = RepeatedKFold(n_splits=n_splits, n_repeats=n_repeats, random_state=random_state)
        self.n_samples = n_samples
        self.splits: List[Tuple[np.ndarray, np.ndarray]] = list(splitter.split(np.arange(n_samples)))

    def split(self, X=None, y=None, groups=None) -> Iterator[Tuple[np.ndarray, np.ndarray]]:
        if X is not None and len(X) != self.n_samples:
            raise ValueError(f"Folds were built for {self.n_samples} rows, got {len(X)}")
        yield from self.splits

    def get_n_splits(self, X=None, y=None, groups=None) -> int:
        return len(self.splits)

    def __len__(self) -> int:
        return len(self.splits)


# ============================================================================
# 2. CANDIDATES
# ============================================================================

class CandidateResult(NamedTuple):
    """Outcome of one candidate's grid search; not modified after creation."""
    key: str
    name: str
    best_params: Dict[str, Any]
    cv_rmse: np.ndarray          # per-fold RMSE of the best grid point
    model: Any                   # refitted on the full training set
    grid_points: int             # grid points that completed CV
    train_time: float


def _build_estimator(kind: str, params: Dict[str, Any]):
    """Dispatcher from config 'estimator' names to estimator instances."""
    if kind == 'decision_tree':
        return DecisionTreeRegressor(**params)
    elif kind == 'bagging':
        return BaggingRegressor(**params)
    elif kind == 'random_forest':
        return RandomForestRegressor(**params)
    elif kind == 'lightgbm':
        return lgb.LGBMRegressor(**params)
    raise NotImplementedError(f"Estimator '{kind}' is not implemented.")


def cross_validate_grid(
    estimator,
    grid: Dict[str, list],
    X: pd.DataFrame,
    y: pd.Series,
    folds: FoldAssignment
) -> List[Tuple[Dict[str, Any], np.ndarray]]:
    """
    Score every grid point on the shared folds.

    Returns:
        [(params, per-fold RMSE)] for the grid points whose folds all
        succeeded. Failed or degenerate points are left out.
    """
    scored = []
    for params in ParameterGrid(grid):
        model = clone(estimator).set_params(**params)
        try:
            scores = cross_val_score(
                model, X, y,
                cv=folds,
                scoring='neg_root_mean_squared_error',
                error_score=np.nan,
                n_jobs=N_JOBS,
            )
        except ValueError as exc:
            # raised by scikit-learn when every fold of the grid point fails
            print(f"[ModelManager]   [WARN] Excluding grid point {params}: {exc}")
            continue
        rmse = -scores
        if np.isnan(rmse).any():
            print(f"[ModelManager]   [WARN] Excluding grid point {params}: "
                  f"{np.isnan(rmse).sum()} of {len(rmse)} folds failed")
            continue
        scored.append((params, rmse))
    return scored


def select_best_model(cv_rmse: Dict[str, np.ndarray]) -> str:
    """Key of the candidate with the lowest median cross-validated RMSE."""
    if not cv_rmse:
        raise ValueError("No cross-validation results to select from")
    return min(cv_rmse, key=lambda key: np.median(cv_rmse[key]))


def summarize_cv(cv_rmse: Dict[str, np.ndarray]) -> pd.DataFrame:
    """Five-number summary (plus mean) of each candidate's CV RMSE, best first."""
    rows = []
    for key, rmse in cv_rmse.items():
        q = np.percentile(rmse, [0, 25, 50, 75, 100])
        rows.append({
            'Model': key,
            'Min': q[0], 'Q1': q[1], 'Median': q[2],
            'Mean': float(np.mean(rmse)), 'Q3': q[3], 'Max': q[4],
        })
    columns = ['Model', 'Min', 'Q1', 'Median', 'Mean', 'Q3', 'Max']
    return pd.DataFrame(rows, columns=columns).sort_values('Median').reset_index(drop=True)


# ============================================================================
# 3. MODEL MANAGER (ORCHESTRATOR)
# ============================================================================

class ModelManager:
    """
    Central control unit for the modeling stage.

    Responsibilities:
        - Train every configured candidate on the shared folds.
        - Keep the CV results and refitted models.
        - Pick the final model and report its feature importance.
    """

    def __init__(self, candidates: Optional[Dict[str, Dict[str, Any]]] = None):
        self.candidates = MODELS if candidates is None else candidates
        self.results: Dict[str, CandidateResult] = {}
        self.feature_names: List[str] = []

    def train_all_models(
        self,
        X_train: pd.DataFrame,
        y_train: pd.Series,
        folds: FoldAssignment
    ) -> Dict[str, CandidateResult]:
        """Grid-search every candidate on the same folds."""
        print("\n" + "=" * 70)
        print(" TRAINING PHASE")
        print("=" * 70)
        print(f"  Training Set: {X_train.shape[0]:,} rows x {X_train.shape[1]} features")
        print(f"  CV folds:     {len(folds)} (shared by all candidates)")

        self.feature_names = X_train.columns.tolist()
        for model_key in self.candidates:
            self._train_candidate(model_key, X_train, y_train, folds)

        if not self.results:
            raise RuntimeError("No candidate model completed cross-validation")
        return self.results

    def _train_candidate(
        self,
        model_key: str,
        X_train: pd.DataFrame,
        y_train: pd.Series,
        folds: FoldAssignment
    ) -> None:
        config = self.candidates[model_key]
        grid = config.get('grid', {})
        n_points = len(ParameterGrid(grid))
        print(f"\n[{config['name'].upper()}] Cross-validating {n_points} grid point(s)...")

        start_time = time.time()
        estimator = _build_estimator(config['estimator'], config.get('params', {}))
        scored = cross_validate_grid(estimator, grid, X_train, y_train, folds)

        if not scored:
            print(f"[{config['name'].upper()}] [WARN] No grid point completed; candidate skipped")
            return

        best_params, best_rmse = min(scored, key=lambda point: point[1].mean())
        model = clone(estimator).set_params(**best_params).fit(X_train, y_train)
        duration = time.time() - start_time

        self.results[model_key] = CandidateResult(
            key=model_key,
            name=config['name'],
            best_params=best_params,
            cv_rmse=best_rmse,
            model=model,
            grid_points=len(scored),
            train_time=duration,
        )
        print(f"[{config['name'].upper()}] Best params: {best_params or '(none)'}")
        print(f"[{config['name'].upper()}] CV RMSE median={np.median(best_rmse):.4f} "
              f"mean={best_rmse.mean():.4f} | {duration:.1f}s")

    # ─── Selection & Comparison ───────────────────────────────────────────────

    def cv_rmse(self) -> Dict[str, np.ndarray]:
        return {key: result.cv_rmse for key, result in self.results.items()}

    def get_best_model(self) -> Tuple[str, Any]:
        """Returns (model_key, model_object) with the lowest median CV RMSE."""
        if not self.results:
            raise RuntimeError("Models not trained. Call train_all_models() first.")
        best_key = select_best_model(self.cv_rmse())
        return best_key, self.results[best_key].model

    def compare_models(self) -> pd.DataFrame:
        """CV RMSE summary per candidate, sorted by median."""
        summary = summarize_cv(self.cv_rmse())
        summary.insert(1, 'Name', summary['Model'].map(lambda k: self.results[k].name))
        summary['Best Params'] = summary['Model'].map(lambda k: self.results[k].best_params)
        summary['Train Time (s)'] = summary['Model'].map(lambda k: self.results[k].train_time)
        return summary

    # ─── Interpretability ─────────────────────────────────────────────────────

    def get_feature_importance(self, model_key: Optional[str] = None,
                               top_n: int = TOP_FEATURES) -> Optional[pd.DataFrame]:
        """
        Feature importance of a trained candidate (the final model by default).

        - Trees / Random Forest: impurity decrease
        - Bagged trees:          impurity decrease averaged over the bag
        - LightGBM:              total gain (importance_type='gain')
        """
        if model_key is None:
            model_key, _ = self.get_best_model()
        if model_key not in self.results:
            return None

        model = self.results[model_key].model
        n_features = len(self.feature_names)

        if hasattr(model, 'estimators_features_'):
            importances = np.zeros(n_features)
            for tree, features in zip(model.estimators_, model.estimators_features_):
                importances[features] += tree.feature_importances_
            importances /= len(model.estimators_)
        elif hasattr(model, 'feature_importances_'):
            importances = np.asarray(model.feature_importances_, dtype=float)
        else:
            return None

        df = pd.DataFrame({
            'Feature': self.feature_names,
            'Importance': importances
        })
        return df.sort_values('Importance', ascending=False).head(top_n).reset_index(drop=True)


# ============================================================================
# ENTRY POINT
# ============================================================================

def train_models(data: Dict[str, Any], folds: Optional[FoldAssignment] = None) -> ModelManager:
    """Train, compare and select the final model."""
    folds = folds or FoldAssignment(len(data['X_train']))
    manager = ModelManager()
    manager.train_all_models(data['X_train'], data['y_train'], folds)

    # Report
    print("\n" + "=" * 70)
    print(" CROSS-VALIDATED RMSE (log revenue)")
    print("=" * 70)
    print(manager.compare_models().drop(columns=['Best Params']).to_string(
        index=False, float_format=lambda x: f"{x:.4f}"))

    best_key, _ = manager.get_best_model()
    best = manager.results[best_key]
    print(f"\n[Conclusion] Final model: {best.name} (median CV RMSE: {np.median(best.cv_rmse):.4f})")

    return manager
