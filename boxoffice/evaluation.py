"""
evaluation.py
=============
Single source of truth for model evaluation.

Handles the final scoring flow on the untouched test partition:
  1. Predict log revenue with the selected model (no retraining)
  2. Calculate RMSE, MAE, R² on the log scale
  3. Compare against the naive baseline (test mean for every record)
  4. Residual breakdown by revenue bucket
  5. Persist report tables to reports/

Usage in main.py:
    from boxoffice.evaluation import ModelEvaluator

    evaluator = ModelEvaluator()
    test_results = evaluator.evaluate_final(best_model, data['X_test'], data['y_test'])
"""

import numpy as np
import pandas as pd
from typing import Dict
from sklearn.metrics import mean_absolute_error, mean_squared_error, r2_score

from .config import REPORTS_DIR


# ============================================================================
# METRIC FUNCTIONS
# ============================================================================

def compute_metrics(y_true: np.ndarray, y_pred: np.ndarray) -> Dict[str, float]:
    """
    Calculate all regression metrics in one pass.

    Args:
        y_true: True log revenue
        y_pred: Predicted log revenue

    Returns:
        {'RMSE': ..., 'MAE': ..., 'R2': ...}
    """
    y_true = np.asarray(y_true, dtype=float)
    y_pred = np.asarray(y_pred, dtype=float)

    return {
        'RMSE': float(np.sqrt(mean_squared_error(y_true, y_pred))),
        'MAE':  float(mean_absolute_error(y_true, y_pred)),
        'R2':   float(r2_score(y_true, y_pred)),
    }


def baseline_rmse(y_true: np.ndarray) -> float:
    """RMSE of predicting the mean of y_true for every record."""
    y_true = np.asarray(y_true, dtype=float)
    return float(np.sqrt(np.mean((y_true - y_true.mean()) ** 2)))


# ============================================================================
# MODEL EVALUATOR
# ============================================================================

class ModelEvaluator:
    """Prediction, metric calculation and reporting on the test partition."""

    def evaluate_final(
        self,
        model,
        X: pd.DataFrame,
        y_true: pd.Series,
        label: str = "Final model"
    ) -> Dict[str, float]:
        """
        Predict → compute metrics → add baseline → print.

        Returns:
            Metrics dict with keys RMSE, MAE, R2, Baseline_RMSE, Improvement_%
        """
        y_pred = model.predict(X)
        metrics = compute_metrics(y_true.values, y_pred)

        base = baseline_rmse(y_true.values)
        metrics['Baseline_RMSE'] = base
        metrics['Improvement_%'] = (1 - metrics['RMSE'] / base) * 100 if base > 0 else 0.0

        self._print_metrics(metrics, title=f"{label} — Test Results")
        return metrics

    # ── residual analysis ─────────────────────────────────────────────────

    def residual_summary(
        self,
        model,
        X: pd.DataFrame,
        y_true: pd.Series,
        n_buckets: int = 5
    ) -> pd.DataFrame:
        """
        Metrics per revenue quantile bucket, to see where the model struggles
        (small releases vs blockbusters).
        """
        y = y_true.values.astype(float)
        y_pred = model.predict(X)

        buckets = pd.qcut(y, q=n_buckets, labels=False, duplicates='drop')

        rows = []
        for bucket in np.unique(buckets):
            mask = buckets == bucket
            m = compute_metrics(y[mask], y_pred[mask])
            rows.append({
                'Bucket': int(bucket) + 1,
                'Count': int(mask.sum()),
                'Mean log revenue': float(y[mask].mean()),
                'RMSE': m['RMSE'],
                'MAE': m['MAE'],
            })

        df = pd.DataFrame(rows)

        print("\n" + "=" * 65)
        print(" RESIDUAL ANALYSIS — BY LOG REVENUE BUCKET")
        print("=" * 65)
        print(df.to_string(index=False, float_format=lambda x: f"{x:,.3f}"))
        print("=" * 65 + "\n")

        return df

    # ── save results ──────────────────────────────────────────────────────

    def save_results(self, df: pd.DataFrame, filename: str) -> None:
        """Persist a report table to reports/."""
        path = REPORTS_DIR / filename
        df.to_csv(path, index=False)
        print(f"[evaluation] Results saved to {path}")

    # ── internal ──────────────────────────────────────────────────────────

    @staticmethod
    def _print_metrics(metrics: Dict[str, float], title: str = "Evaluation") -> None:
        """Pretty-print a single metrics dict."""
        print(f"\n{'=' * 50}")
        print(f"  {title}")
        print(f"{'=' * 50}")
        print(f"  RMSE (log)     : {metrics['RMSE']:>10.4f}")
        print(f"  MAE  (log)     : {metrics['MAE']:>10.4f}")
        print(f"  R²             : {metrics['R2']:>10.4f}")
        print(f"  Baseline RMSE  : {metrics['Baseline_RMSE']:>10.4f}")
        print(f"  Improvement    : {metrics['Improvement_%']:>9.1f}%")
        print(f"{'=' * 50}\n")
