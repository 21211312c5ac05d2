"""
main.py
=======
Entry point for the TMDB box-office revenue report.

Pipeline stages:
    1. Load and validate the raw CSV
    2. Prepare data (split, impute, parse, assemble, budget imputation, encode)
    3. Model training (5 candidates on shared CV folds)
    4. Feature importance of the final model
    5. Test evaluation (final model vs. naive baseline)
    6. Summary & report tables

Usage:
    python main.py [path/to/train.csv]
"""

import sys
from pathlib import Path

import numpy as np
import pandas as pd

from boxoffice.config import TRAIN_DATA, RANDOM_STATE
from boxoffice.data import load_raw_data
from boxoffice.preprocessing import prepare_data
from boxoffice.model import FoldAssignment, train_models
from boxoffice.evaluation import ModelEvaluator


def main(data_path: Path = TRAIN_DATA):
    """Run the full report end-to-end."""

    print("\n" + "=" * 70)
    print(" TMDB BOX-OFFICE REVENUE — REPORT PIPELINE")
    print("=" * 70)

    try:
        # ── STEP 1: Load ────────────────────────────────────────────────────
        print("\n[STEP 1/6] Loading data...")
        if not data_path.exists():
            print(f"[ERROR] Data file not found: {data_path}")
            sys.exit(1)
        df_raw = load_raw_data(data_path)

        # ── STEP 2: Prepare ─────────────────────────────────────────────────
        print("\n[STEP 2/6] Preparing features...")
        data = prepare_data(df_raw, random_state=RANDOM_STATE)

        # ── STEP 3: Model Training ──────────────────────────────────────────
        print("\n[STEP 3/6] Training models...")
        folds = FoldAssignment(len(data['X_train']))
        manager = train_models(data, folds)
        best_key, best_model = manager.get_best_model()
        best = manager.results[best_key]

        # ── STEP 4: Feature Importance ──────────────────────────────────────
        print("\n[STEP 4/6] Feature importance...")
        importance = manager.get_feature_importance(best_key)
        if importance is not None:
            print(importance.to_string(index=False, float_format=lambda x: f"{x:,.4f}"))

        # ── STEP 5: Evaluation ──────────────────────────────────────────────
        print("\n[STEP 5/6] Evaluating on test data...")
        evaluator = ModelEvaluator()
        test_metrics = evaluator.evaluate_final(best_model, data['X_test'], data['y_test'], label=best.name)
        evaluator.residual_summary(best_model, data['X_test'], data['y_test'])

        # ── STEP 6: Final Summary ───────────────────────────────────────────
        cv_summary = manager.compare_models()
        evaluator.save_results(cv_summary, filename="cv_summary.csv")
        if importance is not None:
            evaluator.save_results(importance, filename="feature_importance.csv")
        evaluator.save_results(
            pd.DataFrame([{'Model': best_key, **test_metrics}]),
            filename="test_evaluation.csv",
        )

        print("\n" + "=" * 70)
        print(" PIPELINE COMPLETE")
        print("=" * 70)
        print(f"\n  Final model : {best.name}")
        print(f"  Params      : {best.best_params or '(none)'}")
        print(f"  Features    : {data['X_train'].shape[1]}")
        print(f"  Train size  : {data['X_train'].shape[0]:,} samples")
        print(f"  Test size   : {data['X_test'].shape[0]:,} samples")
        print()
        print(f"  CV RMSE (median) : {np.median(best.cv_rmse):.4f}")
        print(f"  Test RMSE        : {test_metrics['RMSE']:.4f}")
        print(f"  Baseline RMSE    : {test_metrics['Baseline_RMSE']:.4f}")
        print()

        return manager, data, test_metrics

    except Exception as e:
        print("\n" + "!" * 70)
        print(f" [CRITICAL ERROR] Pipeline failed: {e}")
        print("!" * 70 + "\n")
        import traceback
        traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main(Path(sys.argv[1]) if len(sys.argv) > 1 else TRAIN_DATA)
