"""
tune.py
=======
Automated Hyperparameter Tuning using Optuna.

Performs Bayesian Optimization over the LightGBM candidate, scoring every
trial on the same shared CV folds the model comparison uses. The grid in
config.MODELS stays the source of truth; this script only suggests values.

Usage:
    python -m boxoffice.tune
"""

import numpy as np
import optuna
import lightgbm as lgb
from sklearn.model_selection import cross_val_score

from .config import TRAIN_DATA, RANDOM_STATE, N_JOBS
from .data import load_raw_data
from .model import FoldAssignment
from .preprocessing import prepare_data

# Set logging to see progress clearly
optuna.logging.set_verbosity(optuna.logging.INFO)


def objective(trial: optuna.Trial, data: dict, folds: FoldAssignment) -> float:
    """
    Optuna objective function.
    1. Suggests hyperparameters.
    2. Cross-validates LightGBM on the shared folds.
    3. Returns mean CV RMSE on log revenue (to be minimized).
    """
    params = {
        'n_estimators': 400,
        'subsample_freq': 1,
        'random_state': RANDOM_STATE,
        'n_jobs': 1,
        'verbose': -1,

        # Hyperparameters to optimize
        'learning_rate': trial.suggest_float('learning_rate', 0.005, 0.1, log=True),
        'max_depth': trial.suggest_int('max_depth', 2, 10),
        'num_leaves': trial.suggest_int('num_leaves', 8, 128),
        'min_child_samples': trial.suggest_int('min_child_samples', 5, 60),
        'subsample': trial.suggest_float('subsample', 0.5, 1.0),
        'colsample_bytree': trial.suggest_float('colsample_bytree', 0.3, 1.0),
        'reg_lambda': trial.suggest_float('reg_lambda', 1e-8, 10.0, log=True),
    }

    scores = cross_val_score(
        lgb.LGBMRegressor(**params),
        data['X_train'], data['y_train'],
        cv=folds,
        scoring='neg_root_mean_squared_error',
        n_jobs=N_JOBS,
    )
    return float(np.mean(-scores))


def run_tuning(n_trials=50):
    print("\n" + "=" * 70)
    print(" STARTING HYPERPARAMETER TUNING (OPTUNA)")
    print("=" * 70)

    # 1. Load Data
    print("[tune] Loading and preparing data...")
    if not TRAIN_DATA.exists():
        print(f"[ERROR] Data not found: {TRAIN_DATA}")
        return None

    df_raw = load_raw_data(TRAIN_DATA)
    data = prepare_data(df_raw, random_state=RANDOM_STATE)
    folds = FoldAssignment(len(data['X_train']))

    # 2. Create Study
    print(f"\n[tune] Running {n_trials} trials. Please wait...")
    sampler = optuna.samplers.TPESampler(seed=RANDOM_STATE)
    study = optuna.create_study(direction='minimize', sampler=sampler)

    try:
        study.optimize(lambda trial: objective(trial, data, folds), n_trials=n_trials)
    except KeyboardInterrupt:
        print("\n[tune] Tuning interrupted by user. Reporting current best results...")

    # 3. Show Results
    print("\n" + "=" * 70)
    print(" TUNING COMPLETE")
    print("=" * 70)
    print(f"Best CV RMSE: {study.best_value:.4f}")
    print("Best Params (copy into config.MODELS['lightgbm']):")
    print("-" * 30)
    for key, value in study.best_params.items():
        print(f"    '{key}': {value},")
    print("-" * 30)
    return study.best_params


if __name__ == "__main__":
    run_tuning(n_trials=50)
