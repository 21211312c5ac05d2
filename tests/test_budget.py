import numpy as np
import pandas as pd
import pytest

from boxoffice.budget import BudgetEstimator
from boxoffice.config import BUDGET_PREDICTORS


def _frame(budgets, seed=0):
    rng = np.random.default_rng(seed)
    n = len(budgets)
    df = pd.DataFrame({col: rng.integers(0, 10, n).astype(float) for col in BUDGET_PREDICTORS})
    df['release_year'] = rng.integers(1980, 2017, n)
    df['is_independent'] = rng.integers(0, 2, n)
    df['budget'] = budgets
    return df


@pytest.fixture
def fitted():
    rng = np.random.default_rng(1)
    train = _frame(list(rng.integers(2_000_000, 90_000_000, 40).astype(float)) + [0.0, 500.0, 1000.0])
    estimator = BudgetEstimator(neighbors_grid=(3, 5, 7), n_splits=3, n_repeats=2)
    return estimator.fit(train), train


def test_fit_uses_only_plausible_budgets(fitted):
    estimator, train = fitted
    assert estimator.model.named_steps['knn'].n_samples_fit_ == 40
    assert estimator.best_k in (3, 5, 7)


def test_placeholder_budget_replaced_and_large_budget_untouched(fitted):
    estimator, _ = fitted
    test = _frame([500.0, 50_000_000.0, np.nan], seed=2)

    result = estimator.transform(test)

    assert result['budget'].iloc[0] != 500
    assert result['budget'].iloc[0] > 1000
    assert result['budget'].iloc[1] == 50_000_000
    assert result['budget'].iloc[2] > 1000
    assert result['budget_imputed'].tolist() == [1, 0, 1]
    assert np.allclose(result['log_budget'], np.log(result['budget']))


def test_budgets_above_threshold_never_change(fitted):
    estimator, train = fitted
    result = estimator.transform(train)

    above = train['budget'] > 1000
    pd.testing.assert_series_equal(result.loc[above, 'budget'], train.loc[above, 'budget'])
    assert (result.loc[~above, 'budget'] > 1000).all()
    assert 'budget_imputed' not in train.columns


def test_transform_before_fit_raises():
    with pytest.raises(RuntimeError):
        BudgetEstimator().transform(_frame([500.0]))


def test_too_many_neighbours_everywhere_fails():
    train = _frame([2_000_000.0 * (i + 1) for i in range(6)])
    with pytest.raises((RuntimeError, ValueError)):
        BudgetEstimator(neighbors_grid=(50,), n_splits=2, n_repeats=1).fit(train)
