import numpy as np
import pandas as pd
import pytest

from boxoffice.budget import BudgetEstimator
from boxoffice.config import IMPUTE_STRATEGIES, MISSING_SENTINEL, OTHER_CATEGORY
from boxoffice.data import split_data
from boxoffice.parsing import parse_structured_fields
from boxoffice.preprocessing import (
    FeatureAssembler,
    FeatureEncoder,
    ImputationError,
    Imputer,
    disambiguate_two_digit_year,
    parse_release_dates,
    prepare_data,
    sanitize_column_names,
)


def _small_budget_estimator():
    return BudgetEstimator(neighbors_grid=(3, 5), n_splits=3, n_repeats=1)


# ── Release dates ──────────────────────────────────────────────────────────

def test_two_digit_year_pivot():
    assert disambiguate_two_digit_year(17, pivot_year=1917) == 2017
    assert disambiguate_two_digit_year(45, pivot_year=1917) == 1945
    assert disambiguate_two_digit_year(18, pivot_year=1917) == 1918
    assert disambiguate_two_digit_year(0, pivot_year=1917) == 2000


def test_parse_release_dates():
    parsed = parse_release_dates(pd.Series(["2/20/17", "5/1/45", np.nan, "garbage", "7/4/2001", "2/30/15"]))

    assert parsed.iloc[0] == pd.Timestamp(2017, 2, 20)
    assert parsed.iloc[1] == pd.Timestamp(1945, 5, 1)
    assert pd.isna(parsed.iloc[2])
    assert pd.isna(parsed.iloc[3])
    assert parsed.iloc[4] == pd.Timestamp(2001, 7, 4)
    assert pd.isna(parsed.iloc[5])


# ── Imputer ────────────────────────────────────────────────────────────────

def test_runtime_imputed_with_training_median(movie_factory):
    train = movie_factory(4)
    train['runtime'] = [90.0, 95.0, 100.0, np.nan]
    test = movie_factory(2, seed=1)
    test['runtime'] = [np.nan, 120.0]

    imputer = Imputer().fit(train)
    result = imputer.transform(test)

    assert imputer.statistics['runtime'] == 95
    assert result['runtime'].tolist() == [95.0, 120.0]


def test_no_missing_values_after_imputer(movies):
    result = Imputer().fit_transform(movies)

    designated = list(IMPUTE_STRATEGIES) + ['homepage', 'tagline', 'overview',
                                            'production_companies', 'belongs_to_collection']
    assert not result[designated].isna().any().any()
    assert not result['release_dt'].isna().any()
    assert (result.loc[movies['tagline'].isna(), 'tagline'] == MISSING_SENTINEL).all()


def test_missing_release_date_gets_training_median(movie_factory):
    train = movie_factory(3)
    train['release_date'] = ["1/1/99", "1/1/01", "1/1/03"]
    test = movie_factory(1, seed=3)
    test['release_date'] = [np.nan]

    result = Imputer().fit(train).transform(test)

    assert result['release_dt'].iloc[0] == pd.Timestamp(2001, 1, 1)


def test_statistics_ignore_test_records(movies):
    train, _ = split_data(movies)
    baseline = Imputer().fit(train).statistics

    perturbed = movies.copy()
    _, test = split_data(movies)
    target_id = test['id'].iloc[0]
    perturbed.loc[perturbed['id'] == target_id, ['runtime', 'status', 'spoken_languages']] = [
        10_000.0, 'Rumored', "[{'iso_639_1': 'xx', 'name': 'Other'}]"
    ]
    train_perturbed, _ = split_data(perturbed)

    assert Imputer().fit(train_perturbed).statistics == baseline


def test_imputation_error_when_no_training_values(movies):
    movies['runtime'] = np.nan
    with pytest.raises(ImputationError, match="runtime"):
        Imputer().fit(movies)


def test_imputation_error_when_no_training_mode(movies):
    movies['status'] = np.nan
    with pytest.raises(ImputationError, match="status"):
        Imputer().fit(movies)


def test_imputation_error_when_no_parseable_release_dates(movies):
    movies['release_date'] = 'unknown'
    with pytest.raises(ImputationError, match="release dates"):
        Imputer().fit(movies)


# ── Feature assembler ──────────────────────────────────────────────────────

def _assembled_input(df):
    return parse_structured_fields(Imputer().fit_transform(df))


def test_company_vocabularies_come_from_training_only(movie_factory):
    train = _assembled_input(movie_factory(60))
    test = _assembled_input(movie_factory(10, seed=5))
    test['first_company'] = 'Brand New Studio'

    assembler = FeatureAssembler(top_known=3, top_keep=5).fit(train)
    result = assembler.transform(test)

    assert len(assembler.known_companies) == 3
    assert 'Brand New Studio' not in assembler.kept_companies
    assert (result['first_company'] == OTHER_CATEGORY).all()
    assert (result['is_independent'] == 1).all()


def test_first_company_collapsed_to_top_values(movie_factory):
    train = _assembled_input(movie_factory(80))
    assembler = FeatureAssembler(top_known=2, top_keep=4)
    result = assembler.fit_transform(train)

    allowed = set(assembler.kept_companies) | {OTHER_CATEGORY}
    assert set(result['first_company']) <= allowed
    assert MISSING_SENTINEL not in assembler.kept_companies
    assert result['known_company_count'].between(0, 3).all()


def test_calendar_and_flag_features(movie_factory):
    df = movie_factory(10)
    df['release_date'] = "3/15/85"
    df['homepage'] = "http://www.warnerbros.com/movie"
    result = FeatureAssembler().fit_transform(_assembled_input(df))

    row = result.iloc[0]
    assert row['release_year'] == 1985
    assert row['release_month'] == 3
    assert row['release_day'] == 15
    assert row['release_quarter'] == "Q1"
    assert row['release_decade'] == "1980s"
    assert row['released_before_2000'] == 1
    assert row['released_before_1980'] == 0
    assert row['has_homepage'] == 1
    assert row['homepage_warner'] == 1
    assert row['homepage_disney'] == 0


def test_zero_cast_counts_replaced_by_training_median(movie_factory):
    df = _assembled_input(movie_factory(40))
    df.loc[df.index[0], 'cast_count'] = 0
    assembler = FeatureAssembler().fit(df)

    result = assembler.transform(df)

    assert (result['cast_count'] > 0).all()
    assert result['cast_count'].iloc[0] == assembler.count_medians['cast_count']


# ── Encoding ───────────────────────────────────────────────────────────────

def test_sanitize_column_names_removes_json_characters():
    df = pd.DataFrame(columns=['first_company_Warner Bros.', 'a:b', 'a_b'])
    assert sanitize_column_names(df).columns.tolist() == ['first_company_Warner_Bros_', 'a_b', 'a_b_1']


def test_encoder_aligns_test_columns_to_training_schema():
    train = pd.DataFrame({
        'release_quarter': ['Q1', 'Q2'], 'release_decade': ['1990s', '2000s'],
        'first_company': ['Studio A', 'Other'], 'original_language': ['en', 'fr'],
        'popularity': [1.0, 2.0], 'title': ['x', 'y'],
    })
    test = train.iloc[:1].assign(release_quarter='Q4', original_language='ja')

    encoder = FeatureEncoder()
    X_train = encoder.fit_transform(train)
    X_test = encoder.transform(test)

    assert X_test.columns.tolist() == X_train.columns.tolist()
    assert 'title' not in X_train.columns
    assert X_test.filter(like='release_quarter').sum(axis=1).iloc[0] == 0


def test_encoder_keeps_colliding_company_names_apart():
    train = pd.DataFrame({
        'first_company': ['A.B Films', 'A,B Films', 'Other'],
        'popularity': [1.0, 2.0, 3.0],
    })
    test = pd.DataFrame({'first_company': ['A.B Films', 'A,B Films'], 'popularity': [1.0, 2.0]})

    encoder = FeatureEncoder()
    X_train = encoder.fit_transform(train)
    X_test = encoder.transform(test)

    cols = ['first_company_A_B_Films', 'first_company_A_B_Films_1']
    assert set(cols) <= set(X_train.columns)
    assert X_test[cols].iloc[0].tolist() == X_train[cols].iloc[0].tolist()
    assert X_test[cols].iloc[1].tolist() == X_train[cols].iloc[1].tolist()
    assert encoder.transform(test.iloc[:1])[cols].iloc[0].tolist() == X_train[cols].iloc[0].tolist()


# ── End-to-end preparation ─────────────────────────────────────────────────

def test_prepare_data_produces_complete_numeric_matrices(movies):
    data = prepare_data(movies, budget_estimator=_small_budget_estimator())

    X_train, X_test = data['X_train'], data['X_test']
    assert X_train.columns.tolist() == X_test.columns.tolist()
    assert not X_train.isna().any().any()
    assert not X_test.isna().any().any()
    assert np.isfinite(data['y_train']).all()
    assert np.isfinite(data['y_test']).all()
    assert 'log_budget' in X_train.columns
    assert (data['train_df']['budget'] > 1000).all()
    assert len(X_train) + len(X_test) == len(movies)
