"""
config.py
=========
Single source of truth for all configuration parameters.
All paths, constants, and hyperparameters are defined here.
"""

from pathlib import Path

# ============================================================================
# PATHS
# ============================================================================
PROJECT_ROOT = Path(__file__).resolve().parent.parent
DATA_DIR = PROJECT_ROOT / "data"
REPORTS_DIR = PROJECT_ROOT / "reports"

# Ensure directories exist immediately upon import
# This fails early if permissions are wrong.
REPORTS_DIR.mkdir(parents=True, exist_ok=True)

# Data files
TRAIN_DATA = DATA_DIR / "train.csv"

# ============================================================================
# DATA PARAMETERS
# ============================================================================
ID_COLUMN = "id"
TARGET_COLUMN = "revenue"
TARGET_LOG = "log_revenue"  # Transformed target: natural log of revenue
LABEL_COLUMN = "label"      # "train" / "test" tag set by the partitioner
RANDOM_STATE = 42

# Train/Test split
TRAIN_SIZE = 0.80
STRATIFY_BINS = 5                      # quantile groups of log revenue
MAX_NONFINITE_TARGET_FRACTION = 0.01   # above this the split refuses to run

# Columns the loader requires (schema check)
REQUIRED_COLUMNS = (
    'id', 'budget', 'genres', 'homepage', 'imdb_id', 'original_title',
    'popularity', 'poster_path', 'production_companies', 'release_date',
    'production_countries', 'spoken_languages', 'tagline', 'title',
    'Keywords', 'cast', 'crew', 'overview', 'revenue', 'runtime', 'status',
    'original_language', 'belongs_to_collection',
)

# Columns that must be numeric after loading
NUMERIC_COLUMNS = ('id', 'budget', 'popularity', 'revenue', 'runtime')

# ============================================================================
# IMPUTATION
# ============================================================================
MISSING_SENTINEL = "Missing"

# Column -> strategy; remaining text columns with NaN get MISSING_SENTINEL
IMPUTE_STRATEGIES = {
    'runtime': 'median',
    'spoken_languages': 'mode',
    'status': 'mode',
}

# Release dates come as m/d/yy. Two-digit years above the pivot's remainder
# belong to the 1900s, the rest to the 2000s.
PIVOT_YEAR = 1917

# ============================================================================
# TEXT / STRUCTURE PARSING
# ============================================================================
# Every embedded {...} group opens with this marker
ENTRY_MARKER = "{"

# Fields whose entries are counted -> output column
COUNT_FIELDS = {
    'genres': 'genres_count',
    'production_companies': 'production_companies_count',
    'production_countries': 'production_countries_count',
    'spoken_languages': 'spoken_languages_count',
    'Keywords': 'keywords_count',
    'cast': 'cast_count',
    'crew': 'crew_count',
}

# Gender codes are opaque categories 0/1/2
GENDER_CODES = (0, 1, 2)

# Crew roles counted through "'job': '<role>'"
CREW_ROLES = {
    'director_count': 'Director',
    'producer_count': 'Producer',
    'exec_producer_count': 'Executive Producer',
}

# Fields whose first listed name becomes a categorical feature
FIRST_VALUE_FIELDS = {
    'production_companies': 'first_company',
    'genres': 'first_genre',
}

# TMDB genre vocabulary (indicator flags built from the canonical genre string)
GENRES = (
    'Action', 'Adventure', 'Animation', 'Comedy', 'Crime', 'Documentary',
    'Drama', 'Family', 'Fantasy', 'Foreign', 'History', 'Horror', 'Music',
    'Mystery', 'Romance', 'Science Fiction', 'TV Movie', 'Thriller', 'War',
    'Western',
)

# ============================================================================
# FEATURE ENGINEERING
# ============================================================================
# Frequency cut-offs for the first listed production company
TOP_COMPANIES_KNOWN = 20    # "well-known" companies
TOP_COMPANIES_KEEP = 200    # categories kept before collapsing to "Other"
TOP_LANGUAGES_KEEP = 10
OTHER_CATEGORY = "Other"

# Studio identity flags: substring of homepage -> feature name
STUDIO_DOMAINS = {
    'disney': 'homepage_disney',
    'sonyclassics': 'homepage_sony',
    'warnerbros': 'homepage_warner',
    'focusfeatures': 'homepage_focus',
    'foxsearchlight': 'homepage_fox',
    'magpictures': 'homepage_magnolia',
    'mgm': 'homepage_mgm',
    'lionsgate': 'homepage_lionsgate',
    'paramount': 'homepage_paramount',
    'universal': 'homepage_universal',
}

# Categorical features (one-hot encoded before modeling)
CATEGORICAL_FEATURES = (
    'release_quarter',
    'release_decade',
    'first_company',
    'first_genre',
    'original_language',
)

# Raw columns never passed to the models
DROP_FEATURES = (
    'id', 'imdb_id', 'original_title', 'title', 'overview', 'tagline',
    'homepage', 'poster_path', 'belongs_to_collection', 'genres',
    'production_companies', 'production_countries', 'spoken_languages',
    'Keywords', 'cast', 'crew', 'status', 'release_date', 'budget',
    'genres_all', 'label',
)

# ============================================================================
# BUDGET ESTIMATOR
# ============================================================================
BUDGET_COLUMN = "budget"
BUDGET_LOG = "log_budget"
BUDGET_THRESHOLD = 1000     # budget <= threshold is an unknown placeholder

BUDGET_PREDICTORS = (
    'release_year',
    'cast_count',
    'crew_count',
    'director_count',
    'exec_producer_count',
    'production_companies_count',
    'production_countries_count',
    'is_independent',
)

BUDGET_NEIGHBORS_GRID = (5, 7, 9, 11, 13, 15, 17, 19, 21, 23)
BUDGET_CV_FOLDS = 5
BUDGET_CV_REPEATS = 3

# ============================================================================
# MODEL PARAMETERS
# ============================================================================
CV_FOLDS = 5
CV_REPEATS = 3
N_JOBS = -1   # parallel CV folds; estimators themselves run single-threaded

# Candidate models: fixed params + hyperparameter grid searched on shared folds
MODELS = {
    'tree_cp': {
        'name': 'Decision Tree (complexity)',
        'estimator': 'decision_tree',
        'params': {'random_state': RANDOM_STATE},
        'grid': {'ccp_alpha': [0.0, 0.001, 0.005, 0.01, 0.02, 0.05]},
    },
    'tree_depth': {
        'name': 'Decision Tree (depth)',
        'estimator': 'decision_tree',
        'params': {'random_state': RANDOM_STATE},
        'grid': {'max_depth': [2, 3, 4, 5, 6, 8, 10]},
    },
    'bagging': {
        'name': 'Bagged Trees',
        'estimator': 'bagging',
        'params': {'n_estimators': 100, 'random_state': RANDOM_STATE, 'n_jobs': 1},
        'grid': {},
    },
    'random_forest': {
        'name': 'Random Forest',
        'estimator': 'random_forest',
        'params': {'n_estimators': 300, 'random_state': RANDOM_STATE, 'n_jobs': 1},
        'grid': {
            'max_features': [0.1, 0.2, 0.33, 0.5],
            'min_samples_leaf': [1, 5, 10],
        },
    },
    'lightgbm': {
        'name': 'LightGBM',
        'estimator': 'lightgbm',
        'params': {
            'n_estimators': 400,
            'learning_rate': 0.03,   # fixed
            'subsample': 0.8,        # fixed
            'subsample_freq': 1,
            'colsample_bytree': 0.8,
            'importance_type': 'gain',
            'random_state': RANDOM_STATE,
            'n_jobs': 1,
            'verbose': -1,
        },
        'grid': {
            'max_depth': [3, 5, 7],
            'reg_lambda': [0.0, 1.0, 5.0],
        },
    },
}

# ============================================================================
# EVALUATION METRICS
# ============================================================================

# Number of features shown in the importance ranking
TOP_FEATURES = 20
