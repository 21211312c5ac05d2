"""
boxoffice package
=================
Production code for the TMDB box-office revenue report pipeline.
"""

__version__ = "0.1.0"

from .data import load_raw_data, split_data, load_and_split, SchemaError
from .preprocessing import prepare_data, ImputationError
from .model import FoldAssignment, ModelManager, select_best_model, train_models
from .evaluation import ModelEvaluator, compute_metrics, baseline_rmse
