"""
Public type definitions for brmskit.

Highlights
----------
- Result containers returned by the brms wrappers:
  [`brmskit.types.brms_results`](brmskit/types/brms_results.py).
- Formula DSL node types and families used by the formula helpers:
  [`brmskit.types.formula_dsl`](brmskit/types/formula_dsl.py).
- Errors and warnings raised for R conditions:
  [`brmskit.types.errors`](brmskit/types/errors.py).

Notes
-----
R objects that appear in results (the ``r`` attributes) are live rpy2 handles
and are only meaningful inside the Python process that created them.
"""

from .brms_results import (
    BayesFactorResult,
    BridgeResult,
    ConditionalEffects,
    FitResult,
    HypothesisResult,
    ICComparison,
    IDFit,
    IDLogLikelihood,
    IDPosterior,
    IDPosteriorPredictive,
    IDPredictions,
    IDResult,
    KFoldResult,
    LooResult,
    PriorSpec,
    SummaryResult,
)
from .errors import BrmsError, BrmsNotInstalledError, BrmsWarning
from .formula_dsl import Family, FormulaConstruct, FormulaPart

__all__ = [
    "BayesFactorResult",
    "BridgeResult",
    "ConditionalEffects",
    "FitResult",
    "HypothesisResult",
    "ICComparison",
    "IDFit",
    "IDLogLikelihood",
    "IDPosterior",
    "IDPosteriorPredictive",
    "IDPredictions",
    "IDResult",
    "KFoldResult",
    "LooResult",
    "PriorSpec",
    "SummaryResult",
    "BrmsError",
    "BrmsNotInstalledError",
    "BrmsWarning",
    "Family",
    "FormulaConstruct",
    "FormulaPart",
]
