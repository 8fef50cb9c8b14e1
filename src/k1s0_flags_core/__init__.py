"""k1s0 flags-core library."""

from .client import FeatureFlagClientProtocol
from .conditions import loose_equals, matches, matches_all, resolve_attribute
from .evaluator import Evaluator
from .exceptions import FeatureFlagError, FeatureFlagErrorCodes
from .loader import load, loads, merge_flag_configs, parse_config
from .memory import InMemoryFeatureFlagClient
from .models import (
    Condition,
    ConditionOperator,
    EvaluationContext,
    EvaluationMetadata,
    EvaluationReason,
    EvaluationResult,
    Flag,
    FlagConfig,
    Rule,
    Variant,
)
from .rollout import compute_rollout_bucket

__all__ = [
    "Condition",
    "ConditionOperator",
    "EvaluationContext",
    "EvaluationMetadata",
    "EvaluationReason",
    "EvaluationResult",
    "Evaluator",
    "FeatureFlagClientProtocol",
    "FeatureFlagError",
    "FeatureFlagErrorCodes",
    "Flag",
    "FlagConfig",
    "InMemoryFeatureFlagClient",
    "Rule",
    "Variant",
    "compute_rollout_bucket",
    "load",
    "loads",
    "loose_equals",
    "matches",
    "matches_all",
    "merge_flag_configs",
    "parse_config",
    "resolve_attribute",
]
