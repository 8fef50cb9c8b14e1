"""フィーチャーフラグ評価器"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, TypeAlias, TypeVar

import structlog

from .conditions import matches_all, to_js_string
from .metrics import flag_evaluation_errors_total, flag_evaluations_total
from .models import (
    EvaluationContext,
    EvaluationMetadata,
    EvaluationReason,
    EvaluationResult,
    Flag,
    FlagConfig,
    Rule,
)
from .rollout import compute_rollout_bucket

logger = structlog.get_logger(__name__)

T = TypeVar("T", bool, str)

NOT_FOUND_VARIANT = "default"


@dataclass(frozen=True)
class _Matched:
    reason: EvaluationReason
    bucket: int | None = None


@dataclass(frozen=True)
class _ConditionsFailed:
    pass


@dataclass(frozen=True)
class _RolloutExcluded:
    bucket: int | None = None


_RuleOutcome: TypeAlias = _Matched | _ConditionsFailed | _RolloutExcluded

ContextLike: TypeAlias = EvaluationContext | Mapping[str, Any] | None


def _coerce_context(context: ContextLike) -> EvaluationContext:
    if context is None:
        return EvaluationContext()
    if isinstance(context, EvaluationContext):
        return context
    return EvaluationContext.from_dict(context)


class Evaluator:
    """フラグ設定スナップショットを保持し、フラグを評価する。

    設定は生成時に固定され以後変更されない。設定を差し替える場合は
    新しい Evaluator を生成して参照ごと置き換える。そのため 1 インスタンスを
    複数スレッドから同時に評価してよい。

    評価 (eval_bool / eval_variant) は例外を送出しない。失敗は reason と
    metadata.error で表現する。

    Example:
        evaluator = Evaluator(parse_config({
            "new-feature": {
                "key": "new-feature",
                "defaultValue": False,
                "rules": [{
                    "conditions": [{"attribute": "plan", "operator": "eq", "value": "premium"}],
                    "value": True,
                }],
            },
        }))
        result = evaluator.eval_bool(
            "new-feature", EvaluationContext(user_id="user-123", attributes={"plan": "premium"})
        )
        # result.value is True, result.reason == "rule_match"
    """

    def __init__(self, config: FlagConfig) -> None:
        self._config: Mapping[str, Flag] = MappingProxyType(dict(config))

    def eval_bool(self, flag_key: str, context: ContextLike = None) -> EvaluationResult[bool]:
        """ブールフラグを評価する。

        Args:
            flag_key: 評価するフラグキー
            context: 評価コンテキスト (dict 形式も可)

        Returns:
            bool 値と理由を持つ評価結果
        """
        flag = self._config.get(flag_key)
        if flag is None:
            return self._not_found(flag_key, False, "bool")
        try:
            result = self._eval_bool(flag, flag_key, _coerce_context(context))
        except Exception as e:
            result = self._failed(flag_key, bool(flag.default_value), e)
        flag_evaluations_total.add(
            1, {"flag_key": flag_key, "reason": result.reason.value, "kind": "bool"}
        )
        return result

    def eval_variant(self, flag_key: str, context: ContextLike = None) -> EvaluationResult[str]:
        """バリアントフラグを評価し、バリアントキーを返す。

        Args:
            flag_key: 評価するフラグキー
            context: 評価コンテキスト (dict 形式も可)

        Returns:
            バリアントキーと理由を持つ評価結果
        """
        flag = self._config.get(flag_key)
        if flag is None:
            return self._not_found(flag_key, NOT_FOUND_VARIANT, "variant")
        try:
            result = self._eval_variant(flag, flag_key, _coerce_context(context))
        except Exception as e:
            result = self._failed(flag_key, to_js_string(flag.default_value), e)
        flag_evaluations_total.add(
            1, {"flag_key": flag_key, "reason": result.reason.value, "kind": "variant"}
        )
        return result

    def get_config(self) -> FlagConfig:
        """保持している設定スナップショットを返す (読み取り専用)。"""
        return self._config

    def get_flag(self, flag_key: str) -> Flag | None:
        return self._config.get(flag_key)

    def has_flag(self, flag_key: str) -> bool:
        return flag_key in self._config

    def get_flag_keys(self) -> list[str]:
        return list(self._config)

    def _eval_bool(
        self, flag: Flag, flag_key: str, context: EvaluationContext
    ) -> EvaluationResult[bool]:
        found = self._find_matching_rule(flag, flag_key, context)
        if found is None:
            return EvaluationResult(value=bool(flag.default_value), reason=EvaluationReason.DEFAULT)
        index, rule, outcome = found
        # value 未指定のルールは true を返す
        value = rule.value if rule.has_value else True
        return EvaluationResult(
            value=bool(value),
            reason=outcome.reason,
            metadata=EvaluationMetadata(rule_index=index, bucket=outcome.bucket),
        )

    def _eval_variant(
        self, flag: Flag, flag_key: str, context: EvaluationContext
    ) -> EvaluationResult[str]:
        default = to_js_string(flag.default_value)
        found = self._find_matching_rule(flag, flag_key, context)
        if found is None:
            return EvaluationResult(value=default, reason=EvaluationReason.DEFAULT)
        index, rule, outcome = found
        return EvaluationResult(
            value=rule.variant or default,
            reason=outcome.reason,
            metadata=EvaluationMetadata(rule_index=index, bucket=outcome.bucket),
        )

    def _find_matching_rule(
        self, flag: Flag, flag_key: str, context: EvaluationContext
    ) -> tuple[int, Rule, _Matched] | None:
        # 最初に一致したルールを採用する
        for index, rule in enumerate(flag.rules):
            outcome = self._evaluate_rule(rule, flag_key, context)
            if isinstance(outcome, _Matched):
                return index, rule, outcome
        return None

    @staticmethod
    def _evaluate_rule(rule: Rule, flag_key: str, context: EvaluationContext) -> _RuleOutcome:
        # 条件が先、ロールアウト判定は条件一致後のみ
        if not matches_all(rule.conditions, context):
            return _ConditionsFailed()

        # percentage: null は 0 として比較する
        if rule.has_percentage and (rule.percentage is None or rule.percentage < 100):
            if not context.user_id:
                return _RolloutExcluded()
            threshold = rule.percentage if rule.percentage is not None else 0
            bucket = compute_rollout_bucket(context.user_id, flag_key)
            if bucket <= threshold:
                return _Matched(EvaluationReason.ROLLOUT, bucket)
            return _RolloutExcluded(bucket)

        return _Matched(EvaluationReason.RULE_MATCH)

    @staticmethod
    def _not_found(flag_key: str, value: T, kind: str) -> EvaluationResult[T]:
        logger.debug("Feature flag not found", flag_key=flag_key)
        flag_evaluations_total.add(
            1,
            {"flag_key": flag_key, "reason": EvaluationReason.FLAG_NOT_FOUND.value, "kind": kind},
        )
        return EvaluationResult(
            value=value,
            reason=EvaluationReason.FLAG_NOT_FOUND,
            metadata=EvaluationMetadata(error=f'Flag "{flag_key}" not found in configuration'),
        )

    @staticmethod
    def _failed(flag_key: str, value: T, error: Exception) -> EvaluationResult[T]:
        logger.error("Feature flag evaluation failed", flag_key=flag_key, exc_info=error)
        flag_evaluation_errors_total.add(1, {"flag_key": flag_key})
        return EvaluationResult(
            value=value,
            reason=EvaluationReason.ERROR,
            metadata=EvaluationMetadata(error=str(error)),
        )
