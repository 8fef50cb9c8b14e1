"""flags-core データモデル

フラグ設定 (Flag / Rule / Condition / Variant) は pydantic モデルとして定義し、
JSON/YAML の camelCase キー (defaultValue など) をそのまま受け付ける。
評価コンテキストと評価結果はリクエスト毎に生成されるため dataclass とする。
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Generic, TypeAlias, TypeVar

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

T = TypeVar("T", bool, str)

# コンテキスト属性値: str / int / float / bool / list / ネストした mapping / None
AttributeValue: TypeAlias = Any


class ConditionOperator(StrEnum):
    """条件演算子。"""

    EQ = "eq"
    NEQ = "neq"
    IN = "in"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    CONTAINS = "contains"


class EvaluationReason(StrEnum):
    """評価結果の理由コード。"""

    DEFAULT = "default"
    RULE_MATCH = "rule_match"
    ROLLOUT = "rollout"
    ROLLOUT_EXCLUDED = "rollout_excluded"
    FLAG_NOT_FOUND = "flag_not_found"
    ERROR = "error"


class _FlagModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )


class Condition(_FlagModel):
    """属性比較条件。

    operator は未知の値も受け付ける (評価時に常に不一致となる)。
    value が省略された場合は undefined として扱い、明示的な null と区別する。
    """

    attribute: str
    operator: str
    value: Any = None

    @property
    def has_value(self) -> bool:
        """比較値が設定されているか (null を含む)。"""
        return "value" in self.model_fields_set


class Rule(_FlagModel):
    """ターゲティングルール。conditions は AND 結合、空なら常に一致。"""

    conditions: tuple[Condition, ...] = ()
    percentage: float | None = None
    value: bool | None = None
    variant: str | None = None

    @property
    def has_value(self) -> bool:
        return "value" in self.model_fields_set

    @property
    def has_percentage(self) -> bool:
        """percentage キーが存在するか。null も含む (null は 0% 扱い)。"""
        return "percentage" in self.model_fields_set


class Variant(_FlagModel):
    """フラグバリアント。評価器はカタログとして参照しない。"""

    key: str = Field(validation_alias=AliasChoices("key", "name"))
    value: Any = None


class Flag(_FlagModel):
    """フィーチャーフラグ。

    default_value が bool ならブールフラグ、str ならバリアントフラグ。
    """

    key: str
    default_value: bool | str
    rules: tuple[Rule, ...] = ()
    variants: tuple[Variant, ...] = ()
    description: str | None = None

    @property
    def is_variant(self) -> bool:
        return isinstance(self.default_value, str)


# フラグキー -> Flag。フラグの順序は評価に影響しない
FlagConfig: TypeAlias = Mapping[str, Flag]


@dataclass(frozen=True)
class EvaluationContext:
    """フラグ評価コンテキスト。"""

    user_id: str | None = None
    attributes: Mapping[str, AttributeValue] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> EvaluationContext:
        """{"userId": ..., "attributes": {...}} 形式の辞書から生成する。"""
        user_id = data.get("userId", data.get("user_id"))
        attributes = data.get("attributes") or {}
        return cls(user_id=user_id, attributes=attributes)


@dataclass(frozen=True)
class EvaluationMetadata:
    """評価結果の付加情報。"""

    rule_index: int | None = None
    bucket: int | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.rule_index is not None:
            data["ruleIndex"] = self.rule_index
        if self.bucket is not None:
            data["bucket"] = self.bucket
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass(frozen=True)
class EvaluationResult(Generic[T]):
    """フラグ評価結果。"""

    value: T
    reason: EvaluationReason
    metadata: EvaluationMetadata | None = None

    def to_dict(self) -> dict[str, Any]:
        """他言語実装と同じ JSON 形状に変換する。"""
        data: dict[str, Any] = {"value": self.value, "reason": self.reason.value}
        if self.metadata is not None:
            data["metadata"] = self.metadata.to_dict()
        return data
