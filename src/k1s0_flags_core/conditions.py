"""条件評価ロジック

比較は他言語実装 (JavaScript 版) と結果が一致するように緩い型付けで行う。
数値 25 と文字列 "25" は等しいとみなす。
"""

from __future__ import annotations

import math
import re
from collections.abc import Iterable, Mapping, Sequence
from decimal import Decimal
from typing import Any

from .models import AttributeValue, Condition, ConditionOperator, EvaluationContext

# parseFloat が読み飛ばす空白 (str.isspace とは集合が異なる)
_JS_WHITESPACE = "\t\n\v\f\r \u00a0\u1680\u2000-\u200a\u2028\u2029\u202f\u205f\u3000\ufeff"

# parseFloat が受理する先頭部分。数字は ASCII のみ
_FLOAT_PREFIX_RE = re.compile(
    rf"[{_JS_WHITESPACE}]*([+-]?(?:Infinity|(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?))"
)


class _Missing:
    __slots__ = ()

    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()


def resolve_attribute(context: EvaluationContext, attribute: str) -> AttributeValue:
    """属性パスの値を取得する。見つからなければ MISSING。

    "user.plan" という名前のキーが直接存在すればそれを優先し、
    無ければ "." で分割してネストした mapping を辿る。
    """
    attributes = context.attributes
    if not isinstance(attributes, Mapping):
        return MISSING
    if attribute in attributes:
        return attributes[attribute]

    value: Any = attributes
    for part in attribute.split("."):
        if not isinstance(value, Mapping) or part not in value:
            return MISSING
        value = value[part]
    return value


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def _number_to_string(value: int | float) -> str:
    """JavaScript の Number#toString と同じ表記に変換する。"""
    if isinstance(value, int):
        return str(value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value == 0:
        return "0"
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    text = repr(value)
    if abs(value) >= 1e21 or abs(value) < 1e-6:
        mantissa, _, exponent = text.partition("e")
        exp = int(exponent)
        return f"{mantissa}e{'+' if exp > 0 else '-'}{abs(exp)}"
    if "e" in text:
        return format(Decimal(text), "f")
    return text


def to_js_string(value: Any) -> str:
    """JavaScript の String(value) 相当の文字列表現。"""
    if value is None:
        return "null"
    if value is MISSING:
        return "undefined"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value
    if _is_number(value):
        return _number_to_string(value)
    if isinstance(value, Mapping):
        return "[object Object]"
    if isinstance(value, Sequence):
        # 配列要素の null は空文字になる
        return ",".join("" if item is None else to_js_string(item) for item in value)
    return str(value)


def _strict_equals(a: Any, b: Any) -> bool:
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    if _is_number(a) and _is_number(b):
        return a == b
    if isinstance(a, str) and isinstance(b, str):
        return a == b
    return a is b


def loose_equals(a: Any, b: Any) -> bool:
    """緩い等価比較。

    1. 同一値なら一致
    2. どちらかが null なら両方 null の場合のみ一致
    3. それ以外は文字列表現で比較
    """
    if _strict_equals(a, b):
        return True
    if a is None or b is None:
        return a is None and b is None
    return to_js_string(a) == to_js_string(b)


def to_number(value: Any) -> float | None:
    """数値に変換する。変換できなければ None。"""
    if _is_number(value):
        return value
    if isinstance(value, str):
        m = _FLOAT_PREFIX_RE.match(value)
        if m is None:
            return None
        return float(m.group(1).replace("Infinity", "inf"))
    return None


def _contains(haystack: Any, needle: Any) -> bool:
    if isinstance(haystack, str) and isinstance(needle, str):
        return needle in haystack
    if isinstance(haystack, list | tuple):
        return any(loose_equals(item, needle) for item in haystack)
    return False


_NUMERIC_COMPARATORS = {
    ConditionOperator.GT: lambda a, b: a > b,
    ConditionOperator.GTE: lambda a, b: a >= b,
    ConditionOperator.LT: lambda a, b: a < b,
    ConditionOperator.LTE: lambda a, b: a <= b,
}


def matches(condition: Condition, context: EvaluationContext) -> bool:
    """単一の条件をコンテキストに対して評価する。例外は送出しない。"""
    operator = condition.operator
    expected = condition.value
    actual = resolve_attribute(context, condition.attribute)

    # 属性が存在しない場合は neq のみ一致しうる
    if actual is MISSING:
        return operator == ConditionOperator.NEQ and condition.has_value

    if operator == ConditionOperator.EQ:
        return loose_equals(actual, expected)
    if operator == ConditionOperator.NEQ:
        return not loose_equals(actual, expected)
    if operator == ConditionOperator.IN:
        if not isinstance(expected, list | tuple):
            return False
        return any(loose_equals(actual, item) for item in expected)
    comparator = _NUMERIC_COMPARATORS.get(operator)
    if comparator is not None:
        left = to_number(actual)
        right = to_number(expected)
        if left is None or right is None:
            return False
        return comparator(left, right)
    if operator == ConditionOperator.CONTAINS:
        return _contains(actual, expected)
    return False


def matches_all(conditions: Iterable[Condition], context: EvaluationContext) -> bool:
    """全条件が一致すれば True (AND)。空の場合は常に True。"""
    return all(matches(condition, context) for condition in conditions)
