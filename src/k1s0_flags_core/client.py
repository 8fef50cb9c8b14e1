"""FeatureFlagClient プロトコル"""

from __future__ import annotations

from typing import Protocol

from .models import EvaluationContext, EvaluationResult, Flag, FlagConfig


class FeatureFlagClientProtocol(Protocol):
    """フィーチャーフラグクライアントプロトコル。"""

    def get_bool(
        self, flag_key: str, context: EvaluationContext | None = None
    ) -> EvaluationResult[bool]: ...

    def get_variant(
        self, flag_key: str, context: EvaluationContext | None = None
    ) -> EvaluationResult[str]: ...

    def is_enabled(self, flag_key: str, context: EvaluationContext | None = None) -> bool: ...

    def get_flag(self, flag_key: str) -> Flag: ...

    def has_flag(self, flag_key: str) -> bool: ...

    def get_flag_keys(self) -> list[str]: ...

    def get_config(self) -> FlagConfig: ...
