"""InMemoryFeatureFlagClient 実装"""

from __future__ import annotations

import threading
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import structlog

from .evaluator import ContextLike, Evaluator
from .exceptions import FeatureFlagError, FeatureFlagErrorCodes
from .loader import load, parse_config
from .models import EvaluationResult, Flag, FlagConfig

logger = structlog.get_logger(__name__)


class InMemoryFeatureFlagClient:
    """現在の Evaluator を保持するインメモリフィーチャーフラグクライアント。

    設定の更新は新しい Evaluator を生成し、参照を 1 回の代入で差し替える。
    評価中の呼び出しは読み取った時点の Evaluator を使い続けるため、
    新旧の設定が混ざった状態を観測することはない。
    更新操作同士はロックで直列化し、評価側はロックを取らない。
    """

    def __init__(self, config: FlagConfig | Mapping[str, Any] | None = None) -> None:
        self._evaluator = Evaluator(self._to_config(config or {}))
        self._write_lock = threading.Lock()
        self._closed = False

    @classmethod
    def from_file(cls, base_path: Path, env_path: Path | None = None) -> InMemoryFeatureFlagClient:
        """設定ファイルから初期化したクライアントを返す。"""
        return cls(load(base_path, env_path))

    @property
    def evaluator(self) -> Evaluator:
        """現在の Evaluator。"""
        return self._evaluator

    def get_bool(self, flag_key: str, context: ContextLike = None) -> EvaluationResult[bool]:
        self._ensure_open()
        return self._evaluator.eval_bool(flag_key, context)

    def get_variant(self, flag_key: str, context: ContextLike = None) -> EvaluationResult[str]:
        self._ensure_open()
        return self._evaluator.eval_variant(flag_key, context)

    def is_enabled(self, flag_key: str, context: ContextLike = None) -> bool:
        return self.get_bool(flag_key, context).value

    def get_flag(self, flag_key: str) -> Flag:
        self._ensure_open()
        flag = self._evaluator.get_flag(flag_key)
        if flag is None:
            raise FeatureFlagError(
                FeatureFlagErrorCodes.FLAG_NOT_FOUND,
                f"Flag not found: {flag_key}",
            )
        return flag

    def has_flag(self, flag_key: str) -> bool:
        return self._evaluator.has_flag(flag_key)

    def get_flag_keys(self) -> list[str]:
        return self._evaluator.get_flag_keys()

    def get_config(self) -> FlagConfig:
        return self._evaluator.get_config()

    def update_config(self, config: FlagConfig | Mapping[str, Any]) -> None:
        """設定全体を置き換える。"""
        self._ensure_open()
        evaluator = Evaluator(self._to_config(config))
        with self._write_lock:
            self._evaluator = evaluator
        logger.info("Flag config replaced", flag_count=len(evaluator.get_config()))

    def set_flag(self, flag: Flag) -> None:
        """フラグを追加または置き換える。"""
        self._ensure_open()
        with self._write_lock:
            config = dict(self._evaluator.get_config())
            config[flag.key] = flag
            self._evaluator = Evaluator(config)

    def remove_flag(self, flag_key: str) -> bool:
        """フラグを削除する。削除できたら True。"""
        self._ensure_open()
        with self._write_lock:
            config = dict(self._evaluator.get_config())
            if config.pop(flag_key, None) is None:
                return False
            self._evaluator = Evaluator(config)
            return True

    def close(self) -> None:
        """クライアントを停止する。以降の操作は CLIENT_CLOSED エラーになる。"""
        self._closed = True

    def is_ready(self) -> bool:
        return not self._closed

    def _ensure_open(self) -> None:
        if self._closed:
            raise FeatureFlagError(
                FeatureFlagErrorCodes.CLIENT_CLOSED,
                "Feature flag client is closed",
            )

    @staticmethod
    def _to_config(config: FlagConfig | Mapping[str, Any]) -> FlagConfig:
        if all(isinstance(flag, Flag) for flag in config.values()):
            return config
        return parse_config(config)
