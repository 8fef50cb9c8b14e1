"""flags-core ライブラリの例外型定義"""

from __future__ import annotations


class FeatureFlagError(Exception):
    """flags-core ライブラリのエラー基底クラス。

    フラグ評価 (eval_bool / eval_variant) は例外を送出しない。
    この例外は設定読み込みやクライアント操作など評価経路の外側でのみ使われる。
    """

    def __init__(
        self,
        code: str,
        message: str,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        return f"{self.code}: {super().__str__()}"


class FeatureFlagErrorCodes:
    """エラーコード定数。"""

    FLAG_NOT_FOUND: str = "FLAG_NOT_FOUND"
    CONFIG_READ: str = "CONFIG_READ_ERROR"
    CONFIG_PARSE: str = "CONFIG_PARSE_ERROR"
    CONFIG_VALIDATION: str = "CONFIG_VALIDATION_ERROR"
    CLIENT_CLOSED: str = "CLIENT_CLOSED"
