"""フラグ設定の読み込み

JSON は YAML のサブセットなので、どちらの形式も yaml.safe_load で読み込む。
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

import structlog
import yaml  # type: ignore[import-untyped]
from pydantic import TypeAdapter, ValidationError

from .exceptions import FeatureFlagError, FeatureFlagErrorCodes
from .models import Flag, FlagConfig

logger = structlog.get_logger(__name__)

_FLAGS_ADAPTER: TypeAdapter[dict[str, Flag]] = TypeAdapter(dict[str, Flag])


def merge_flag_configs(
    base: Mapping[str, Any], overlay: Mapping[str, Any]
) -> dict[str, Any]:
    """環境別設定をフラグ単位でベースに重ねた新しい辞書を返す。

    - overlay の値が null のフラグはベースから削除する
    - 両方が mapping ならフィールド単位で上書きする (rules などは丸ごと置換)
    - それ以外は overlay の定義で置換する
    """
    merged: dict[str, Any] = dict(base)
    for flag_key, definition in overlay.items():
        if definition is None:
            merged.pop(flag_key, None)
            continue
        current = merged.get(flag_key)
        if isinstance(current, Mapping) and isinstance(definition, Mapping):
            merged[flag_key] = {**current, **definition}
        else:
            merged[flag_key] = definition
    return merged


def parse_config(data: Mapping[str, Any]) -> FlagConfig:
    """フラグキー -> フラグ定義 の辞書を FlagConfig に変換する。

    key を省略したフラグ定義には辞書のキーを補う。
    """
    if not isinstance(data, Mapping):
        raise FeatureFlagError(
            code=FeatureFlagErrorCodes.CONFIG_VALIDATION,
            message=f"Flag config must be a mapping, got {type(data).__name__}",
        )
    normalized: dict[str, Any] = {}
    for flag_key, definition in data.items():
        if isinstance(definition, Mapping) and "key" not in definition:
            definition = {**definition, "key": flag_key}
        normalized[flag_key] = definition
    try:
        return _FLAGS_ADAPTER.validate_python(normalized)
    except ValidationError as e:
        raise FeatureFlagError(
            code=FeatureFlagErrorCodes.CONFIG_VALIDATION,
            message=f"Flag config validation failed: {e}",
            cause=e,
        ) from e


def _parse_text(text: str, source: str) -> dict[str, Any]:
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise FeatureFlagError(
            code=FeatureFlagErrorCodes.CONFIG_PARSE,
            message=f"Failed to parse flag config: {source}",
            cause=e,
        ) from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise FeatureFlagError(
            code=FeatureFlagErrorCodes.CONFIG_PARSE,
            message=f"Flag config must be a mapping: {source}",
        )
    return data


def _read_file(path: Path) -> dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise FeatureFlagError(
            code=FeatureFlagErrorCodes.CONFIG_READ,
            message=f"Failed to read flag config file: {path}",
            cause=e,
        ) from e
    return _parse_text(text, str(path))


def loads(text: str) -> FlagConfig:
    """JSON または YAML 文字列から FlagConfig を生成する。"""
    return parse_config(_parse_text(text, "<string>"))


def load(base_path: Path, env_path: Path | None = None) -> FlagConfig:
    """フラグ設定ファイルを読み込んで FlagConfig を返す。

    base_path: ベース設定ファイルパス（必須）
    env_path: 環境別設定ファイルパス（オプション）。存在する場合はベースにマージ。
    """
    data = _read_file(base_path)
    if env_path is not None and env_path.exists():
        data = merge_flag_configs(data, _read_file(env_path))
    config = parse_config(data)
    logger.info("Loaded flag config", path=str(base_path), flag_count=len(config))
    return config
