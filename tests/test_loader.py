"""フラグ設定ローダーのユニットテスト"""

from pathlib import Path

import pytest
from k1s0_flags_core.exceptions import FeatureFlagError, FeatureFlagErrorCodes
from k1s0_flags_core.loader import load, loads, merge_flag_configs, parse_config
from k1s0_flags_core.models import Flag

BASE_YAML = """\
new-checkout:
  defaultValue: false
  rules:
    - conditions:
        - attribute: plan
          operator: eq
          value: premium
      value: true
layout:
  key: layout
  defaultValue: control
"""


def test_parse_config_fills_missing_key() -> None:
    """key 省略時は辞書のキーを使うこと。"""
    config = parse_config({"simple": {"defaultValue": True}})
    assert isinstance(config["simple"], Flag)
    assert config["simple"].key == "simple"


def test_parse_config_keeps_rule_order() -> None:
    """ルールの順序が保持されること。"""
    config = parse_config(
        {"f": {"key": "f", "defaultValue": "a",
               "rules": [{"variant": "x"}, {"variant": "y"}, {"variant": "z"}]}}
    )
    assert [rule.variant for rule in config["f"].rules] == ["x", "y", "z"]


def test_parse_config_validation_error() -> None:
    """構造が不正なら CONFIG_VALIDATION_ERROR。"""
    with pytest.raises(FeatureFlagError) as exc_info:
        parse_config({"f": {"key": "f", "rules": "not-a-list", "defaultValue": True}})
    assert exc_info.value.code == FeatureFlagErrorCodes.CONFIG_VALIDATION
    assert str(exc_info.value).startswith("CONFIG_VALIDATION_ERROR: ")


def test_parse_config_non_mapping() -> None:
    """mapping 以外は CONFIG_VALIDATION_ERROR。"""
    with pytest.raises(FeatureFlagError) as exc_info:
        parse_config(["f"])  # type: ignore[arg-type]
    assert exc_info.value.code == FeatureFlagErrorCodes.CONFIG_VALIDATION


def test_loads_json() -> None:
    """JSON 文字列から読み込めること。"""
    config = loads('{"simple": {"key": "simple", "defaultValue": true}}')
    assert config["simple"].default_value is True


def test_loads_empty() -> None:
    """空文字列は空の設定。"""
    assert loads("") == {}


def test_loads_invalid() -> None:
    """不正な文字列は CONFIG_PARSE_ERROR。"""
    with pytest.raises(FeatureFlagError) as exc_info:
        loads("flag: {invalid: yaml: content:\n")
    assert exc_info.value.code == FeatureFlagErrorCodes.CONFIG_PARSE
    with pytest.raises(FeatureFlagError) as exc_info:
        loads("- just\n- a list\n")
    assert exc_info.value.code == FeatureFlagErrorCodes.CONFIG_PARSE


def test_load_yaml_file(tmp_path: Path) -> None:
    """YAML ファイルの読み込み。"""
    base_file = tmp_path / "flags.yaml"
    base_file.write_text(BASE_YAML)
    config = load(base_file)
    assert set(config) == {"new-checkout", "layout"}
    assert config["new-checkout"].rules[0].value is True
    assert config["layout"].default_value == "control"


def test_load_with_env_override(tmp_path: Path) -> None:
    """環境別設定がマージされ、rules は置換されること。"""
    base_file = tmp_path / "flags.yaml"
    base_file.write_text(BASE_YAML)
    env_file = tmp_path / "flags.prod.yaml"
    env_file.write_text("new-checkout:\n  rules:\n    - percentage: 10\n")
    config = load(base_file, env_file)
    flag = config["new-checkout"]
    assert flag.default_value is False
    assert len(flag.rules) == 1
    assert flag.rules[0].percentage == 10
    assert flag.rules[0].conditions == ()


def test_load_env_not_exists(tmp_path: Path) -> None:
    """env_path が存在しなければ base のみ使用。"""
    base_file = tmp_path / "flags.yaml"
    base_file.write_text(BASE_YAML)
    config = load(base_file, tmp_path / "missing.yaml")
    assert config["new-checkout"].rules[0].conditions[0].attribute == "plan"


def test_load_file_not_found(tmp_path: Path) -> None:
    """存在しないファイルは CONFIG_READ_ERROR。"""
    with pytest.raises(FeatureFlagError) as exc_info:
        load(tmp_path / "missing.yaml")
    assert exc_info.value.code == FeatureFlagErrorCodes.CONFIG_READ
    assert isinstance(exc_info.value.__cause__, OSError)


def test_merge_flag_configs_overrides_fields_per_flag() -> None:
    """フラグ単位でフィールドが上書きされ、入力は変更されないこと。"""
    base = {
        "a": {"defaultValue": False, "description": "A", "rules": [{"value": True}]},
        "b": {"defaultValue": "control"},
    }
    overlay = {"a": {"defaultValue": True}, "c": {"defaultValue": True}}
    result = merge_flag_configs(base, overlay)
    assert result == {
        "a": {"defaultValue": True, "description": "A", "rules": [{"value": True}]},
        "b": {"defaultValue": "control"},
        "c": {"defaultValue": True},
    }
    assert base["a"]["defaultValue"] is False
    assert "c" not in base


def test_merge_flag_configs_does_not_merge_inside_flag_fields() -> None:
    """フラグ内のネストした値はマージせず丸ごと置換すること。"""
    base = {"a": {"defaultValue": False, "variants": [{"key": "x"}, {"key": "y"}]}}
    result = merge_flag_configs(base, {"a": {"variants": [{"key": "z"}]}})
    assert result["a"]["variants"] == [{"key": "z"}]


def test_merge_flag_configs_null_removes_flag() -> None:
    """overlay で null を指定したフラグは削除されること。"""
    base = {"a": {"defaultValue": True}, "b": {"defaultValue": False}}
    result = merge_flag_configs(base, {"a": None, "missing": None})
    assert result == {"b": {"defaultValue": False}}
    assert "a" in base


def test_load_env_overlay_removes_flag(tmp_path: Path) -> None:
    """環境別設定で null にしたフラグは読み込まれないこと。"""
    base_file = tmp_path / "flags.yaml"
    base_file.write_text(BASE_YAML)
    env_file = tmp_path / "flags.prod.yaml"
    env_file.write_text("layout: null\n")
    config = load(base_file, env_file)
    assert set(config) == {"new-checkout"}
