"""ロールアウト用の決定的バケット計算

同じ (user_id, flag_key) の組は実行環境・言語に関わらず常に同じバケットになる。
暗号学的ハッシュではなく、JavaScript 版と同一の 32bit 多項式ローリングハッシュを使う。
"""

from __future__ import annotations

BUCKET_COUNT = 101


def _to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


def _utf16_code_units(text: str) -> list[int]:
    # charCodeAt と同じく UTF-16 コードユニット単位で走査する
    data = text.encode("utf-16-le", "surrogatepass")
    return [int.from_bytes(data[i : i + 2], "little") for i in range(0, len(data), 2)]


def string_hash(text: str) -> int:
    """h = h * 31 + code を 32bit 符号付きで切り詰めながら計算し、絶対値を返す。"""
    h = 0
    for code in _utf16_code_units(text):
        h = _to_int32(h * 31 + code)
    return abs(h)


def compute_rollout_bucket(user_id: str, flag_key: str) -> int:
    """ユーザーとフラグから 0〜100 (両端含む) のバケットを計算する。

    Args:
        user_id: ユーザー識別子
        flag_key: フラグキー

    Returns:
        0 以上 100 以下の整数
    """
    return string_hash(f"{user_id}:{flag_key}") % BUCKET_COUNT
