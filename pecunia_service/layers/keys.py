"""
缓存键编码
finance_<SYMBOL>_<attribute>_<YYYY-MM-DD>

字段分隔符为 "_"，symbol / attribute 中出现的 "%" 与 "_" 会被百分号转义，
保证不同组合不会生成相同的键。
"""

from typing import Any

KEY_NAMESPACE = "finance"
_SEP = "_"


def _escape(part: str) -> str:
    return part.replace("%", "%25").replace(_SEP, "%5F")


def normalize_symbol(symbol: Any) -> str:
    return str(symbol).upper()


def normalize_attribute(attribute: Any) -> str:
    return str(attribute).lower()


def key_prefix(symbol: Any, attribute: Any) -> str:
    """不含日期后缀的键前缀，用于前缀扫描"""
    return _SEP.join([
        KEY_NAMESPACE,
        _escape(normalize_symbol(symbol)),
        _escape(normalize_attribute(attribute)),
    ]) + _SEP


def make_key(symbol: Any, attribute: Any, date: Any) -> str:
    """生成规范化缓存键"""
    return key_prefix(symbol, attribute) + str(date)


def namespace_prefix() -> str:
    """所有行情缓存键的公共前缀"""
    return KEY_NAMESPACE + _SEP
