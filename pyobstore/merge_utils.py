# pyobstore/merge_utils.py
from collections.abc import Mapping
from functools import reduce
from typing import Any, Dict, Iterable, Optional

from immutables import Map
from pydantic import BaseModel

from .errors import MergeError

ARRAY_MERGE_STRATEGIES = ("concat", "replace")

# 以值比較的純量型別，其餘物件一律以參照比較
_SCALAR_TYPES = (type(None), bool, int, float, complex, str, bytes)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_mapping(value: Any) -> bool:
    return isinstance(value, (Mapping, Map))


def check_array_merge(array_merge: str) -> str:
    """驗證陣列合併策略名稱"""
    if array_merge not in ARRAY_MERGE_STRATEGIES:
        raise MergeError(
            f"unknown array merge strategy, expected one of {ARRAY_MERGE_STRATEGIES}",
            value=array_merge,
        )
    return array_merge


def to_plain(value: Any, exclude_unset: bool = False) -> Optional[Mapping]:
    """
    將 partial 或初始值轉為可合併的映射。

    Pydantic 模型轉為字典 (exclude_unset 為 True 時只保留呼叫者設定過的欄位)，
    映射 (dict、TypedDict、immutables.Map) 原樣返回，None 保持 None。
    """
    if value is None:
        return None
    if isinstance(value, BaseModel):
        return value.model_dump(exclude_unset=exclude_unset)
    if _is_mapping(value):
        return value
    raise MergeError("value must be a mapping or a pydantic model", value=value)


def clone(value: Any) -> Any:
    """複製可合併的結構 (映射轉為 dict、列表)，其他物件保留原參照"""
    if _is_mapping(value):
        return {k: clone(v) for k, v in value.items()}
    if isinstance(value, list):
        return [clone(i) for i in value]
    return value


def deep_merge(target: Any, source: Any, array_merge: str = "concat") -> Any:
    """
    將 source 深度合併到 target 上，返回新的結構，不修改任何輸入。

    - 兩邊都是映射：逐鍵遞迴合併，source 中的鍵覆蓋或合併進 target
    - 兩邊都是列表：concat 時串接，replace 時以 source 取代
    - 其他情況：以 source (的副本) 取代 target

    Args:
        target: 被合併的舊值
        source: 新值
        array_merge: 列表合併策略，"concat" 或 "replace"

    Returns:
        合併後的新值
    """
    if isinstance(target, list) and isinstance(source, list):
        if array_merge == "replace":
            return clone(source)
        return clone(target) + clone(source)

    if _is_mapping(target) and _is_mapping(source):
        result = {k: clone(v) for k, v in target.items()}
        for key, value in source.items():
            if key in target:
                result[key] = deep_merge(target[key], value, array_merge)
            else:
                result[key] = clone(value)
        return result

    return clone(source)


def deep_merge_all(values: Iterable[Any], array_merge: str = "concat") -> Dict[str, Any]:
    """依序將多個值深度合併，後面的值優先。"""
    check_array_merge(array_merge)
    return reduce(lambda acc, value: deep_merge(acc, value, array_merge), values, {})


def shallow_merge(base: Any, partial: Any) -> Dict[str, Any]:
    """只合併頂層鍵，不遞迴，返回新的字典"""
    return {**(to_plain(base) or {}), **(to_plain(partial) or {})}


def is_changed(old_value: Any, new_value: Any) -> bool:
    """
    淺層比較新舊值。

    同一物件視為未變更；int 與 float 以數值比較 (bool 除外)；
    其他純量在型別相同且值相等時視為未變更；
    其他兩個不同的物件參照一律視為已變更。
    """
    if old_value is new_value:
        return False
    if _is_number(old_value) and _is_number(new_value):
        return old_value != new_value
    if isinstance(old_value, _SCALAR_TYPES) and type(old_value) is type(new_value):
        return old_value != new_value
    return True
