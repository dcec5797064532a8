"""
PyObStore 的共用型別定義。

包含狀態與資料的泛型參數、listener 簽名，以及 subscribe 的兩種訂閱目標：
依欄位鍵 (KeyTarget) 與依判斷函數 (PredicateTarget)。
"""
from typing import Any, Callable, Hashable, Optional, TypeVar, Union

from .errors import ListenerError

S = TypeVar("S")
D = TypeVar("D")

# listener 接收 (new_state, old_state)
Listener = Callable[[Optional[S], Optional[S]], Any]
KeyPredicate = Callable[[Any], bool]


class _Marker:
    """具名的單例標記，用於與任何真實欄位鍵區分。"""
    __slots__ = ("_name",)

    def __init__(self, name: str):
        self._name = name

    def __repr__(self):
        return self._name


# 訂閱所有更新的保留鍵
ALL = _Marker("ALL")
# listener_count 專用：統計所有判斷函數 listener
PREDICATES = _Marker("PREDICATES")


class KeyTarget:
    """
    依欄位鍵訂閱。

    屬性:
        key: 狀態中的欄位鍵，或 ALL 表示所有更新
    """
    __slots__ = ("key",)

    def __init__(self, key: Hashable):
        super().__setattr__("key", key)

    def __setattr__(self, name, value):
        raise AttributeError(f"Cannot modify immutable instance attribute '{name}'")

    def __eq__(self, other):
        return isinstance(other, KeyTarget) and self.key == other.key

    def __hash__(self):
        return hash((KeyTarget, self.key))

    def __repr__(self):
        return f"KeyTarget(key={self.key!r})"


class PredicateTarget:
    """
    依判斷函數訂閱，函數接收變更的欄位鍵並返回是否感興趣。

    屬性:
        predicate: (key) -> bool
    """
    __slots__ = ("predicate",)

    def __init__(self, predicate: KeyPredicate):
        super().__setattr__("predicate", predicate)

    def __setattr__(self, name, value):
        raise AttributeError(f"Cannot modify immutable instance attribute '{name}'")

    def __eq__(self, other):
        return isinstance(other, PredicateTarget) and self.predicate is other.predicate

    def __hash__(self):
        return hash((PredicateTarget, id(self.predicate)))

    def __repr__(self):
        return f"PredicateTarget(predicate={self.predicate!r})"


SubscriptionTarget = Union[KeyTarget, PredicateTarget]


def by_key(key: Hashable) -> KeyTarget:
    """明確建立依欄位鍵的訂閱目標。"""
    return to_target(KeyTarget(key))


def where(predicate: KeyPredicate) -> PredicateTarget:
    """明確建立依判斷函數的訂閱目標。"""
    if not callable(predicate):
        raise ListenerError("predicate must be callable", predicate=predicate)
    return PredicateTarget(predicate)


def to_target(target: Any = None) -> SubscriptionTarget:
    """
    將 subscribe 的第二個參數正規化為訂閱目標。

    Args:
        target: None (所有更新)、欄位鍵、判斷函數，或已建立的 KeyTarget / PredicateTarget

    Returns:
        KeyTarget 或 PredicateTarget

    Raises:
        ListenerError: 欄位鍵無法作為字典鍵 (不可雜湊) 時
    """
    if target is None:
        return KeyTarget(ALL)
    if isinstance(target, PredicateTarget):
        return where(target.predicate)
    if isinstance(target, KeyTarget):
        key = target.key
    elif callable(target) and not isinstance(target, (str, type)):
        return PredicateTarget(target)
    else:
        key = target

    if key is None:
        return KeyTarget(ALL)
    try:
        hash(key)
    except TypeError:
        raise ListenerError("subscription key must be hashable", key=key) from None
    return target if isinstance(target, KeyTarget) else KeyTarget(key)
