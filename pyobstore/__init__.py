"""
PyObStore：具有欄位鍵訂閱的記憶體內可觀察狀態容器。
"""

from .errors import PyObStoreError, StoreError, ListenerError, MergeError
from .types import ALL, PREDICATES, KeyTarget, PredicateTarget, by_key, where
from .store import Store, Subscription, create_store
from .middleware import BaseMiddleware, LoggerMiddleware, PerformanceMonitorMiddleware
from .merge_utils import deep_merge, deep_merge_all, shallow_merge
from .id_utils import next_id

__all__ = [
    # Errors
    "PyObStoreError", "StoreError", "ListenerError", "MergeError",

    # Types
    "ALL", "PREDICATES", "KeyTarget", "PredicateTarget", "by_key", "where",

    # Store
    "Store", "Subscription", "create_store",

    # Middleware
    "BaseMiddleware", "LoggerMiddleware", "PerformanceMonitorMiddleware",

    # Merge / Id Utils
    "deep_merge", "deep_merge_all", "shallow_merge", "next_id",
]
