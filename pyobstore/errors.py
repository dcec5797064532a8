"""
PyObStore 錯誤定義模組。

所有庫內拋出的異常都繼承自 PyObStoreError，並攜帶結構化的 details，
方便記錄或轉為字典上報。
"""
from typing import Any, Dict, Optional


class PyObStoreError(Exception):
    """所有 PyObStore 異常的基礎類。"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """
        將異常轉為可序列化的字典。

        Returns:
            包含錯誤類型、訊息與細節的字典
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }

    def __str__(self) -> str:
        if not self.details:
            return self.message
        detail_text = ", ".join(f"{k}={v!r}" for k, v in self.details.items())
        return f"{self.message} ({detail_text})"


class StoreError(PyObStoreError):
    """與 Store 配置或操作相關的錯誤。"""

    def __init__(self, message: str, operation: str, **kwargs: Any):
        super().__init__(message, {"operation": operation, **kwargs})
        self.operation = operation


class ListenerError(PyObStoreError):
    """訂閱時傳入無效的 listener 或訂閱目標。"""

    def __init__(self, message: str, listener: Any = None, **kwargs: Any):
        super().__init__(message, {"listener": listener, **kwargs})
        self.listener = listener


class MergeError(PyObStoreError):
    """無法合併的 partial 或合併策略。"""

    def __init__(self, message: str, value: Any = None, **kwargs: Any):
        super().__init__(message, {"value": value, **kwargs})
        self.value = value
