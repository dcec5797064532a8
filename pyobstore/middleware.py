"""
PyObStore 的中介軟體定義模組。

中介軟體包裹在 set_state 外層，可以在 partial 合併到狀態前、
listener 通知完成後或出現錯誤時執行自定義邏輯，例如日誌記錄與性能監控。
"""

import contextlib
import datetime
import time
from typing import Any, Dict, Generator, List, Mapping, Optional


def describe_partial(partial: Mapping) -> str:
    """以 partial 的頂層鍵組成可讀標籤，例如 'count,name'。"""
    return ",".join(str(key) for key in partial)


# ———— Base Middleware ————
class BaseMiddleware:
    """
    基礎中介類，定義所有中介可能實現的鉤子。

    Store 在每次被接受的 set_state 呼叫中，透過 update_context 依序觸發
    on_next、on_complete 或 on_error。
    """

    def on_next(self, partial: Mapping, prev_state: Any) -> None:
        """
        在 partial 合併到狀態之前調用。

        Args:
            partial: 正在套用的 partial
            prev_state: 套用之前的 store.state
        """
        pass

    def on_complete(self, next_state: Any, partial: Mapping) -> None:
        """
        在狀態更新且所有 listener 通知完成之後調用。

        Args:
            next_state: 套用之後的最新 store.state
            partial: 剛剛套用的 partial
        """
        pass

    def on_error(self, error: Exception, partial: Mapping) -> None:
        """
        如果 set_state 過程中 (包括 listener) 拋出異常，則調用此鉤子。

        Args:
            error: 拋出的異常
            partial: 導致異常的 partial
        """
        pass

    @contextlib.contextmanager
    def update_context(self, partial: Mapping, prev_state: Any) -> Generator[Dict[str, Any], None, None]:
        """
        以上下文管理器的形式處理一次 set_state 的生命週期。

        Store 在內層更新完成後會把 next_state 寫回 context，
        離開上下文時據此調用 on_complete；異常會先交給 on_error 再重新拋出。

        Args:
            partial: 要套用的 partial
            prev_state: 套用前的狀態

        Yields:
            Dict[str, Any]: 在上下文內外之間傳遞數據的字典
        """
        context: Dict[str, Any] = {
            'partial': partial,
            'prev_state': prev_state,
            'next_state': None,
            'error': None,
        }
        self.on_next(partial, prev_state)
        try:
            yield context
            self.on_complete(context['next_state'], partial)
        except Exception as err:
            context['error'] = err
            self.on_error(err, partial)
            raise


# ———— LoggerMiddleware ————
class LoggerMiddleware(BaseMiddleware):
    """
    日誌中介，打印每次 set_state 前後的 state。

    使用場景:
    - 偵錯時需要觀察每次 state 的變化。
    - 確認 listener 觸發的巢狀 set_state 順序正確。
    """
    def __init__(self):
        self._current_context: Optional[Dict[str, Any]] = None

    @contextlib.contextmanager
    def update_context(self, partial: Mapping, prev_state: Any) -> Generator[Dict[str, Any], None, None]:
        context: Dict[str, Any] = {
            'partial': partial,
            'prev_state': prev_state,
            'next_state': None,
            'error': None,
            'timestamp': datetime.datetime.now(),
        }
        # 巢狀 set_state 會覆蓋 _current_context，離開時還原外層的
        outer_context = self._current_context
        self._current_context = context
        self.on_next(partial, prev_state)
        try:
            yield context
            self.on_complete(context['next_state'], partial)
        except Exception as err:
            context['error'] = err
            self.on_error(err, partial)
            raise
        finally:
            self._current_context = outer_context

    def _prefix(self) -> str:
        if self._current_context:
            return f"[{self._current_context['timestamp']}] "
        return ""

    def on_next(self, partial: Mapping, prev_state: Any) -> None:
        label = describe_partial(partial)
        print(f"{self._prefix()}▶️ set_state {label}: {dict(partial)}")
        print(f"{self._prefix()}🔄 state before {label}: {prev_state}")

    def on_complete(self, next_state: Any, partial: Mapping) -> None:
        print(f"{self._prefix()}✅ state after {describe_partial(partial)}: {next_state}")

    def on_error(self, error: Exception, partial: Mapping) -> None:
        print(f"{self._prefix()}❌ error in {describe_partial(partial)}: {error}")


# ———— PerformanceMonitorMiddleware ————
class PerformanceMonitorMiddleware(BaseMiddleware):
    """
    性能監控中間件，記錄每次 set_state (含 listener 通知) 的處理時間。
    """

    def __init__(self, threshold_ms: float = 100, log_all: bool = False):
        """
        初始化 PerformanceMonitorMiddleware。

        Args:
            threshold_ms: 性能警告閾值，單位為毫秒，預設為 100 毫秒
            log_all: 是否記錄所有更新的性能指標，預設為 False (只記錄超過閾值的)
        """
        self.threshold_ms = threshold_ms
        self.log_all = log_all
        self.metrics: Dict[str, List[float]] = {}

    @contextlib.contextmanager
    def update_context(self, partial: Mapping, prev_state: Any) -> Generator[Dict[str, Any], None, None]:
        context: Dict[str, Any] = {
            'partial': partial,
            'prev_state': prev_state,
            'next_state': None,
            'error': None,
        }
        label = describe_partial(partial)
        self.on_next(partial, prev_state)
        start_time = time.perf_counter()
        try:
            yield context
        except Exception as err:
            context['error'] = err
            self.on_error(err, partial)
            elapsed_ms = (time.perf_counter() - start_time) * 1000
            print(f"❌ set_state {label} failed after {elapsed_ms:.2f}ms: {err}")
            raise
        elapsed_ms = (time.perf_counter() - start_time) * 1000
        self.metrics.setdefault(label, []).append(elapsed_ms)
        if self.log_all or elapsed_ms > self.threshold_ms:
            print(f"⏱️ Performance: set_state {label} took {elapsed_ms:.2f}ms")
            if elapsed_ms > self.threshold_ms:
                print(f"⚠️ Warning: set_state {label} exceeded threshold ({self.threshold_ms}ms)")
        self.on_complete(context['next_state'], partial)

    def get_metrics(self) -> Dict[str, Dict[str, float]]:
        """
        獲取性能指標統計信息，以 partial 的鍵標籤分組。
        """
        result = {}
        for label, times in self.metrics.items():
            if not times:
                continue
            result[label] = {
                'avg': sum(times) / len(times),
                'max': max(times),
                'min': min(times),
                'count': len(times),
            }
        return result
