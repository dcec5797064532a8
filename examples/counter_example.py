from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import json
from typing import List, Optional
from typing_extensions import TypedDict

from pydantic import BaseModel
from reactivex import operators as ops

from pyobstore import create_store, LoggerMiddleware, PerformanceMonitorMiddleware


# ====== 1. 定義狀態模型 ======
class CounterState(TypedDict):
    count: int
    error: Optional[str]
    history: List[int]
    settings: dict


class CounterSettings(BaseModel):
    step: int = 1
    label: str = "counter"


counter_initial_state = CounterState(
    count=0, error=None, history=[], settings=CounterSettings().model_dump()
)

# ====== 2. 建立 Store ======
perf = PerformanceMonitorMiddleware(threshold_ms=50)
store = create_store(
    counter_initial_state,
    {"session": "demo"},
    middleware=[LoggerMiddleware(), perf],
)

if __name__ == "__main__":
    # 只關心 count 的變化
    store.subscribe(
        lambda new, old: print(f"計數變化: {old['count']} -> {new['count']}"),
        "count",
    )
    # 任何更新都通知
    store.subscribe(lambda new, old: print(f"狀態更新，store={store.get_id()}"))
    # count 或 error 變化時只通知一次
    unsubscribe_watch = store.subscribe(
        lambda new, old: print("count/error 至少一個變化"),
        lambda key: key in ("count", "error"),
    )

    # 以 Observable 觀察 settings
    store.observe("settings").pipe(
        ops.map(lambda pair: pair[1]["settings"]),
    ).subscribe(
        on_next=lambda settings: print(
            f"設定更新: {json.dumps(settings, ensure_ascii=False)}"
        )
    )

    print("\n==== 開始測試基本操作 ====")
    store.set_state({"count": 1, "history": [1]})
    store.set_state({"count": 2, "error": "too fast", "history": [2]})
    store.set_state({"settings": {"step": 5}})

    unsubscribe_watch()
    store.set_state({"count": 3})

    # data 通道不會觸發任何 listener
    store.set_data({"last_user": "alice"})

    print("\n==== 最終狀態 ====")
    print(store.get_state())
    print(store.get_data())
    print(perf.get_metrics())
