import inspect
from typing import Any, Callable, Dict, Generic, Iterable, List, Mapping, Optional

import reactivex
from reactivex import Observable
from reactivex.disposable import Disposable

from .errors import ListenerError, StoreError
from .id_utils import next_id
from .merge_utils import ARRAY_MERGE_STRATEGIES, deep_merge_all, is_changed, shallow_merge, to_plain
from .types import ALL, PREDICATES, D, Listener, PredicateTarget, S, to_target


class _Registration:
    """一次訂閱的登記項目；同一 listener 多次訂閱會產生多個獨立項目。"""
    __slots__ = ("listener", "predicate")

    def __init__(self, listener: Listener, predicate: Optional[Callable[[Any], bool]] = None):
        self.listener = listener
        self.predicate = predicate


def _discard(
    registrations: List[_Registration],
    registration: _Registration,
    owner: Optional[Dict[Any, List[_Registration]]] = None,
    key: Any = None,
) -> None:
    # 以身分比對移除，找不到時不做任何事
    for index, item in enumerate(registrations):
        if item is registration:
            del registrations[index]
            break
    # 最後一筆登記移除後清掉該鍵，避免映射無限增長
    if owner is not None and not registrations and owner.get(key) is registrations:
        del owner[key]


class Subscription(Disposable):
    """
    subscribe 返回的取消訂閱句柄。

    句柄持有所屬的登記列表與自己的登記項目，呼叫、unsubscribe() 或 dispose()
    都只會移除這一筆登記；重複呼叫是安全的空操作。
    也可以作為 reactivex 的 Disposable 或上下文管理器使用。
    """

    def __init__(
        self,
        registrations: List[_Registration],
        registration: _Registration,
        owner: Optional[Dict[Any, List[_Registration]]] = None,
        key: Any = None,
    ):
        super().__init__(lambda: _discard(registrations, registration, owner, key))

    def __call__(self) -> None:
        self.dispose()

    def unsubscribe(self) -> None:
        self.dispose()

    def __enter__(self) -> "Subscription":
        return self

    @property
    def closed(self) -> bool:
        return self.is_disposed


class Store(Generic[S, D]):
    """
    可觀察的記憶體內狀態容器。

    state 以深度合併方式更新，並依欄位鍵、判斷函數或 ALL 通知 listener；
    data 是獨立的淺層合併通道，不會觸發任何 listener。
    所有通知都在 set_state 呼叫內同步完成。
    """

    def __init__(
        self,
        initial_state: Optional[S] = None,
        initial_data: Optional[D] = None,
        *,
        array_merge: str = "concat",
        id_factory: Callable[[], str] = next_id,
        middleware: Iterable[Any] = (),
    ):
        """
        初始化 Store 實例。

        Args:
            initial_state: 可選的初始狀態 (映射或 Pydantic 模型)
            initial_data: 可選的初始資料
            array_merge: 列表的深度合併策略，"concat" (串接) 或 "replace" (取代)
            id_factory: 產生識別碼的函數，預設為 next_id
            middleware: 要套用在 set_state 外層的中介軟體

        Raises:
            StoreError: 合併策略未知或 id_factory 不可呼叫時
        """
        if array_merge not in ARRAY_MERGE_STRATEGIES:
            raise StoreError(
                f"unknown array merge strategy, expected one of {ARRAY_MERGE_STRATEGIES}",
                operation="construct",
                array_merge=array_merge,
            )
        if not callable(id_factory):
            raise StoreError("id_factory must be callable", operation="construct", id_factory=id_factory)

        self._id = id_factory()
        self._array_merge = array_merge
        # Pydantic 模型在建構時轉為字典，之後的狀態一律是映射
        self._state = to_plain(initial_state)
        self._data = initial_data
        # 欄位鍵 (或 ALL) -> 依登記順序排列的 listener
        self._listeners: Dict[Any, List[_Registration]] = {}
        self._predicate_listeners: List[_Registration] = []
        self._middleware: List[Any] = []
        self._update = self._apply_middleware_chain()
        if middleware:
            self.apply_middleware(*middleware)

    # ———— 識別 ————
    def get_id(self) -> str:
        """返回建構時產生的識別碼，在 Store 生命週期內不變。"""
        return self._id

    @property
    def id(self) -> str:
        return self._id

    # ———— 狀態 ————
    def get_state(self) -> Optional[S]:
        """返回目前的狀態；從未設定時為 None。"""
        return self._state

    @property
    def state(self) -> Optional[S]:
        return self._state

    def set_state(self, partial: Any) -> None:
        """
        將 partial 深度合併到狀態，並通知相關的 listener。

        None 或空的 partial 是空操作。Pydantic 模型只取呼叫者設定過的欄位。

        通知順序:
            1. 每個變更的鍵，依登記順序呼叫該鍵的 listener
            2. 同時以該鍵評估判斷函數 listener，符合者排入佇列 (同一 listener 只排一次)
            3. 呼叫 ALL listener (只要 partial 被接受就會觸發，即使沒有鍵變更)
            4. 依排入順序呼叫佇列中的判斷函數 listener

        每個 listener 接收 (new_state, old_state)。

        Args:
            partial: 狀態欄位的子集合
        """
        partial = to_plain(partial, exclude_unset=True)
        if not partial:
            return
        self._update(partial)

    def _update_core(self, partial: Mapping) -> None:
        old_state = self._state
        new_state = deep_merge_all([old_state or {}, partial], array_merge=self._array_merge)
        self._state = new_state

        # 在任何 listener 執行前取快照，listener 內的訂閱/取消只影響之後的更新
        keyed = {k: list(v) for k, v in self._listeners.items()}
        predicates = list(self._predicate_listeners)

        queued: List[Listener] = []
        for key, value in partial.items():
            if old_state is not None and key in old_state and not is_changed(old_state[key], value):
                continue
            for registration in keyed.get(key, ()):
                registration.listener(new_state, old_state)
            for registration in predicates:
                if registration.predicate(key) and not any(
                    listener is registration.listener for listener in queued
                ):
                    queued.append(registration.listener)

        for registration in keyed.get(ALL, ()):
            registration.listener(new_state, old_state)

        for listener in queued:
            listener(new_state, old_state)

    # ———— 訂閱 ————
    def subscribe(self, listener: Listener, target: Any = None) -> Subscription:
        """
        訂閱狀態變更。

        Args:
            listener: 接收 (new_state, old_state) 的函數
            target: None 表示所有更新；欄位鍵只在該鍵變更時通知；
                判斷函數 (key) -> bool 在任一符合的鍵變更時通知一次；
                也可以傳入 by_key() / where() 建立的訂閱目標

        Returns:
            Subscription: 取消這一筆訂閱的句柄

        Raises:
            ListenerError: listener 不可呼叫或訂閱目標無效時
        """
        if not callable(listener):
            raise ListenerError("listener must be callable", listener=listener)

        resolved = to_target(target)
        if isinstance(resolved, PredicateTarget):
            registration = _Registration(listener, resolved.predicate)
            self._predicate_listeners.append(registration)
            return Subscription(self._predicate_listeners, registration)

        registrations = self._listeners.setdefault(resolved.key, [])
        registration = _Registration(listener)
        registrations.append(registration)
        return Subscription(registrations, registration, self._listeners, resolved.key)

    def observe(self, target: Any = None) -> Observable:
        """
        以 Observable 的形式訂閱狀態變更。

        Args:
            target: 與 subscribe 相同的訂閱目標

        Returns:
            一個可觀察對象，發送 (old_state, new_state) 元組；
            取消 rx 訂閱時同時取消底層的 listener。
        """
        resolved = to_target(target)

        def on_subscribe(observer, scheduler=None):
            return self.subscribe(
                lambda new_state, old_state: observer.on_next((old_state, new_state)),
                resolved,
            )

        return reactivex.create(on_subscribe)

    def listener_count(self, target: Any = None) -> int:
        """
        返回目前有效的訂閱數量。

        Args:
            target: None (ALL)、欄位鍵、PREDICATES (全部判斷函數 listener)，
                或特定判斷函數 (只計算以該函數登記的)
        """
        if target is PREDICATES:
            return len(self._predicate_listeners)
        resolved = to_target(target)
        if isinstance(resolved, PredicateTarget):
            return sum(1 for r in self._predicate_listeners if r.predicate is resolved.predicate)
        return len(self._listeners.get(resolved.key, ()))

    # ———— 資料 ————
    def get_data(self) -> Optional[D]:
        """返回目前的資料；從未設定時為 None。"""
        return self._data

    @property
    def data(self) -> Optional[D]:
        return self._data

    def set_data(self, partial: Any) -> None:
        """
        將 partial 的頂層鍵淺層合併到資料，不觸發任何 listener。

        Args:
            partial: 資料欄位的子集合
        """
        self._data = shallow_merge(self._data, to_plain(partial, exclude_unset=True))

    # ———— 中介軟體 ————
    def _apply_middleware_chain(self) -> Callable[[Mapping], None]:
        """
        構建中介軟體鏈，將中介軟體按順序包裹在核心更新方法外層。

        Returns:
            包裹後的更新方法。
        """
        update = self._update_core
        for mw in reversed(self._middleware):
            if hasattr(mw, "update_context"):
                update = self._wrap_obj_middleware(mw, update)
            else:
                # 函數型中介：mw(store)(next_update) -> update
                update = mw(self)(update)
        return update

    def _wrap_obj_middleware(self, mw: Any, next_update: Callable[[Mapping], None]) -> Callable[[Mapping], None]:
        def update(partial: Mapping) -> None:
            with mw.update_context(partial, self._state) as context:
                next_update(partial)
                context['next_state'] = self._state

        return update

    def apply_middleware(self, *middlewares: Any) -> None:
        """
        一次註冊多個中介軟體，並重建更新鏈。先註冊的位於最外層。

        Args:
            *middlewares: 要註冊的中介軟體，可以是類或實例。
        """
        for m in middlewares:
            inst = m() if inspect.isclass(m) else m
            self._middleware.append(inst)
        self._update = self._apply_middleware_chain()


def create_store(
    initial_state: Optional[S] = None,
    initial_data: Optional[D] = None,
    **options: Any,
) -> Store[S, D]:
    """
    創建一個新的 Store 實例。

    Args:
        initial_state: 可選的初始狀態
        initial_data: 可選的初始資料
        **options: 轉交給 Store 的設定 (array_merge、id_factory、middleware)

    Returns:
        Store: 新創建的 Store 實例。
    """
    return Store(initial_state, initial_data, **options)
