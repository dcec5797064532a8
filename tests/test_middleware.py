import pytest

from pyobstore import BaseMiddleware, LoggerMiddleware, PerformanceMonitorMiddleware, Store


class RecordingMiddleware(BaseMiddleware):
    def __init__(self, name, log):
        self.name = name
        self.log = log

    def on_next(self, partial, prev_state):
        self.log.append((self.name, "next", dict(partial), prev_state))

    def on_complete(self, next_state, partial):
        self.log.append((self.name, "complete", dict(partial), next_state))

    def on_error(self, error, partial):
        self.log.append((self.name, "error", dict(partial), str(error)))


def test_hooks_wrap_each_accepted_update_in_registration_order():
    log = []
    store = Store({"count": 0})
    store.apply_middleware(RecordingMiddleware("outer", log), RecordingMiddleware("inner", log))
    store.subscribe(lambda new_state, old_state: log.append(("listener", new_state["count"])), "count")

    store.set_state({"count": 1})

    assert log == [
        ("outer", "next", {"count": 1}, {"count": 0}),
        ("inner", "next", {"count": 1}, {"count": 0}),
        ("listener", 1),
        ("inner", "complete", {"count": 1}, {"count": 1}),
        ("outer", "complete", {"count": 1}, {"count": 1}),
    ]


def test_noop_updates_skip_middleware():
    log = []
    store = Store(middleware=[RecordingMiddleware("only", log)])

    store.set_state(None)
    store.set_state({})

    assert log == []


def test_listener_errors_reach_on_error_and_propagate():
    log = []
    store = Store(middleware=[RecordingMiddleware("only", log)])

    def boom(new_state, old_state):
        raise ValueError("bad listener")

    store.subscribe(boom)

    with pytest.raises(ValueError):
        store.set_state({"count": 1})
    assert log[-1] == ("only", "error", {"count": 1}, "bad listener")


def test_middleware_classes_are_instantiated():
    store = Store()
    store.apply_middleware(PerformanceMonitorMiddleware)

    store.set_state({"count": 1})

    assert isinstance(store._middleware[0], PerformanceMonitorMiddleware)
    assert store._middleware[0].get_metrics()["count"]["count"] == 1


def test_function_middleware_factory():
    seen = []

    def audit(store):
        def middleware(next_update):
            def update(partial):
                seen.append(("before", store.get_state()))
                next_update(partial)
                seen.append(("after", store.get_state()))
            return update
        return middleware

    store = Store({"count": 0}, middleware=[audit])
    store.set_state({"count": 1})

    assert seen == [("before", {"count": 0}), ("after", {"count": 1})]


def test_logger_prints_before_and_after_state(capsys):
    store = Store({"count": 0}, middleware=[LoggerMiddleware()])

    store.set_state({"count": 1})

    out = capsys.readouterr().out
    assert "▶️ set_state count: {'count': 1}" in out
    assert "🔄 state before count: {'count': 0}" in out
    assert "✅ state after count: {'count': 1}" in out


def test_logger_prints_errors(capsys):
    store = Store(middleware=[LoggerMiddleware])

    def boom(new_state, old_state):
        raise RuntimeError("listener exploded")

    store.subscribe(boom)
    with pytest.raises(RuntimeError):
        store.set_state({"name": "x"})

    assert "❌ error in name: listener exploded" in capsys.readouterr().out


def test_logger_restores_outer_context_for_nested_updates(capsys):
    logger = LoggerMiddleware()
    store = Store({"count": 0, "name": "a"}, middleware=[logger])

    def rename(new_state, old_state):
        store.set_state({"name": "b"})

    store.subscribe(rename, "count")
    store.set_state({"count": 1})

    out = capsys.readouterr().out
    assert out.index("✅ state after name") < out.index("✅ state after count")
    assert logger._current_context is None


def test_performance_monitor_warns_over_threshold(capsys):
    monitor = PerformanceMonitorMiddleware(threshold_ms=-1)
    store = Store(middleware=[monitor])

    store.set_state({"count": 1, "name": "x"})
    store.set_state({"count": 2, "name": "y"})

    out = capsys.readouterr().out
    assert "⏱️ Performance: set_state count,name took" in out
    assert "⚠️ Warning: set_state count,name exceeded threshold" in out
    metrics = monitor.get_metrics()["count,name"]
    assert metrics["count"] == 2
    assert metrics["min"] <= metrics["avg"] <= metrics["max"]


def test_performance_monitor_is_quiet_under_threshold(capsys):
    monitor = PerformanceMonitorMiddleware(threshold_ms=10_000)
    store = Store(middleware=[monitor])

    store.set_state({"count": 1})

    assert capsys.readouterr().out == ""
    assert monitor.get_metrics()["count"]["count"] == 1
