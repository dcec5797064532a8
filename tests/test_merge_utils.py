import pytest
from immutables import Map
from pydantic import BaseModel

from pyobstore import MergeError, deep_merge, deep_merge_all, shallow_merge
from pyobstore.merge_utils import clone, is_changed, to_plain


def test_nested_mappings_merge_key_by_key():
    merged = deep_merge({"a": {"x": 1, "z": {"k": 1}}}, {"a": {"y": 2, "z": {"j": 2}}})

    assert merged == {"a": {"x": 1, "y": 2, "z": {"k": 1, "j": 2}}}


def test_scalar_in_source_overrides_mapping_and_vice_versa():
    assert deep_merge({"a": {"x": 1}}, {"a": 5}) == {"a": 5}
    assert deep_merge({"a": 5}, {"a": {"x": 1}}) == {"a": {"x": 1}}


def test_list_strategies():
    assert deep_merge({"l": [1, 2]}, {"l": [3]}) == {"l": [1, 2, 3]}
    assert deep_merge({"l": [1, 2]}, {"l": [3]}, array_merge="replace") == {"l": [3]}
    # 型別不同時直接取代
    assert deep_merge({"l": [1]}, {"l": {"x": 1}}) == {"l": {"x": 1}}


def test_tuples_are_leaf_values():
    assert deep_merge({"t": (1,)}, {"t": (2,)}) == {"t": (2,)}


def test_inputs_are_not_mutated_and_results_are_copies():
    target = {"a": {"x": [1]}}
    source = {"a": {"y": {"z": 1}}}

    merged = deep_merge_all([target, source])
    merged["a"]["x"].append(2)
    merged["a"]["y"]["z"] = 99

    assert target == {"a": {"x": [1]}}
    assert source == {"a": {"y": {"z": 1}}}


def test_leaf_objects_keep_their_identity():
    marker = object()

    merged = deep_merge_all([{}, {"obj": marker}])

    assert merged["obj"] is marker


def test_deep_merge_all_later_values_win():
    assert deep_merge_all([{"a": 1}, {"a": 2}, {"a": 3, "b": 1}]) == {"a": 3, "b": 1}
    assert deep_merge_all([]) == {}


def test_deep_merge_all_rejects_unknown_strategy():
    with pytest.raises(MergeError):
        deep_merge_all([{}], array_merge="zip")


def test_immutable_maps_become_plain_dicts():
    merged = deep_merge_all([Map({"a": Map({"x": 1})}), {"a": {"y": 2}}])

    assert merged == {"a": {"x": 1, "y": 2}}
    assert type(merged["a"]) is dict
    assert clone(Map({"k": [Map({"n": 1})]})) == {"k": [{"n": 1}]}


def test_shallow_merge_replaces_nested_values():
    assert shallow_merge({"a": {"x": 1}, "b": 1}, {"a": {"y": 2}}) == {"a": {"y": 2}, "b": 1}
    assert shallow_merge(None, {"a": 1}) == {"a": 1}
    assert shallow_merge({"a": 1}, None) == {"a": 1}


class Settings(BaseModel):
    theme: str = "dark"
    size: int = 12


def test_to_plain():
    assert to_plain(None) is None
    mapping = {"a": 1}
    assert to_plain(mapping) is mapping
    assert to_plain(Settings(size=14), exclude_unset=True) == {"size": 14}
    assert to_plain(Settings(size=14)) == {"theme": "dark", "size": 14}
    with pytest.raises(MergeError):
        to_plain([("a", 1)])


def test_is_changed():
    shared = {"a": 1}
    assert not is_changed(shared, shared)
    assert is_changed({"a": 1}, {"a": 1})
    assert not is_changed(1, 1)
    assert is_changed(1, True)
    assert is_changed(1, 2)
    assert not is_changed(None, None)
    assert is_changed(None, 0)
    assert is_changed(float("nan"), float("nan"))


def test_ints_and_floats_compare_by_numeric_value():
    assert not is_changed(1, 1.0)
    assert not is_changed(2.0, 2)
    assert is_changed(1, 1.5)
    assert is_changed(1.0, True)
    assert is_changed(True, 1)
