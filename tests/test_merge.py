"""Tests for slashkit.core.merge."""

from slashkit.core.merge import deep_merge, merge_layers


class TestDeepMerge:
    def test_nested_dicts_merge(self):
        result = deep_merge({"a": {"x": 1, "y": 2}}, {"a": {"y": 3, "z": 4}})
        assert result == {"a": {"x": 1, "y": 3, "z": 4}}

    def test_lists_replace_wholesale(self):
        result = deep_merge({"tools": ["a", "b"]}, {"tools": ["c"]})
        assert result == {"tools": ["c"]}

    def test_scalar_from_source_wins(self):
        assert deep_merge({"v": 1}, {"v": 2}) == {"v": 2}

    def test_dict_replaces_scalar(self):
        assert deep_merge({"v": 1}, {"v": {"k": 2}}) == {"v": {"k": 2}}

    def test_inputs_not_mutated(self):
        target = {"a": {"x": [1]}}
        source = {"a": {"y": 2}}
        result = deep_merge(target, source)
        result["a"]["x"].append(2)
        assert target == {"a": {"x": [1]}}
        assert source == {"a": {"y": 2}}

    def test_none_layers(self):
        assert deep_merge(None, {"a": 1}) == {"a": 1}
        assert deep_merge({"a": 1}, None) == {"a": 1}
        assert deep_merge(None, None) == {}


class TestMergeLayers:
    def test_later_layers_win(self):
        defaults = {"API_URL": "https://default", "TIMEOUT": "10"}
        user = {"TIMEOUT": "30"}
        session = {"API_URL": "https://session"}
        assert merge_layers(defaults, user, session) == {
            "API_URL": "https://session",
            "TIMEOUT": "30",
        }

    def test_skips_empty(self):
        assert merge_layers({}, None, {"a": 1}) == {"a": 1}


class TestIdentity:
    def test_merge_with_empty_is_structural_copy(self):
        a = {"a": {"b": [1, 2]}, "c": 3}
        merged = deep_merge(a, {})
        assert merged == a
        assert merged["a"] is not a["a"]
        assert merged["a"]["b"] is not a["a"]["b"]
