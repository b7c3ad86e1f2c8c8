"""Tests for PropertyResolver and the tree helpers."""

from __future__ import annotations

import logging

import pytest

from cpiforge.core.property_resolver import (
    NETWORK_ROOT,
    PropertyResolver,
    deep_merge,
    expand_dotted,
    lookup_path,
)
from cpiforge.models.release import Job, PropertyDefinition


@pytest.fixture
def resolver() -> PropertyResolver:
    return PropertyResolver()


class TestTreeHelpers:
    def test_expand_dotted(self):
        assert expand_dotted({"a.b.c": 1, "a.d": 2, "e": 3}) == {
            "a": {"b": {"c": 1}, "d": 2},
            "e": 3,
        }

    def test_expand_nested_dotted_keys(self):
        assert expand_dotted({"a": {"b.c": 1}}) == {"a": {"b": {"c": 1}}}

    def test_value_and_subtree_conflict_is_reported(self, caplog):
        with caplog.at_level(logging.WARNING, logger="cpiforge.core.property_resolver"):
            tree = expand_dotted({"a": 5, "a.b": 1})
        assert tree == {"a": {"b": 1}}
        assert "'a'" in caplog.text

    def test_subtree_replaced_by_value_is_reported(self, caplog):
        with caplog.at_level(logging.WARNING, logger="cpiforge.core.property_resolver"):
            tree = expand_dotted({"a": {"b": {"c": 1}}, "a.b": 5})
        assert tree == {"a": {"b": 5}}
        assert "'a.b'" in caplog.text

    def test_no_warning_for_compatible_keys(self, caplog):
        with caplog.at_level(logging.WARNING, logger="cpiforge.core.property_resolver"):
            expand_dotted({"a": {"c": 2}, "a.b": 1})
        assert caplog.records == []

    def test_deep_merge_leaf_precedence(self):
        base = {"a": {"b": 1, "c": 2}, "d": 4}
        merged = deep_merge(base, {"a": {"b": 10}})
        assert merged == {"a": {"b": 10, "c": 2}, "d": 4}
        assert base == {"a": {"b": 1, "c": 2}, "d": 4}

    def test_lookup_path(self):
        tree = {"a": {"b": {"c": "x"}}}
        assert lookup_path(tree, "a.b.c") == "x"
        assert lookup_path(tree, "a.missing", None) is None
        with pytest.raises(KeyError):
            lookup_path(tree, "a.b.c.d")


class TestPropertyResolver:
    def test_defaults_and_overrides(self, resolver, cpi_job, cpi_overrides):
        tree = resolver.resolve(cpi_job, cpi_overrides, {})
        assert tree["fake_cpi_default_property"] == "fake_cpi_default_value"
        assert tree["fake_cpi_specified_property"]["second_level"] == "fake_specified_property_value"

    def test_override_beats_default(self, resolver, cpi_job):
        tree = resolver.resolve(cpi_job, {"fake_cpi_default_property": "custom"})
        assert tree["fake_cpi_default_property"] == "custom"

    def test_missing_overrides_use_defaults(self, resolver, cpi_job):
        tree = resolver.resolve(cpi_job, None, None)
        assert tree["fake_cpi_default_property"] == "fake_cpi_default_value"
        assert "fake_cpi_specified_property" not in tree

    def test_network_placeholders_default_to_empty(self, resolver, cpi_job):
        tree = resolver.resolve(cpi_job, {}, {})
        assert tree[NETWORK_ROOT] == {"ip": ""}

    def test_network_values_injected(self, resolver, cpi_job):
        tree = resolver.resolve(cpi_job, {}, {"ip": "10.0.0.5", "gateway": "10.0.0.1"})
        assert tree[NETWORK_ROOT] == {"ip": "10.0.0.5", "gateway": "10.0.0.1"}

    def test_network_cannot_be_shadowed(self, resolver):
        job = Job(
            name="cpi",
            properties={"network.ip": PropertyDefinition(default="1.1.1.1")},
            network_placeholders=("ip",),
        )
        tree = resolver.resolve(job, {"network": {"ip": "2.2.2.2", "extra": 1}}, {})
        assert tree[NETWORK_ROOT] == {"ip": ""}

    def test_unknown_manifest_paths_pass_through(self, resolver, cpi_job):
        tree = resolver.resolve(cpi_job, {"future": {"setting": True}})
        assert tree["future"] == {"setting": True}

    def test_resolution_is_deterministic(self, resolver, cpi_job, cpi_overrides):
        first = resolver.resolve(cpi_job, cpi_overrides, {"ip": "10.0.0.5"})
        second = resolver.resolve(cpi_job, dict(reversed(list(cpi_overrides.items()))), {"ip": "10.0.0.5"})
        assert first == second
