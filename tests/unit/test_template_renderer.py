"""Tests for TemplateRenderer — substitution, caching, fingerprints."""

from __future__ import annotations

import pytest

from cpiforge.core.archive import read_files
from cpiforge.core.errors import RenderError, UnresolvedPropertyError
from cpiforge.core.index import ArtifactIndex
from cpiforge.core.property_resolver import PropertyResolver
from cpiforge.core.template_renderer import (
    TemplateRenderer,
    format_value,
    referenced_paths,
    render_text,
)
from cpiforge.models.release import Job, PropertyDefinition


@pytest.fixture
def templates_index(tmp_dir) -> ArtifactIndex:
    return ArtifactIndex(tmp_dir / "templates.json")


@pytest.fixture
def renderer(blob_store, templates_index) -> TemplateRenderer:
    return TemplateRenderer(blob_store, templates_index)


def _resolve(job, overrides=None, network=None):
    return PropertyResolver().resolve(job, overrides, network)


class TestRenderText:
    def test_substitutes_nested_paths(self):
        text = render_text("X=<%= p('a.b') %>", {"a": {"b": "value"}})
        assert text == "X=value"

    def test_fallback_literal(self):
        assert render_text("<%= p('missing', 8080) %>", {}) == "8080"
        assert render_text('<%= p("missing", "dflt") %>', {}) == "dflt"

    def test_unresolved_property(self):
        with pytest.raises(UnresolvedPropertyError) as excinfo:
            render_text("<%= p('nope') %>", {})
        assert excinfo.value.path == "nope"

    def test_format_values(self):
        assert format_value(True) == "true"
        assert format_value(None) == ""
        assert format_value({"b": 1, "a": 2}) == '{"a": 2, "b": 1}'
        assert format_value(3) == "3"

    def test_referenced_paths(self):
        source = "<%= p('a') %> <%=p(\"network.ip\")%> <%= p('b.c', 1) %>"
        assert referenced_paths(source) == ["a", "network.ip", "b.c"]

    def test_malformed_reference(self):
        with pytest.raises(ValueError):
            referenced_paths("<%= p(1) %>")


class TestTemplateRenderer:
    def test_renders_cpi_job(self, renderer, blob_store, cpi_job, cpi_overrides):
        blob_id = renderer.render(cpi_job, _resolve(cpi_job, cpi_overrides))
        files = read_files(blob_store.get(blob_id))
        content = files["bin/cpi"].decode()
        assert 'GLOBAL_PROPERTY="fake_cpi_default_value"' in content
        assert 'JOB_PROPERTY="fake_specified_property_value"' in content
        assert 'IP=""' in content

    def test_missing_property_is_render_error(self, renderer, templates_index, cpi_job):
        with pytest.raises(RenderError) as excinfo:
            renderer.render(cpi_job, _resolve(cpi_job))
        assert excinfo.value.job == "cpi"
        assert excinfo.value.template_file == "bin/cpi"
        assert isinstance(excinfo.value.cause, UnresolvedPropertyError)
        assert len(templates_index) == 0

    def test_cache_hit_skips_rendering(self, renderer, blob_store, templates_index, cpi_job, cpi_overrides):
        events = []
        renderer = TemplateRenderer(
            blob_store, templates_index, reporter=lambda *event: events.append(event)
        )
        properties = _resolve(cpi_job, cpi_overrides)
        first = renderer.render(cpi_job, properties)
        second = renderer.render(cpi_job, properties)
        assert first == second
        assert len(templates_index) == 1
        assert [event for _, _, event in events] == ["started", "done", "cached"]

    def test_override_change_changes_fingerprint(self, renderer, cpi_job, cpi_overrides):
        before = renderer.fingerprint(cpi_job, _resolve(cpi_job, cpi_overrides))
        changed = {"fake_cpi_specified_property": {"second_level": "other"}}
        after = renderer.fingerprint(cpi_job, _resolve(cpi_job, changed))
        assert before != after

    def test_referenced_network_value_changes_fingerprint(self, renderer, cpi_job, cpi_overrides):
        one = renderer.fingerprint(cpi_job, _resolve(cpi_job, cpi_overrides, {"ip": "10.0.0.5"}))
        two = renderer.fingerprint(cpi_job, _resolve(cpi_job, cpi_overrides, {"ip": "10.0.0.6"}))
        assert one != two

    def test_unreferenced_network_value_shares_cache(self, renderer, cpi_job, cpi_overrides):
        one = renderer.fingerprint(
            cpi_job, _resolve(cpi_job, cpi_overrides, {"ip": "", "gateway": "10.0.0.1"})
        )
        two = renderer.fingerprint(
            cpi_job, _resolve(cpi_job, cpi_overrides, {"ip": "", "gateway": "192.168.0.1"})
        )
        assert one == two

    def test_network_shape_changes_fingerprint(self, renderer, cpi_job, cpi_overrides):
        bare = renderer.fingerprint(cpi_job, _resolve(cpi_job, cpi_overrides, {}))
        with_gateway = renderer.fingerprint(
            cpi_job, _resolve(cpi_job, cpi_overrides, {"gateway": "10.0.0.1"})
        )
        assert bare != with_gateway

    def test_render_all_isolates_jobs(self, renderer, templates_index, cpi_job, cpi_overrides):
        other = Job(
            name="registry",
            templates={"config/registry.yml": "port: <%= p('port') %>\n"},
            properties={"port": PropertyDefinition(default=25777)},
        )
        first = renderer.render_all([
            (cpi_job, _resolve(cpi_job, cpi_overrides)),
            (other, _resolve(other)),
        ])
        changed = {"fake_cpi_specified_property": {"second_level": "other"}}
        second = renderer.render_all([
            (cpi_job, _resolve(cpi_job, changed)),
            (other, _resolve(other)),
        ])
        assert first["registry"] == second["registry"]
        assert first["cpi"] != second["cpi"]
        assert len(templates_index) == 3

    def test_render_all_reports_failure(self, renderer, cpi_job):
        with pytest.raises(RenderError):
            renderer.render_all([(cpi_job, _resolve(cpi_job))])
