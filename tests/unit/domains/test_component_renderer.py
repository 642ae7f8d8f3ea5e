"""Unit tests for the ComponentRenderer domain service.

Tests cover: props escaping inside the JSON script blob, the emitted
Content-Security-Policy, fallback handling, full-page generation and the
Jinja2 templates behind the markup.
"""

__test__ = True

import json
import re

import pytest
from jinja2 import DictLoader, Environment

from ixpserver.domains.component import (
    ComponentRegistry,
    ComponentRenderer,
    RenderRequest,
    create_template_environment,
    script_safe_json,
)
from ixpserver.domains.shared.errors import ComponentNotFoundError, RenderError
from tests.helpers import make_component


def config_blob(artifact):
    """Parse the JSON config script out of an artifact's markup."""
    match = re.search(
        r'<script type="application/json" id="ixp-config-[^"]+">(.*?)</script>',
        artifact.html,
        re.S,
    )
    assert match, "config script not found"
    return json.loads(match.group(1))


@pytest.fixture
def renderer(component_registry):
    return ComponentRenderer(component_registry)


# =============================================================================
# Escaping
# =============================================================================


class TestScriptSafeJson:
    def test_escapes_markup_characters(self):
        encoded = script_safe_json({"x": "</script><b>&"})
        assert "<" not in encoded
        assert ">" not in encoded
        assert "&" not in encoded
        assert json.loads(encoded) == {"x": "</script><b>&"}

    def test_escapes_line_separators(self):
        encoded = script_safe_json({"x": "a\u2028b\u2029c"})
        assert "\\u2028" in encoded
        assert "\\u2029" in encoded

    def test_rejects_nan(self):
        with pytest.raises(ValueError):
            script_safe_json({"x": float("nan")})


class TestRenderEscaping:
    """Hostile props must never terminate the config script."""

    def test_script_close_in_props(self, renderer):
        artifact = renderer.render(RenderRequest("Greeter", {"name": "</script><script>alert(1)</script>"}))

        assert "alert(1)</script>" not in artifact.html
        assert artifact.html.count("</script>") == 2
        assert config_blob(artifact)["props"]["name"] == "</script><script>alert(1)</script>"

    def test_html_comment_and_ampersand(self, renderer):
        artifact = renderer.render(RenderRequest("Greeter", {"name": "<!-- & -->"}))
        assert "<!--" not in artifact.html
        assert config_blob(artifact)["props"]["name"] == "<!-- & -->"

    def test_fallback_message_is_escaped(self):
        registry = ComponentRegistry()
        registry.add(make_component(fallback={"message": "<img src=x onerror=alert(1)>"}))
        artifact = ComponentRenderer(registry).render(RenderRequest("Greeter"))
        assert "<img" not in artifact.html
        assert "&lt;img src=x onerror=alert(1)&gt;" in artifact.html


# =============================================================================
# Artifact contents
# =============================================================================


class TestRender:
    def test_artifact_references_bundle(self, renderer):
        artifact = renderer.render(RenderRequest("Greeter", {"name": "Ada"}, intent_id="greet"))

        assert artifact.bundle_url == "https://cdn/x.js"
        assert artifact.export_name == "Greeter"
        assert artifact.props == {"name": "Ada"}
        assert artifact.context.intent_id == "greet"
        assert artifact.context.component_id.startswith("greeter-")
        assert artifact.performance.bundle_size == "12KB"
        assert artifact.warnings == ()

        blob = config_blob(artifact)
        assert blob["bundleUrl"] == "https://cdn/x.js"
        assert blob["exportName"] == "Greeter"
        assert blob["framework"] == "react"
        assert blob["fallback"] is None

    def test_markup_has_loading_and_error_states(self, renderer):
        artifact = renderer.render(RenderRequest("Greeter"))
        cid = artifact.context.component_id
        assert f'id="ixp-component-{cid}"' in artifact.html
        assert 'role="status"' in artifact.html
        assert f'<template id="ixp-fallback-{cid}">' in artifact.html
        assert "This component failed to load." in artifact.html

    def test_bootstrap_carries_nonce(self, renderer):
        artifact = renderer.render(RenderRequest("Greeter"))
        assert f'<script type="module" nonce="{artifact.nonce}">' in artifact.html

    def test_ids_and_nonces_are_unique(self, renderer):
        first = renderer.render(RenderRequest("Greeter"))
        second = renderer.render(RenderRequest("Greeter"))
        assert first.context.component_id != second.context.component_id
        assert first.nonce != second.nonce

    def test_mapping_request(self, renderer):
        artifact = renderer.render({"componentName": "Greeter", "props": {"name": "Ada"}, "apiBase": "/api"})
        assert artifact.context.api_base == "/api"

    def test_mapping_request_requires_name(self, renderer):
        with pytest.raises(RenderError, match="componentName"):
            renderer.render({"props": {}})

    def test_unknown_component(self, renderer):
        with pytest.raises(ComponentNotFoundError):
            renderer.render(RenderRequest("Ghost"))

    def test_invalid_props_rejected(self, renderer):
        with pytest.raises(RenderError) as exc_info:
            renderer.render(RenderRequest("Greeter", {"name": 5}))
        assert exc_info.value.details["validationErrors"][0]["path"] == "name"

    def test_prop_validation_can_be_disabled(self, component_registry):
        renderer = ComponentRenderer(component_registry, validate_props=False)
        assert renderer.render(RenderRequest("Greeter", {"name": 5})).props == {"name": 5}

    def test_unserialisable_props(self, component_registry):
        renderer = ComponentRenderer(component_registry, validate_props=False)
        with pytest.raises(RenderError, match="not JSON serialisable"):
            renderer.render(RenderRequest("Greeter", {"when": object()}))

    def test_deprecated_component_warns(self):
        registry = ComponentRegistry()
        registry.add(make_component(deprecated=True))
        artifact = ComponentRenderer(registry).render(RenderRequest("Greeter"))
        assert artifact.warnings == ("Component 'Greeter' is deprecated",)

    def test_to_dict(self, renderer):
        data = renderer.render(RenderRequest("Greeter")).to_dict()
        assert set(data) == {
            "html", "bundleUrl", "exportName", "props", "context", "csp", "performance", "warnings",
        }


# =============================================================================
# Content-Security-Policy
# =============================================================================


class TestCsp:
    def test_default_policy(self, renderer):
        artifact = renderer.render(RenderRequest("Greeter"))
        directives = artifact.csp.split("; ")

        assert "default-src 'self'" in directives
        assert f"script-src 'self' 'nonce-{artifact.nonce}' https://cdn" in directives
        assert "connect-src 'self' https://cdn" in directives
        assert "object-src 'none'" in directives
        assert "frame-ancestors *" in directives
        assert "'unsafe-eval'" not in artifact.csp

    def test_allow_eval(self):
        registry = ComponentRegistry()
        registry.add(make_component(securityPolicy={"allowEval": True}))
        artifact = ComponentRenderer(registry).render(RenderRequest("Greeter"))
        assert "'unsafe-eval'" in artifact.csp

    def test_frame_ancestors_lists_origins(self):
        registry = ComponentRegistry()
        registry.add(make_component(allowedOrigins=["https://a.com", "https://b.com"]))
        artifact = ComponentRenderer(registry).render(RenderRequest("Greeter"))
        assert "frame-ancestors https://a.com https://b.com" in artifact.csp
        script_src = next(d for d in artifact.csp.split("; ") if d.startswith("script-src"))
        assert script_src.endswith("https://cdn https://a.com https://b.com")

    def test_wildcard_never_widens_script_src(self, renderer):
        artifact = renderer.render(RenderRequest("Greeter"))
        script_src = next(d for d in artifact.csp.split("; ") if d.startswith("script-src"))
        assert "*" not in script_src

    def test_fallback_origin_admitted(self):
        registry = ComponentRegistry()
        registry.add(make_component(fallback={"component": "Plain"}))
        registry.add(make_component(name="Plain", remoteUrl="https://backup.example/p.js"))
        artifact = ComponentRenderer(registry).render(RenderRequest("Greeter"))

        assert "https://backup.example" in artifact.csp
        assert config_blob(artifact)["fallback"] == {
            "bundleUrl": "https://backup.example/p.js",
            "exportName": "Greeter",
        }

    def test_unregistered_fallback_warns(self):
        registry = ComponentRegistry()
        registry.add(make_component(fallback="Missing"))
        artifact = ComponentRenderer(registry).render(RenderRequest("Greeter"))
        assert "Fallback component 'Missing' for 'Greeter' is not registered" in artifact.warnings
        assert config_blob(artifact)["fallback"] is None


# =============================================================================
# Page generation
# =============================================================================


class TestGeneratePage:
    def test_page_wraps_artifact(self, renderer):
        artifact = renderer.render(RenderRequest("Greeter"))
        page = renderer.generate_page(artifact, title="Hello", sdk_url="/static/sdk.js")

        assert page.startswith("<!DOCTYPE html>")
        assert "<title>Hello</title>" in page
        assert artifact.html in page
        assert f'<script src="/static/sdk.js" nonce="{artifact.nonce}"></script>' in page

    def test_title_and_meta_escaped(self, renderer):
        artifact = renderer.render(RenderRequest("Greeter"))
        page = renderer.generate_page(
            artifact,
            title="</title><script>x</script>",
            meta={"description": '"><script>y</script>'},
        )
        assert "<title>&lt;/title&gt;&lt;script&gt;x&lt;/script&gt;</title>" in page
        assert "<script>y</script>" not in page

    def test_sdk_script_only_when_url_given(self, renderer):
        artifact = renderer.render(RenderRequest("Greeter"))
        page = renderer.generate_page(artifact)
        assert "<script src=" not in page
        assert page.count("<script") == 2

    def test_meta_csp_omits_frame_ancestors(self, renderer):
        artifact = renderer.render(RenderRequest("Greeter"))
        page = renderer.generate_page(artifact)
        meta = re.search(r'http-equiv="Content-Security-Policy" content="([^"]*)"', page).group(1)
        assert "frame-ancestors" not in meta
        assert "script-src" in meta


# =============================================================================
# Templates
# =============================================================================


class TestTemplates:
    def test_html_templates_autoescape(self):
        env = create_template_environment()
        assert env.autoescape("component.html") is True
        assert env.autoescape("page.html") is True
        assert env.autoescape("bootstrap.js") is False

    def test_markup_comes_from_environment(self, component_registry):
        env = Environment(
            loader=DictLoader({
                "component.html": '<x-ixp id="{{ component_id }}">{{ config_json|safe }}</x-ixp>',
            }),
            autoescape=True,
        )
        renderer = ComponentRenderer(component_registry, templates=env)
        artifact = renderer.render(RenderRequest("Greeter", {"name": "<b>"}))

        assert artifact.html.startswith(f'<x-ixp id="{artifact.context.component_id}">')
        assert "<b>" not in artifact.html
        assert config_blob(artifact)["props"] == {"name": "<b>"}
