"""Tests for template rendering."""

from __future__ import annotations

from canopy.runtime.util.templates import render_template

CONTEXT = {
    "worktree": {"name": "feature-x", "path": "/tmp/wt", "unique_id": 7},
    "repo": {"slug": "acme/shop"},
    "custom": {"port": 4000},
}


class TestRenderTemplate:
    def test_dotted_lookup(self) -> None:
        assert render_template("cd {{ worktree.path }}", CONTEXT) == "cd /tmp/wt"

    def test_without_spaces(self) -> None:
        assert render_template("{{repo.slug}}", CONTEXT) == "acme/shop"

    def test_numbers_render(self) -> None:
        url = render_template("http://localhost:{{ custom.port }}/", CONTEXT)
        assert url == "http://localhost:4000/"

    def test_arithmetic_on_context(self) -> None:
        assert render_template("{{ 3000 + worktree.unique_id }}", CONTEXT) == "3007"

    def test_missing_key_renders_empty(self) -> None:
        assert render_template("[{{ worktree.branch }}]", CONTEXT) == "[]"

    def test_missing_nested_key_renders_empty(self) -> None:
        assert render_template("[{{ custom.db.host }}]", CONTEXT) == "[]"

    def test_missing_root_renders_empty(self) -> None:
        assert render_template("[{{ nothing.here }}]", {}) == "[]"

    def test_plain_text_unchanged(self) -> None:
        assert render_template("docker compose up -d", CONTEXT) == "docker compose up -d"

    def test_empty_template(self) -> None:
        assert render_template("", CONTEXT) == ""

    def test_no_html_escaping(self) -> None:
        ctx = {"worktree": {"name": "a&b <c>"}}
        assert render_template("{{ worktree.name }}", ctx) == "a&b <c>"

    def test_trailing_newline_preserved(self) -> None:
        assert render_template("{{ repo.slug }}\n", CONTEXT) == "acme/shop\n"

    def test_syntax_error_returns_raw(self) -> None:
        raw = "echo {{ worktree.name"
        assert render_template(raw, CONTEXT) == raw

    def test_render_error_returns_raw(self) -> None:
        raw = "{{ 1 / 0 }}"
        assert render_template(raw, CONTEXT) == raw

    def test_none_context(self) -> None:
        assert render_template("x{{ a }}y", None) == "xy"  # type: ignore[arg-type]


class TestHandlebarsHelpers:
    def test_add_port_offset(self) -> None:
        url = render_template("http://localhost:{{add 9000 worktree.unique_id}}/health", CONTEXT)
        assert url == "http://localhost:9007/health"

    def test_helper_with_spaces(self) -> None:
        assert render_template("{{ add 3000 worktree.unique_id }}", CONTEXT) == "3007"

    def test_other_arithmetic_helpers(self) -> None:
        assert render_template("{{sub custom.port 1}}", CONTEXT) == "3999"
        assert render_template("{{mul worktree.unique_id 10}}", CONTEXT) == "70"
        assert render_template("{{mod custom.port 3}}", CONTEXT) == "1"

    def test_numeric_strings_are_coerced(self) -> None:
        ctx = {"custom": {"base": "8000"}}
        assert render_template("{{add custom.base 5}}", ctx) == "8005"

    def test_missing_operand_counts_as_zero(self) -> None:
        assert render_template("{{add 9000 worktree.missing}}", CONTEXT) == "9000"

    def test_function_call_syntax(self) -> None:
        assert render_template("{{ add(1, worktree.unique_id) }}", CONTEXT) == "8"

    def test_helpers_mixed_with_placeholders(self) -> None:
        raw = "{{ worktree.name }}: http://{{ repo.slug }}:{{add 9000 worktree.unique_id}}"
        assert render_template(raw, CONTEXT) == "feature-x: http://acme/shop:9007"

    def test_failing_helper_returns_raw(self) -> None:
        raw = "{{div 10 0}}"
        assert render_template(raw, CONTEXT) == raw
