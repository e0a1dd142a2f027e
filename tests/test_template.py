from __future__ import annotations

from datetime import date
from pathlib import Path

import pytest

from ecs_setup.template import TemplateRenderer, project_context


@pytest.fixture()
def renderer() -> TemplateRenderer:
    return TemplateRenderer()


def test_render_string_substitutes_literal_placeholders(renderer: TemplateRenderer):
    context = project_context("Ada", "Launch", date(2024, 3, 9))
    rendered = renderer.render_string("{{PROJECT_NAME}} by {{AUTHOR_NAME}} on {{DATE}}", context)
    assert rendered == "Launch by Ada on 2024-03-09"


def test_spaced_or_unknown_tokens_are_kept(renderer: TemplateRenderer):
    template = "{{ AUTHOR_NAME }} {{UNKNOWN}}"
    assert renderer.render_string(template, {"AUTHOR_NAME": "Ada"}) == template


def test_values_are_inserted_verbatim(renderer: TemplateRenderer):
    assert renderer.render_string("{{AUTHOR_NAME}}", {"AUTHOR_NAME": "{{DATE}} & <b>"}) == "{{DATE}} & <b>"


def test_render_file_in_place(tmp_path: Path, renderer: TemplateRenderer):
    path = tmp_path / "CLAUDE.md"
    path.write_text("Author: {{AUTHOR_NAME}}\n", encoding="utf-8")

    assert renderer.render_file(path, {"AUTHOR_NAME": "Ada"})
    assert path.read_text(encoding="utf-8") == "Author: Ada\n"
    assert not renderer.render_file(tmp_path / "missing.md", {"AUTHOR_NAME": "Ada"})
