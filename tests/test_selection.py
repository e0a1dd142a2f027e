from __future__ import annotations

from pathlib import Path

import pytest

from ecs_setup.catalog import CatalogSnapshot, LanguageDescriptor, ModuleDescriptor
from ecs_setup.errors import CatalogEmpty, UnknownSelection
from ecs_setup.host.base import RepoInfo
from ecs_setup.preferences import Preferences
from ecs_setup.selection import (
    CUSTOM_MODULE,
    Provenance,
    Selection,
    SelectionRequest,
    choose_repository,
    describe,
    resolve_language,
    resolve_module,
)
from tests.fixtures.fakes import output_of, scripted_console


def _language(identifier: str, *aliases: str) -> LanguageDescriptor:
    return LanguageDescriptor(
        identifier=identifier,
        name=identifier.upper(),
        code=identifier,
        aliases=list(aliases),
        path=Path("catalog") / identifier,
    )


def _module(identifier: str, *languages: LanguageDescriptor) -> ModuleDescriptor:
    return ModuleDescriptor(
        identifier=identifier,
        name=identifier.title(),
        path=Path("catalog") / identifier,
        languages=list(languages),
    )


WRITER = _module("writer", _language("en", "english"))
MARKETING = _module("marketing", _language("en", "english"), _language("de", "german", "deutsch"))
CATALOG = CatalogSnapshot(root=Path("catalog"), modules=[WRITER, MARKETING])


def test_explicit_module_beats_cache_and_replaces_it():
    resolution = resolve_module(
        SelectionRequest("marketing", interactive=False),
        CATALOG,
        Preferences(module="writer"),
        scripted_console(),
    )

    assert resolution.selection == Selection("module", "marketing", Provenance.EXPLICIT)
    assert resolution.preferences.module == "marketing"


def test_unknown_explicit_module_lists_options():
    with pytest.raises(UnknownSelection) as excinfo:
        resolve_module(SelectionRequest("poetry"), CATALOG, Preferences(), scripted_console())

    assert str(excinfo.value) == "Unknown module: poetry"
    assert excinfo.value.options == ("writer", "marketing")
    assert excinfo.value.remediation == ("Available modules: writer marketing",)


def test_explicit_language_goes_through_aliases():
    resolution = resolve_language(SelectionRequest("german"), MARKETING, Preferences(), scripted_console())

    assert resolution.selection.identifier == "de"
    assert resolution.selection.provenance is Provenance.EXPLICIT
    assert resolution.preferences.language == "de"


def test_explicit_language_is_case_sensitive():
    with pytest.raises(UnknownSelection, match="Unknown language for this module: German"):
        resolve_language(SelectionRequest("German"), MARKETING, Preferences(), scripted_console())


def test_single_option_is_taken_silently_without_caching():
    console = scripted_console()
    resolution = resolve_language(SelectionRequest(), WRITER, Preferences(), console)

    assert resolution.selection.provenance is Provenance.ONLY
    assert resolution.preferences.language is None
    assert output_of(console) == ""


def test_non_interactive_uses_valid_cache():
    resolution = resolve_module(
        SelectionRequest(interactive=False),
        CATALOG,
        Preferences(module="marketing"),
        scripted_console(),
    )

    assert resolution.selection == Selection("module", "marketing", Provenance.CACHED)


def test_stale_cache_falls_back_to_first_option_and_is_overwritten():
    resolution = resolve_module(
        SelectionRequest(interactive=False),
        CATALOG,
        Preferences(module="retired"),
        scripted_console(),
    )

    assert resolution.selection == Selection("module", "writer", Provenance.DEFAULT)
    assert resolution.preferences.module == "writer"


def test_interactive_menu_accepts_a_number():
    console = scripted_console("2")
    resolution = resolve_module(SelectionRequest(), CATALOG, Preferences(), console)

    assert resolution.selection == Selection("module", "marketing", Provenance.INTERACTIVE)
    assert "3) Custom module" in output_of(console)


def test_interactive_default_is_cached_position():
    console = scripted_console("")
    resolution = resolve_language(SelectionRequest(), MARKETING, Preferences(language="de"), console)

    assert resolution.selection.identifier == "de"
    assert "[2]" in output_of(console)


def test_interactive_language_accepts_alias_text():
    resolution = resolve_language(SelectionRequest(), MARKETING, Preferences(), scripted_console("deutsch"))
    assert resolution.selection.identifier == "de"


@pytest.mark.parametrize("answer", ["3", "my OWN repo", "Custom"])
def test_interactive_custom_entry(answer: str):
    resolution = resolve_module(SelectionRequest(), CATALOG, Preferences(module="writer"), scripted_console(answer))

    assert resolution.selection.custom
    assert resolution.selection.identifier == CUSTOM_MODULE
    assert resolution.preferences.module == "writer"


def test_custom_triggers_are_configurable():
    request = SelectionRequest(custom_triggers=("template",))

    custom = resolve_module(request, CATALOG, Preferences(), scripted_console("my template"))
    fallback = resolve_module(request, CATALOG, Preferences(), scripted_console("own"))

    assert custom.selection.custom
    assert fallback.selection == Selection("module", "writer", Provenance.INTERACTIVE)


@pytest.mark.parametrize("answer", ["9", "poetry", "0"])
def test_unmatched_interactive_answer_falls_back_to_first(answer: str):
    resolution = resolve_module(SelectionRequest(), CATALOG, Preferences(), scripted_console(answer))
    assert resolution.selection == Selection("module", "writer", Provenance.INTERACTIVE)
    assert resolution.preferences.module == "writer"


def test_empty_module_has_no_languages():
    with pytest.raises(CatalogEmpty):
        resolve_language(SelectionRequest(), _module("empty"), Preferences(), scripted_console())


def test_describe_mentions_provenance():
    assert describe("Module", "Marketing", Selection("module", "marketing", Provenance.EXPLICIT)) == (
        "Module: Marketing (--module)"
    )
    assert describe("Language", "EN", Selection("language", "en", Provenance.CACHED)) == "Language: EN (cached)"
    assert describe("Language", "EN", Selection("language", "en", Provenance.ONLY)).endswith("(only one available)")


def test_choose_repository_by_number_or_name():
    repos = [RepoInfo("novel-template", "x" * 80), RepoInfo("launch-kit", "")]

    console = scripted_console("kit")
    assert choose_repository(repos, console) == repos[1]
    assert "x" * 47 + "..." in output_of(console)
    assert "No description" in output_of(console)

    assert choose_repository(repos, scripted_console("1")) == repos[0]
    assert choose_repository(repos, scripted_console("poetry")) is None
    assert choose_repository([], scripted_console()) is None
