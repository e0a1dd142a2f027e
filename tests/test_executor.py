from __future__ import annotations

from datetime import date
from pathlib import Path

import pytest

from ecs_setup.catalog import build_catalog
from ecs_setup.config import SetupConfig
from ecs_setup.console import Console
from ecs_setup.errors import Cancelled, PrerequisiteMissing, SourceUnavailable, UnknownSelection
from ecs_setup.executor import RunOptions, RunResult, ScaffoldExecutor
from ecs_setup.host.base import RepoInfo
from ecs_setup.identity import ProjectAction
from ecs_setup.preferences import PreferenceStore, Preferences
from ecs_setup.selection import Provenance
from ecs_setup.update import RestartRequest, UpdateManager
from tests.fixtures.catalog_tree import write_language, write_module, write_sample_catalog
from tests.fixtures.fakes import FakeGit, FakeHost, errors_of, output_of, scripted_console


@pytest.fixture()
def catalog_root(tmp_path: Path) -> Path:
    return write_sample_catalog(tmp_path / "catalog")


@pytest.fixture()
def host(config: SetupConfig, catalog_root: Path) -> FakeHost:
    return FakeHost(sources={config.catalog_repo: catalog_root})


def _executor(
    config: SetupConfig,
    console: Console,
    host: FakeHost,
    git: FakeGit | None = None,
    **kwargs,
) -> ScaffoldExecutor:
    kwargs.setdefault("which", lambda name: f"/usr/bin/{name}")
    return ScaffoldExecutor(
        config,
        console,
        host=host,
        git=git or FakeGit(),
        today=lambda: date(2024, 3, 9),
        platform="linux",
        **kwargs,
    )


def _automated(**values) -> RunOptions:
    return RunOptions(assume_yes=True, update_check=False, **values)


def test_non_interactive_run_creates_project(config: SetupConfig, host: FakeHost):
    git = FakeGit()
    console = scripted_console(assume_yes=True)

    result = _executor(config, console, host, git).run(
        _automated(module="marketing", language="de", project="Launch", author="A")
    )

    assert isinstance(result, RunResult)
    assert result.module.identifier == "marketing"
    assert result.module.provenance is Provenance.EXPLICIT
    assert result.language is not None and result.language.identifier == "de"
    assert result.identity.name == "Launch"
    assert result.identity.action is ProjectAction.CREATE
    assert result.author == "A"

    assert PreferenceStore(config.cache_dir).load() == Preferences(module="marketing", language="de", author="A")
    for name in ("module", "language", "author_name"):
        assert (config.cache_dir / name).is_file()

    project = config.home / "Launch"
    assert (project / "_bmad" / "ecs" / "agents" / "writer.md").read_text(encoding="utf-8") == "writer agent (de)\n"
    assert 'author: "A"' in (project / "_bmad" / "ecs" / "config.yaml").read_text(encoding="utf-8")
    assert 'created: "2024-03-09"' in (project / "_bmad" / "ecs" / "config.yaml").read_text(encoding="utf-8")
    assert host.created == [("Launch", project, True)]
    assert git.messages[0].startswith("Project 'Launch' created\n\nModule: Marketing\nAuthor: A")
    assert "Done! Your project is ready." in output_of(console)


def test_stale_cached_module_falls_back_to_first_module(config: SetupConfig, tmp_path: Path):
    root = write_sample_catalog(tmp_path / "catalog", include_writer=False)
    write_language(write_module(root, "podcast", "Podcast"), "en")
    expected = build_catalog(root).modules[0].identifier
    store = PreferenceStore(config.cache_dir)
    store.save(Preferences(module="writer", author="A"))

    result = _executor(config, scripted_console(assume_yes=True), FakeHost(sources={config.catalog_repo: root})).run(
        _automated(project="Launch")
    )

    assert isinstance(result, RunResult)
    assert result.module.identifier == expected
    assert result.module.provenance is Provenance.DEFAULT
    assert result.author == "A"
    assert store.load().module == expected


def test_catalog_checkout_is_removed_after_cancellation(config: SetupConfig, host: FakeHost):
    console = scripted_console("n")

    with pytest.raises(Cancelled):
        _executor(config, console, host).run(
            RunOptions(module="marketing", language="de", project="Launch", author="A", update_check=False)
        )

    checkout = host.clones[0][1]
    assert not checkout.exists()
    assert not (config.home / "Launch").exists()
    assert host.created == []


def test_unknown_module_fails_before_touching_the_project(config: SetupConfig, host: FakeHost):
    with pytest.raises(UnknownSelection):
        _executor(config, scripted_console(assume_yes=True), host).run(_automated(module="poetry", project="Launch"))

    assert not host.clones[0][1].exists()
    assert not (config.home / "Launch").exists()
    assert not (config.cache_dir / "module").exists()


def test_update_in_place_uses_declared_project_language(config: SetupConfig, host: FakeHost):
    project = config.home / "Launch"
    (project / "_bmad" / "ecs").mkdir(parents=True)
    (project / "_bmad" / "ecs" / "config.yaml").write_text('document_output_language: "german"\n', encoding="utf-8")
    (project / "_bmad" / "ecs" / "custom-agent.md").write_text("old\n", encoding="utf-8")
    (project / "content").mkdir()
    (project / "content" / "chapter1.md").write_text("draft\n", encoding="utf-8")
    git = FakeGit()
    console = scripted_console("3", "")

    result = _executor(config, console, host, git).run(
        RunOptions(module="marketing", language="en", project="Launch", update_check=False)
    )

    assert isinstance(result, RunResult)
    assert result.identity.action is ProjectAction.UPDATE_IN_PLACE
    assert result.author is None
    assert (project / "_bmad" / "ecs" / "agents" / "writer.md").read_text(encoding="utf-8") == "writer agent (de)\n"
    assert (project / ".claude" / "commands" / "draft.md").read_text(encoding="utf-8") == "draft command (de)\n"
    assert not (project / "_bmad" / "ecs" / "custom-agent.md").exists()
    assert (project / "_bmad" / "ecs" / "config.yaml").read_text(encoding="utf-8") == 'document_output_language: "german"\n'
    assert (project / "content" / "chapter1.md").read_text(encoding="utf-8") == "draft\n"
    assert git.messages == ["[ECS] System: Updated to latest version"]
    assert host.created == []


def test_copy_from_sibling_project(config: SetupConfig, host: FakeHost):
    sibling = config.home / "Older"
    (sibling / "_bmad" / "ecs").mkdir(parents=True)
    (sibling / "_bmad" / "ecs" / "tuned.md").write_text("tuned\n", encoding="utf-8")
    (config.home / "Launch" / "_bmad" / "ecs").mkdir(parents=True)
    git = FakeGit(commits=False)
    console = scripted_console("4", "1", "y")

    result = _executor(config, console, host, git).run(
        RunOptions(module="marketing", language="de", project="Launch", update_check=False)
    )

    assert isinstance(result, RunResult)
    assert result.identity.action is ProjectAction.COPY_SIBLING
    assert (config.home / "Launch" / "_bmad" / "ecs" / "tuned.md").exists()
    assert git.messages == ["[ECS] System: Copied from project 'Older'"]
    assert "No changes to commit" in output_of(console)


def test_existing_project_is_reused_non_interactively(config: SetupConfig, host: FakeHost):
    (config.home / "Launch").mkdir()

    result = _executor(config, scripted_console(assume_yes=True), host).run(
        _automated(module="writer", project="Launch")
    )

    assert isinstance(result, RunResult)
    assert result.identity.action is ProjectAction.REUSE_LOCAL
    assert result.language is not None and result.language.provenance is Provenance.ONLY
    assert host.created == []


def test_remote_only_project_is_cloned(config: SetupConfig, host: FakeHost, tmp_path: Path):
    remote = tmp_path / "remote"
    remote.mkdir()
    (remote / "README.md").write_text("remote\n", encoding="utf-8")
    host.sources["octo/Launch"] = remote

    result = _executor(config, scripted_console(assume_yes=True), host).run(
        _automated(module="writer", project="Launch", author="A")
    )

    assert isinstance(result, RunResult)
    assert result.identity.action is ProjectAction.CLONE_REMOTE
    assert (config.home / "Launch" / "README.md").exists()
    assert ("octo/Launch", config.home / "Launch", False) in host.clones


def test_custom_module_uses_own_repository(config: SetupConfig, host: FakeHost, tmp_path: Path):
    template = tmp_path / "novel-template"
    (template / ".git").mkdir(parents=True)
    (template / "CLAUDE.md").write_text("Author: {{AUTHOR_NAME}}\n", encoding="utf-8")
    host.sources["octo/novel-template"] = template
    host.repos = [RepoInfo("novel-template", "My novel setup")]
    console = scripted_console("3", "1", "")

    result = _executor(config, console, host).run(
        RunOptions(project="Book", author="A", update_check=False)
    )

    assert isinstance(result, RunResult)
    assert result.module.custom
    assert result.language is None
    assert result.custom_repo == "novel-template"
    assert (config.home / "Book" / "CLAUDE.md").read_text(encoding="utf-8") == "Author: A\n"
    assert not (config.home / "Book" / ".git").exists()
    assert not (config.cache_dir / "module").exists()
    assert (config.cache_dir / "author_name").read_text(encoding="utf-8") == "A\n"


def test_custom_module_without_repositories_returns_to_menu(config: SetupConfig, host: FakeHost):
    console = scripted_console("3", "1", "1")

    result = _executor(config, console, host).run(RunOptions(project="Book", author="A", update_check=False))

    assert isinstance(result, RunResult)
    assert not result.module.custom
    assert "No repositories found" in errors_of(console)


def test_missing_assistant_command_stops_early(config: SetupConfig, host: FakeHost):
    executor = _executor(config, scripted_console(assume_yes=True), host, which=lambda name: None)

    with pytest.raises(PrerequisiteMissing, match="'claude' is not installed"):
        executor.run(_automated(module="writer"))
    assert host.clones == []


def test_missing_catalog_access(config: SetupConfig):
    with pytest.raises(PrerequisiteMissing, match="do not have access") as excinfo:
        _executor(config, scripted_console(assume_yes=True), FakeHost()).run(_automated())
    assert "Your GitHub username: octo" in excinfo.value.remediation


def test_failed_catalog_clone(config: SetupConfig):
    host = FakeHost(existing={config.catalog_repo})

    with pytest.raises(SourceUnavailable, match="Failed to load modules") as excinfo:
        _executor(config, scripted_console(assume_yes=True), host).run(_automated())

    assert excinfo.value.remediation[0].startswith("GraphQL: Could not resolve")


def test_login_is_offered_when_logged_out(config: SetupConfig, catalog_root: Path):
    host = FakeHost(sources={config.catalog_repo: catalog_root}, authenticated=False)

    _executor(config, scripted_console(assume_yes=True), host).run(_automated(module="writer", author="A"))

    assert host.logins == [False]


def test_git_identity_is_filled_from_defaults(config: SetupConfig, host: FakeHost):
    git = FakeGit(name="", email="")

    _executor(config, scripted_console(assume_yes=True), host, git).run(_automated(module="writer", author="A"))

    assert git.settings == {"user.name": "A", "user.email": "octo@example.com"}


def test_git_email_is_required_without_prompting(config: SetupConfig, catalog_root: Path):
    host = FakeHost(sources={config.catalog_repo: catalog_root}, email=None)

    with pytest.raises(PrerequisiteMissing, match="Git email"):
        _executor(config, scripted_console(assume_yes=True), host, FakeGit(email="")).run(_automated())


def test_email_prompt_cancels_when_input_ends(config: SetupConfig, catalog_root: Path):
    host = FakeHost(sources={config.catalog_repo: catalog_root}, email=None)
    git = FakeGit(email="")
    console = scripted_console("")

    with pytest.raises(Cancelled):
        _executor(config, console, host, git).run(RunOptions(update_check=False))

    assert output_of(console).count("Email is required.") == 1
    assert git.settings["user.email"] == ""


def test_repository_creation_failure_is_a_warning(config: SetupConfig, catalog_root: Path):
    host = FakeHost(sources={config.catalog_repo: catalog_root}, fail_create=True)
    console = scripted_console(assume_yes=True)

    result = _executor(config, console, host).run(_automated(module="writer", project="Launch", author="A"))

    assert isinstance(result, RunResult)
    assert (config.home / "Launch" / "CLAUDE.md").exists()
    assert "Could not create the repository" in output_of(console)
    assert "gh repo create Launch --private" in errors_of(console)


def _installed_script(config: SetupConfig) -> Path:
    script = config.setup_script
    script.parent.mkdir(parents=True, exist_ok=True)
    script.write_text('__version__ = "1.0.0"\n', encoding="utf-8")
    return script


def test_accepted_update_returns_restart_before_any_work(config: SetupConfig, host: FakeHost):
    script = _installed_script(config)
    updater = UpdateManager(
        config,
        "1.0.0",
        script,
        fetch=lambda url: '__version__ = "1.1.0"\n',
        clock=lambda: 1_700_000_000.0,
        executable="/usr/bin/python3",
    )

    outcome = _executor(config, scripted_console(assume_yes=True), host, updater=updater).run(
        RunOptions(module="writer", assume_yes=True, argv=("-y", "-m", "writer"))
    )

    assert isinstance(outcome, RestartRequest)
    assert outcome.argv == ("/usr/bin/python3", str(script), "-y", "-m", "writer")
    assert host.clones == []


def test_invalid_update_continues_with_current_version(config: SetupConfig, host: FakeHost):
    script = _installed_script(config)
    payloads = iter(['__version__ = "1.1.0"\n', "<html>oops</html>"])
    updater = UpdateManager(config, "1.0.0", script, fetch=lambda url: next(payloads), clock=lambda: 1_700_000_000.0)
    console = scripted_console(assume_yes=True)

    outcome = _executor(config, console, host, updater=updater).run(
        RunOptions(module="writer", author="A", assume_yes=True)
    )

    assert isinstance(outcome, RunResult)
    assert "Continuing with version 1.0.0." in output_of(console)
    assert script.read_text(encoding="utf-8") == '__version__ = "1.0.0"\n'


def test_update_from_installed_package_is_refused_and_run_continues(
    config: SetupConfig, host: FakeHost, tmp_path: Path
):
    entry = tmp_path / "site-packages" / "ecs_setup" / "__main__.py"
    entry.parent.mkdir(parents=True)
    entry.write_text("from .cli import main\n", encoding="utf-8")
    updater = UpdateManager(
        config, "1.0.0", entry, fetch=lambda url: '__version__ = "1.1.0"\n', clock=lambda: 1_700_000_000.0
    )
    console = scripted_console(assume_yes=True)

    outcome = _executor(config, console, host, updater=updater).run(
        RunOptions(module="writer", project="Launch", author="A", assume_yes=True)
    )

    assert isinstance(outcome, RunResult)
    assert entry.read_text(encoding="utf-8") == "from .cli import main\n"
    assert "pip install --upgrade ecs-setup" in errors_of(console)
    assert "Continuing with version 1.0.0." in output_of(console)
