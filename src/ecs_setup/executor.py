"""End-to-end orchestration of a wizard run.

The executor runs the steps in a fixed order: update check, prerequisites,
catalog, module, language, project identity, then one materialization action.
Temporary checkouts are owned by an :class:`~contextlib.ExitStack`, so they are
removed however the run ends.
"""

from __future__ import annotations

import logging
import shutil
import sys
import tempfile
from contextlib import ExitStack
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Callable, Optional, Union

from .catalog import CatalogSnapshot, LanguageDescriptor, ModuleDescriptor, build_catalog, resolve_alias
from .config import SetupConfig
from .console import Console
from .document import read_document, scalar
from .errors import Cancelled, PrerequisiteMissing, SourceUnavailable, UpdatePayloadInvalid, UpdateUnavailable
from .host.base import HostCommandError, SourceHost
from .host.gh import GhCliHost, find_gh_binary
from .host.git import GitClient
from .identity import IdentityRequest, ProjectAction, ProjectIdentity, resolve_author, resolve_project
from .naming import repo_slug
from .preferences import PreferenceStore, Preferences
from .scaffold import PROJECT_CONFIG, ProjectScaffolder
from .selection import (
    Resolution,
    Selection,
    SelectionRequest,
    choose_repository,
    describe,
    resolve_language,
    resolve_module,
)
from .template import TemplateRenderer, project_context
from .update import RestartRequest, UpdateManager

__all__ = ["RunOptions", "RunResult", "ScaffoldExecutor"]


LOGGER = logging.getLogger(__name__)

BOOTSTRAP_URL = "https://raw.githubusercontent.com/ecs-systems/ecs-setup/main/bootstrap.py"
USER_DATA = ("_bmad/_memory/", "inbox/, content/, output/")


@dataclass(frozen=True, slots=True)
class RunOptions:
    """Command line inputs of a wizard run."""

    project: Optional[str] = None
    author: Optional[str] = None
    module: Optional[str] = None
    language: Optional[str] = None
    assume_yes: bool = False
    update_check: bool = True
    argv: tuple[str, ...] = ()

    @property
    def interactive(self) -> bool:
        return not self.assume_yes

    def provided(self) -> dict[str, str]:
        values = {
            "project": self.project,
            "author": self.author,
            "module": self.module,
            "language": self.language,
        }
        shown = {key: value for key, value in values.items() if value}
        if self.assume_yes:
            shown["yes"] = "enabled"
        return shown


@dataclass(frozen=True, slots=True)
class RunResult:
    module: Selection
    language: Optional[Selection]
    identity: ProjectIdentity
    author: Optional[str] = None
    custom_repo: Optional[str] = None


@dataclass(slots=True)
class _Template:
    module: Optional[ModuleDescriptor]
    language: Optional[LanguageDescriptor]
    custom_repo: Optional[str] = None
    custom_dir: Optional[Path] = None

    @property
    def custom(self) -> bool:
        return self.custom_dir is not None


class ScaffoldExecutor:
    """Resolve every selection and materialize the project."""

    def __init__(
        self,
        config: SetupConfig,
        console: Console,
        *,
        host: SourceHost | None = None,
        git: GitClient | None = None,
        updater: UpdateManager | None = None,
        scaffolder: ProjectScaffolder | None = None,
        which: Callable[[str], Optional[str]] = shutil.which,
        today: Callable[[], date] = date.today,
        platform: str = sys.platform,
    ) -> None:
        self.config = config
        self.console = console
        self.host = host
        self.git = git or GitClient()
        self.updater = updater
        self.scaffolder = scaffolder or ProjectScaffolder(
            TemplateRenderer(),
            system_dirs=config.system_dirs,
            language_file=config.language_file,
        )
        self.store = PreferenceStore(config.cache_dir)
        self._which = which
        self._today = today
        self._platform = platform

    # ------------------------------------------------------------------ run
    def run(self, options: RunOptions) -> Union[RunResult, RestartRequest]:
        self.console.banner("ECS-Studio - New Project")

        if options.update_check and self.updater is not None:
            restart = self.offer_update(options)
            if restart is not None:
                return restart

        self._echo_parameters(options)
        host, user = self.check_prerequisites()
        self.check_access(host, user)
        self.check_git_identity(host, user, options)

        with ExitStack() as stack:
            catalog = self.load_catalog(host, stack)
            preferences = self.store.load()

            module_resolution, template = self._select_module(options, catalog, preferences, host, user, stack)
            preferences = self._remember(module_resolution, preferences)

            language_selection: Optional[Selection] = None
            if template.custom:
                self.console.success("Language: from template repository")
            else:
                assert template.module is not None
                language_resolution = resolve_language(
                    SelectionRequest(options.language, options.interactive),
                    template.module,
                    preferences,
                    self.console,
                )
                preferences = self._remember(language_resolution, preferences)
                language_selection = language_resolution.selection
                template.language = template.module.language(language_selection.identifier)
                assert template.language is not None
                self.console.success(describe("Language", template.language.name, language_selection))

            identity = resolve_project(
                IdentityRequest(options.project, options.interactive),
                self.config,
                host,
                user,
                self.console,
            )

            author: Optional[str] = None
            if identity.action is ProjectAction.UPDATE_IN_PLACE:
                self.update_in_place(identity, template)
            elif identity.action is ProjectAction.COPY_SIBLING:
                self.copy_from_sibling(identity)
            elif identity.action is ProjectAction.REUSE_LOCAL:
                self.console.line()
                self.console.success(f"Using existing project: {identity.directory}")
            elif identity.action is ProjectAction.CLONE_REMOTE:
                self.clone_existing(host, identity)
            else:
                author = self.create_project(host, user, identity, template, options, preferences)

            self._print_completion(identity, template)
            return RunResult(
                module=module_resolution.selection,
                language=language_selection,
                identity=identity,
                author=author,
                custom_repo=template.custom_repo,
            )

    def _remember(self, resolution: Resolution, previous: Preferences) -> Preferences:
        self.store.save(resolution.preferences, previous=previous)
        return resolution.preferences

    def _echo_parameters(self, options: RunOptions) -> None:
        provided = options.provided()
        if not provided:
            return
        self.console.heading("Parameters:")
        for key, value in provided.items():
            self.console.line(f"  --{key}: {value}")
        self.console.line()

    # -------------------------------------------------------------- updates
    def offer_update(self, options: RunOptions) -> Optional[RestartRequest]:
        """Offer a newer published version. Returns a restart request if applied."""

        assert self.updater is not None
        latest = self.updater.check_for_updates()
        if latest is None:
            return None
        self.console.warning(f"New version available: {latest} (current: {self.updater.current_version})")
        if not self.console.confirm("Update now?"):
            self.console.line()
            return None
        try:
            restart = self.apply_update(options.argv)
        except (UpdatePayloadInvalid, UpdateUnavailable) as exc:
            self.console.error(str(exc))
            for line in exc.remediation:
                self.console.detail(line)
            self.console.warning(f"Continuing with version {self.updater.current_version}.")
            self.console.line()
            return None
        return restart

    def apply_update(self, argv: tuple[str, ...]) -> RestartRequest:
        assert self.updater is not None
        self.console.step("Downloading latest version...")
        restart = self.updater.apply(argv)
        self.console.success(f"Backup created: {self.updater.backup_path}")
        self.console.success(f"Updated to version {restart.version}")
        return restart

    # --------------------------------------------------------- prerequisites
    def check_prerequisites(self) -> tuple[SourceHost, str]:
        """Verify required tools and the host login. Returns the host and user."""

        assistant = self.config.assistant_command
        if self._which(assistant) is None:
            raise PrerequisiteMissing(
                f"'{assistant}' is not installed.",
                remediation=["Install it with:", "  curl -fsSL https://claude.ai/install.sh | bash"],
            )
        if self._which("git") is None:
            raise PrerequisiteMissing("git is not installed.", remediation=["Install git with your package manager."])

        host = self.host
        if host is None:
            binary = find_gh_binary(self.config, self._which)
            if binary is None:
                raise PrerequisiteMissing(
                    "GitHub CLI not found.",
                    remediation=[
                        "Option 1 - run the bootstrap script:",
                        f'  python3 -c "$(curl -fsSL {BOOTSTRAP_URL})"',
                        "Option 2 - install via package manager:",
                        "  brew install gh          # macOS",
                        "  sudo apt install gh      # Debian/Ubuntu",
                        "  sudo dnf install gh      # Fedora",
                    ],
                )
            host = self.host = GhCliHost(binary)

        if not host.is_authenticated():
            self.console.warning("You are not logged in to GitHub.")
            self.console.line()
            if not (self.console.confirm("Log in now?") and host.login(web=self._platform == "darwin")):
                raise PrerequisiteMissing("GitHub login required.", remediation=["gh auth login"])

        user = host.current_user()
        if not user:
            raise PrerequisiteMissing("Could not determine GitHub username.", remediation=["gh auth status"])
        return host, user

    def check_access(self, host: SourceHost, user: str) -> None:
        self.console.step("Checking access to the template catalog...")
        if not host.repo_exists(self.config.catalog_repo):
            raise PrerequisiteMissing(
                f"You do not have access to {self.config.catalog_repo}.",
                remediation=[
                    "Please contact the administrator and share your GitHub username to get access.",
                    f"Your GitHub username: {user}",
                ],
            )
        self.console.success("Access confirmed")

    def check_git_identity(self, host: SourceHost, user: str, options: RunOptions) -> None:
        """Make sure git can commit, asking for a missing name or email."""

        self.console.step("Checking Git configuration...")
        name = self.git.config_get("user.name")
        email = self.git.config_get("user.email")
        if name and email:
            self.console.success(f"Git configured: {name} <{email}>")
            return

        self.console.warning("Git identity not configured.")
        if not name:
            default_name = options.author or user
            if options.interactive:
                name = self.console.ask("Your name for Git commits", default_name)
            name = name or default_name
        if not email:
            default_email = host.current_user_email() or ""
            if options.interactive:
                email = self.console.ask("Your email for Git commits", default_email)
                while not email:
                    self.console.warning("Email is required.")
                    email = self.console.ask("Your email for Git commits")
            else:
                email = default_email
            if not email:
                raise PrerequisiteMissing(
                    "Git email is not configured.",
                    remediation=['git config --global user.email "you@example.com"'],
                )

        try:
            self.git.config_set("user.name", name)
            self.git.config_set("user.email", email)
        except HostCommandError as exc:
            raise PrerequisiteMissing(str(exc), remediation=exc.excerpt()) from exc
        self.console.success(f"Git configured: {name} <{email}>")

    # --------------------------------------------------------------- catalog
    def load_catalog(self, host: SourceHost, stack: ExitStack) -> CatalogSnapshot:
        """Clone the catalog into a temporary directory owned by ``stack``."""

        self.console.step("Loading available modules...")
        checkout = Path(stack.enter_context(tempfile.TemporaryDirectory(prefix="ecs-catalog-")))
        try:
            host.clone(self.config.catalog_repo, checkout, shallow=True)
        except HostCommandError as exc:
            raise SourceUnavailable(
                "Failed to load modules.",
                remediation=[
                    *exc.excerpt(),
                    "Possible causes: no internet connection, expired GitHub login, or no access to the repository.",
                    "Try running:",
                    "  gh auth status",
                    "  gh auth login",
                ],
            ) from exc

        catalog = build_catalog(
            checkout,
            module_file=self.config.module_file,
            language_file=self.config.language_file,
        )
        self.console.success(f"Found {len(catalog.modules)} module(s)")
        return catalog

    def _select_module(
        self,
        options: RunOptions,
        catalog: CatalogSnapshot,
        preferences: Preferences,
        host: SourceHost,
        user: str,
        stack: ExitStack,
    ) -> tuple[Resolution, _Template]:
        request = SelectionRequest(options.module, options.interactive, self.config.custom_triggers)
        while True:
            resolution = resolve_module(request, catalog, preferences, self.console)
            if not resolution.selection.custom:
                module = catalog.module(resolution.selection.identifier)
                assert module is not None
                self.console.success(describe("Module", module.name, resolution.selection))
                return resolution, _Template(module=module, language=None)

            picked = self.choose_custom_template(host, user, stack)
            if picked is not None:
                repo, directory = picked
                return resolution, _Template(module=None, language=None, custom_repo=repo, custom_dir=directory)

    def choose_custom_template(
        self,
        host: SourceHost,
        user: str,
        stack: ExitStack,
    ) -> Optional[tuple[str, Path]]:
        """Let the user pick and clone one of their repositories as the template."""

        self.console.step("Loading your repositories...")
        repositories = list(host.list_repos())
        if not repositories:
            self.console.error("No repositories found in your GitHub account.")
            return None
        self.console.success(f"Found {len(repositories)} repository/repositories")

        repo = choose_repository(repositories, self.console)
        if repo is None:
            self.console.error("Repository not found.")
            return None
        self.console.success(f"Selected: {repo.name}")

        self.console.step(f"Loading repository '{repo.name}'...")
        directory = Path(stack.enter_context(tempfile.TemporaryDirectory(prefix="ecs-custom-")))
        try:
            host.clone(repo_slug(user, repo.name), directory, shallow=True)
        except HostCommandError as exc:
            self.console.error("Failed to clone repository.")
            for line in exc.excerpt(3):
                self.console.detail(line)
            return None
        self.console.success("Repository loaded")
        return repo.name, directory

    # --------------------------------------------------------------- actions
    def _confirm_overwrite(self, headline: str) -> None:
        self.console.line()
        self.console.warning(headline)
        self.console.line()
        self.console.line("  The following folders will be overwritten:")
        for relative in self.config.system_dirs:
            self.console.line(f"    - {relative}/")
        self.console.line()
        self.console.line("  Custom changes to template agents and workflows will be lost!")
        self.console.line()
        self.console.line("  Your data will be preserved:")
        for entry in USER_DATA:
            self.console.line(f"    - {entry}")
        self.console.line()
        if not self.console.confirm("Continue?"):
            raise Cancelled()

    def _commit(self, directory: Path, message: str) -> None:
        self.console.step("Committing changes...")
        try:
            self.git.add_all(directory)
            committed = self.git.commit(directory, message)
        except HostCommandError:
            LOGGER.debug("commit in %s failed", directory, exc_info=True)
            committed = False
        if not committed:
            self.console.warning("No changes to commit")
        self.console.success("Done!")

    def detect_project_language(self, directory: Path, template: _Template) -> LanguageDescriptor:
        """Return the catalog language an existing project was created with."""

        module = template.module
        assert module is not None and module.languages
        declared = scalar(read_document(directory / PROJECT_CONFIG), "document_output_language")
        identifier = resolve_alias(module.languages, declared) if declared else None
        if identifier is None and template.language is not None:
            identifier = template.language.identifier
        language = module.language(identifier) if identifier else None
        return language or module.languages[0]

    def update_in_place(self, identity: ProjectIdentity, template: _Template) -> None:
        """Replace the template system of an existing project from the catalog."""

        if template.custom_dir is not None:
            source = template.custom_dir
        else:
            source = self.detect_project_language(identity.directory, template).path

        self._confirm_overwrite("The template system will be updated.")
        self.console.step("Updating template system...")
        self.scaffolder.refresh_system(identity.directory, source)
        self.console.success("Template system updated")
        self._commit(identity.directory, "[ECS] System: Updated to latest version")

    def copy_from_sibling(self, identity: ProjectIdentity) -> None:
        assert identity.copy_source is not None
        source = self.config.home / identity.copy_source
        self._confirm_overwrite(f"The template system will be copied from '{identity.copy_source}'.")
        self.console.step(f"Copying template system from '{identity.copy_source}'...")
        self.scaffolder.refresh_system(identity.directory, source)
        self.console.success("Template system copied")
        self._commit(identity.directory, f"[ECS] System: Copied from project '{identity.copy_source}'")

    def clone_existing(self, host: SourceHost, identity: ProjectIdentity) -> None:
        self.console.step("Cloning existing repository...")
        try:
            host.clone(identity.repo, identity.directory, shallow=False)
        except HostCommandError as exc:
            raise SourceUnavailable(
                f"Failed to clone {identity.repo}.",
                remediation=exc.excerpt(),
            ) from exc
        self.console.success("Repository cloned")

    def create_project(
        self,
        host: SourceHost,
        user: str,
        identity: ProjectIdentity,
        template: _Template,
        options: RunOptions,
        preferences: Preferences,
    ) -> str:
        """Ask for the author, confirm, then create, commit and publish the project."""

        author_resolution = resolve_author(
            IdentityRequest(options.author, options.interactive),
            preferences,
            self.console,
            host_user=user,
        )
        self._remember(author_resolution, preferences)
        author = author_resolution.selection.identifier
        self.console.success(describe("Author", author, author_resolution.selection))

        if template.custom:
            module_display = f"Custom module ({template.custom_repo})"
            language_display = "from template"
        else:
            assert template.module is not None and template.language is not None
            module_display = template.module.name
            language_display = template.language.name

        self.console.line()
        self.console.rule()
        self.console.heading("Summary:")
        self.console.line()
        self.console.line(f"  Project:       {identity.name}")
        self.console.line(f"  Author:        {author}")
        if template.custom:
            self.console.line(f"  Template:      {repo_slug(user, template.custom_repo or '')}")
        else:
            self.console.line(f"  Module:        {module_display}")
            self.console.line(f"  Language:      {language_display}")
        self.console.line(f"  Folder:        {identity.directory}")
        self.console.line(f"  GitHub Repo:   {identity.repo}")
        self.console.line()
        self.console.rule()
        self.console.line()

        if not self.console.confirm("Create project?"):
            raise Cancelled()
        self.console.line()

        context = project_context(author, identity.name, self._today())
        identity.directory.mkdir(parents=True, exist_ok=True)
        if template.custom:
            self.console.step(f"Setting up from template '{template.custom_repo}'...")
            self.scaffolder.create(identity.directory, context, custom_dir=template.custom_dir)
        else:
            self.console.step(f"Setting up {module_display} ({language_display})...")
            self.scaffolder.create(identity.directory, context, language=template.language)
        self.console.success("Template loaded")
        self.console.success("Project configured")

        self.console.step("Initializing Git...")
        if template.custom:
            details = f"Template: {repo_slug(user, template.custom_repo or '')}\nAuthor: {author}"
        else:
            details = f"Module: {module_display}\nAuthor: {author}\nLanguage: {language_display}"
        try:
            self.git.init(identity.directory)
            self.git.add_all(identity.directory)
            committed = self.git.commit(identity.directory, f"Project '{identity.name}' created\n\n{details}")
        except HostCommandError as exc:
            LOGGER.debug("git setup failed", exc_info=True)
            self.console.warning(f"Git setup incomplete: {exc}")
            committed = False
        if committed:
            self.console.success("Git initialized")
        else:
            self.console.warning("No changes to commit")

        self.console.step("Creating GitHub repository...")
        try:
            host.create_repo(identity.name, identity.directory, private=True)
        except HostCommandError as exc:
            self.console.warning(f"Could not create the repository: {exc}")
            for line in exc.excerpt(3):
                self.console.detail(line)
            self.console.detail(
                f'Retry inside "{identity.directory}": gh repo create {identity.name} '
                "--private --source=. --remote=origin --push"
            )
        else:
            self.console.success(f"GitHub repository created: {identity.repo}")
        return author

    # ------------------------------------------------------------ completion
    def _print_completion(self, identity: ProjectIdentity, template: _Template) -> None:
        self.console.line()
        self.console.rule("green")
        self.console.line()
        self.console.heading("  Done! Your project is ready.")
        self.console.line()
        self.console.line("  Start your project:")
        self.console.line()
        self.console.line(f'    cd "{identity.directory}"')
        self.console.line(f"    {self.config.assistant_command}")
        self.console.line()

        if template.custom:
            self.console.line(f"  Your project was created from template: {template.custom_repo}")
        elif template.language is not None and template.language.example_workflows:
            self.console.line("  Available Workflows:")
            for workflow in template.language.example_workflows:
                self.console.line(f"    {workflow.command:<28} - {workflow.description}")
        self.console.line()
        self.console.rule("green")
