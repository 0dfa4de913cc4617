"""CLI interface for skillet."""

from __future__ import annotations

import logging
from pathlib import Path

import click

from skillet import SkilletError, __version__
from skillet.config import CONFIG_FILE, Config, ConfigError, ReleaseConfig, load_config, save_config
from skillet.distribution import DeployStatus, DistributionClient, LocalVersion, SyncResult, SyncStatus
from skillet.install import InstallEngine, InstallState
from skillet.mcp import McpConfigStore, McpSettings
from skillet.packager import COLLECTIONS, ConfigPackager
from skillet.profiles import (
    DEFAULT_USER_PROFILE_ID,
    AutoInvokeRule,
    ProfileInput,
    ProfileStore,
    ProfileUpdate,
    Scope,
)
from skillet.rag import ADMIN_KEY_ENV, MCP_URL_ENV, RagAdminClient, RagConfigStore, RagError, mask_key
from skillet.releases import create_release_store
from skillet.session import SyncSession
from skillet.settings import OutputStyleStore, SettingsStore
from skillet.skills import DirectorySkillRegistry


def styled(text: str, **kwargs) -> str:
    return click.style(text, **kwargs)


def info(msg: str) -> None:
    click.echo(f"  {msg}")


def success(msg: str) -> None:
    click.echo(f"  {styled(msg, fg='green')}")


def warn(msg: str) -> None:
    click.echo(f"  {styled(msg, fg='yellow')}")


def error(msg: str) -> None:
    click.echo(f"  {styled(msg, fg='red')}")


def heading(msg: str) -> None:
    click.echo(f"\n  {styled(msg, bold=True)}")


class SkilletGroup(click.Group):
    """Prints skillet errors instead of a traceback."""

    def invoke(self, ctx: click.Context):
        try:
            return super().invoke(ctx)
        except SkilletError as e:
            error(str(e))
            ctx.exit(1)


# -- wiring --------------------------------------------------------------


def _config(ctx: click.Context) -> Config:
    if "config" not in ctx.obj:
        ctx.obj["config"] = load_config(ctx.obj["config_path"])
    return ctx.obj["config"]


def _profiles(config: Config) -> ProfileStore:
    return ProfileStore(config.profiles_file)


def _registry(config: Config) -> DirectorySkillRegistry:
    return DirectorySkillRegistry(config.skills_dir)


def _engine(config: Config) -> InstallEngine:
    return InstallEngine(_profiles(config), _registry(config), config.user_root_path)


def _client(config: Config) -> DistributionClient:
    if not config.release.is_configured:
        raise ConfigError("No release store configured. Run: skillet init")
    try:
        releases = create_release_store(config.release, timeout=config.timeout)
    except ValueError as e:
        raise ConfigError(str(e)) from e

    settings = SettingsStore(config.settings_file)
    packager = ConfigPackager(
        profiles=_profiles(config),
        skills=_registry(config),
        settings=settings,
        output_styles=OutputStyleStore(config.output_styles_dir, settings),
        mcp=McpConfigStore(config.mcp_file),
    )
    return DistributionClient(
        packager,
        releases,
        LocalVersion(config.version_file),
        tag_prefix=config.release.tag_prefix,
        include_skills=config.bundle_skills,
        timeout=config.timeout,
    )


def _session(ctx: click.Context) -> SyncSession:
    if "session" not in ctx.obj:
        config = _config(ctx)
        ctx.obj["session"] = SyncSession.create(config.session_file, config.session_window_seconds)
    return ctx.obj["session"]


def _auto_sync(ctx: click.Context) -> None:
    """Pull the latest team config once per session window, if enabled."""
    config = _config(ctx)
    if not config.auto_sync or not config.release.is_configured:
        return
    client = _client(config)
    result = _session(ctx).maybe_sync(client.sync)
    if result is None:
        return
    if result.status == SyncStatus.SYNCED:
        info(f"Synced team config {styled(result.version, fg='cyan')}")
    elif not result.ok:
        warn(f"Auto-sync skipped: {result.error or result.status.value}")


def _target_scope(target: Path | None) -> Scope:
    return Scope.PROJECT if target is not None else Scope.USER


def _default_profile_id(profiles: ProfileStore) -> str:
    profile = profiles.get_default_user()
    if profile is None:
        raise ConfigError("No user profile exists. Run: skillet init")
    return profile.id


def _report_sync(result: SyncResult) -> None:
    if result.status == SyncStatus.SYNCED:
        success(f"Synced {result.version} (was {result.local_version or 'none'})")
        for collection in COLLECTIONS:
            counts = result.report[collection]
            if counts.changed:
                info(f"  {collection}: {counts.created} new, {counts.updated} updated")
    elif result.status == SyncStatus.UP_TO_DATE:
        info(f"Already up to date ({result.version}).")
    elif result.status == SyncStatus.NO_RELEASE:
        info("No releases published yet.")
    else:
        error(f"Sync {result.status.value}: {result.error}")


target_option = click.option(
    "--target",
    "-t",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Project directory. Omit for the user configuration root.",
)


@click.group(cls=SkilletGroup)
@click.version_option(version=__version__, prog_name="skillet")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output.")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    envvar="SKILLET_CONFIG",
    help="Path to config.json.",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, config_path: Path | None) -> None:
    """Install skill profiles and share team configuration."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["config_path"] = config_path
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@cli.command()
@click.pass_context
def init(ctx: click.Context) -> None:
    """Interactive setup: pick a release store and create the user profile."""
    click.echo()
    info("Welcome to skillet! Let's set up where your team's configuration lives.")
    click.echo()

    config = _config(ctx)

    kind = click.prompt(
        "  Release store",
        type=click.Choice(["github", "directory"]),
        default=config.release.kind,
    )
    if kind == "github":
        repo = click.prompt("  GitHub repository (owner/name)", default=config.release.repo or None)
        config.release = ReleaseConfig(kind="github", repo=repo, tag_prefix=config.release.tag_prefix)
    else:
        path = click.prompt("  Release directory", default=config.release.path or None)
        config.release = ReleaseConfig(kind="directory", path=path, tag_prefix=config.release.tag_prefix)

    config.auto_sync = click.confirm("  Sync team config automatically once per session?", default=config.auto_sync)
    click.echo()

    profiles = _profiles(config)
    if profiles.get_default_user() is None:
        profiles.create(ProfileInput(id=DEFAULT_USER_PROFILE_ID, name="Main", scope=Scope.USER))
        info(f"Created user profile '{DEFAULT_USER_PROFILE_ID}'.")

    save_config(config, ctx.obj["config_path"])
    click.echo()
    success(f"Config saved to {ctx.obj['config_path'] or CONFIG_FILE}")
    info("Ready! Try: skillet sync")
    click.echo()


@cli.command()
@target_option
@click.pass_context
def status(ctx: click.Context, target: Path | None) -> None:
    """Show install state and configuration version."""
    _auto_sync(ctx)
    config = _config(ctx)
    engine = _engine(config)

    st = engine.status(_target_scope(target), target)
    heading(str(st.root))
    if st.state == InstallState.ABSENT:
        info("Nothing installed.")
    else:
        colour = {"up-to-date": "green", "drifted": "yellow", "outdated": "cyan"}[st.state.value]
        info(f"Profile {styled(st.profile_id, bold=True)}: {styled(st.state.value, fg=colour)}")
        for path in st.drifted:
            info(f"  edited: {styled(path, fg='yellow')}")
        for path in st.missing:
            info(f"  missing: {styled(path, fg='red')}")
        if st.state == InstallState.OUTDATED:
            info("  Run: skillet update")

    heading("Team config")
    info(f"Local version: {LocalVersion(config.version_file).get() or '(none)'}")
    if config.release.is_configured:
        info(f"Release store: {config.release.kind} {config.release.repo or config.release.path}")
    else:
        warn("No release store configured. Run: skillet init")
    click.echo()


@cli.command()
@click.argument("profile_id", required=False)
@target_option
@click.option("--force", is_flag=True, help="Overwrite existing files that differ.")
@click.pass_context
def install(ctx: click.Context, profile_id: str | None, target: Path | None, force: bool) -> None:
    """Install a profile. Defaults to the user profile."""
    _auto_sync(ctx)
    config = _config(ctx)
    engine = _engine(config)
    profile_id = profile_id or _default_profile_id(engine.profiles)

    result = engine.install(profile_id, target, force=force)
    heading(f"Installed {result.profile_id} into {result.root}")
    for path in result.written:
        info(f"  {styled(path, fg='cyan')}")
    success(f"{len(result.written)} file(s), {len(result.skills_installed)} skill(s).")
    click.echo()


@cli.command()
@click.argument("profile_id", required=False)
@target_option
@click.option("--force", is_flag=True, help="Overwrite files edited since the last install.")
@click.pass_context
def update(ctx: click.Context, profile_id: str | None, target: Path | None, force: bool) -> None:
    """Bring an installed profile up to date."""
    _auto_sync(ctx)
    engine = _engine(_config(ctx))
    if profile_id is None:
        installed = engine.status(_target_scope(target), target).profile_id
        profile_id = installed or _default_profile_id(engine.profiles)

    result = engine.update(profile_id, target, force=force)
    heading(f"{result.profile_id} ({result.root})")
    for path in result.written:
        info(f"  updated: {styled(path, fg='cyan')}")
    for path in result.removed:
        info(f"  removed: {path}")
    for path in result.drifted:
        warn(f"  kept local edits: {path}")
    if result.drifted:
        info("  Use --force to overwrite edited files.")
    if not result.changed:
        info("Everything up to date.")
    click.echo()


@cli.command()
@target_option
@click.pass_context
def uninstall(ctx: click.Context, target: Path | None) -> None:
    """Remove every file skillet installed."""
    engine = _engine(_config(ctx))
    result = engine.uninstall(_target_scope(target), target)
    if result.already_absent:
        info(f"Nothing installed at {result.root}.")
        return
    success(f"Removed {len(result.removed)} file(s) from {result.root}.")


@cli.command()
@target_option
@click.pass_context
def diff(ctx: click.Context, target: Path | None) -> None:
    """Show unified diff of generated content vs what is on disk."""
    engine = _engine(_config(ctx))
    diffs = engine.diff(_target_scope(target), target)
    if not diffs:
        success("Everything matches.")
        return
    for d in diffs:
        click.echo(d)


@cli.command()
@click.argument("version")
@click.option("-m", "--message", "changelog", required=True, help="Changelog for this release.")
@click.pass_context
def deploy(ctx: click.Context, version: str, changelog: str) -> None:
    """Publish the current configuration as VERSION."""
    client = _client(_config(ctx))
    info(f"Packaging {version} for {client.releases.display_name}...")

    result = client.deploy(version, changelog)
    if result.status == DeployStatus.PUBLISHED:
        success(f"Published {result.tag}.")
    elif result.status == DeployStatus.VERSION_CONFLICT:
        error(f"{result.tag} already exists. Pick a new version.")
        ctx.exit(1)
    else:
        error(f"Publish failed: {result.error}")
        ctx.exit(1)


@cli.command()
@click.pass_context
def sync(ctx: click.Context) -> None:
    """Pull the latest published configuration."""
    client = _client(_config(ctx))
    result = client.sync()
    _report_sync(result)
    if not result.ok:
        ctx.exit(1)


@cli.command()
@click.option("--enable", "enable", multiple=True, metavar="SKILL", help="Enable a skill.")
@click.option("--disable", "disable", multiple=True, metavar="SKILL", help="Disable a skill.")
@click.pass_context
def skills(ctx: click.Context, enable: tuple[str, ...], disable: tuple[str, ...]) -> None:
    """List skills in the registry, grouped by category."""
    registry = _registry(_config(ctx))
    for skill_id in enable:
        registry.toggle(skill_id, True)
    for skill_id in disable:
        registry.toggle(skill_id, False)

    current = None
    found = False
    for skill in registry.list():
        found = True
        if skill.category != current:
            current = skill.category
            heading(current)
        mark = styled("on ", fg="green") if skill.enabled else styled("off", fg="red")
        info(f"{mark} {styled(skill.id, bold=True)}  {skill.description}")
    if not found:
        warn("No skills in the registry. Run: skillet sync")
    click.echo()


# -- profile commands ----------------------------------------------------


@cli.group()
def profile() -> None:
    """Manage profiles."""


@profile.command("list")
@click.pass_context
def profile_list(ctx: click.Context) -> None:
    """Show all profiles."""
    profiles = _profiles(_config(ctx)).list()
    if not profiles:
        warn("No profiles. Run: skillet init")
        return
    for p in profiles:
        tag = styled(" (user)", fg="green") if p.scope == Scope.USER else ""
        info(f"{styled(p.id, bold=True)}{tag}  {p.name}: {len(p.skills)} skill(s)")


@profile.command("show")
@click.argument("profile_id")
@click.pass_context
def profile_show(ctx: click.Context, profile_id: str) -> None:
    """Show one profile."""
    p = _profiles(_config(ctx)).get(profile_id)
    heading(f"{p.name} ({p.id})")
    info(f"Scope: {p.scope.value}")
    if p.description:
        info(f"Description: {p.description}")
    info(f"Skills: {', '.join(p.skills) or '(none)'}")
    for rule in p.auto_invoke_rules:
        info(f"  {rule.trigger} -> {rule.skill_id}")
    info(f"Updated: {p.updated_at}")
    click.echo()


@profile.command("create")
@click.argument("profile_id")
@click.option("--name", default=None, help="Display name (defaults to the id).")
@click.option("--scope", type=click.Choice([s.value for s in Scope]), default=Scope.PROJECT.value)
@click.option("--description", default="")
@click.option("--skill", "skill_ids", multiple=True, help="Skill id to include. Repeatable.")
@click.option("--instructions", default=None, help="Free-text instructions.")
@click.option("--secondary", is_flag=True, help="Also generate AGENTS.md.")
@click.option("--master", is_flag=True, help="Also generate the master reference file.")
@click.pass_context
def profile_create(
    ctx: click.Context,
    profile_id: str,
    name: str | None,
    scope: str,
    description: str,
    skill_ids: tuple[str, ...],
    instructions: str | None,
    secondary: bool,
    master: bool,
) -> None:
    """Create a profile."""
    p = _profiles(_config(ctx)).create(
        ProfileInput(
            id=profile_id,
            name=name or profile_id,
            scope=Scope(scope),
            description=description,
            skills=list(skill_ids),
            instructions=instructions,
            generate_secondary_instructions=secondary,
            generate_master_reference=master,
        )
    )
    success(f"Created profile '{p.id}'.")


@profile.command("delete")
@click.argument("profile_id")
@click.pass_context
def profile_delete(ctx: click.Context, profile_id: str) -> None:
    """Delete a project profile."""
    _profiles(_config(ctx)).delete(profile_id)
    success(f"Deleted profile '{profile_id}'.")


@profile.command("set-default")
@click.argument("profile_id")
@click.pass_context
def profile_set_default(ctx: click.Context, profile_id: str) -> None:
    """Mark a user-scope profile as the default."""
    _profiles(_config(ctx)).set_default_user(profile_id)
    success(f"'{profile_id}' is now the default user profile.")


@profile.command("add-skill")
@click.argument("profile_id")
@click.argument("skill_id")
@click.option("--trigger", default=None, help="Add an auto-invoke rule with this trigger.")
@click.option("--rule-description", default="", help="Description for the auto-invoke rule.")
@click.pass_context
def profile_add_skill(
    ctx: click.Context, profile_id: str, skill_id: str, trigger: str | None, rule_description: str
) -> None:
    """Add a skill (and optionally a rule) to a profile."""
    config = _config(ctx)
    _registry(config).resolve(skill_id)
    store = _profiles(config)
    p = store.get(profile_id)

    skill_list = list(p.skills)
    if skill_id not in skill_list:
        skill_list.append(skill_id)
    rules = list(p.auto_invoke_rules)
    if trigger:
        rules.append(AutoInvokeRule(skill_id=skill_id, trigger=trigger, description=rule_description))

    store.update(profile_id, ProfileUpdate(skills=skill_list, auto_invoke_rules=rules))
    success(f"Added {skill_id} to '{profile_id}'.")


@profile.command("remove-skill")
@click.argument("profile_id")
@click.argument("skill_id")
@click.pass_context
def profile_remove_skill(ctx: click.Context, profile_id: str, skill_id: str) -> None:
    """Remove a skill and its rules from a profile."""
    store = _profiles(_config(ctx))
    p = store.get(profile_id)
    if skill_id not in p.skills:
        warn(f"'{profile_id}' does not include {skill_id}.")
        return
    store.update(
        profile_id,
        ProfileUpdate(
            skills=[s for s in p.skills if s != skill_id],
            auto_invoke_rules=[r for r in p.auto_invoke_rules if r.skill_id != skill_id],
        ),
    )
    success(f"Removed {skill_id} from '{profile_id}'.")


# -- mcp commands --------------------------------------------------------


@cli.group()
def mcp() -> None:
    """Manage MCP server configuration."""


@mcp.command("sync")
@click.option("--url", default=None, help="Fetch .mcp.json from this URL.")
@click.option("--file", "file_path", type=click.Path(dir_okay=False), default=None, help="Copy .mcp.json from a file.")
@click.pass_context
def mcp_sync(ctx: click.Context, url: str | None, file_path: str | None) -> None:
    """Replace the MCP config from a URL or file (the old one is backed up)."""
    if bool(url) == bool(file_path):
        raise click.UsageError("Pass exactly one of --url or --file.")
    config = _config(ctx)
    store = McpConfigStore(config.mcp_file)
    result = store.sync_from(url or file_path, timeout=config.timeout)
    success(f"Synced {len(result.servers)} MCP server(s) into {store.path}")
    for name in sorted(result.servers):
        info(f"  {styled(name, fg='cyan')}")


def _server_from_options(command: str | None, args: tuple[str, ...], url: str | None) -> dict:
    if bool(command) == bool(url):
        raise click.UsageError("Pass exactly one of --command or --url.")
    if command:
        return {"command": command, "args": list(args)}
    return {"type": "http", "url": url}


@mcp.command("update")
@click.argument("name")
@click.option("--command", default=None, help="Executable for a stdio server.")
@click.option("--arg", "args", multiple=True, help="Argument for --command. Repeatable.")
@click.option("--url", default=None, help="Endpoint for an http server.")
@click.pass_context
def mcp_update(ctx: click.Context, name: str, command: str | None, args: tuple[str, ...], url: str | None) -> None:
    """Replace the definition of an existing MCP server."""
    McpConfigStore(_config(ctx).mcp_file).update_server(name, _server_from_options(command, args, url))
    success(f"Updated MCP server '{name}'.")


@mcp.command("settings")
@click.option("--timeout", "default_timeout", type=int, default=None, help="Default timeout in milliseconds.")
@click.option("--retries", "retry_attempts", type=int, default=None, help="Retry attempts.")
@click.option("--log-level", default=None, type=click.Choice(["debug", "info", "warn", "error"]))
@click.pass_context
def mcp_settings(
    ctx: click.Context, default_timeout: int | None, retry_attempts: int | None, log_level: str | None
) -> None:
    """Show or change the shared MCP settings."""
    store = McpConfigStore(_config(ctx).mcp_file)
    settings = store.load().settings
    if default_timeout is not None or retry_attempts is not None or log_level is not None:
        settings = McpSettings(
            default_timeout=settings.default_timeout if default_timeout is None else default_timeout,
            retry_attempts=settings.retry_attempts if retry_attempts is None else retry_attempts,
            log_level=settings.log_level if log_level is None else log_level,
        )
        store.update_settings(settings)
        success("MCP settings updated.")
    info(f"Default timeout: {settings.default_timeout} ms")
    info(f"Retry attempts: {settings.retry_attempts}")
    info(f"Log level: {settings.log_level}")


# -- skill commands ------------------------------------------------------


@cli.group()
def skill() -> None:
    """Create, edit and delete custom skills."""


def _read_content(content: str | None, content_file: str | None) -> str | None:
    if content is not None and content_file is not None:
        raise click.UsageError("Pass at most one of --content or --content-file.")
    if content_file is not None:
        return Path(content_file).read_text(encoding="utf-8")
    return content


@skill.command("create")
@click.argument("skill_id")
@click.option("--name", default=None, help="Display name (defaults to the id).")
@click.option("--description", default="")
@click.option("--content", default=None, help="Skill body as markdown.")
@click.option("--content-file", type=click.Path(exists=True, dir_okay=False), default=None)
@click.pass_context
def skill_create(
    ctx: click.Context,
    skill_id: str,
    name: str | None,
    description: str,
    content: str | None,
    content_file: str | None,
) -> None:
    """Add a custom skill to the registry."""
    body = _read_content(content, content_file) or ""
    _registry(_config(ctx)).create(skill_id, name or skill_id, description, body)
    success(f"Created skill '{skill_id}'.")


@skill.command("edit")
@click.argument("skill_id")
@click.option("--name", default=None)
@click.option("--description", default=None)
@click.option("--content", default=None, help="New skill body as markdown.")
@click.option("--content-file", type=click.Path(exists=True, dir_okay=False), default=None)
@click.pass_context
def skill_edit(
    ctx: click.Context,
    skill_id: str,
    name: str | None,
    description: str | None,
    content: str | None,
    content_file: str | None,
) -> None:
    """Change a skill's name, description or body."""
    body = _read_content(content, content_file)
    _registry(_config(ctx)).update(skill_id, name=name, description=description, content=body)
    success(f"Updated skill '{skill_id}'.")


@skill.command("delete")
@click.argument("skill_id")
@click.pass_context
def skill_delete(ctx: click.Context, skill_id: str) -> None:
    """Delete a custom skill."""
    _registry(_config(ctx)).delete(skill_id)
    success(f"Deleted skill '{skill_id}'.")


# -- rag commands --------------------------------------------------------


@cli.group()
def rag() -> None:
    """Per-project RAG configuration."""


def _rag_store(ctx: click.Context) -> RagConfigStore:
    return RagConfigStore(_config(ctx).rag_settings_file)


def _rag_admin(ctx: click.Context) -> RagAdminClient:
    store = _rag_store(ctx)
    admin_key = store.admin_key()
    if not admin_key:
        raise RagError(f"Admin key not configured. Run: skillet rag set-admin-key <key> (or set {ADMIN_KEY_ENV})")
    url = store.mcp_url()
    if not url:
        raise RagError(f"No RAG service URL configured. Run: skillet rag set-url <url> (or set {MCP_URL_ENV})")
    return RagAdminClient(url, admin_key, timeout=_config(ctx).timeout)


project_option = click.option(
    "--path",
    "project",
    type=click.Path(file_okay=False, path_type=Path),
    default=".",
    show_default=True,
    help="Project directory.",
)


@rag.command("init")
@click.option("--project", "project_id", required=True, help="Project identifier on the RAG service.")
@click.option("--api-key", required=True, help="API key issued for this project.")
@project_option
@click.pass_context
def rag_init(ctx: click.Context, project_id: str, api_key: str, project: Path) -> None:
    """Write .claude/rag.json for a project."""
    store = _rag_store(ctx)
    config = store.init(project, project_id, api_key)
    success("RAG initialized.")
    info(f"Project ID: {config.project_id}")
    info(f"API key:    {mask_key(config.api_key)}")
    info(f"Service:    {store.mcp_url(config) or '(not set)'}")
    info(f"Saved to {store.config_path(project)}")


@rag.command("status")
@project_option
@click.pass_context
def rag_status(ctx: click.Context, project: Path) -> None:
    """Show the RAG configuration of a project."""
    store = _rag_store(ctx)
    config = store.load_config(project)
    if config is None:
        warn("RAG not configured for this project. Run: skillet rag init --project <id> --api-key <key>")
        return
    info(f"Project ID: {config.project_id}")
    info(f"API key:    {mask_key(config.api_key)}")
    info(f"Service:    {store.mcp_url(config) or '(not set)'}")


@rag.command("remove")
@project_option
@click.pass_context
def rag_remove(ctx: click.Context, project: Path) -> None:
    """Delete a project's .claude/rag.json."""
    _rag_store(ctx).remove(project)
    success("RAG configuration removed from this project.")


@rag.command("set-admin-key")
@click.argument("key")
@click.pass_context
def rag_set_admin_key(ctx: click.Context, key: str) -> None:
    """Store the admin key used to manage project keys."""
    _rag_store(ctx).set_admin_key(key)
    success("Admin key saved.")


@rag.command("set-url")
@click.argument("url")
@click.pass_context
def rag_set_url(ctx: click.Context, url: str) -> None:
    """Set the default RAG service URL."""
    _rag_store(ctx).set_default_mcp_url(url)
    success(f"Default RAG service is now {url}")


@rag.command("create-key")
@click.option("--name", required=True, help="Who the key is for.")
@click.option("--project", "projects", multiple=True, help="Restrict the key to a project. Repeatable.")
@click.pass_context
def rag_create_key(ctx: click.Context, name: str, projects: tuple[str, ...]) -> None:
    """Issue a new project API key."""
    key = _rag_admin(ctx).create_key(name, list(projects) or None)
    success(f"API key created for {name}:")
    info(styled(key, fg="green", bold=True))
    warn("Save this key; it will not be shown again.")


@rag.command("list-keys")
@click.pass_context
def rag_list_keys(ctx: click.Context) -> None:
    """List issued API keys."""
    keys = _rag_admin(ctx).list_keys()
    if not keys:
        warn("No API keys found.")
        return
    for k in keys:
        heading(k.name)
        info(f"Key:      {mask_key(k.key)}")
        info(f"Projects: {'all' if k.all_projects else ', '.join(k.projects)}")
        info(f"Created:  {k.created}")
    click.echo()
