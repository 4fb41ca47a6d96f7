"""
Settings — Configuration for the Hoppscotch collection backup.

Settings are resolved once at startup into an immutable Settings record and
passed to every component. Values come from three layers:

Configuration precedence (highest to lowest):
  1. Environment variables (including those loaded from a .env file)
  2. appsettings.json, overlaid by appsettings.Development.json
     (the "BackupSettings" section)
  3. DEFAULT_SETTINGS (this file)

Settings reference (environment variable / JSON key):
  HOPPSCOTCH_JWT / HoppscotchJWT                 Bearer token for the GraphQL API (required)
  GITHUB_TOKEN / GithubToken                     Token used to push the backup branch (required)
  GITHUB_USERNAME / GithubUsername               Commit author and push username (required)
  REPO_PATH / RepoPath                           Local git clone that receives the backup (required)
  BACKUP_SUB_PATH / BackupSubPath                Folder under REPO_PATH for backups (default: backups)
  WORKSPACE_NAME / WorkspaceName                 Prefix of the aggregate export file (default: Hoppscotch)
  HOPPSCOTCH_TEAM_ID / TeamId                    Team to export; first team of the token if unset
  HOPPSCOTCH_API_BASE_URL / HoppscotchApiBaseUrl GraphQL host (default: https://api.hoppscotch.io)
  REQUEST_TIMEOUT / RequestTimeout               HTTP timeout in seconds (default: 30)
  DEBUG / Debug                                  Verbose output (default: false)
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from dotenv import load_dotenv

from .errors import ConfigError


DEFAULT_SETTINGS = {
    "HOPPSCOTCH_API_BASE_URL": "https://api.hoppscotch.io",
    "BACKUP_SUB_PATH": "backups",
    "WORKSPACE_NAME": "Hoppscotch",
    "REQUEST_TIMEOUT": 30,
    "DEBUG": False,
}

DEFAULT_CONFIG_FILES = ["appsettings.json", "appsettings.Development.json"]
CONFIG_SECTION = "BackupSettings"

# Environment variable -> key in the "BackupSettings" JSON section
ENV_TO_JSON_KEY = {
    "HOPPSCOTCH_JWT": "HoppscotchJWT",
    "GITHUB_TOKEN": "GithubToken",
    "GITHUB_USERNAME": "GithubUsername",
    "REPO_PATH": "RepoPath",
    "BACKUP_SUB_PATH": "BackupSubPath",
    "WORKSPACE_NAME": "WorkspaceName",
    "HOPPSCOTCH_TEAM_ID": "TeamId",
    "HOPPSCOTCH_API_BASE_URL": "HoppscotchApiBaseUrl",
    "REQUEST_TIMEOUT": "RequestTimeout",
    "DEBUG": "Debug",
}

SECRET_KEYS = {"HOPPSCOTCH_JWT", "GITHUB_TOKEN"}


def mask_secret(value: Optional[str]) -> str:
    """Mask a secret for display, keeping the first and last four characters."""
    if not value:
        return "null"
    if len(value) <= 8:
        return "****"
    return f"{value[:4]}...{value[-4:]}"


def _as_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    """Validated, immutable configuration for one process.

    Attributes:
        bearer_token: Hoppscotch JWT sent as "Authorization: Bearer ...".
        source_control_token: Token used as the password when pushing.
        source_control_username: Git username, also used for the commit identity.
        repository_path: Path of the local clone.
        api_base_url: Hoppscotch API host; "/graphql" is appended.
        backup_sub_path: Relative folder under repository_path.
        workspace_name: Used in the aggregate export filename.
        team_id: Team to export, or None to use the token's first team.
        request_timeout: Timeout in seconds for every HTTP request.
        debug: Verbose output.
    """

    bearer_token: str
    source_control_token: str
    source_control_username: str
    repository_path: str
    api_base_url: str = DEFAULT_SETTINGS["HOPPSCOTCH_API_BASE_URL"]
    backup_sub_path: str = DEFAULT_SETTINGS["BACKUP_SUB_PATH"]
    workspace_name: str = DEFAULT_SETTINGS["WORKSPACE_NAME"]
    team_id: Optional[str] = None
    request_timeout: float = DEFAULT_SETTINGS["REQUEST_TIMEOUT"]
    debug: bool = DEFAULT_SETTINGS["DEBUG"]
    sources: Tuple[str, ...] = field(default=(), compare=False)

    @property
    def graphql_url(self) -> str:
        return f"{self.api_base_url.rstrip('/')}/graphql"

    @property
    def commit_email(self) -> str:
        return f"{self.source_control_username}@users.noreply.github.com"

    def backup_directory(self, timestamp: str) -> Path:
        return Path(self.repository_path) / self.backup_sub_path / timestamp

    def validate(self) -> List[str]:
        """Return a list of configuration errors (empty when valid)."""
        errors = []
        if not self.bearer_token:
            errors.append("HOPPSCOTCH_JWT is required")
        if not self.source_control_token:
            errors.append("GITHUB_TOKEN is required")
        if not self.source_control_username:
            errors.append("GITHUB_USERNAME is required")
        if not self.repository_path:
            errors.append("REPO_PATH is required")
        elif not (Path(self.repository_path) / ".git").exists():
            errors.append(f"REPO_PATH is not a git clone: {self.repository_path}")
        if not self.api_base_url:
            errors.append("HOPPSCOTCH_API_BASE_URL must not be empty")
        if self.request_timeout <= 0:
            errors.append("REQUEST_TIMEOUT must be a positive number")
        if Path(self.backup_sub_path).is_absolute():
            errors.append("BACKUP_SUB_PATH must be relative to REPO_PATH")
        return errors

    def ensure_valid(self) -> "Settings":
        """Raise ConfigError unless validate() is clean."""
        errors = self.validate()
        if errors:
            raise ConfigError(errors)
        return self

    def describe(self) -> Dict[str, str]:
        """Effective values for display, with secrets masked."""
        return {
            "HoppscotchJWT": mask_secret(self.bearer_token),
            "GithubToken": mask_secret(self.source_control_token),
            "GithubUsername": self.source_control_username or "null",
            "RepoPath": self.repository_path or "null",
            "BackupSubPath": self.backup_sub_path,
            "WorkspaceName": self.workspace_name,
            "TeamId": self.team_id or "(first team)",
            "HoppscotchApiBaseUrl": self.api_base_url,
            "RequestTimeout": str(self.request_timeout),
        }


def _read_config_section(path: Path) -> Dict:
    """Read the BackupSettings section of a JSON config file."""
    try:
        with open(path, encoding="utf-8") as f:
            document = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError([f"Could not read {path}: {e}"]) from e

    section = document.get(CONFIG_SECTION, {}) if isinstance(document, dict) else {}
    if not isinstance(section, dict):
        raise ConfigError([f"'{CONFIG_SECTION}' in {path} must be an object"])
    return section


def load_settings(
    env_file: str = "./.env",
    config_files: Optional[List[str]] = None,
    base_dir: Optional[str] = None,
) -> Settings:
    """Resolve Settings from defaults, JSON config files and the environment.

    Args:
        env_file: Path to a .env file. Loaded with python-dotenv if it exists;
            variables already set in the environment win.
        config_files: JSON files to read in order (later files overlay earlier
            ones). Defaults to appsettings.json and appsettings.Development.json.
            Missing files are skipped.
        base_dir: Directory relative config files are resolved against
            (default: current working directory).

    Returns:
        A Settings record. It is not validated; call ensure_valid().

    Raises:
        ConfigError: If a config file exists but cannot be parsed, or a
            numeric value is not a number.
    """
    sources = []
    base = Path(base_dir) if base_dir else Path.cwd()

    values = {}
    for name in config_files if config_files is not None else DEFAULT_CONFIG_FILES:
        path = Path(name)
        if not path.is_absolute():
            path = base / path
        if path.exists():
            values.update(_read_config_section(path))
            sources.append(f"JSON file: {path}")

    env_path = Path(env_file) if env_file else None
    if env_path and env_path.exists():
        load_dotenv(env_path)
        sources.append(f".env file: {env_path}")
    sources.append("Environment variables")

    def get(env_name):
        env_value = os.getenv(env_name)
        if env_value is not None and env_value != "":
            return env_value
        json_value = values.get(ENV_TO_JSON_KEY[env_name])
        if json_value is not None and json_value != "":
            return json_value
        return DEFAULT_SETTINGS.get(env_name)

    timeout_raw = get("REQUEST_TIMEOUT")
    try:
        timeout = float(timeout_raw)
    except (TypeError, ValueError) as e:
        raise ConfigError([f"REQUEST_TIMEOUT must be a number, got {timeout_raw!r}"]) from e

    team_id = get("HOPPSCOTCH_TEAM_ID")

    return Settings(
        bearer_token=str(get("HOPPSCOTCH_JWT") or ""),
        source_control_token=str(get("GITHUB_TOKEN") or ""),
        source_control_username=str(get("GITHUB_USERNAME") or ""),
        repository_path=str(get("REPO_PATH") or ""),
        api_base_url=str(get("HOPPSCOTCH_API_BASE_URL")),
        backup_sub_path=str(get("BACKUP_SUB_PATH")),
        workspace_name=str(get("WORKSPACE_NAME")),
        team_id=str(team_id) if team_id else None,
        request_timeout=timeout,
        debug=_as_bool(get("DEBUG")),
        sources=tuple(sources),
    )
