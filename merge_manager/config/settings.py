"""
Configuration system using Pydantic for type-safe run options.

Run options come from CLI flags, optionally layered over a YAML file. The
GitHub token is never part of the options: it is read from the process
environment by ``GitHubCredentials`` so it cannot end up in a config file or
in the logged option dump.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from merge_manager.enums import Action, MergeStrategy, Transport
from merge_manager.exceptions import ConfigurationError, CredentialError

DEFAULT_ORG_NAME = "sous-chefs"
DEFAULT_SUBJECT_MATCHER = "Automated PR: Standardising Files"
DEFAULT_AUTHOR = "kitchen-porter"
DEFAULT_PAGE_SIZE = 100
DEFAULT_API_URL = "https://api.github.com"

_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}")


def _format_validation_error(error: ValidationError) -> str:
    """Flatten a pydantic ValidationError into one readable line.

    Messages raised by our own validators are passed through verbatim
    (e.g. ``Invalid action: foo``); built-in errors are prefixed with the
    offending field.
    """
    messages = []
    for detail in error.errors():
        if detail["type"] == "value_error":
            messages.append(str(detail["msg"]).removeprefix("Value error, "))
        else:
            location = ".".join(str(part) for part in detail["loc"]) or "options"
            messages.append(f"{location}: {detail['msg']}")
    return "; ".join(messages)


class RunOptions(BaseModel):
    """Validated, immutable options for one run.

    Built once at startup and passed explicitly to the engine. Invalid actions
    and merge strategies are rejected here, before any host call is made.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    org_name: str = Field(default=DEFAULT_ORG_NAME, min_length=1, description="Organization to scan")
    subject_matcher: str = Field(
        default=DEFAULT_SUBJECT_MATCHER, description="Exact pull request title to act on"
    )
    actions: tuple[Action, ...] = Field(default=(Action.APPROVE,), description="Actions to apply to matches")
    merge_strategy: MergeStrategy = Field(default=MergeStrategy.SQUASH, description="Merge method for force-merge")
    dry_run: bool = Field(default=False, description="Log mutating calls instead of making them")
    author: str = Field(default=DEFAULT_AUTHOR, description="Expected pull request author (informational)")
    merge_message_prefix: str = Field(default="", description="Prefix for the merge commit message")
    transport: Transport = Field(default=Transport.REST, description="GitHub API used for all calls")
    page_size: int = Field(default=DEFAULT_PAGE_SIZE, ge=1, le=100, description="Items requested per page")

    @field_validator("actions", mode="before")
    @classmethod
    def parse_actions(cls, value: Any) -> tuple[Action, ...]:
        """Accept a comma-separated string or a sequence of action names.

        Blank entries are ignored and duplicates collapse to their first
        occurrence. At least one action must remain.
        """
        if isinstance(value, str):
            names = value.split(",")
        elif isinstance(value, list | tuple):
            names = list(value)
        else:
            raise ValueError(f"Invalid action list: {value!r}")

        parsed: list[Action] = []
        for name in names:
            name = str(name).strip()
            if not name:
                continue
            try:
                action = Action(name)
            except ValueError:
                raise ValueError(f"Invalid action: {name}") from None
            if action not in parsed:
                parsed.append(action)

        if not parsed:
            raise ValueError("At least one action is required")
        return tuple(parsed)

    @field_validator("merge_strategy", mode="before")
    @classmethod
    def parse_merge_strategy(cls, value: Any) -> MergeStrategy:
        if isinstance(value, MergeStrategy):
            return value
        try:
            return MergeStrategy(value)
        except ValueError:
            raise ValueError(f"Invalid merge type: {value}") from None

    @field_validator("transport", mode="before")
    @classmethod
    def parse_transport(cls, value: Any) -> Transport:
        if isinstance(value, Transport):
            return value
        try:
            return Transport(value)
        except ValueError:
            raise ValueError(f"Invalid transport: {value}") from None

    def has_action(self, action: Action) -> bool:
        return action in self.actions

    def describe(self) -> dict[str, Any]:
        """Option values suitable for a log line."""
        return {
            "org_name": self.org_name,
            "subject_matcher": self.subject_matcher,
            "actions": [str(action) for action in self.actions],
            "merge_strategy": str(self.merge_strategy),
            "dry_run": self.dry_run,
            "author": self.author,
            "transport": str(self.transport),
        }

    @classmethod
    def build(cls, **values: Any) -> RunOptions:
        """Construct options, converting validation failures to ConfigurationError.

        Raises:
            ConfigurationError: If any value is invalid
        """
        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigurationError(_format_validation_error(e)) from e

    def merged_with(self, **overrides: Any) -> RunOptions:
        """Return a new instance with ``overrides`` applied on top of these values."""
        values = self.model_dump()
        values.update(overrides)
        return self.build(**values)

    @classmethod
    def from_yaml(cls, config_path: str) -> RunOptions:
        """Load options from a YAML file with environment variable interpolation.

        Supports ${VAR_NAME} and ${VAR_NAME:-default} placeholders inside
        string values. Placeholders are expanded after parsing, so a value
        such as ``Auto:`` or ``[skip ci]`` is never read as YAML syntax.

        Args:
            config_path: Path to YAML options file

        Returns:
            RunOptions instance

        Raises:
            ConfigurationError: If the file is missing, unreadable or invalid
        """
        config_file = Path(config_path)
        if not config_file.exists():
            raise ConfigurationError(f"Configuration file not found: {config_path}")

        try:
            yaml_content = config_file.read_text()
        except OSError as e:
            raise ConfigurationError(f"Cannot read configuration file: {config_path}") from e

        try:
            config_dict = yaml.safe_load(yaml_content)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML syntax in {config_path}: {e}") from e

        if config_dict is None:
            config_dict = {}
        if not isinstance(config_dict, dict):
            raise ConfigurationError("Configuration must be a YAML object, not a list or scalar")

        try:
            config_dict = cls._interpolate_env_vars(config_dict)
        except ValueError as e:
            raise ConfigurationError(f"Invalid environment variable reference in config: {e}") from e

        return cls.build(**config_dict)

    @staticmethod
    def _interpolate_env_vars(value: Any) -> Any:
        """Replace ${VAR_NAME} and ${VAR_NAME:-default} in every string of a parsed document.

        Keys and non-string scalars are left as they are.

        Raises:
            ValueError: If a required environment variable is not set
        """
        if isinstance(value, dict):
            return {key: RunOptions._interpolate_env_vars(item) for key, item in value.items()}
        if isinstance(value, list):
            return [RunOptions._interpolate_env_vars(item) for item in value]
        if not isinstance(value, str):
            return value

        def replace_var(match: re.Match[str]) -> str:
            var_name = match.group(1)
            default_value = match.group(2)
            env_value = os.getenv(var_name)

            if env_value is not None:
                return env_value
            if default_value is not None:
                return default_value
            raise ValueError(f"Environment variable {var_name} is not set")

        return _ENV_VAR_PATTERN.sub(replace_var, value)


class GitHubCredentials(BaseSettings):
    """GitHub credentials sourced from the process environment.

    Reads ``GITHUB_TOKEN`` (required) and ``GITHUB_API_URL`` (optional, for
    GitHub Enterprise Server).
    """

    model_config = SettingsConfigDict(case_sensitive=False, extra="ignore")

    github_token: SecretStr
    github_api_url: str = DEFAULT_API_URL

    @field_validator("github_token")
    @classmethod
    def token_not_blank(cls, value: SecretStr) -> SecretStr:
        if not value.get_secret_value().strip():
            raise ValueError("GITHUB_TOKEN is blank")
        return value

    @property
    def token(self) -> str:
        return self.github_token.get_secret_value().strip()

    @property
    def api_url(self) -> str:
        return self.github_api_url.rstrip("/")

    @property
    def graphql_url(self) -> str:
        """GraphQL endpoint matching the REST base URL.

        github.com serves GraphQL at ``/graphql`` beside the REST root, while
        GitHub Enterprise serves REST at ``/api/v3`` and GraphQL at
        ``/api/graphql``.
        """
        if self.api_url.endswith("/api/v3"):
            return self.api_url.removesuffix("/v3") + "/graphql"
        return f"{self.api_url}/graphql"

    @classmethod
    def from_env(cls) -> GitHubCredentials:
        """Load credentials, failing fast when the token is absent.

        Raises:
            CredentialError: If GITHUB_TOKEN is unset or blank
        """
        try:
            return cls()
        except ValidationError as e:
            if any(detail["type"] == "missing" for detail in e.errors()):
                message = "GITHUB_TOKEN is not set"
            else:
                message = _format_validation_error(e)
            raise CredentialError(message, variable="GITHUB_TOKEN") from e
