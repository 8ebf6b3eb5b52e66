"""Settings for the metadata tool.

Settings are validated once when the tool starts. Every field has a default so an empty settings file
(or none at all) describes github/rest-api-description and a library whose API surface lives on
`*Service` classes.
"""

import os
import re
from pathlib import Path
from typing import Self

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from github_metadata_sync.errors import ConfigurationError

GITHUB_TOKEN_ENV_VARS: list[str] = ["GITHUB_TOKEN", "GITHUB_PERSONAL_ACCESS_TOKEN"]

DEFAULT_GITHUB_URL = "https://api.github.com"


class PlanPattern(BaseModel):
    """Matches directories of one plan in the descriptions directory."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="The name reported for operations available in this plan.")
    pattern: str = Field(
        description="A regex matched against the directory name. Must define a `plan` group and may define `major` and `minor`."
    )
    minimum_major: int | None = Field(default=None, description="Directories with a lower major version are ignored.")
    single_file_per_operation: bool = Field(
        default=False,
        description="Only record the first description file of this plan on an operation.",
    )

    @field_validator("pattern")
    @classmethod
    def validate_pattern(cls, v: str) -> str:
        try:
            compiled = re.compile(v)
        except re.error as e:
            msg = f"Invalid plan pattern {v!r}: {e}"
            raise ValueError(msg) from e

        if "plan" not in compiled.groupindex:
            msg = f"Plan pattern {v!r} must define a `plan` group"
            raise ValueError(msg)

        return v

    @property
    def regex(self) -> re.Pattern[str]:
        return re.compile(self.pattern)

    def match(self, directory_name: str) -> re.Match[str] | None:
        return self.regex.fullmatch(directory_name)


DEFAULT_PLANS: list[PlanPattern] = [
    PlanPattern(name="public", pattern=r"(?P<plan>api\.github\.com)(-(?P<major>\d+)\.(?P<minor>\d+))?"),
    PlanPattern(name="ghec", pattern=r"(?P<plan>ghec)(-(?P<major>\d+)\.(?P<minor>\d+))?"),
    PlanPattern(
        name="ghes",
        pattern=r"(?P<plan>ghes)(-(?P<major>\d+)\.(?P<minor>\d+))?",
        minimum_major=3,
        single_file_per_operation=True,
    ),
]


class SyncSettings(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    github_url: str = Field(default=DEFAULT_GITHUB_URL, description="The GitHub REST API base URL.")

    descriptions_owner: str = Field(default="github", description="The owner of the OpenAPI descriptions repository.")
    descriptions_repo: str = Field(default="rest-api-description", description="The OpenAPI descriptions repository.")
    descriptions_path: str = Field(default="descriptions", description="The directory holding one directory per plan.")

    plans: list[PlanPattern] = Field(default_factory=lambda: list(DEFAULT_PLANS), description="Plan patterns, in priority order.")

    service_suffix: str = Field(default="Service", description="Classes whose name ends with this suffix hold service methods.")
    aggregate_type: str | None = Field(default="Client", description="A class whose public methods are also service methods.")
    aggregate_excluded_file: str | None = Field(
        default="client.py", description="The file whose `aggregate_type` methods are not service methods."
    )

    @field_validator("plans")
    @classmethod
    def validate_plans(cls, v: list[PlanPattern]) -> list[PlanPattern]:
        if not v:
            msg = "At least one plan pattern is required"
            raise ValueError(msg)
        return v

    @classmethod
    def load(cls, path: Path | None = None, **overrides: str | None) -> Self:
        """Load settings from an optional YAML file, then apply environment and explicit overrides."""

        values: dict[str, object] = {}

        if path is not None:
            try:
                loaded = yaml.safe_load(path.read_text(encoding="utf-8"))
            except (OSError, yaml.YAMLError) as e:
                msg = f"Could not read settings file {path}: {e}"
                raise ConfigurationError(msg) from e

            if loaded is not None and not isinstance(loaded, dict):
                msg = f"Settings file {path} must contain a mapping"
                raise ConfigurationError(msg)

            values.update(loaded or {})

        if github_url := os.getenv("GITHUB_API_URL"):
            values["github_url"] = github_url

        values.update({key: value for key, value in overrides.items() if value is not None})

        try:
            settings = cls.model_validate(values)
        except ValidationError as e:
            msg = f"Invalid settings: {e}"
            raise ConfigurationError(msg) from e

        if minimum_ghes_major := os.getenv("GITHUB_METADATA_MINIMUM_GHES_MAJOR"):
            if not minimum_ghes_major.isdigit():
                msg = f"GITHUB_METADATA_MINIMUM_GHES_MAJOR must be an integer, got {minimum_ghes_major!r}"
                raise ConfigurationError(msg)
            settings = settings.with_minimum_major(plan="ghes", minimum_major=int(minimum_ghes_major))

        return settings

    def with_minimum_major(self, plan: str, minimum_major: int) -> Self:
        plans = [
            plan_pattern.model_copy(update={"minimum_major": minimum_major}) if plan_pattern.name == plan else plan_pattern
            for plan_pattern in self.plans
        ]
        return self.model_copy(update={"plans": plans})

    def plan_for_directory(self, directory_name: str) -> PlanPattern | None:
        for plan in self.plans:
            if plan.match(directory_name):
                return plan
        return None

    def plan_for_file(self, filename: str) -> PlanPattern | None:
        """Find the plan of a description file such as `descriptions/ghes-3.9/ghes-3.9.json`."""

        parts = filename.split("/")
        if len(parts) < 2:  # noqa: PLR2004
            return None
        return self.plan_for_directory(parts[-2])


def get_github_token() -> str | None:
    for env_var in GITHUB_TOKEN_ENV_VARS:
        if token := os.environ.get(env_var):
            return token
    return None
