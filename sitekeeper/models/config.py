"""Configuration models for the maintenance bot."""

from __future__ import annotations

import json
import os
import re
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

_REPO_PATTERN = re.compile(r"^[\w.-]+/[\w.-]+$")


def resolve_env_value(value: Optional[str]) -> Optional[str]:
    """Resolve an ``env:NAME`` reference; unset variables resolve to None."""
    if isinstance(value, str) and value.startswith("env:"):
        return os.environ.get(value[4:]) or None
    return value


def page_file_name(page: str) -> str:
    """File-name stem for a page path: slashes removed, 'home' for the root."""
    return page.replace("/", "") or "home"


class Resolution(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    width: int = Field(gt=0)
    height: int = Field(gt=0)

    @property
    def viewport(self) -> dict:
        return {"width": self.width, "height": self.height}


# Fixed catalog used for capture and comparison unless a site overrides it.
RESOLUTION_CATALOG: dict[str, Resolution] = {
    "mobile": Resolution(name="mobile", width=375, height=812),
    "tablet": Resolution(name="tablet", width=768, height=1024),
    "laptop": Resolution(name="laptop", width=1366, height=768),
}


class RepositoryConfig(BaseModel):
    repo: str
    branch: str = "main"

    @field_validator("repo")
    @classmethod
    def check_repo(cls, v: str) -> str:
        if not _REPO_PATTERN.match(v):
            raise ValueError(f"repository must look like 'owner/name', got '{v}'")
        return v

    @property
    def owner(self) -> str:
        return self.repo.split("/")[0]

    @property
    def name(self) -> str:
        return self.repo.split("/")[1]


class WebsiteConfig(BaseModel):
    url: str
    pages: list[str] = Field(default_factory=lambda: ["/"])

    @field_validator("url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("pages")
    @classmethod
    def check_distinct_file_names(cls, v: list[str]) -> list[str]:
        seen: dict[str, str] = {}
        for page in v:
            stem = page_file_name(page)
            if stem in seen and seen[stem] != page:
                raise ValueError(
                    f"pages '{seen[stem]}' and '{page}' would share screenshot files '{stem}_*.png'"
                )
            seen.setdefault(stem, page)
        return v


class SiteConfig(BaseModel):
    """One site of the fleet, as described by its YAML document."""

    name: str
    title: str = ""
    repository: RepositoryConfig
    website: WebsiteConfig
    screenshots: list[str] = Field(default_factory=lambda: list(RESOLUTION_CATALOG))
    # Per-site additions or overrides of the catalog: {name: {width, height}}
    resolutions: dict[str, Resolution] = Field(default_factory=dict)

    @field_validator("resolutions", mode="before")
    @classmethod
    def name_resolutions(cls, v):
        if isinstance(v, dict):
            return {
                key: {"name": key, **value} if isinstance(value, dict) else value
                for key, value in v.items()
            }
        return v

    @model_validator(mode="after")
    def check_screenshots(self) -> "SiteConfig":
        if not self.title:
            self.title = self.name
        known = {**RESOLUTION_CATALOG, **self.resolutions}
        unknown = [s for s in self.screenshots if s not in known]
        if unknown:
            raise ValueError(f"Unknown resolution(s): {', '.join(unknown)}")
        return self

    @property
    def pages(self) -> list[str]:
        return self.website.pages

    def selected_resolutions(self) -> list[Resolution]:
        """Resolutions to capture, in the order the site lists them."""
        known = {**RESOLUTION_CATALOG, **self.resolutions}
        return [known[name] for name in self.screenshots]


class MaintenanceSettings(BaseModel):
    # Storage layout
    data_dir: str = "./datas"
    screenshots_dir: str = "static/images/screenshots"
    content_dir: str = "content/websites"
    screenshots_url_prefix: str = "/images/screenshots"

    # Visual comparison
    diff_threshold_percent: float = 0.5
    pixel_tolerance: float = Field(default=0.1, ge=0.0, le=1.0)

    # Capture
    navigation_timeout_ms: int = 60000
    settle_delay_ms: int = 1000
    scroll_step_px: int = 100

    # Merge gate
    auto_merge: bool = True
    merge_max_attempts: int = Field(default=30, ge=1)
    merge_poll_interval_seconds: float = 2.0
    merge_method: str = "squash"

    # Dependency install
    install_max_attempts: int = Field(default=3, ge=1)
    install_retry_delay_seconds: float = 5.0

    # Hosting platform and git identity
    github_api_url: str = "https://api.github.com"
    github_token: Optional[str] = Field(default="env:GH_TOKEN", validate_default=True)
    git_user_email: Optional[str] = Field(default="env:GIT_USER_EMAIL", validate_default=True)
    git_user_name: str = "[Bot] Maintenance"

    # Post-run steps
    publish_results: bool = True
    notify: bool = False

    @field_validator("merge_method")
    @classmethod
    def check_merge_method(cls, v: str) -> str:
        if v not in ("squash", "merge", "rebase"):
            raise ValueError(f"merge_method must be squash, merge or rebase, got '{v}'")
        return v

    @field_validator("github_token", "git_user_email", mode="after")
    @classmethod
    def resolve_env(cls, v: Optional[str]) -> Optional[str]:
        return resolve_env_value(v)

    @classmethod
    def load(cls, path: str | Path) -> "MaintenanceSettings":
        """Load settings from a JSON file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Settings file not found: {path}")
        with open(path) as f:
            data = json.load(f)
        return cls(**data)

    def save(self, path: str | Path) -> None:
        """Save settings to a JSON file (secrets are not written)."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        data = self.model_dump(exclude={"github_token"})
        with open(path, "w") as f:
            json.dump(data, f, indent=2)
