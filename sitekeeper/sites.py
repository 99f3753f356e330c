"""Site configuration store: YAML documents grouped in folders under the data dir.

Selection by CLI argument:
  - no argument: every site in every folder
  - a folder name: every site in that folder
  - anything else: the site whose ``name`` matches, searched across folders
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError

from sitekeeper.errors import ConfigError
from sitekeeper.models.config import SiteConfig

logger = logging.getLogger(__name__)

_SUFFIXES = (".yaml", ".yml")


def load_site_file(path: Path) -> SiteConfig:
    """Parse and validate one site document. Raises ConfigError."""
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{path} does not contain a site mapping")
    try:
        return SiteConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid site config {path}: {e}") from e


def _site_folders(data_dir: Path) -> list[Path]:
    return sorted(p for p in data_dir.iterdir() if p.is_dir())


def load_sites_from_dir(directory: Path) -> list[SiteConfig]:
    """Load every valid site document in ``directory``; bad documents are logged and skipped."""
    if not directory.is_dir():
        logger.warning("Directory not found: %s", directory)
        return []

    sites = []
    for path in sorted(p for p in directory.iterdir() if p.suffix in _SUFFIXES):
        try:
            site = load_site_file(path)
        except ConfigError as e:
            logger.error("Failed to load %s: %s", path.name, e)
            continue
        logger.debug("Loaded %s from %s", site.name, path)
        sites.append(site)
    return sites


def load_all_sites(data_dir: Path) -> list[SiteConfig]:
    if not data_dir.is_dir():
        logger.error("Data directory not found: %s", data_dir)
        return []
    sites = []
    for folder in _site_folders(data_dir):
        sites.extend(load_sites_from_dir(folder))
    logger.info("Found %d site(s) in %s", len(sites), data_dir)
    return sites


def find_site(data_dir: Path, site_name: str) -> Optional[SiteConfig]:
    if not data_dir.is_dir():
        logger.error("Data directory not found: %s", data_dir)
        return None
    for folder in _site_folders(data_dir):
        for site in load_sites_from_dir(folder):
            if site.name == site_name:
                logger.info("Found site %s in folder %s", site_name, folder.name)
                return site
    logger.error("Site not found: %s", site_name)
    return None


def load_sites(data_dir: Path | str, target: Optional[str] = None) -> list[SiteConfig]:
    """Resolve the CLI target to a list of site configs (possibly empty)."""
    data_dir = Path(data_dir)
    if not target:
        return load_all_sites(data_dir)

    folder = data_dir / target
    if folder.is_dir():
        logger.info("Loading sites from folder: %s", target)
        return load_sites_from_dir(folder)

    site = find_site(data_dir, target)
    return [site] if site else []
