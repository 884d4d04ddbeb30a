"""Unified configuration loaded from .blogpipe.toml, env vars, and CLI flags.

Loading order: defaults → TOML file → env vars → CLI flags.
"""

from __future__ import annotations

import logging
import os
import secrets
import tomllib
from pathlib import Path

from pydantic import BaseModel

from blogpipe.shared.errors import ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".blogpipe.toml"
CONFIG_SEARCH_PATHS = [
    Path("."),
]
GLOBAL_CONFIG_PATH = Path.home() / ".config" / "blogpipe" / "config.toml"


class StoreSectionConfig(BaseModel):
    """[store] section."""

    data_dir: str = "."


class LLMSectionConfig(BaseModel):
    """[llm] section."""

    api_key: str = ""
    model: str | None = None
    timeout: int = 120


class WriterSectionConfig(BaseModel):
    """[writer] section."""

    tone: str = "professional"
    target_audience: str = "physiotherapy patients"
    word_count_per_section: int = 300
    section_count: int = 5


class SearchSectionConfig(BaseModel):
    """[search] section."""

    gcp_project_id: str = ""
    gcp_location: str = "global"
    vertex_data_store_id: str = ""
    cse_api_key: str = ""
    cse_cx: str = ""
    places_api_key: str = ""
    place_id: str = ""
    max_results: int = 8

    @property
    def vertex_configured(self) -> bool:
        return bool(self.gcp_project_id and self.vertex_data_store_id)

    @property
    def cse_configured(self) -> bool:
        return bool(self.cse_api_key and self.cse_cx)

    @property
    def places_configured(self) -> bool:
        return bool(self.places_api_key and self.place_id)


class ImageSectionConfig(BaseModel):
    """[image] section."""

    api_key: str = ""
    model: str = "gemini-3-pro-image-preview"
    public_base_url: str = ""


class WixSectionConfig(BaseModel):
    """[wix] section."""

    api_key: str = ""
    site_id: str = ""
    account_id: str = ""
    author_member_id: str = ""


class AdminSectionConfig(BaseModel):
    """[admin] section."""

    password: str = ""


class BlogpipeConfig(BaseModel):
    """Top-level configuration model for the blog pipeline."""

    store: StoreSectionConfig = StoreSectionConfig()
    llm: LLMSectionConfig = LLMSectionConfig()
    writer: WriterSectionConfig = WriterSectionConfig()
    search: SearchSectionConfig = SearchSectionConfig()
    image: ImageSectionConfig = ImageSectionConfig()
    wix: WixSectionConfig = WixSectionConfig()
    admin: AdminSectionConfig = AdminSectionConfig()

    @property
    def data_dir(self) -> Path:
        return Path(self.store.data_dir).expanduser()

    def validate_for(self, *stages: str) -> list[str]:
        """List the settings missing for the given pipeline stages.

        Stages: ``write`` (outline and section drafting), ``publish``.
        Research, image generation and location lookup degrade gracefully
        and never make configuration mandatory.
        """
        missing: list[str] = []
        if "write" in stages and not self.llm.api_key:
            missing.append("ANTHROPIC_API_KEY")
        if "publish" in stages:
            if not self.wix.api_key:
                missing.append("WIX_API_KEY")
            if not self.wix.site_id:
                missing.append("WIX_SITE_ID")
            if not self.wix.author_member_id:
                missing.append("WIX_AUTHOR_MEMBER_ID")
        return missing

    def require(self, *stages: str) -> None:
        """Raise ConfigurationError when any setting for *stages* is missing."""
        missing = self.validate_for(*stages)
        if missing:
            raise ConfigurationError(missing)


def check_admin_secret(provided: str | None, config: BlogpipeConfig) -> bool:
    """Constant-time comparison of *provided* against ``[admin] password``.

    An unset password disables the check.
    """
    expected = config.admin.password
    if not expected:
        return True
    if not provided:
        return False
    return secrets.compare_digest(provided.encode(), expected.encode())


def load_config(path: str | Path | None = None) -> BlogpipeConfig:
    """Load configuration from a TOML file.

    Search order:
    1. Explicit path (if provided)
    2. .blogpipe.toml in CWD
    3. ~/.config/blogpipe/config.toml

    Then overlay environment variables.
    """
    data: dict[str, object] = {}

    if path is not None:
        toml_path = Path(path)
        if toml_path.exists():
            data = _load_toml(toml_path)
        else:
            logger.warning("Config file not found: %s", toml_path)
    else:
        for search_dir in CONFIG_SEARCH_PATHS:
            candidate = search_dir / CONFIG_FILENAME
            if candidate.exists():
                data = _load_toml(candidate)
                logger.info("Loaded config from %s", candidate)
                break
        if not data and GLOBAL_CONFIG_PATH.exists():
            data = _load_toml(GLOBAL_CONFIG_PATH)
            logger.info("Loaded config from %s", GLOBAL_CONFIG_PATH)

    config = BlogpipeConfig.model_validate(data) if data else BlogpipeConfig()

    # Overlay environment variables
    config = _apply_env_vars(config)

    return config


def merge_cli_overrides(config: BlogpipeConfig, **cli_kwargs: object) -> BlogpipeConfig:
    """Overlay explicitly-set CLI flags onto the config.

    Only overrides values where the CLI flag was explicitly provided
    (i.e., not None).
    """
    data = config.model_dump()

    mapping: dict[str, tuple[str, str]] = {
        "data_dir": ("store", "data_dir"),
        "model": ("llm", "model"),
        "tone": ("writer", "tone"),
        "audience": ("writer", "target_audience"),
        "words": ("writer", "word_count_per_section"),
        "sections": ("writer", "section_count"),
    }

    for key, value in cli_kwargs.items():
        if value is None:
            continue
        if key in mapping:
            section, field = mapping[key]
            data[section][field] = value

    return BlogpipeConfig.model_validate(data)


def _load_toml(path: Path) -> dict[str, object]:
    """Load a TOML file and return the data dict."""
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (tomllib.TOMLDecodeError, OSError) as exc:
        logger.warning("Failed to parse %s: %s", path, exc)
        return {}


def _apply_env_vars(config: BlogpipeConfig) -> BlogpipeConfig:
    """Apply environment variable overrides to config."""
    data = config.model_dump()

    env_mapping: dict[str, tuple[str, str]] = {
        "BLOGPIPE_DATA_DIR": ("store", "data_dir"),
        "BLOGPIPE_MODEL": ("llm", "model"),
        "ANTHROPIC_API_KEY": ("llm", "api_key"),
        "GCP_PROJECT_ID": ("search", "gcp_project_id"),
        "GCP_LOCATION": ("search", "gcp_location"),
        "VERTEX_DATA_STORE_ID": ("search", "vertex_data_store_id"),
        "GOOGLE_CSE_API_KEY": ("search", "cse_api_key"),
        "GOOGLE_CSE_CX": ("search", "cse_cx"),
        "GOOGLE_PLACES_API_KEY": ("search", "places_api_key"),
        "GOOGLE_PLACE_ID": ("search", "place_id"),
        "GOOGLE_AI_API_KEY": ("image", "api_key"),
        "IMAGE_MODEL": ("image", "model"),
        "IMAGE_PUBLIC_BASE_URL": ("image", "public_base_url"),
        "WIX_API_KEY": ("wix", "api_key"),
        "WIX_SITE_ID": ("wix", "site_id"),
        "WIX_ACCOUNT_ID": ("wix", "account_id"),
        "WIX_AUTHOR_MEMBER_ID": ("wix", "author_member_id"),
        "ADMIN_PASSWORD": ("admin", "password"),
    }

    for env_var, (section, field) in env_mapping.items():
        value = os.environ.get(env_var)
        if value is not None:
            data[section][field] = value

    return BlogpipeConfig.model_validate(data)
