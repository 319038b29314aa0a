# AI Tool Sync Plugin Models
# Pydantic models for everything the plugin engine reads from or writes to disk

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Generic, Optional, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

CACHE_MANIFEST_VERSION = "1.0.0"

ModelT = TypeVar("ModelT", bound=BaseModel)


class ManifestSummary(BaseModel):
    """Name, version and description copied from a plugin's plugin.json."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    version: Optional[str] = None
    description: Optional[str] = None


class CacheEntry(BaseModel):
    """A cached plugin as recorded in cache-manifest.json."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    source: str
    version: Optional[str] = None
    cached_at: str = Field(alias="cachedAt")
    last_accessed: Optional[str] = Field(default=None, alias="lastAccessed")
    path: str
    content_hash: Optional[str] = Field(default=None, alias="contentHash")
    manifest: Optional[ManifestSummary] = None


class PluginCacheMetadata(BaseModel):
    """Sidecar metadata stored inside each cached plugin directory."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    source: str
    version: Optional[str] = None
    cached_at: str = Field(alias="cachedAt")
    last_accessed: str = Field(alias="lastAccessed")
    content_hash: Optional[str] = Field(default=None, alias="contentHash")
    manifest: Optional[ManifestSummary] = None


class CacheManifest(BaseModel):
    """The single durable index of cached plugins."""

    model_config = ConfigDict(populate_by_name=True)

    version: str = CACHE_MANIFEST_VERSION
    plugins: dict[str, CacheEntry] = Field(default_factory=dict)
    last_updated: str = Field(alias="lastUpdated")


class Author(BaseModel):
    """Plugin author."""

    model_config = ConfigDict(extra="allow")

    name: str
    email: Optional[str] = None
    url: Optional[str] = None


class PluginManifest(BaseModel):
    """Contents of an author-provided plugin.json."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: str
    version: Optional[str] = None
    description: Optional[str] = None
    author: Union[str, Author, None] = None
    # Component locations, relative to the plugin root unless absolute
    skills: Union[str, list[str], None] = None
    commands: Union[str, list[str], None] = None
    agents: Union[str, list[str], None] = None
    # Hooks and MCP servers may also be declared inline
    hooks: Union[str, dict[str, Any], None] = None
    mcp_servers: Union[str, dict[str, Any], None] = Field(default=None, alias="mcpServers")

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        """Require a non-empty plugin name."""
        if not v.strip():
            raise ValueError("name must not be empty")
        return v.strip()

    @field_validator("version", mode="before")
    @classmethod
    def version_as_string(cls, v: Any) -> Any:
        """Accept numeric versions such as 1 or 1.2."""
        if isinstance(v, (int, float)):
            return str(v)
        return v

    def summary(self) -> ManifestSummary:
        """Return the cacheable part of the manifest."""
        return ManifestSummary(name=self.name, version=self.version, description=self.description)


@dataclass(frozen=True)
class Validated(Generic[ModelT]):
    """
    Outcome of validating data that crossed the filesystem boundary.

    Exactly one of value/error is set.
    """

    value: Optional[ModelT] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def validate_data(data: Any, model: type[ModelT]) -> Validated[ModelT]:
    """
    Validate already-decoded data against a model.

    Args:
        data: Decoded JSON/YAML value.
        model: Pydantic model class.

    Returns:
        Validated result carrying the model instance or a readable error.
    """
    try:
        return Validated(value=model.model_validate(data))
    except ValidationError as e:
        problems = []
        for error in e.errors():
            loc = " -> ".join(str(part) for part in error["loc"]) or "(root)"
            problems.append(f"{loc}: {error['msg']}")
        return Validated(error="; ".join(problems))


def read_json_model(path: Path, model: type[ModelT], *, text: Optional[str] = None) -> Validated[ModelT]:
    """
    Read a JSON file and validate it against a model.

    Args:
        path: File to read.
        model: Pydantic model class.
        text: Already-read (and possibly preprocessed) file content.

    Returns:
        Validated result; unreadable files and invalid JSON are errors too.
    """
    if text is None:
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            return Validated(error=f"Cannot read {path}: {e}")

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        return Validated(error=f"Invalid JSON in {path}: {e}")

    return validate_data(data, model)


def dump_model(instance: BaseModel) -> str:
    """Serialize a model as pretty JSON with its on-disk (camelCase) keys."""
    data = instance.model_dump(mode="json", by_alias=True, exclude_none=True)
    return json.dumps(data, indent=2) + "\n"
