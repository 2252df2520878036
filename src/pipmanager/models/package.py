from __future__ import annotations

from pydantic import BaseModel, ConfigDict, field_validator


class PackageSpec(BaseModel):
    """A normalized package reference: a name and an optional exact version."""

    model_config = ConfigDict(frozen=True)

    name: str
    version: str | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name must not be empty")
        return v

    def to_canonical_string(self) -> str:
        """``name`` or ``name==version``; the form handed to pip."""
        if self.version:
            return f"{self.name}=={self.version}"
        return self.name

    def __str__(self) -> str:
        return self.to_canonical_string()


class PackageRecord(BaseModel):
    """One installed package, optionally annotated with the newest available version."""

    model_config = ConfigDict(frozen=True)

    name: str
    version: str
    latest_version: str | None = None

    @property
    def upgradable(self) -> bool:
        return self.latest_version is not None and self.latest_version != self.version

    def with_latest(self, latest_version: str) -> PackageRecord:
        return self.model_copy(update={"latest_version": latest_version})


class OutdatedPackage(BaseModel):
    """Single item of ``pip list --outdated --format json``."""

    name: str
    version: str
    latest_version: str
    latest_filetype: str | None = None

    def to_record(self) -> PackageRecord:
        return PackageRecord(
            name=self.name,
            version=self.version,
            latest_version=self.latest_version,
        )
