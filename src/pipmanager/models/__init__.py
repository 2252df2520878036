from __future__ import annotations

from pipmanager.models.package import OutdatedPackage, PackageRecord, PackageSpec
from pipmanager.models.search import SearchPage, SearchResultItem

__all__ = [
    # package
    "PackageSpec",
    "PackageRecord",
    "OutdatedPackage",
    # search
    "SearchResultItem",
    "SearchPage",
]
