"""Package operations for one interpreter, driven through ``python -m pip``.

``PackageManager`` owns the only mutable state in the library: the
interpreter path and the index mirror URL. Both are read at the start of
each operation, so updates take effect on the next call and never
retroactively. Nothing about the installed packages is cached; every
listing re-runs pip.

Failure policy:
  - install / upgrade / manifest install / remove: a ``ProcessError`` is
    reported once through the notifier, then re-raised.
  - ``list_installed`` / ``list_upgradable``: errors propagate unchanged.
  - ``list_installed_with_upgrades``: the upgrade check is best-effort; its
    failure is logged and the plain listing returned. Cancellation still
    propagates.
  - ``list_versions``: returns ``[]`` when no version information can be
    extracted. Cancellation still propagates.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import TypeAdapter, ValidationError

from pipmanager.config import DEFAULT_PYTHON_PATH, MirrorSettings
from pipmanager.errors import (
    ErrorCode,
    InvalidSpecError,
    OperationCancelledError,
    PipManagerError,
    ProcessError,
)
from pipmanager.models.package import OutdatedPackage, PackageRecord, PackageSpec
from pipmanager.sink import LoggingNotifier
from pipmanager.specs import normalize_spec

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from pipmanager.cancel import CancelToken
    from pipmanager.models.search import SearchPage
    from pipmanager.protocols import NotifierProtocol
    from pipmanager.registry import RegistryClient
    from pipmanager.runner import ProcessRunner

log = structlog.get_logger()

# pip's own bootstrap dependencies; uninstalling them breaks the environment
PROTECTED_PACKAGES = frozenset({"pip", "setuptools", "wheel"})

_FROM_VERSIONS_RE = re.compile(r"\(from versions:(.*?)\)")
_NO_VERSIONS = "none"

_installed_adapter = TypeAdapter(list[PackageRecord])
_outdated_adapter = TypeAdapter(list[OutdatedPackage])


def merge_with_upgrades(
    base: Sequence[PackageRecord],
    upgrades: Iterable[PackageRecord],
) -> list[PackageRecord]:
    """Annotate ``base`` with ``latest_version`` from ``upgrades``, joined on name.

    Order of ``base`` is kept and ``upgrades`` never adds entries. An upgrade
    whose latest version equals the installed one is ignored.
    """
    latest = {
        record.name: record.latest_version
        for record in upgrades
        if record.latest_version is not None
    }
    merged: list[PackageRecord] = []
    for record in base:
        version = latest.get(record.name)
        if version is not None and version != record.version:
            merged.append(record.with_latest(version))
        else:
            merged.append(record)
    return merged


def parse_available_versions(message: str) -> list[str]:
    """Extract the ``(from versions: ...)`` clause of a pip diagnostic, newest first."""
    match = _FROM_VERSIONS_RE.search(message)
    if match is None:
        return []
    versions = [v.strip() for v in match.group(1).split(",")]
    versions = [v for v in versions if v and v != _NO_VERSIONS]
    versions.reverse()
    return versions


class PackageManager:
    def __init__(
        self,
        runner: ProcessRunner,
        registry: RegistryClient | None = None,
        *,
        python_path: str | None = None,
        mirror: MirrorSettings | None = None,
        notifier: NotifierProtocol | None = None,
    ) -> None:
        self._runner = runner
        self._registry = registry
        self._python_path = python_path
        self._mirror_url = (mirror or MirrorSettings()).resolve_url()
        self._notifier = notifier or LoggingNotifier()

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    @property
    def python_path(self) -> str:
        return self._python_path or DEFAULT_PYTHON_PATH

    @property
    def mirror_url(self) -> str | None:
        return self._mirror_url

    def update_python_path(self, path: str | None) -> None:
        log.info("python_path_updated", python_path=path)
        self._python_path = path or None

    def update_mirror(self, mirror: MirrorSettings) -> None:
        self._mirror_url = mirror.resolve_url()
        log.info("mirror_updated", mirror_url=self._mirror_url)

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    async def list_installed(
        self,
        cancel_token: CancelToken | None = None,
    ) -> list[PackageRecord]:
        output = await self._pip(["list", "--format", "json"], cancel_token)
        return _parse_json(_installed_adapter, output)

    async def list_upgradable(
        self,
        cancel_token: CancelToken | None = None,
    ) -> list[PackageRecord]:
        output = await self._pip(
            ["list", "--outdated", "--format", "json", *self._mirror_args()],
            cancel_token,
        )
        return [item.to_record() for item in _parse_json(_outdated_adapter, output)]

    async def list_installed_with_upgrades(
        self,
        cancel_token: CancelToken | None = None,
    ) -> list[PackageRecord]:
        packages = await self.list_installed(cancel_token)
        try:
            upgrades = await self.list_upgradable(cancel_token)
        except OperationCancelledError:
            raise
        except Exception:
            log.warning("upgrade_check_failed", exc_info=True)
            return packages
        return merge_with_upgrades(packages, upgrades)

    # ------------------------------------------------------------------
    # Install / upgrade / remove
    # ------------------------------------------------------------------

    async def install(self, spec: Any, cancel_token: CancelToken | None = None) -> None:
        package = _require_spec(spec)
        await self._mutate(
            ["install", package.to_canonical_string(), *self._mirror_args()],
            cancel_token,
        )

    async def upgrade(self, spec: Any, cancel_token: CancelToken | None = None) -> None:
        package = _require_spec(spec)
        await self._mutate(
            ["install", "--upgrade", package.to_canonical_string(), *self._mirror_args()],
            cancel_token,
        )

    async def install_from_manifest(
        self,
        file_path: str,
        cancel_token: CancelToken | None = None,
    ) -> None:
        if not file_path:
            raise InvalidSpecError("Invalid requirements file path")
        await self._mutate(["install", "-r", str(file_path), *self._mirror_args()], cancel_token)

    async def remove(self, spec: Any, cancel_token: CancelToken | None = None) -> bool:
        """Uninstall a package. Returns False (and does nothing) for protected packages."""
        package = _require_spec(spec)
        if package.name.lower() in PROTECTED_PACKAGES:
            log.info("remove_skipped_protected", package=package.name)
            return False
        await self._mutate(["uninstall", package.name, "-y"], cancel_token)
        return True

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    async def list_versions(
        self,
        spec: Any,
        cancel_token: CancelToken | None = None,
    ) -> list[str]:
        """Versions the index offers for a package, newest first.

        Returns ``[]`` when nothing can be determined.
        """
        package = _require_spec(spec)
        # pip has no "list versions" command; asking for an empty pin makes it
        # fail with a diagnostic that enumerates every candidate version
        try:
            await self._pip(
                ["install", f"{package.name}==", *self._mirror_args()],
                cancel_token,
            )
        except OperationCancelledError:
            raise
        except ProcessError as exc:
            versions = parse_available_versions(exc.stderr)
            log.debug("versions_listed", package=package.name, count=len(versions))
            return versions
        except PipManagerError:
            log.warning("versions_probe_failed", package=package.name, exc_info=True)
            return []
        log.warning("versions_probe_unexpected_success", package=package.name)
        return []

    async def search(
        self,
        keyword: str,
        page: int = 1,
        cancel_token: CancelToken | None = None,
    ) -> SearchPage:
        if self._registry is None:
            raise PipManagerError(
                ErrorCode.SEARCH_FAILED, "No registry client configured", recoverable=False
            )
        return await self._registry.search(keyword, page, cancel_token)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _mirror_args(self) -> list[str]:
        mirror = self._mirror_url
        return ["-i", mirror] if mirror else []

    async def _pip(self, args: list[str], cancel_token: CancelToken | None = None) -> str:
        return await self._runner.run(self.python_path, ["-m", "pip", *args], cancel_token)

    async def _mutate(self, args: list[str], cancel_token: CancelToken | None) -> None:
        try:
            await self._pip(args, cancel_token)
        except ProcessError as exc:
            self._notifier.notify_error(exc.message)
            raise


def _require_spec(value: Any) -> PackageSpec:
    spec = normalize_spec(value)
    if spec is None:
        raise InvalidSpecError()
    return spec


def _parse_json(adapter: TypeAdapter[Any], output: str) -> Any:
    try:
        return adapter.validate_json(output)
    except ValidationError as exc:
        raise PipManagerError(
            ErrorCode.INVALID_OUTPUT,
            f"Unexpected output from pip: {exc.error_count()} validation error(s)",
            recoverable=False,
        ) from exc
