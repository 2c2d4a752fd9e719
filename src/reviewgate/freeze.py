from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone
import logging

from reviewgate.config import FileLocation
from reviewgate.manifests import parse_freeze_declarations
from reviewgate.models import (
    Allowed,
    DeniedSilently,
    DeniedWithReasons,
    FreezeDeclaration,
    MergeVerdict,
)
from reviewgate.observability import log_event
from reviewgate.ports import ReviewHost


LOGGER = logging.getLogger("reviewgate.freeze")
MSG_FROZEN_WITH_OWNER = (
    "The target branch of PR has been frozen and it can be merge only by branch owners: {owners}"
)


class FreezeManifestError(RuntimeError):
    """A freeze manifest could not be read; merging must not proceed."""


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class FreezeGate:
    def __init__(
        self,
        host: ReviewHost,
        freeze_files: tuple[FileLocation, ...],
        *,
        now: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._host = host
        self._freeze_files = freeze_files
        self._now = now

    def find_declaration(self, org: str, branch: str) -> FreezeDeclaration | None:
        for location in self._freeze_files:
            try:
                manifest = self._host.get_path_content(
                    location.owner, location.repo, location.path, location.branch
                )
                declarations = parse_freeze_declarations(manifest.content)
            except Exception as exc:
                log_event(
                    LOGGER,
                    "freeze_manifest_unavailable",
                    location=location.describe(),
                    error_type=type(exc).__name__,
                    error=str(exc),
                )
                raise FreezeManifestError(
                    f"Failed to read freeze manifest {location.describe()}: {exc}"
                ) from exc

            for declaration in declarations:
                if declaration.org == org and declaration.branch == branch:
                    return declaration
        return None

    def evaluate(self, org: str, branch: str, trigger: str | None) -> MergeVerdict:
        declaration = self.find_declaration(org, branch)
        if declaration is None or not declaration.covers(self._now()):
            return Allowed()

        log_event(
            LOGGER,
            "branch_frozen",
            org=org,
            branch=branch,
            trigger=trigger,
            owners=declaration.owners,
        )
        if not trigger:
            return DeniedSilently()
        if declaration.is_owner(trigger):
            return Allowed()
        return DeniedWithReasons(
            (MSG_FROZEN_WITH_OWNER.format(owners=", ".join(declaration.owners)),)
        )
