from __future__ import annotations

import logging

from reviewgate.manifests import ManifestDecodeError, parse_owners
from reviewgate.models import PullRequest
from reviewgate.observability import log_event
from reviewgate.ports import ReviewHost


LOGGER = logging.getLogger("reviewgate.permissions")
OWNERS_FILE = "OWNERS"
_WRITE_PERMISSIONS = frozenset({"admin", "write"})


def has_permission(
    host: ReviewHost,
    actor: str,
    pr: PullRequest,
    *,
    require_owners_check: bool,
) -> bool:
    """Return whether ``actor`` may add or remove review labels on ``pr``.

    Repository write access always suffices. When ``require_owners_check`` is
    set, membership in the base-ref OWNERS file also grants permission. A
    failure of the permission query propagates; OWNERS failures only deny.
    """
    login = actor.lower()
    permission = host.get_user_permission(pr.org, pr.repo, login)
    if permission in _WRITE_PERMISSIONS:
        return True
    if not require_owners_check:
        return False
    return login in repo_owners(host, pr)


def repo_owners(host: ReviewHost, pr: PullRequest) -> frozenset[str]:
    try:
        owners_file = host.get_path_content(pr.org, pr.repo, OWNERS_FILE, pr.base_ref)
        return parse_owners(owners_file.content)
    except ManifestDecodeError as exc:
        log_event(
            LOGGER,
            "owners_file_decode_failed",
            repo_full_name=pr.full_name,
            ref=pr.base_ref,
            error=str(exc),
        )
    except Exception as exc:  # noqa: BLE001
        log_event(
            LOGGER,
            "owners_file_fetch_failed",
            repo_full_name=pr.full_name,
            ref=pr.base_ref,
            error_type=type(exc).__name__,
            error=str(exc),
        )
    return frozenset()
