from __future__ import annotations

from collections.abc import Callable
import logging

from reviewgate.commands import is_actionable_note, parse_review_commands
from reviewgate.config import AppConfig
from reviewgate.label_manager import LabelStateManager
from reviewgate.models import NoteEvent, PullRequestEvent, ReviewCommand
from reviewgate.observability import log_event
from reviewgate.ports import ReviewHost


LOGGER = logging.getLogger("reviewgate.bot")


class HandlerErrors(RuntimeError):
    """One or more independent handlers failed while processing an event."""

    def __init__(self, errors: list[tuple[str, Exception]]) -> None:
        self.errors = tuple(errors)
        summary = "; ".join(f"{name}: {exc}" for name, exc in errors)
        super().__init__(f"{len(errors)} handler(s) failed: {summary}")


class ReviewBot:
    def __init__(self, host: ReviewHost, config: AppConfig) -> None:
        self._host = host
        self._config = config

    def _manager_for(self, org: str, repo: str) -> LabelStateManager:
        cfg = self._config.config_for(org, repo)
        return LabelStateManager(self._host, cfg, trusted_login=self._config.bot.trusted_login)

    def handle_pull_request_event(self, event: PullRequestEvent) -> None:
        pr = event.pull_request
        manager = self._manager_for(pr.org, pr.repo)
        log_event(
            LOGGER,
            "event_received",
            kind="pull_request",
            action=event.action,
            repo_full_name=pr.full_name,
            pr_number=pr.number,
        )
        _run_handlers(
            (
                ("clear_labels", lambda: manager.clear_labels(event)),
                ("request_retest", lambda: manager.request_retest(event)),
                ("remind_reviewer", lambda: manager.remind_reviewer(event)),
                ("label_update", lambda: manager.handle_label_update(event)),
            ),
            repo_full_name=pr.full_name,
            pr_number=pr.number,
        )

    def handle_note_event(self, event: NoteEvent) -> None:
        pr = event.pull_request
        manager = self._manager_for(pr.org, pr.repo)
        if not is_actionable_note(event):
            return
        commands = parse_review_commands(event.body)
        if not commands:
            return
        log_event(
            LOGGER,
            "event_received",
            kind="note",
            commands=commands,
            commenter=event.commenter,
            repo_full_name=pr.full_name,
            pr_number=pr.number,
        )
        dispatch: dict[ReviewCommand, Callable[[NoteEvent], None]] = {
            "add_lgtm": manager.add_lgtm,
            "remove_lgtm": manager.remove_lgtm,
            "add_approve": manager.add_approve,
            "remove_approve": manager.remove_approve,
            "check_pr": manager.check_pr,
        }
        _run_handlers(
            tuple((command, _bind(dispatch[command], event)) for command in commands),
            repo_full_name=pr.full_name,
            pr_number=pr.number,
        )


def _bind(handler: Callable[[NoteEvent], None], event: NoteEvent) -> Callable[[], None]:
    return lambda: handler(event)


def _run_handlers(
    handlers: tuple[tuple[str, Callable[[], None]], ...],
    *,
    repo_full_name: str,
    pr_number: int,
) -> None:
    errors: list[tuple[str, Exception]] = []
    for name, handler in handlers:
        try:
            handler()
        except Exception as exc:  # noqa: BLE001
            log_event(
                LOGGER,
                "handler_failed",
                handler=name,
                repo_full_name=repo_full_name,
                pr_number=pr_number,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            errors.append((name, exc))
    if errors:
        raise HandlerErrors(errors)
