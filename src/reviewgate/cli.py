from __future__ import annotations

import argparse
import json
import os
from pathlib import Path

from reviewgate.bot import ReviewBot
from reviewgate.config import AppConfig, ConfigError, RepoConfig, load_config
from reviewgate.events import NOTE_HOOK, PULL_REQUEST_HOOK, parse_event
from reviewgate.gitee_gateway import GiteeGateway
from reviewgate.models import NoteEvent
from reviewgate.observability import configure_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="reviewgate",
        description="Review-label and merge gate for Gitee pull requests",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    event_parser = subparsers.add_parser(
        "handle-event", help="Process one webhook delivery read from a JSON file"
    )
    event_parser.add_argument("--config", type=Path, default=Path("reviewgate.toml"))
    event_parser.add_argument(
        "--event-type",
        required=True,
        choices=(PULL_REQUEST_HOOK, NOTE_HOOK),
        help="Value of the X-Gitee-Event header",
    )
    event_parser.add_argument("--payload", type=Path, required=True)
    event_parser.add_argument(
        "-v",
        "--verbose",
        nargs="?",
        const="high",
        default=None,
        choices=("low", "high"),
        help="Enable runtime logging to stderr (high by default, low for key events only)",
    )

    show_parser = subparsers.add_parser(
        "show-config", help="Print the configuration that applies to a repository"
    )
    show_parser.add_argument("--config", type=Path, default=Path("reviewgate.toml"))
    show_parser.add_argument("--org", required=True)
    show_parser.add_argument("--repo", required=True)
    show_parser.add_argument(
        "-v",
        "--verbose",
        nargs="?",
        const="high",
        default=None,
        choices=("low", "high"),
        help="Enable runtime logging to stderr (high by default, low for key events only)",
    )
    return parser


def main() -> None:
    args = build_parser().parse_args()
    config = load_config(args.config)
    configure_logging(getattr(args, "verbose", None), log_dir=config.bot.log_dir)

    if args.command == "handle-event":
        _cmd_handle_event(config, event_type=str(args.event_type), payload_path=args.payload)
        return
    if args.command == "show-config":
        _cmd_show_config(config, org=str(args.org), repo=str(args.repo))
        return

    raise RuntimeError(f"Unknown command: {args.command}")


def _cmd_handle_event(config: AppConfig, *, event_type: str, payload_path: Path) -> None:
    event = parse_event(event_type, payload_path.read_bytes())
    if event is None:
        print(f"Ignored {event_type} delivery")
        return

    with _build_gateway(config) as gateway:
        bot = ReviewBot(gateway, config)
        if isinstance(event, NoteEvent):
            bot.handle_note_event(event)
        else:
            bot.handle_pull_request_event(event)
    pr = event.pull_request
    print(f"Handled {event_type} for {pr.full_name}#{pr.number}")


def _cmd_show_config(config: AppConfig, *, org: str, repo: str) -> None:
    print(json.dumps(_describe_repo_config(config.config_for(org, repo)), indent=2))


def _describe_repo_config(cfg: RepoConfig) -> dict[str, object]:
    return {
        "repo_id": cfg.repo_id,
        "scope": cfg.scope,
        "lgtm_counts_required": cfg.lgtm_counts_required,
        "merge_method": cfg.merge_method,
        "required_labels": sorted(cfg.required_labels()),
        "labels_not_allow_merge": sorted(cfg.labels_not_allow_merge),
        "missing_labels_for_merge": sorted(cfg.missing_labels_for_merge),
        "freeze_files": [location.describe() for location in cfg.freeze_files],
        "check_permission_based_on_sig_owners": cfg.check_permission_based_on_sig_owners,
        "disable_reviewer_check": cfg.disable_reviewer_check,
        "merge_description": {
            "attribution": cfg.merge_description.attribution,
            "include_origin": cfg.merge_description.include_origin,
        },
    }


def _build_gateway(config: AppConfig) -> GiteeGateway:
    token = os.environ.get(config.bot.token_env, "").strip()
    if not token:
        raise ConfigError(f"Environment variable {config.bot.token_env} must hold a Gitee token")
    return GiteeGateway(
        token,
        base_url=config.bot.api_base_url,
        timeout_seconds=float(config.bot.request_timeout_seconds),
    )
