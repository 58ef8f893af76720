from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any

from console.app import ConsoleApp
from console.detail import VulnerabilityDetailController
from console.errors import ConsoleError
from console.forms import bot_config_form, sync_task_form
from console.plugins import PluginCatalogController
from console.query import FilterState, QueryStateController
from console.settings import DEFAULT_SETTINGS_PATH, resolve_settings, setup_logging

LOGGER = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2
EXIT_SESSION = 3


def _emit(payload: Any) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


def _pushed(value: str | None) -> bool | None:
    if value is None:
        return None
    return value == "yes"


def _session_lost(app: ConsoleApp) -> bool:
    return not app.session.is_authenticated


async def cmd_login(app: ConsoleApp, args: argparse.Namespace) -> int:
    if await app.login(args.username, args.password):
        _emit({"status": "logged_in"})
        return EXIT_OK
    _emit({"error": app.view.error})
    return EXIT_FAILED


async def cmd_logout(app: ConsoleApp, args: argparse.Namespace) -> int:
    app.logout()
    _emit({"status": "logged_out"})
    return EXIT_OK


async def _list(app: ConsoleApp, args: argparse.Namespace, fetch: Any, label: str) -> int:
    initial = FilterState(
        cve=getattr(args, "cve", None) or "",
        title=args.title or "",
        pushed=_pushed(args.pushed),
        source=args.source or "",
        page_no=args.page,
    )
    controller = QueryStateController(fetch, label=label, initial=initial)
    controller.refresh()
    await controller.settle()
    if _session_lost(app):
        return EXIT_SESSION
    if controller.error:
        _emit({"error": controller.error})
        return EXIT_FAILED
    start, end = controller.showing_range()
    _emit(
        {
            "page_no": controller.filters.page_no,
            "total_pages": controller.total_pages,
            "total_count": controller.total_count,
            "showing": [start, end],
            "items": [item.model_dump(mode="json") for item in controller.items],
        }
    )
    return EXIT_OK


async def cmd_vulns(app: ConsoleApp, args: argparse.Namespace) -> int:
    return await _list(app, args, app.gateway.list_vulnerabilities, "vulnerabilities")


async def cmd_notices(app: ConsoleApp, args: argparse.Namespace) -> int:
    return await _list(app, args, app.gateway.list_security_notices, "security notices")


async def cmd_vuln(app: ConsoleApp, args: argparse.Namespace) -> int:
    controller = VulnerabilityDetailController(app.gateway.get_vulnerability)
    await controller.load(args.id)
    if _session_lost(app):
        return EXIT_SESSION
    if controller.not_found:
        _emit({"not_found": args.id})
        return EXIT_FAILED
    if controller.error:
        _emit({"error": controller.error})
        return EXIT_FAILED
    _emit(controller.vulnerability.model_dump(mode="json"))
    return EXIT_OK


async def cmd_plugins(app: ConsoleApp, args: argparse.Namespace) -> int:
    controller = PluginCatalogController(app.gateway)
    await controller.load()
    if _session_lost(app):
        return EXIT_SESSION
    if controller.error:
        _emit({"error": controller.error})
        return EXIT_FAILED
    _emit(
        {
            "plugins": [plugin.model_dump() for plugin in controller.plugins],
            "notices": [plugin.model_dump() for plugin in controller.notice_sources],
        }
    )
    return EXIT_OK


async def _config(app: ConsoleApp, form: Any, changes: dict[str, Any], masked: bool = False) -> int:
    await form.load()
    if _session_lost(app):
        return EXIT_SESSION
    if form.error:
        _emit({"error": form.error})
        return EXIT_FAILED
    if changes:
        try:
            form.update(**changes)
        except ValueError as exc:
            LOGGER.error("Invalid value: %s", exc)
            return EXIT_USAGE
        await form.submit()
        if _session_lost(app):
            return EXIT_SESSION
        if form.error:
            _emit({"error": form.error})
            return EXIT_FAILED
    payload = form.draft.masked() if masked else form.draft.model_dump()
    if form.success:
        payload = {"message": form.success, "config": payload}
    _emit(payload)
    return EXIT_OK


async def cmd_sync_task(app: ConsoleApp, args: argparse.Namespace) -> int:
    changes: dict[str, Any] = {}
    if args.name is not None:
        changes["name"] = args.name
    if args.interval is not None:
        changes["interval_minutes"] = args.interval
    if args.enabled is not None:
        changes["status"] = args.enabled
    return await _config(app, sync_task_form(app.gateway), changes)


async def cmd_dingbot(app: ConsoleApp, args: argparse.Namespace) -> int:
    changes: dict[str, Any] = {}
    if args.access_token is not None:
        changes["access_token"] = args.access_token
    if args.secret_token is not None:
        changes["secret_token"] = args.secret_token
    if args.enabled is not None:
        changes["status"] = args.enabled
    return await _config(app, bot_config_form(app.gateway), changes, masked=True)


def _add_list_filters(parser: argparse.ArgumentParser, with_cve: bool) -> None:
    if with_cve:
        parser.add_argument("--cve", help="Filter by CVE identifier")
    parser.add_argument("--title", help="Filter by title")
    parser.add_argument("--pushed", choices=["yes", "no"], help="Filter by push status")
    parser.add_argument("--source", help="Filter by source plugin name")
    parser.add_argument("--page", type=int, default=1, help="Page number (default: 1)")


def _add_toggle(parser: argparse.ArgumentParser) -> None:
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--enable", dest="enabled", action="store_const", const=True, help="Enable")
    group.add_argument("--disable", dest="enabled", action="store_const", const=False, help="Disable")
    parser.set_defaults(enabled=None)


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Admin console for the vulnerability feed service")
    parser.add_argument("--settings", default=DEFAULT_SETTINGS_PATH, help="Path to settings YAML")
    parser.add_argument("--log-level", default=None, help="Logging level (default: from settings)")
    sub = parser.add_subparsers(dest="command", required=True)

    login = sub.add_parser("login", help="Log in and store the session token")
    login.add_argument("username")
    login.add_argument("password")
    login.set_defaults(handler=cmd_login)

    sub.add_parser("logout", help="Forget the stored session token").set_defaults(handler=cmd_logout)

    vulns = sub.add_parser("vulns", help="List vulnerabilities")
    _add_list_filters(vulns, with_cve=True)
    vulns.set_defaults(handler=cmd_vulns)

    vuln = sub.add_parser("vuln", help="Show one vulnerability")
    vuln.add_argument("id")
    vuln.set_defaults(handler=cmd_vuln)

    notices = sub.add_parser("notices", help="List security notices")
    _add_list_filters(notices, with_cve=False)
    notices.set_defaults(handler=cmd_notices)

    sub.add_parser("plugins", help="List data-source plugins").set_defaults(handler=cmd_plugins)

    sync_task = sub.add_parser("sync-task", help="Show or update the data sync task")
    sync_task.add_argument("--name", help="Task name")
    sync_task.add_argument("--interval", help="Interval in minutes (1-1440)")
    _add_toggle(sync_task)
    sync_task.set_defaults(handler=cmd_sync_task)

    dingbot = sub.add_parser("dingbot", help="Show or update the DingTalk bot")
    dingbot.add_argument("--access-token", help="Bot access token")
    dingbot.add_argument("--secret-token", help="Bot signing secret")
    _add_toggle(dingbot)
    dingbot.set_defaults(handler=cmd_dingbot)
    return parser


async def run_command(args: argparse.Namespace, settings: dict[str, Any]) -> int:
    app = ConsoleApp(settings)
    try:
        if args.handler not in (cmd_login, cmd_logout) and not app.session.is_authenticated:
            LOGGER.error("Not logged in, run `login` first")
            return EXIT_SESSION
        return await args.handler(app, args)
    except ConsoleError as exc:
        LOGGER.error("%s failed: %s", args.command, exc)
        return EXIT_FAILED
    finally:
        await app.aclose()


def main(argv: list[str] | None = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    try:
        settings = resolve_settings(args.settings)
    except Exception as exc:  # noqa: BLE001
        setup_logging(args.log_level or "WARNING")
        LOGGER.error("Error loading settings: %s", exc)
        return EXIT_USAGE
    setup_logging(args.log_level or settings["logging"]["level"])
    if getattr(args, "page", 1) < 1:
        LOGGER.error("--page must be >= 1")
        return EXIT_USAGE
    return asyncio.run(run_command(args, settings))


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
