#!/usr/bin/env python3

import os
import sys
import json
import getpass
import argparse
import logging
from typing import List, Optional
from collections import OrderedDict

import uvicorn

from restcore import settings as _settings
from restcore.api.api import create_app
from restcore.persistence import database
from restcore.persistence.store import DatabaseStore
from restcore.registry import ResourceRegistry


def get_parser(program: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=program)

    commands = parser.add_subparsers(
        description="Available sub-commands: init, resources*, run, systemd",
        dest="command",
        required=True,
        metavar="<command>",
        help="the sub-command to be executed (some have their own subcommands, too)"
    )

    parser_init = commands.add_parser(
        "init",
        description="Initialize the project by creating the config file and the database tables"
    )

    parser_resources = commands.add_parser(
        "resources",
        description="Manage the stored resource collections"
    )
    resource_command = parser_resources.add_subparsers(
        description="Available actions: show, drop",
        dest="action",
        metavar="<action>",
        required=True,
        help="action to perform for resources"
    )
    parser_resources_show = resource_command.add_parser(
        "show",
        description="Show a list of all declared and stored resources with their number of instances"
    )
    parser_resources_drop = resource_command.add_parser(
        "drop",
        description="Delete all instances of a resource (including the members of their sub-collections)"
    )

    parser_run = commands.add_parser(
        "run",
        description="Run 'uvicorn' ASGI server to serve the restcore REST API"
    )

    parser_systemd = commands.add_parser(
        "systemd",
        description="Create a systemd unit file to run the restcore REST API as system service"
    )

    parser_init.add_argument(
        "--database",
        type=str,
        metavar="url",
        help="Database connection URL including scheme and auth"
    )

    parser_resources_show.add_argument(
        "--json",
        action="store_true",
        help="Print the result in JSON format instead of human-readable text"
    )
    parser_resources_show.add_argument(
        "--indent",
        type=int,
        metavar="n",
        help="(JSON-only) Indent the JSON response with n spaces (default: none)"
    )

    parser_resources_drop.add_argument(
        "name",
        metavar="name",
        help="name of the resource whose instances should be deleted"
    )

    parser_run.add_argument(
        "--host",
        type=str,
        metavar="host",
        help="Bind TCP socket to this host (overwrite config)"
    )
    parser_run.add_argument(
        "--port",
        type=int,
        metavar="port",
        help="Bind TCP socket to this port (overwrite config)"
    )
    parser_run.add_argument(
        "--config",
        type=str,
        metavar="config",
        default="config.json",
        help="Overwrite the config file (defaults to 'config.json')"
    )
    parser_run.add_argument(
        "--debug",
        action="store_true",
        help="Enable full debug mode including debug logs of all handlers"
    )
    parser_run.add_argument(
        "--debug-sql",
        action="store_true",
        help="Enable echoing of database actions (overwrites config)"
    )
    parser_run.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload"
    )
    parser_run.add_argument(
        "--workers",
        type=int,
        default=None,
        metavar="n",
        help="Number of worker processes (not valid with --reload)",
    )
    parser_run.add_argument(
        "--no-access-log",
        action="store_true",
        help="Disable access logs"
    )
    parser_run.add_argument(
        "--root-path",
        type=str,
        default="",
        metavar="p",
        help="Sub-mount the application below the given path"
    )

    parser_systemd.add_argument(
        "--force",
        action="store_true",
        help="Allow overwriting existing files"
    )
    parser_systemd.add_argument(
        "--path",
        type=str,
        default=os.path.join(os.path.abspath("."), "restcore.service"),
        metavar="p",
        help="Path to the newly created systemd file"
    )

    return parser


def handle_systemd(args: argparse.Namespace) -> int:
    python_executable = sys.executable
    if sys.executable is None or sys.executable == "":
        python_executable = "python3"
        print(
            "Revise the 'ExecStart' parameter, since the Python "
            "interpreter path could not be determined reliably.",
            file=sys.stderr
        )

    content = f"""[Unit]
Description=restcore REST API server
After=network-online.target
Wants=network-online.target

[Service]
Type=simple
ExecStart={python_executable} -m restcore run
User={getpass.getuser()}
WorkingDirectory={os.path.abspath(".")}
Restart=always
SyslogIdentifier=restcore

[Install]
WantedBy=multi-user.target
"""

    if os.path.exists(args.path) and not args.force:
        print(f"File {args.path!r} already exists. Aborting!", file=sys.stderr)
        return 1

    with open(args.path, "w") as f:
        f.write(content)

    print(
        f"Successfully created the new file {args.path!r}. Now, create a "
        f"symlink from /lib/systemd/system/ to that file. Then use 'systemctl "
        f"daemon-reload' and enable your new service. Check that it works afterwards."
    )

    return 0


def run_server(args: argparse.Namespace):
    if args.debug:
        print("Do not start the server this way during production!", file=sys.stderr)

    _settings.CONFIG_PATHS.insert(0, args.config)
    try:
        settings = _settings.Settings()
    except ValueError:
        print("Ensure that the configuration file is valid. Please correct any errors.", file=sys.stderr)
        raise

    if args.debug:
        settings.logging.root["level"] = "DEBUG"
        for handler in settings.logging.handlers:
            settings.logging.handlers[handler]["level"] = "DEBUG"
    if args.debug_sql:
        settings.database.debug_sql = args.debug_sql

    port = args.port
    if port is None:
        port = settings.server.port
    host = args.host
    if host is None:
        host = settings.server.host

    app = create_app(settings=settings)

    logging.getLogger("restcore").info(f"Server running at host {host} port {port}")
    uvicorn.run(
        "restcore.api.api:api.app" if args.reload else app,
        port=port,
        host=host,
        reload=args.reload,
        workers=args.workers,
        log_level="debug" if args.debug else "info",
        log_config=settings.logging.model_dump(),
        access_log=not args.no_access_log,
        proxy_headers=True,
        root_path=args.root_path
    )
    return 0


def init_project(args: argparse.Namespace) -> int:
    db = _settings.get_db_from_env(args.database)
    if _settings.find_config_file() is None:
        _settings.SETTINGS_LOG_INFO_FUNCTION = print
        _settings.store_configuration(_settings.get_default_core_config(db))
    else:
        print(
            "A config file has been found and will be used. If you want a fresh installation, "
            "you should remove the config file and clear the database, then run this command again."
        )

    config = _settings.Settings()
    if config.database.connection == database.DEFAULT_DATABASE_URL:
        print(
            "The in-memory sqlite3 database is used, all data will be lost on shutdown. Set the "
            "connection URL in the config file to make the project persistent.",
            file=sys.stderr
        )
    database.init(config.database.connection, config.database.debug_sql)
    print("Done.")
    return 0


def print_table(objs: List[dict], keys: Optional[List[str]] = None):
    info = OrderedDict()
    if keys:
        for k in keys:
            info[k] = len(k)
    for obj in objs:
        for key in obj:
            if keys and key not in keys:
                continue
            if key not in info:
                info[key] = len(key)
            info[key] = max(len(str(obj.get(key))), info.get(key))
    print(" | ".join([f"{k:<{info[k]}}" for k in info]))
    print("-+-".join(["-" * info[k] for k in info]))
    for obj in objs:
        print(" | ".join([f"{obj.get(k)!s:<{info[k]}}" for k in info]))


def show_resources(args: argparse.Namespace) -> int:
    config = _settings.Settings()
    database.init(config.database.connection, config.database.debug_sql)
    registry = ResourceRegistry.from_config(config)
    counts = DatabaseStore(registry).resources()

    names = registry.names + sorted(name for name in counts if name not in registry.names)
    summaries = [
        {"name": name, "count": counts.get(name, 0), "declared": registry.get(name) is not None}
        for name in names
    ]
    if args.json:
        print(json.dumps(summaries, indent=args.indent))
        return 0
    print_table(summaries, ["name", "count", "declared"])
    return 0


def drop_resource(args: argparse.Namespace) -> int:
    config = _settings.Settings()
    database.init(config.database.connection, config.database.debug_sql)
    store = DatabaseStore(ResourceRegistry.from_config(config))

    if args.name not in store.resources():
        print(f"There are no instances of {args.name!r} in the database!", file=sys.stderr)
        return 1
    count = store.delete_all(args.name, {})
    print(f"Successfully deleted {count} instances of {args.name!r}.")
    return 0


def handle_resources(args: argparse.Namespace) -> int:
    return {
        "show": show_resources,
        "drop": drop_resource
    }[args.action](args)


if __name__ == '__main__':
    program_name = sys.argv[0] if not sys.argv[0].endswith("__main__.py") else "restcore"
    namespace = get_parser(program_name).parse_args(sys.argv[1:])

    command_functions = {
        "run": run_server,
        "init": init_project,
        "resources": handle_resources,
        "systemd": handle_systemd
    }
    exit(command_functions[namespace.command](namespace))
