"""
Command-line front end: collects the input record and runs the sync.
"""

from __future__ import annotations

import argparse
import getpass
import sys
from pathlib import Path
from typing import Callable, Dict, List, Optional

from loguru import logger

from repo_sync import __version__
from repo_sync.config import Settings, settings as default_settings
from repo_sync.core.exceptions import (
    ExitCode,
    InputAborted,
    Interrupted,
    InvalidRepositoryURL,
    InvalidUsername,
    RepoSyncError,
    exit_code_for,
)
from repo_sync.core.logging import setup_logging
from repo_sync.schemas.sync import InputRecord, Transport, detect_transport
from repo_sync.services.sync_job import execute_sync

Prompt = Callable[[str], str]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="repo-sync",
        description="Prepare a local checkout of a remote repository with a short-lived access token",
        epilog="The access token is never accepted as an argument; it is prompted for (hidden) or read from stdin.",
    )
    parser.add_argument("--repo-url", help="Git repository URL (HTTPS or SSH)")
    parser.add_argument("--branch", help="Branch to synchronize (default: main)")
    parser.add_argument("--username", help="Username written to the temporary .netrc")
    parser.add_argument("--secret-stdin", action="store_true", help="Read the access token from the first line of stdin")
    parser.add_argument("--work-dir", type=Path, help="Directory the checkout is placed in")
    parser.add_argument("--no-input", action="store_true", help="Never prompt; use defaults for optional values")

    target = parser.add_argument_group("deployment target (passed through to the deployment step)")
    target.add_argument("--ssh-user", help="Remote SSH username")
    target.add_argument("--host", help="Remote server IP or hostname")
    target.add_argument("--ssh-key", help="SSH private key path (default: ~/.ssh/id_rsa)")
    target.add_argument("--port", help="Application internal container port")

    parser.add_argument("--version", action="store_true", help="Show version information")
    return parser


def read_nonempty(label: str, prompt: Prompt = input) -> str:
    """Prompt until a non-empty value is entered."""
    while True:
        try:
            value = prompt(f"{label}: ")
        except EOFError:
            raise InputAborted("Input aborted") from None
        if value:
            return value
        print("Value cannot be empty. Please try again.", file=sys.stderr)


def _read_repo_url(args: argparse.Namespace, prompt: Prompt) -> str:
    if args.repo_url:
        return args.repo_url
    if args.no_input:
        raise InputAborted("--repo-url is required with --no-input")
    while True:
        url = read_nonempty("Git repository URL (HTTPS or SSH)", prompt)
        try:
            detect_transport(url)
            return url
        except InvalidRepositoryURL as exc:
            print(f"{exc}. Try again.", file=sys.stderr)


def _read_secret(args: argparse.Namespace, stdin=None, read_hidden: Prompt = getpass.getpass) -> str:
    if args.secret_stdin:
        line = (stdin or sys.stdin).readline()
        if not line:
            raise InputAborted("Input aborted")
        return line.rstrip("\r\n")
    if args.no_input:
        raise InputAborted("an access token is required; use --secret-stdin with --no-input")
    try:
        return read_hidden("Personal Access Token (PAT) (input will be hidden): ")
    except EOFError:
        raise InputAborted("Input aborted") from None


def _read_username(args: argparse.Namespace, prompt: Prompt) -> Optional[str]:
    if args.username is not None or args.no_input:
        return args.username
    try:
        return prompt("Username for HTTP access (used only for .netrc, Enter for default): ") or None
    except EOFError:
        raise InvalidUsername("aborted reading username") from None


def _read_deployment(args: argparse.Namespace, prompt: Prompt) -> Optional[Dict[str, str]]:
    given = [args.ssh_user, args.host, args.ssh_key, args.port]
    if not any(value is not None for value in given):
        return None
    values = {
        "ssh_user": args.ssh_user,
        "host": args.host,
        "ssh_key_path": args.ssh_key or "~/.ssh/id_rsa",
        "container_port": args.port,
    }
    labels = {
        "ssh_user": "Remote SSH username (e.g. ubuntu)",
        "host": "Remote server IP or hostname",
        "container_port": "Application internal container port (e.g. 3000)",
    }
    for key, label in labels.items():
        if values[key] is None:
            if args.no_input:
                raise InputAborted(f"{key} is required for the deployment target")
            values[key] = read_nonempty(label, prompt)
    return values


def collect_input(
    args: argparse.Namespace,
    prompt: Prompt = input,
    read_hidden: Prompt = getpass.getpass,
    stdin=None,
) -> InputRecord:
    """Gather values from arguments and prompts into a validated InputRecord."""
    repo_url = _read_repo_url(args, prompt)
    transport = detect_transport(repo_url)

    secret = ""
    principal = None
    if transport is Transport.HTTPS:
        secret = _read_secret(args, stdin=stdin, read_hidden=read_hidden)
        principal = _read_username(args, prompt)

    branch = args.branch
    if branch is None and not args.no_input:
        try:
            branch = prompt("Branch name (press Enter for 'main'): ")
        except EOFError:
            raise InputAborted("Input aborted") from None

    values = {
        "repository_url": repo_url,
        "secret": secret,
        "credential_principal": principal,
        "deployment": _read_deployment(args, prompt),
    }
    if branch:
        values["branch"] = branch
    return InputRecord.build(**values)


def main(argv: Optional[List[str]] = None, settings: Optional[Settings] = None) -> int:
    settings = settings or default_settings
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as exc:
        return int(exc.code) if exc.code is not None else int(ExitCode.OK)

    if args.version:
        print(f"repo-sync version {__version__}")
        return int(ExitCode.OK)

    setup_logging(settings)

    try:
        record = collect_input(args)
    except RepoSyncError as exc:
        logger.error(str(exc))
        return int(exc.exit_code)

    try:
        result = execute_sync(record, settings, work_dir=args.work_dir)
    except Interrupted as exc:
        logger.error(f"Sync interrupted by signal {exc.signum}; credentials removed")
        return int(exc.exit_code)

    if result.ok:
        for warning in result.warnings:
            logger.warning(warning)
        print(f"{result.local_path} {result.resolved_commit}")
    else:
        logger.error(f"Sync failed ({result.error_kind.value}): {result.error_message}")
    return int(exit_code_for(result.error_kind))
