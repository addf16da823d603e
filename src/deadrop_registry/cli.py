"""CLI for dead drop registries.

Operates on a local .deaddrop directory:
- .deaddrop/config.yaml: Registry config (administrator)
- .deaddrop/data.db: SQLite database

Every command accepts --path; without it the registry is discovered from
DEADDROP_PATH, then the current directory, then the git root.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from pathlib import Path
from typing import NoReturn

import cyclopts

from .discovery import RegistryNotFound
from .errors import InvalidPayload, NotAuthorized, NotFound, RegistryError
from .options import RegistryConfigError
from .registry import DeadDropRegistry

logger = logging.getLogger(__name__)

app = cyclopts.App(
    name="deadrop-registry",
    help="Access-controlled dead drops for opaque payloads",
)

EXIT_CODES: dict[type[RegistryError], int] = {
    InvalidPayload: 2,
    NotFound: 3,
    NotAuthorized: 4,
}


def fail(message: str, code: int = 1) -> NoReturn:
    """Print an error to stderr and exit."""
    print(f"Error: {message}", file=sys.stderr)
    raise SystemExit(code)


def open_registry(path: str | None) -> DeadDropRegistry:
    """Open a local registry or exit with error."""
    try:
        registry = DeadDropRegistry.local(path=path)
    except (RegistryNotFound, RegistryConfigError) as e:
        fail(str(e))
    except FileNotFoundError:
        fail(f"No registry at {path}. Create one with 'deadrop-registry init --admin <principal>'")
    logger.debug("Opened registry at %s", registry.location)
    return registry


def fail_operation(e: RegistryError) -> NoReturn:
    """Exit with the status code for a registry error."""
    fail(str(e), EXIT_CODES.get(type(e), 1))


def read_payload(payload: str | None, file: str | None, hex: bool) -> bytes:
    """Resolve payload bytes from an argument, a file, or stdin."""
    if payload is not None and file is not None:
        fail("Pass either PAYLOAD or --file, not both.")

    if file == "-":
        data = sys.stdin.buffer.read()
    elif file is not None:
        data = Path(file).read_bytes()
    elif payload is not None:
        data = payload.encode()
    else:
        fail("Nothing to deposit: pass PAYLOAD or --file.")

    if hex:
        try:
            return bytes.fromhex(data.decode().strip())
        except ValueError as e:
            fail(f"Invalid hex payload: {e}")
    return data


@app.command
def init(*, admin: str, path: str | None = None, no_gitignore: bool = False):
    """Initialize a local registry.

    --admin: Administrator principal (cannot be changed later)
    --path: Path for .deaddrop directory (default: git root or cwd)
    --no-gitignore: Do not add .deaddrop/ to .gitignore
    """
    try:
        registry = DeadDropRegistry.create_local(
            administrator=admin,
            path=path,
            add_to_gitignore=not no_gitignore,
        )
    except RegistryConfigError as e:
        fail(str(e))

    with registry:
        print(f"Registry initialized at {registry.location}")
        print(f"Administrator: {registry.administrator}")


@app.command
def create(
    sender: str,
    recipient: str,
    payload: str | None = None,
    *,
    file: str | None = None,
    hex: bool = False,
    path: str | None = None,
):
    """Deposit a payload for a recipient and print the drop id.

    --file: Read the payload from a file ('-' for stdin)
    --hex: Payload is hex encoded
    """
    data = read_payload(payload, file, hex)
    with open_registry(path) as registry:
        try:
            drop_id = registry.create(sender, recipient, data)
        except RegistryError as e:
            fail_operation(e)
    print(drop_id)


@app.command
def retrieve(caller: str, drop_id: int, *, hex: bool = False, path: str | None = None):
    """Write a drop's payload to stdout. Only the recipient may retrieve it.

    --hex: Print the payload hex encoded instead of raw bytes
    """
    with open_registry(path) as registry:
        try:
            payload = registry.retrieve(caller, drop_id)
        except RegistryError as e:
            fail_operation(e)

    if hex:
        print(payload.hex())
    else:
        sys.stdout.buffer.write(payload)
        sys.stdout.buffer.flush()


@app.command(name="list")
def list_drops(user: str, *, path: str | None = None):
    """List ids of drops a principal sent or received, one per line.

    Ids of deleted drops are still listed.
    """
    with open_registry(path) as registry:
        drop_ids = registry.list_drops_for_user(user)

    for drop_id in drop_ids:
        print(drop_id)


@app.command
def delete(caller: str, drop_id: int, *, path: str | None = None):
    """Delete a drop. Only the administrator may delete."""
    with open_registry(path) as registry:
        try:
            registry.delete(caller, drop_id)
        except RegistryError as e:
            fail_operation(e)
    print(f"Deleted drop {drop_id}")


@app.command
def show(caller: str, drop_id: int, *, path: str | None = None):
    """Show a drop's metadata as JSON. Only the administrator may inspect."""
    with open_registry(path) as registry:
        try:
            drop = registry.inspect(caller, drop_id)
        except RegistryError as e:
            fail_operation(e)
    print(json.dumps(drop.to_dict(include_payload=False), indent=2))


@app.command
def info(*, path: str | None = None, metrics: bool = False):
    """Show registry location, administrator and drop count.

    --metrics: Also print operation timings for this invocation as JSON
    """
    with open_registry(path) as registry:
        data = registry.get_info()
        stats = registry.metrics.to_dict()
    print(f"Backend: {data['backend']}")
    print(f"Location: {data['location']}")
    print(f"Administrator: {data['administrator']}")
    print(f"Drops: {data['drops']}")
    if metrics:
        print("Metrics:")
        print(json.dumps(stats, indent=2))


def main() -> None:
    """Console script entry point."""
    logging.basicConfig(
        level=os.environ.get("DEADDROP_LOG_LEVEL", "WARNING").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app()


if __name__ == "__main__":
    main()
