import socket
import tempfile
import uuid
from importlib.resources import files
from importlib.resources.abc import Traversable
from pathlib import Path
from random import SystemRandom

# IANA dynamic/private port range
EPHEMERAL_PORT_MIN = 49152
EPHEMERAL_PORT_MAX = 65535

_random = SystemRandom()


def get_resource(name: str) -> Traversable:
    """Get a file shipped in the esinside.resources package."""
    return files("esinside.resources") / name


def create_working_root(base: Path | None = None, *, attempts: int = 10) -> Path:
    """Create a uniquely named, empty working directory.

    Args:
        base: Parent directory. Uses the system temp directory if None.
        attempts: How many random names to try before giving up.

    Returns:
        The newly created directory.

    Raises:
        FileExistsError: If every candidate name already existed.
    """
    parent = base if base is not None else Path(tempfile.gettempdir())
    parent.mkdir(parents=True, exist_ok=True)
    for _ in range(attempts):
        candidate = parent / uuid.uuid4().hex
        try:
            candidate.mkdir()
        except FileExistsError:
            continue
        return candidate
    msg = f"Could not create a unique working directory in {parent}"
    raise FileExistsError(msg)


def is_port_free(port: int, host: str = "127.0.0.1") -> bool:
    """Check whether a TCP port can currently be bound on a host."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        try:
            sock.bind((host, port))
        except OSError:
            return False
    return True


def find_free_port(
    low: int = EPHEMERAL_PORT_MIN,
    high: int = EPHEMERAL_PORT_MAX,
    *,
    attempts: int = 50,
) -> int:
    """Pick a random port in a range that is not currently bound.

    Args:
        low: Lowest port to consider.
        high: Highest port to consider (inclusive).
        attempts: How many random ports to try.

    Returns:
        A port number that could be bound when checked.

    Raises:
        OSError: If no free port was found.
    """
    for _ in range(attempts):
        port = _random.randint(low, high)
        if is_port_free(port):
            return port
    msg = f"No free port found in {low}-{high} after {attempts} attempts"
    raise OSError(msg)
