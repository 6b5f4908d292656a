"""Utility that launches a single-node ScyllaDB Docker container for songbook."""

from __future__ import annotations

import argparse
import subprocess
import sys
import time
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from songbook.config import CONFIG_FILE, load_config, save_config

DEFAULT_CONTAINER = "songbook-scylla"
DEFAULT_PORT = 9042
DOCKER_IMAGE = "scylladb/scylla"


def run(cmd: list[str], *, check: bool = True, **kwargs) -> subprocess.CompletedProcess[str]:
    print("$", " ".join(cmd))
    return subprocess.run(cmd, check=check, text=True, **kwargs)


def container_exists(name: str) -> bool:
    result = subprocess.run(
        ["docker", "ps", "-a", "--filter", f"name={name}", "--format", "{{.ID}}"],
        text=True,
        capture_output=True,
    )
    return bool(result.stdout.strip())


def start_container(name: str, port: int) -> None:
    if container_exists(name):
        print(f"Container '{name}' already exists. Reusing it.")
        run(["docker", "start", name], check=False)
    else:
        run(
            [
                "docker",
                "run",
                "-d",
                "--name",
                name,
                "-p",
                f"{port}:9042",
                DOCKER_IMAGE,
                "--smp",
                "1",
            ]
        )


def node_is_up(status_output: str) -> bool:
    """True when ``nodetool status`` lists a node as Up/Normal."""

    return any(line.strip().startswith("UN ") for line in status_output.splitlines())


def wait_for_start(name: str, retries: int = 60, delay: float = 2.0) -> bool:
    for _ in range(retries):
        result = subprocess.run(
            ["docker", "exec", name, "nodetool", "status"],
            text=True,
            capture_output=True,
        )
        if result.returncode == 0 and node_is_up(result.stdout):
            return True
        time.sleep(delay)
    print("Warning: node did not report UN state; continuing anyway.")
    return False


def update_config(port: int) -> None:
    config = load_config().with_overrides(hosts=["127.0.0.1"], port=port)
    save_config(config)
    print(f"Pointed {CONFIG_FILE} at 127.0.0.1:{port}.")


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--container", default=DEFAULT_CONTAINER, help="Docker container name")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help="Host port to expose CQL on")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv if argv is not None else sys.argv[1:])
    try:
        start_container(args.container, args.port)
        wait_for_start(args.container)
    except FileNotFoundError:
        print("Docker is not installed or not on PATH.")
        return 1
    update_config(args.port)
    print(f"Cluster is ready. Run `songbook` or open a shell with `docker exec -it {args.container} cqlsh`.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
