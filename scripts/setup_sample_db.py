"""Utility that launches a sample PostgreSQL Docker container for bestgres."""

from __future__ import annotations

import argparse
import subprocess
import sys
import time
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from bestgres.config import load_config, read_connection_files, save_connection_file
from bestgres.errors import ConfigError
from bestgres.models import ConnectionConfig

DEFAULT_CONTAINER = "bestgres-sample-db"
DEFAULT_PORT = 5543
DEFAULT_PASSWORD = "bestgres"
DEFAULT_DB = "app_db"
DEFAULT_USER = "bestgres"
CONNECTION_NAME = "Docker Sample"
DOCKER_IMAGE = "postgres:16-alpine"

SEED_SQL = """
CREATE TABLE IF NOT EXISTS users (
    id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
    email varchar(255) NOT NULL UNIQUE,
    name varchar(255) NOT NULL,
    role varchar(50) NOT NULL DEFAULT 'user',
    settings jsonb NOT NULL DEFAULT '{}'::jsonb,
    last_login_at timestamptz,
    created_at timestamptz NOT NULL DEFAULT now()
);
CREATE TABLE IF NOT EXISTS posts (
    id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
    user_id uuid NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    title varchar(500) NOT NULL,
    published boolean NOT NULL DEFAULT false,
    published_on date,
    created_at timestamptz NOT NULL DEFAULT now()
);
CREATE TABLE IF NOT EXISTS tags (
    id serial PRIMARY KEY,
    name varchar(100) NOT NULL UNIQUE
);
CREATE TABLE IF NOT EXISTS post_tags (
    post_id uuid NOT NULL REFERENCES posts(id) ON DELETE CASCADE,
    tag_id integer NOT NULL REFERENCES tags(id) ON DELETE CASCADE,
    PRIMARY KEY (post_id, tag_id)
);
CREATE TABLE IF NOT EXISTS audit_log (
    message text NOT NULL,
    logged_at timestamp NOT NULL DEFAULT now()
);
CREATE OR REPLACE VIEW published_posts AS
    SELECT p.id, p.title, u.email AS author
    FROM posts p JOIN users u ON u.id = p.user_id
    WHERE p.published;
CREATE INDEX IF NOT EXISTS idx_posts_user_id ON posts(user_id);

INSERT INTO users (email, name, role, settings)
SELECT
    'user' || n || '@example.com',
    (array['Alice', 'Bob', 'Carol', 'Dave', 'Eve'])[1 + (n % 5)],
    (array['user', 'admin', 'moderator'])[1 + (n % 3)],
    jsonb_build_object('theme', (array['light', 'dark'])[1 + (n % 2)])
FROM generate_series(1, 20) n
ON CONFLICT (email) DO NOTHING;

INSERT INTO tags (name) VALUES ('technology'), ('design'), ('tutorial')
ON CONFLICT (name) DO NOTHING;

INSERT INTO posts (user_id, title, published, published_on)
SELECT id, 'Hello from ' || name, random() > 0.3, current_date - (random() * 60)::int
FROM users
WHERE NOT EXISTS (SELECT 1 FROM posts);

INSERT INTO audit_log (message) VALUES ('sample data seeded');
""".strip()


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


def start_container(name: str, port: int, password: str, database: str, user: str) -> None:
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
                "-e",
                f"POSTGRES_PASSWORD={password}",
                "-e",
                f"POSTGRES_DB={database}",
                "-e",
                f"POSTGRES_USER={user}",
                "-p",
                f"{port}:5432",
                DOCKER_IMAGE,
            ]
        )
    wait_for_start(name, user)


def wait_for_start(name: str, user: str, retries: int = 15, delay: float = 1.0) -> None:
    for _ in range(retries):
        result = subprocess.run(["docker", "exec", name, "pg_isready", "-U", user], text=True)
        if result.returncode == 0:
            return
        time.sleep(delay)
    print("Warning: database did not report ready state; continuing anyway.")


def seed_data(name: str, database: str, user: str) -> None:
    run(
        ["docker", "exec", "-i", name, "psql", "-U", user, "-d", database, "-v", "ON_ERROR_STOP=1"],
        input=SEED_SQL,
    )


def write_connection_file(port: int, user: str, database: str, password: str) -> None:
    directory = load_config().resolved_connections_dir()
    try:
        existing = read_connection_files(directory)
    except ConfigError as exc:
        print(f"Cannot read {directory}: {exc}")
        return
    if any(item.name == CONNECTION_NAME for item in existing):
        print(f"Connection '{CONNECTION_NAME}' already present in {directory}; leaving as-is.")
        return
    config = ConnectionConfig.create(
        name=CONNECTION_NAME,
        host="localhost",
        port=port,
        user=user,
        database=database,
    )
    path = save_connection_file(directory, config, password)
    print(f"Wrote connection file {path}.")


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--container", default=DEFAULT_CONTAINER, help="Docker container name")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help="Host port to expose Postgres on")
    parser.add_argument("--password", default=DEFAULT_PASSWORD, help="Postgres password")
    parser.add_argument("--database", default=DEFAULT_DB, help="Database name to create")
    parser.add_argument("--user", default=DEFAULT_USER, help="Database user")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv or sys.argv[1:])
    try:
        start_container(args.container, args.port, args.password, args.database, args.user)
        seed_data(args.container, args.database, args.user)
    except FileNotFoundError:
        print("Docker is not installed or not on PATH.")
        return 1
    write_connection_file(args.port, args.user, args.database, args.password)
    print(
        f"Sample database is ready. Import it with load_config_connections or connect to "
        f"localhost:{args.port}/{args.database} as {args.user}."
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
