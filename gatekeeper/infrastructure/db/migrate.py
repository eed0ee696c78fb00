from __future__ import annotations

import getpass
import os
import sys
from datetime import datetime, timezone
from pathlib import Path

import psycopg
from psycopg import errors as pg_errors

from gatekeeper.domain.services import normalize_email
from gatekeeper.infrastructure.security.password import hash_password
from gatekeeper.settings import get_settings

MIGRATIONS_DIR = Path(os.environ.get("MIGRATIONS_DIR", "migrations"))
SCHEMA_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS schema_migrations (
  version    text PRIMARY KEY,
  applied_at timestamptz NOT NULL DEFAULT now()
);
"""
USAGE = (
    "usage: python -m gatekeeper.infrastructure.db.migrate "
    "[up|status|new <name>|create-admin <email> <name>]"
)


def log(msg: str) -> None:
    print(msg, flush=True)


def dsn() -> str:
    url = get_settings().database_url
    if not url:
        print("ERROR: DATABASE_URL is not set", file=sys.stderr)
        sys.exit(2)
    return url


def list_migrations() -> list[Path]:
    if not MIGRATIONS_DIR.exists():
        print(f"ERROR: migrations dir not found: {MIGRATIONS_DIR}", file=sys.stderr)
        sys.exit(2)
    return sorted(MIGRATIONS_DIR.glob("*.sql"))


def applied_versions(conn: psycopg.Connection) -> set[str]:
    with conn.cursor() as cur:
        cur.execute(SCHEMA_TABLE_SQL)
        cur.execute("SELECT version FROM schema_migrations ORDER BY version;")
        rows = cur.fetchall()
    return {r[0] for r in rows}


def apply_one(conn: psycopg.Connection, path: Path) -> None:
    version = path.stem
    log(f"==> applying {version}")
    with conn.cursor() as cur:
        cur.execute(path.read_text(encoding="utf-8"))
        cur.execute(
            "INSERT INTO schema_migrations (version, applied_at) VALUES (%s, now());",
            (version,),
        )
    conn.commit()
    log(f"applied {version}")


def cmd_up() -> int:
    with psycopg.connect(dsn(), autocommit=False) as conn:
        done = applied_versions(conn)
        to_run = [p for p in list_migrations() if p.stem not in done]
        if not to_run:
            log("No pending migrations.")
            return 0
        for path in to_run:
            try:
                apply_one(conn, path)
            except psycopg.Error as e:
                conn.rollback()
                print(f"failed {path.stem}: {e}", file=sys.stderr)
                return 1
    return 0


def cmd_status() -> int:
    with psycopg.connect(dsn()) as conn, conn.cursor() as cur:
        cur.execute(SCHEMA_TABLE_SQL)
        cur.execute(
            "SELECT version, applied_at FROM schema_migrations ORDER BY version;"
        )
        rows = cur.fetchall()
    print("=== Applied ===")
    seen = set()
    for v, at in rows:
        seen.add(v)
        print(f"{v} @ {at.isoformat() if isinstance(at, datetime) else at}")
    print("=== Pending ===")
    for p in list_migrations():
        if p.stem not in seen:
            print(p.stem)
    return 0


def cmd_new(name: str) -> int:
    ts = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M")
    path = MIGRATIONS_DIR / f"{ts}_{name}.sql"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("-- write your SQL here\n", encoding="utf-8")
    print(str(path))
    return 0


def cmd_create_admin(email: str, name: str) -> int:
    """Seed an administrator. Signup only ever creates role='user' accounts."""
    password = os.environ.get("ADMIN_PASSWORD") or getpass.getpass("password: ")
    if len(password) < 6:
        print("ERROR: password must be at least 6 characters", file=sys.stderr)
        return 2

    with psycopg.connect(dsn()) as conn, conn.cursor() as cur:
        try:
            cur.execute(
                """
                INSERT INTO users (email, name, password_hash, role)
                VALUES (%s, %s, %s, 'admin')
                RETURNING id
                """,
                (normalize_email(email), name.strip(), hash_password(password)),
            )
        except pg_errors.UniqueViolation:
            print(f"ERROR: {email} is already registered", file=sys.stderr)
            return 1
        (user_id,) = cur.fetchone()
        conn.commit()
    log(f"created admin {user_id}")
    return 0


def main(argv: list[str]) -> int:
    if len(argv) < 2:
        print(USAGE, file=sys.stderr)
        return 2
    cmd = argv[1]
    if cmd == "up":
        return cmd_up()
    if cmd == "status":
        return cmd_status()
    if cmd == "new":
        if len(argv) < 3:
            print("usage: ... new <name>", file=sys.stderr)
            return 2
        return cmd_new(argv[2])
    if cmd == "create-admin":
        if len(argv) < 4:
            print("usage: ... create-admin <email> <name>", file=sys.stderr)
            return 2
        return cmd_create_admin(argv[2], argv[3])
    print(f"unknown command: {cmd}", file=sys.stderr)
    return 2


if __name__ == "__main__":
    raise SystemExit(main(sys.argv))
