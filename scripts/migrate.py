"""Script to run database migrations."""

import sys
from pathlib import Path

from alembic import command
from alembic.config import Config

ALEMBIC_INI = Path(__file__).resolve().parent.parent / "alembic.ini"


def _config() -> Config:
    alembic_cfg = Config(str(ALEMBIC_INI))
    alembic_cfg.set_main_option("script_location", str(ALEMBIC_INI.parent / "alembic"))
    return alembic_cfg


def run_migrations(revision: str = "head") -> None:
    """Upgrade the database to a revision (latest by default)."""
    try:
        print(f"Running database migrations to {revision}...")
        command.upgrade(_config(), revision)
        print("✓ Migrations completed successfully!")
    except Exception as e:
        print(f"✗ Migration failed: {e}", file=sys.stderr)
        sys.exit(1)


def downgrade(revision: str) -> None:
    """Downgrade the database to a revision."""
    try:
        print(f"Downgrading database to {revision}...")
        command.downgrade(_config(), revision)
        print("✓ Downgrade completed successfully!")
    except Exception as e:
        print(f"✗ Downgrade failed: {e}", file=sys.stderr)
        sys.exit(1)


def create_migration(message: str) -> None:
    """Autogenerate a new migration from the table definitions."""
    try:
        print(f"Creating migration: {message}")
        command.revision(_config(), message=message, autogenerate=True)
        print("✓ Migration created successfully!")
    except Exception as e:
        print(f"✗ Migration creation failed: {e}", file=sys.stderr)
        sys.exit(1)


USAGE = "Usage: python scripts/migrate.py [upgrade [rev] | downgrade <rev> | create <message>]"


if __name__ == "__main__":
    args = sys.argv[1:]
    if not args:
        run_migrations()
    elif args[0] == "upgrade":
        run_migrations(args[1] if len(args) > 1 else "head")
    elif args[0] == "downgrade" and len(args) > 1:
        downgrade(args[1])
    elif args[0] == "create" and len(args) > 1:
        create_migration(" ".join(args[1:]))
    else:
        print(USAGE)
        sys.exit(2)
