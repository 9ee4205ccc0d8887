import argparse
import logging
import sys
from pathlib import Path

from src.adapters.local_storage import LocalFileStorage
from src.adapters.sqlite.migrator import SQLiteMigrator
from src.api.deps import Settings
from src.app_shell.config import validate_runtime
from src.core.ports.storage import StorageError
from src.rules.loader import load_rules
from src.rules.models import Rules

logger = logging.getLogger("cli")


def get_rules(settings: Settings) -> Rules:
    if not Path(settings.rules_path).exists():
        logger.error(f"Rules file {settings.rules_path} not found.")
        sys.exit(1)
    return load_rules(settings.rules_path)


def handle_migrate(settings: Settings, args: argparse.Namespace) -> None:
    applied = SQLiteMigrator(settings.db_path).run_migrations()
    print(f"Database {settings.db_path}: {len(applied)} migration(s) applied.")


def handle_ensure_storage(settings: Settings, args: argparse.Namespace) -> None:
    rules = get_rules(settings)
    store = LocalFileStorage(settings.blob_path, container=rules.storage.container)
    try:
        store.ensure_container()
    except StorageError as e:
        logger.error(f"Blob store not ready: {e}")
        sys.exit(1)
    print(f"Blob container ready at {store.root}")


def handle_check_rules(settings: Settings, args: argparse.Namespace) -> None:
    try:
        rules = load_rules(settings.rules_path)
    except (FileNotFoundError, ValueError) as e:
        logger.error(str(e))
        sys.exit(1)

    print(f"Rules OK: {settings.rules_path} (project {rules.project.slug})")
    problems = validate_runtime(rules, settings.data_dir, settings.api_token)
    if problems and args.strict:
        sys.exit(1)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Content Ops CLI")
    parser.add_argument("--data-dir", help="Data directory (default: $CONTENT_OPS_DATA_DIR)")
    parser.add_argument("--rules", help="Rules file (default: $CONTENT_OPS_RULES_PATH)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # migrate
    subparsers.add_parser("migrate", help="Apply pending database migrations")

    # ensure-storage
    subparsers.add_parser("ensure-storage", help="Create the blob container if missing")

    # check-rules
    check_parser = subparsers.add_parser("check-rules", help="Validate rules and environment")
    check_parser.add_argument(
        "--strict", action="store_true", help="Fail on environment problems too"
    )

    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO)

    settings = Settings(data_dir=args.data_dir, rules_path=args.rules)

    if args.command == "migrate":
        handle_migrate(settings, args)
    elif args.command == "ensure-storage":
        handle_ensure_storage(settings, args)
    elif args.command == "check-rules":
        handle_check_rules(settings, args)


if __name__ == "__main__":
    main()
