"""Application bootstrap and command-line interface for Comic Translator."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Callable, Dict, List, Optional

from .core.config import DEFAULT_CONFIG_PATH, AppConfig, ConfigManager
from .core.errors import AnnotationStoreError, MalformedDataError
from .core.file_store import ImageFileStore
from .core.group_registry import GroupRegistry
from .core.models import areas_from_list, areas_to_list

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger(__name__)


def _level_from_name(level: str) -> int:
    return getattr(logging, str(level).upper(), logging.INFO)


def configure_logging(level: str = "INFO") -> None:
    """
    Configure application logging.

    Log records go to stderr so command output on stdout stays clean.

    Args:
        level: Logging level name
    """
    logging.basicConfig(
        format=LOG_FORMAT,
        handlers=[
            logging.StreamHandler(sys.stderr),
        ]
    )
    logging.getLogger().setLevel(_level_from_name(level))


def create_registry(config: AppConfig) -> GroupRegistry:
    """
    Create the group registry and load every group from disk.

    Args:
        config: Application configuration

    Returns:
        Loaded GroupRegistry instance
    """
    registry = GroupRegistry(
        config.storage_path,
        sidecar_name=config.sidecar_filename,
        json_indent=config.json_indent,
    )
    registry.load_all()
    return registry


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="comic-translator",
        description="Manage comic translation groups and their annotations.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG_PATH,
        help="Path to the YAML configuration file (default: %(default)s).",
    )
    parser.add_argument(
        "--root",
        help="Storage root directory; overrides the configured value.",
    )
    parser.add_argument(
        "--log-level",
        help="Logging level; overrides the configured value.",
    )

    subparsers = parser.add_subparsers(title="commands", dest="command", required=True)

    subparsers.add_parser("list", help="List groups.")

    create = subparsers.add_parser("create", help="Create a group.")
    create.add_argument("name")

    delete = subparsers.add_parser("delete", help="Delete a group and all its files.")
    delete.add_argument("name")

    rename = subparsers.add_parser("rename", help="Rename a group.")
    rename.add_argument("old_name")
    rename.add_argument("new_name")

    files = subparsers.add_parser("files", help="List the images of a group.")
    files.add_argument("group")

    show = subparsers.add_parser("show", help="Print the areas of an image as JSON.")
    show.add_argument("group")
    show.add_argument("filename")

    save = subparsers.add_parser("save", help="Replace the areas of an image from JSON.")
    save.add_argument("group")
    save.add_argument("filename")
    save.add_argument(
        "--input",
        "-i",
        metavar="PATH",
        help="JSON file with an array of areas. If omitted or '-', read from stdin.",
    )

    upload = subparsers.add_parser("upload", help="Copy image files into a group.")
    upload.add_argument("group")
    upload.add_argument("paths", nargs="+", type=Path)

    export = subparsers.add_parser("export", help="Export translations as plain text.")
    export.add_argument("group", nargs="?", help="Group to export; all groups if omitted.")
    export.add_argument(
        "--output",
        "-o",
        type=Path,
        help="Write to a file instead of stdout; a directory gets the configured export filename.",
    )

    subparsers.add_parser("init-config", help="Write the effective configuration file.")

    return parser


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_list(args: argparse.Namespace, registry: GroupRegistry, config: AppConfig) -> int:
    for name in registry.list_groups():
        print(name)
    return 0


def _cmd_create(args: argparse.Namespace, registry: GroupRegistry, config: AppConfig) -> int:
    registry.create_group(args.name)
    print(f"Created group {args.name}")
    return 0


def _cmd_delete(args: argparse.Namespace, registry: GroupRegistry, config: AppConfig) -> int:
    registry.delete_group(args.name)
    print(f"Deleted group {args.name}")
    return 0


def _cmd_rename(args: argparse.Namespace, registry: GroupRegistry, config: AppConfig) -> int:
    registry.rename_group(args.old_name, args.new_name)
    print(f"Renamed group {args.old_name} to {args.new_name}")
    return 0


def _cmd_files(args: argparse.Namespace, registry: GroupRegistry, config: AppConfig) -> int:
    store = ImageFileStore(registry, max_upload_bytes=config.max_upload_bytes)
    for name in store.list_images(args.group):
        count = len(registry.get_areas(args.group, name))
        print(f"{name}\t{count}")
    return 0


def _cmd_show(args: argparse.Namespace, registry: GroupRegistry, config: AppConfig) -> int:
    areas = registry.get_areas(args.group, args.filename)
    print(json.dumps(areas_to_list(areas), ensure_ascii=False, indent=2))
    return 0


def _load_json(path: Optional[str]) -> object:
    """Read JSON from a file, or from stdin when path is None or '-'."""
    try:
        if path is None or path == "-":
            return json.load(sys.stdin)
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise MalformedDataError(f"Invalid JSON input: {e}") from e


def _cmd_save(args: argparse.Namespace, registry: GroupRegistry, config: AppConfig) -> int:
    areas = areas_from_list(_load_json(args.input))
    registry.set_areas(args.group, args.filename, areas)
    print(f"Saved {len(areas)} areas for {args.group}/{args.filename}")
    return 0


def _cmd_upload(args: argparse.Namespace, registry: GroupRegistry, config: AppConfig) -> int:
    store = ImageFileStore(registry, max_upload_bytes=config.max_upload_bytes)
    for path in args.paths:
        name = store.save_image(args.group, path.name, path.read_bytes())
        print(f"Uploaded {name}")
    return 0


def _cmd_export(args: argparse.Namespace, registry: GroupRegistry, config: AppConfig) -> int:
    if args.group:
        report = registry.export_group(args.group)
    else:
        report = registry.export_all()

    if args.output:
        output = args.output
        if output.is_dir():
            output = output / config.export_filename
        output.write_text(report, encoding="utf-8")
        logger.info(f"Exported translations to {output}")
    else:
        sys.stdout.write(report)
    return 0


CommandHandler = Callable[[argparse.Namespace, GroupRegistry, AppConfig], int]

COMMANDS: Dict[str, CommandHandler] = {
    "list": _cmd_list,
    "create": _cmd_create,
    "delete": _cmd_delete,
    "rename": _cmd_rename,
    "files": _cmd_files,
    "show": _cmd_show,
    "save": _cmd_save,
    "upload": _cmd_upload,
    "export": _cmd_export,
}


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def run(argv: Optional[List[str]] = None) -> int:
    """
    Run a Comic Translator command.

    Args:
        argv: Command-line arguments, defaults to sys.argv

    Returns:
        Exit code
    """
    parser = _build_arg_parser()
    args = parser.parse_args(argv)

    # Set up handlers first so config loading is logged too
    configure_logging(args.log_level or "INFO")

    manager = ConfigManager(args.config)
    config = manager.config
    if args.root:
        config.storage_root = args.root
    if args.log_level:
        config.log_level = args.log_level

    configure_logging(config.log_level)

    if args.command == "init-config":
        return 0 if manager.save(config) else 1

    try:
        registry = create_registry(config)
        return COMMANDS[args.command](args, registry, config)
    except AnnotationStoreError as e:
        logger.error(f"{args.command} failed: {e}")
        return 1
    except OSError as e:
        logger.error(f"{args.command} failed: {e}", exc_info=True)
        return 1
    except Exception as e:
        logger.error(f"{args.command} failed unexpectedly: {e}", exc_info=True)
        return 1


def main() -> None:
    """Main entry point for the application."""
    sys.exit(run())


if __name__ == "__main__":
    main()
