"""
Command-line interface for the savesync application.

This module provides the main CLI entry point, handling command-line
arguments, configuration loading and dispatching to the sync runner for
tracking, upload, download and the path inspection helpers.
"""

import argparse
import asyncio
import logging
import signal
import sys
import tomllib
from pathlib import Path
from typing import List, Optional

from ..classification import PathClassifier
from ..config import get_config, set_config_path
from ..manifest import ChecksumManifest
from ..models.config import AppConfig, GameConfig
from ..paths import PathCodec
from ..transfer import ProgressStatus
from ..validation import ValidationError, handle_cli_error, validate_game_name
from .runner import SyncRunner

# --- Logging Setup ---
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)-5.5s] %(name)s:%(filename)s:%(lineno)d\t %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    stream=sys.stdout,
)
logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="savesync",
        description="Track game save files and sync them with a cloud remote.",
    )
    parser.add_argument("-c", "--config", type=Path, help="Path to config.toml.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")

    sub = parser.add_subparsers(dest="command", required=True)

    track = sub.add_parser("track", help="Track a play session, then upload changed saves.")
    track.add_argument("game", help="Configured game name.")
    target = track.add_mutually_exclusive_group()
    target.add_argument("--pid", type=int, help="Attach to an already running game process.")
    target.add_argument("--launch", type=str, help="Command line to launch from the install directory.")
    track.add_argument("--no-upload", action="store_true", help="Only track; do not upload afterwards.")

    upload = sub.add_parser("upload", help="Upload changed files of a game.")
    upload.add_argument("game", help="Configured game name.")
    upload.add_argument("files", nargs="*", help="Files to upload; defaults to the files in the manifest.")
    upload.add_argument("--force", action="store_true", help="Upload even if checksums are unchanged.")

    download = sub.add_parser("download", help="Restore a game's save files from the cloud.")
    download.add_argument("game", help="Configured game name.")
    download.add_argument("keys", nargs="*", help="Portable paths to download; defaults to everything.")
    download.add_argument("--keep-existing", action="store_true", help="Do not overwrite existing local files.")

    compare = sub.add_parser("compare", help="Compare local and cloud play time.")
    compare.add_argument("game", help="Configured game name.")

    status = sub.add_parser("status", help="Show the local manifest of a game.")
    status.add_argument("game", help="Configured game name.")

    classify = sub.add_parser("classify", help="Show whether paths would be ignored.")
    classify.add_argument("game", help="Configured game name.")
    classify.add_argument("paths", nargs="+")

    contract = sub.add_parser("contract", help="Convert absolute paths to portable paths.")
    contract.add_argument("game", help="Configured game name.")
    contract.add_argument("paths", nargs="+")

    expand = sub.add_parser("expand", help="Convert portable paths to absolute paths.")
    expand.add_argument("game", help="Configured game name.")
    expand.add_argument("paths", nargs="+")

    blacklist = sub.add_parser("blacklist", help="Edit a game's manifest blacklist.")
    blacklist.add_argument("game", help="Configured game name.")
    blacklist.add_argument("action", choices=["add", "remove"])
    blacklist.add_argument("path")

    return parser


def resolve_game(app_config: AppConfig, name: str) -> GameConfig:
    """Validate a game name argument and look it up; exits if unknown."""
    try:
        validated = validate_game_name(name, field_name="game argument")
    except ValidationError as e:
        handle_cli_error(
            error=e,
            context="game name validation",
            exit_code=1,
            include_traceback=False,
            logger=logger,
        )

    game = app_config.get_game(validated)
    if game is None:
        logger.error(f"Game '{validated}' not found in configuration.")
        logger.info(f"Available games: {', '.join(g.name for g in app_config.games)}")
        sys.exit(1)
    return game


def _detected_prefix(app_config: AppConfig, game: GameConfig) -> Optional[str]:
    if game.emulation_prefix:
        return game.emulation_prefix
    manifest = ChecksumManifest(app_config.manifest)
    try:
        data = asyncio.run(manifest.load(game.install_dir, game.profile_id))
    finally:
        manifest.close()
    return data.detected_prefix


def _print_paths(app_config: AppConfig, game: GameConfig, command: str, paths: List[str]) -> int:
    prefix = _detected_prefix(app_config, game)
    if command == "classify":
        classifier = PathClassifier(
            app_config.classifier,
            install_dir=game.install_dir,
            blacklist=game.blacklist,
            emulation_prefix=prefix,
        )
        for path in paths:
            verdict = classifier.classify(path)
            state = f"ignored ({verdict.reason})" if verdict.ignored else "tracked"
            print(f"{path}\t{state}")
        return 0

    codec = PathCodec(game.install_dir, prefix)
    convert = codec.contract if command == "contract" else codec.expand
    for path in paths:
        print(f"{path}\t{convert(path)}")
    return 0


def _print_status(app_config: AppConfig, game: GameConfig) -> int:
    manifest = ChecksumManifest(app_config.manifest)
    try:
        data = asyncio.run(manifest.load(game.install_dir, game.profile_id))
        existing = asyncio.run(manifest.count_existing_files(game.install_dir, game.profile_id))
    finally:
        manifest.close()

    print(f"Game:             {game.name}")
    print(f"Install dir:      {game.install_dir}")
    print(f"Profile:          {game.profile_id or 'default'}")
    print(f"Play time:        {data.play_time}")
    print(f"Last sync status: {data.last_sync_status}")
    print(f"Last updated:     {data.last_updated.isoformat()}")
    print(f"Detected prefix:  {data.detected_prefix or '-'}")
    print(f"Files:            {len(data.files)} ({existing} present locally)")
    for key in sorted(data.files):
        print(f"  {key}")
    if data.blacklist:
        print(f"Blacklist:        {len(data.blacklist)}")
        for key in sorted(data.blacklist):
            print(f"  {key}")
    return 0


def _edit_blacklist(app_config: AppConfig, game: GameConfig, action: str, path: str) -> int:
    manifest = ChecksumManifest(app_config.manifest)
    try:
        if action == "add":
            key = asyncio.run(manifest.add_to_blacklist(game.install_dir, path, game.profile_id))
            logger.info(f"Blacklisted {key}")
            return 0
        removed = asyncio.run(manifest.remove_from_blacklist(game.install_dir, path, game.profile_id))
    finally:
        manifest.close()
    if not removed:
        logger.warning(f"{path} was not blacklisted")
        return 1
    logger.info(f"Removed {path} from the blacklist")
    return 0


def main_cli(argv: Optional[List[str]] = None) -> None:
    """
    Main command-line interface for the savesync application.

    Raises:
        SystemExit: With the exit status of the selected command
    """
    args = build_parser().parse_args(argv)
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    if args.config:
        set_config_path(args.config)

    try:
        app_config = get_config()
    except (FileNotFoundError, tomllib.TOMLDecodeError, ValidationError) as e:
        handle_cli_error(
            error=e,
            context="configuration loading",
            exit_code=1,
            include_traceback=False,
            logger=logger,
        )

    game = resolve_game(app_config, args.game)

    if args.command in ("classify", "contract", "expand"):
        sys.exit(_print_paths(app_config, game, args.command, args.paths))
    if args.command == "status":
        sys.exit(_print_status(app_config, game))
    if args.command == "blacklist":
        sys.exit(_edit_blacklist(app_config, game, args.action, args.path))

    # --- Global state for graceful shutdown ---
    shutdown_requested = False
    runner = SyncRunner(app_config, game)

    def global_signal_handler(signum, frame):
        """Handle signals globally to ensure a clean shutdown."""
        nonlocal shutdown_requested
        if shutdown_requested:
            logger.warning("Shutdown already in progress. Please be patient.")
            return
        logger.info(f"Signal {signal.strsignal(signum)} received. Initiating graceful shutdown...")
        shutdown_requested = True
        runner.request_shutdown()

    signal.signal(signal.SIGINT, global_signal_handler)
    signal.signal(signal.SIGTERM, global_signal_handler)

    if args.command == "track":
        command = args.launch
        if args.pid is None and not command:
            if not game.executable:
                logger.error(f"No --pid or --launch given and no executable configured for '{game.name}'.")
                sys.exit(2)
            command = str(Path(game.install_dir) / game.executable)
        ok = runner.run(lambda: runner.track_async(args.pid, command, upload=not args.no_upload))
    elif args.command == "upload":
        ok = runner.run(lambda: runner.upload_async(args.files, force=args.force))
    elif args.command == "download":
        ok = runner.run(lambda: runner.download_async(args.keys, overwrite=not args.keep_existing))
    else:
        comparison = runner.run(runner.compare_async)
        if comparison is not None:
            print(f"{comparison.status.value}\t{comparison.message}")
        ok = comparison is not None and comparison.status != ProgressStatus.ERROR

    if shutdown_requested:
        logger.info(f"'{args.command}' was terminated prematurely due to a shutdown request.")
    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main_cli()
