import argparse
import logging
from pathlib import Path
from typing import Optional, Tuple

from .config import load_config
from .errors import DecorError, DecorValidationError
from .logging_config import configure_logging
from .persistence import FileStore
from .studio import Studio

logger = logging.getLogger(__name__)


def _placement(value: str) -> Tuple[int, int, str]:
    try:
        x, y, furniture_id = value.split(",", 2)
        return int(x), int(y), furniture_id.strip()
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected X,Y,FURNITURE_ID but got '{value}'")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog="dreamdecor",
        description="Dream Decor - run a headless home decoration session",
    )
    parser.add_argument(
        "--settings",
        dest="settings_path",
        type=Path,
        default=None,
        help="Path to a user settings YAML file to load/override defaults.",
    )
    parser.add_argument(
        "--identity",
        default=None,
        help="Player identity (e-mail); enables saving and continuing.",
    )
    parser.add_argument(
        "--save-dir",
        dest="save_dir",
        type=Path,
        default=None,
        help="Directory for save files (defaults to the platform data dir).",
    )
    parser.add_argument(
        "--ticks",
        type=int,
        default=10,
        help="Number of simulation ticks to run.",
    )
    parser.add_argument(
        "--place",
        dest="placements",
        type=_placement,
        action="append",
        default=[],
        metavar="X,Y,ID",
        help="Place furniture before running ticks; may be repeated.",
    )
    parser.add_argument(
        "--continue",
        dest="continue_game",
        action="store_true",
        help="Resume the saved session of --identity instead of starting fresh.",
    )
    parser.add_argument(
        "--log-file",
        dest="log_file",
        type=Path,
        default=None,
        help="Also write log records to this file.",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable verbose debug logging.",
    )
    return parser.parse_args(argv)


def _summary(studio: Studio) -> str:
    view = studio.view()
    goal: Optional[str] = view.goal.description if view.goal is not None else None
    return (
        f"phase={view.phase} budget={view.budget} style={view.score.total_style} "
        f"comfort={view.score.total_comfort} goal={goal or '-'} ({view.goal_status.value})"
    )


def main(argv=None) -> int:
    args = parse_args(argv)
    configure_logging(logging.DEBUG if args.debug else logging.INFO, log_file=args.log_file)

    try:
        config = load_config(user_path=args.settings_path)
    except DecorError as exc:
        logger.error("Invalid settings: %s", exc)
        return 2

    store = FileStore(args.save_dir) if args.identity else None
    studio = Studio.create(config=config, store=store)
    try:
        studio.set_identity(args.identity)
        if args.continue_game:
            try:
                studio.continue_game()
            except DecorError as exc:
                logger.error("Cannot continue: %s", exc)
                return 1
        else:
            studio.new_game()

        for x, y, furniture_id in args.placements:
            try:
                studio.place(x, y, furniture_id)
            except DecorValidationError as exc:
                logger.warning("Placement (%d, %d, %s) rejected: %s", x, y, furniture_id, exc)

        for _ in range(max(0, args.ticks)):
            studio.advance(config.tick_interval)
            view = studio.view()
            if view.goal is not None and view.goal.completed:
                studio.claim_goal()

        if args.identity:
            try:
                studio.save()
            except DecorError as exc:
                logger.error("Could not save progress: %s", exc)
                return 1
        print(_summary(studio))
        for snippet in studio.view().news:
            print(f"  [{snippet.category}] {snippet.text}")
    finally:
        studio.shutdown()
    return 0
