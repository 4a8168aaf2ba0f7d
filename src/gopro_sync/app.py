"""
GoPro Sync command line application.

Usage:
    gopro-sync auto move             move -> join -> convert
    gopro-sync auto join [FILE...]   join -> convert
    gopro-sync manual convert [FILE...]

Files may be full paths or bare names looked up in the stage's default
input directory.
"""

import argparse
import signal
import logging
import sys
import time
from typing import List, Optional, Sequence

from gopro_sync.config import Config
from gopro_sync.errors import GoProSyncError
from gopro_sync.jobs.models import StageReport
from gopro_sync.pipeline import Pipeline, STAGES
from gopro_sync.timefmt import format_interval, format_timestamp

logger = logging.getLogger(__name__)

MODES = ("auto", "manual")


class GoProSyncApp:
    """
    Main application class.

    Loads configuration, sets up logging and runs the requested stage.
    """

    def __init__(self, config_path: Optional[str] = None, config: Optional[Config] = None):
        """
        Initialize the application.

        Args:
            config_path: Optional path to configuration file
            config: Already loaded configuration, takes precedence
        """
        self.config = config or Config.load(config_path)
        self.config.validate()
        self.pipeline: Optional[Pipeline] = None

    def setup_logging(self, debug: bool = False) -> None:
        """Configure logging based on mode."""
        if self.config.production_mode:
            logging.basicConfig(
                level=logging.DEBUG if debug else logging.INFO,
                format="%(levelname)s - %(message)s",
                handlers=[logging.StreamHandler(sys.stdout)]
            )
        else:
            log_dir = self.config.paths.home_dir / "logs"
            log_dir.mkdir(parents=True, exist_ok=True)

            logging.basicConfig(
                level=logging.DEBUG,
                format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                handlers=[
                    logging.StreamHandler(sys.stdout),
                    logging.FileHandler(log_dir / "gopro_sync.log"),
                ]
            )

    def install_signal_handlers(self) -> None:
        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)

    def _signal_handler(self, signum, frame) -> None:
        """Stop polling; dispatched processes keep running on their own."""
        logger.warning(f"Received signal {signum}, exiting. Running jobs are not stopped")
        sys.exit(1)

    def run(self, mode: str, stage: str, files: Sequence[str] = ()) -> List[StageReport]:
        """
        Run ``stage`` in ``mode``.

        Returns:
            Reports of every stage that ran
        """
        started = time.time()
        logger.info(f"Script \"gopro-sync {mode} {stage}\" started on: {format_timestamp(started)}")
        for idx, arg in enumerate([mode, stage, *files]):
            logger.info(f"\t{idx}: {arg}")

        if self.pipeline is None:
            self.pipeline = Pipeline(self.config)

        try:
            return self.pipeline.run(stage, auto=(mode == "auto"), files=list(files) or None)
        finally:
            logger.info(
                f"Script \"gopro-sync {mode} {stage}\" finished on: {format_timestamp()} "
                f"[elapsed {format_interval(time.time() - started)}]"
            )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gopro-sync",
        description="Move, join by day and convert videos from a GoPro camera",
    )
    parser.add_argument(
        "mode",
        type=str.lower,
        choices=MODES,
        help="auto: continue with the next stage, manual: run only this stage"
    )
    parser.add_argument(
        "stage",
        type=str.lower,
        choices=STAGES,
        help="Stage to run"
    )
    parser.add_argument(
        "files",
        nargs="*",
        help="Files to process (join/convert only); defaults to the stage's input directory"
    )
    parser.add_argument(
        "-c", "--config",
        help="Path to configuration file",
        default=None
    )
    parser.add_argument(
        "--dev",
        action="store_true",
        help="Run in development mode (debug logging to file)"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.files and args.stage == "move":
        parser.error("move does not accept files")

    try:
        app = GoProSyncApp(config_path=args.config)
    except (OSError, ValueError) as e:
        parser.error(f"Invalid configuration: {e}")

    if args.dev:
        app.config.production_mode = False

    app.setup_logging(debug=args.debug)
    app.install_signal_handlers()

    try:
        reports = app.run(args.mode, args.stage, args.files)
    except GoProSyncError as e:
        logger.error(str(e))
        return 1

    return 0 if all(report.succeeded for report in reports) else 1


if __name__ == "__main__":
    sys.exit(main())
