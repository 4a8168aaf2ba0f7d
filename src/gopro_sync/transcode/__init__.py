"""
Compression of joined daily videos.

One transcode job per daily file, all started at once and supervised by
the same poll loop as the join stage. When a transcode completes, the
joined file is deleted and its concat manifest (``<day>.txt``) is moved
next to the compressed output.
"""

import logging
import shutil
import time
from pathlib import Path
from typing import Optional, Sequence

import psutil

from gopro_sync.daily.planner import MANIFEST_SUFFIX
from gopro_sync.jobs.dispatcher import JobDispatcher
from gopro_sync.jobs.models import Job, StageReport
from gopro_sync.jobs.supervisor import JobSupervisor

logger = logging.getLogger(__name__)


class TranscodeStage:
    """Dispatches and supervises transcodes of joined daily files."""

    def __init__(
        self,
        config,
        dispatcher: JobDispatcher,
        supervisor: Optional[JobSupervisor] = None,
    ):
        """
        Initialize the stage.

        Args:
            config: Configuration with paths and transcode settings
            dispatcher: Starts the transcode processes
            supervisor: Poll loop; built from the configuration if omitted
        """
        self.config = config
        self.dispatcher = dispatcher
        self.supervisor = supervisor or JobSupervisor.from_config(config)
        self.output_dir = config.paths.converted_dir

    def output_for(self, source: Path) -> Path:
        return self.output_dir / f"{source.stem}{self.config.transcode.output_extension}"

    def run(self, inputs: Sequence[Path]) -> StageReport:
        """
        Transcode every input file.

        Returns:
            StageReport with the compressed outputs and any failed inputs
        """
        started = time.time()
        report = StageReport(stage="convert", inputs=[Path(p) for p in inputs])

        if not report.inputs:
            logger.info("No videos to convert")
            return report

        for source in report.inputs:
            try:
                self.supervisor.add(self.dispatcher.dispatch_transcode(source, self.output_for(source)))
            except (OSError, psutil.Error) as e:
                logger.error(f"Could not start transcode of {source.name}, keeping it: {e}")
                report.failed.append(source)

        def on_complete(job: Job) -> None:
            self._move_manifest(Path(job.metadata["input"]), job.destination)
            report.outputs.append(job.destination)

        def on_failed(job: Job) -> None:
            report.failed.append(Path(job.metadata["input"]))

        self.supervisor.supervise(on_complete=on_complete, on_failed=on_failed)

        report.elapsed_seconds = time.time() - started
        return report

    @staticmethod
    def _move_manifest(source: Path, output: Path) -> Optional[Path]:
        """Move ``<source>.txt`` next to ``output``; failures are only logged."""
        manifest = source.with_suffix(MANIFEST_SUFFIX)
        if not manifest.exists():
            return None

        target = output.with_suffix(MANIFEST_SUFFIX)
        try:
            shutil.move(str(manifest), str(target))
        except OSError as e:
            logger.warning(f"Could not move text file {manifest} to {target}: {e}")
            return None

        logger.info(f"Moving text file to: {target}")
        return target
