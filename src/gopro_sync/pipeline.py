"""
Move, join and convert stages and their composition.

In auto mode a stage that produced files hands them straight to the next
stage in the same process: move -> join -> convert.
"""

import logging
import time
from pathlib import Path
from typing import Callable, List, Optional, Sequence

import psutil

from gopro_sync.daily.bucketing import DayBucketer
from gopro_sync.daily.planner import ConcatPlanner
from gopro_sync.device import DeviceMount
from gopro_sync.errors import InsufficientStorageError
from gopro_sync.jobs.dispatcher import JobDispatcher, find_tool
from gopro_sync.jobs.models import Job, StageReport
from gopro_sync.jobs.supervisor import JobSupervisor
from gopro_sync.media.probe import MetadataExtractor
from gopro_sync.media.scanner import find_folder, resolve_inputs, scan
from gopro_sync.notify import PushNotifier
from gopro_sync.timefmt import format_interval
from gopro_sync.transcode import TranscodeStage
from gopro_sync.transfer import ResilientTransfer, check_free_space

logger = logging.getLogger(__name__)

STAGES = ("move", "join", "convert")


class MoveStage:
    """
    Moves videos and images off the camera.

    Videos go to the unprocessed directory, images to the images
    directory; thumbnails are deleted.
    """

    def __init__(self, config, transfer: ResilientTransfer, mount: DeviceMount, notifier: PushNotifier):
        self.config = config
        self.transfer = transfer
        self.mount = mount
        self.notifier = notifier

    def run(self) -> StageReport:
        started = time.time()
        report = StageReport(stage="move")
        paths = self.config.paths
        device = self.config.device

        try:
            check_free_space(paths.home_dir, self.config.control.min_free_space_gb)
        except InsufficientStorageError as e:
            logger.error(f"{e}. Exiting")
            report.aborted = str(e)
            return report

        self.mount.mount()
        try:
            dcim = find_folder(Path(paths.device_mount), device.dcim_folder)
            if dcim is None:
                logger.warning(f"No {device.dcim_folder} folder found under {paths.device_mount}")
            else:
                logger.info(f"Folder {device.dcim_folder} found under: {dcim}")
                for folder in sorted(p for p in dcim.glob(device.folder_pattern) if p.is_dir()):
                    self._move_folder(folder, report)
        finally:
            self.mount.unmount()

        self.notifier.send("GoPro can now be disconnected")

        report.elapsed_seconds = time.time() - started
        return report

    def _move_folder(self, folder: Path, report: StageReport) -> None:
        device = self.config.device
        paths = self.config.paths

        videos = sorted(folder.glob(device.video_pattern))
        images = sorted(folder.glob(device.image_pattern))
        thumbs = sorted(folder.glob(device.thumbnail_pattern))

        if not videos and not images:
            logger.info(f"No files found under: {folder.name}")
            return

        logger.info(f"Found video/image files under: {folder.name}")
        logger.info(f"Videos: {len(videos)} [ {' '.join(v.name for v in videos)} ]")
        logger.info(f"Images: {len(images)} [ {' '.join(i.name for i in images)} ]")
        logger.info(f"Thumbnails: {len(thumbs)}")

        report.inputs.extend(videos)

        if videos:
            logger.info(f"Moving video files from {folder.name} to {paths.unprocessed_dir}:")
            moved, failed = self.transfer.move_files(videos, paths.unprocessed_dir)
            report.outputs.extend(moved)
            report.failed.extend(failed)
            if failed:
                logger.error("Failed to move all video files from GoPro")

        if images:
            logger.info(f"Moving image files from {folder.name} to {paths.images_dir}:")
            _, failed = self.transfer.move_files(images, paths.images_dir)
            if failed:
                logger.error(f"Failed to move image files: {[f.name for f in failed]}")

        if thumbs:
            logger.info(f"Deleting thumbnail files from {folder.name}")
            for thumb in thumbs:
                try:
                    thumb.unlink()
                except OSError as e:
                    logger.warning(f"Error deleting {thumb}: {e}")

        logger.info(f"Finished processing folder {folder.name}")


class JoinStage:
    """Groups clips into days and produces one daily file per day."""

    def __init__(
        self,
        config,
        extractor: MetadataExtractor,
        dispatcher: JobDispatcher,
        supervisor: Optional[JobSupervisor] = None,
    ):
        self.config = config
        self.extractor = extractor
        self.dispatcher = dispatcher
        self.supervisor = supervisor or JobSupervisor.from_config(config, relauncher=dispatcher.relaunch)
        self.bucketer = DayBucketer(config.control.day_reset_hour)
        self.planner = ConcatPlanner(config.paths.joined_dir)

    def run(self, inputs: Sequence[Path]) -> StageReport:
        started = time.time()
        report = StageReport(stage="join", inputs=[Path(p) for p in inputs])

        if not report.inputs:
            logger.info("No videos to join")
            return report

        logger.info(f"Reading capture times of {len(report.inputs)} file(s):")
        files = self.extractor.extract_all(report.inputs)

        buckets = self.bucketer.bucket(files)
        logger.info(f"Generating \"join\" files for {len(buckets)} day(s)")
        plans = self.planner.plan_all(buckets.values())

        for plan in plans:
            try:
                self.supervisor.add(self.dispatcher.dispatch(plan))
            except (OSError, psutil.Error) as e:
                logger.error(f"Could not start job for day {plan.day_key}, keeping source file(s): {e}")
                report.failed.extend(plan.sources)

        def on_complete(job: Job) -> None:
            report.outputs.append(job.destination)

        def on_failed(job: Job) -> None:
            report.failed.extend(job.sources)

        self.supervisor.supervise(on_complete=on_complete, on_failed=on_failed)

        report.elapsed_seconds = time.time() - started
        return report


class Pipeline:
    """
    Runs a stage and, in auto mode, the stages after it.

    Collaborators can be injected; anything omitted is built from the
    configuration.
    """

    def __init__(
        self,
        config,
        notifier: Optional[PushNotifier] = None,
        extractor: Optional[MetadataExtractor] = None,
        dispatcher: Optional[JobDispatcher] = None,
        transfer: Optional[ResilientTransfer] = None,
        mount: Optional[DeviceMount] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config
        self.notifier = notifier or PushNotifier(config)
        self.extractor = extractor or MetadataExtractor(config.tools.ffprobe)
        self.dispatcher = dispatcher or JobDispatcher(config)
        self.transfer = transfer or ResilientTransfer(config, sleep=sleep)
        self.mount = mount or DeviceMount(config)
        self.sleep = sleep

    def _supervisor(self, relauncher=None) -> JobSupervisor:
        return JobSupervisor.from_config(self.config, relauncher=relauncher, sleep=self.sleep)

    def required_tools(self, stage: str) -> List[str]:
        tools = self.config.tools
        if stage == "move":
            required = [tools.rsync]
            if self.config.device.mount_enabled:
                required.extend([tools.gphotofs, tools.fusermount])
            return required
        if stage == "join":
            return [tools.ffprobe, tools.ffmpeg, tools.rsync]
        if stage == "convert":
            return [tools.ffmpeg]
        raise ValueError(f"Unknown stage: {stage}")

    def check_tools(self, stage: str) -> None:
        """Raise ToolNotFoundError if an executable needed by ``stage`` is missing."""
        for tool in self.required_tools(stage):
            find_tool(tool)

    def run(self, stage: str, auto: bool = False, files: Optional[Sequence[str]] = None) -> List[StageReport]:
        """
        Run ``stage`` and, when ``auto`` is set, the stages it feeds.

        Args:
            stage: "move", "join" or "convert"
            auto: Chain to the next stage on success
            files: Explicit inputs for join/convert (full paths or bare names)

        Returns:
            Reports of every stage that ran, in order
        """
        if stage not in STAGES:
            raise ValueError(f"Unknown stage: {stage}")

        reports = []
        if stage == "move":
            report = self.move()
            reports.append(report)
            if not auto:
                logger.info("Run \"gopro-sync manual join\" to join moved videos")
                return reports
            if report.aborted:
                return reports
            if report.failed:
                logger.error("Not all videos were moved: \"auto join\" won't be executed.")
                self.notifier.send("GoPro Not all videos were moved")
                return reports
            if not report.has_outputs:
                logger.info("No videos were moved")
                return reports
            logger.info(f"Calling auto join with {len(report.outputs)} moved video(s)")
            files, stage = report.outputs, "join"

        if stage == "join":
            report = self.join(files)
            reports.append(report)
            if not auto:
                logger.info("Run \"gopro-sync manual convert\" to convert joined video(s)")
                return reports
            if not report.has_outputs:
                logger.info("No videos were joined")
                return reports
            logger.info(f"Calling auto convert with {len(report.outputs)} joined video(s)")
            files, stage = report.outputs, "convert"

        reports.append(self.convert(files))
        return reports

    def move(self) -> StageReport:
        self.check_tools("move")
        stage = MoveStage(self.config, self.transfer, self.mount, self.notifier)
        return self._finish(stage.run())

    def join(self, files: Optional[Sequence] = None) -> StageReport:
        self.check_tools("join")
        paths = self.config.paths
        if files:
            logger.info("Parse user/system specified files")
            inputs = resolve_inputs([str(f) for f in files], paths.unprocessed_dir)
        else:
            logger.info(f"Parse all video files under {paths.unprocessed_dir}")
            inputs = scan(paths.unprocessed_dir, self.config.control.join_pattern)

        stage = JoinStage(
            self.config,
            self.extractor,
            self.dispatcher,
            supervisor=self._supervisor(relauncher=self.dispatcher.relaunch),
        )
        return self._finish(stage.run(inputs))

    def convert(self, files: Optional[Sequence] = None) -> StageReport:
        self.check_tools("convert")
        paths = self.config.paths
        if files:
            logger.info("Parse user/system specified files")
            inputs = resolve_inputs([str(f) for f in files], paths.joined_dir)
        else:
            logger.info(f"Parse all video files under {paths.joined_dir}")
            inputs = scan(paths.joined_dir, self.config.control.convert_pattern)

        logger.info(f"Processing {len(inputs)} video file(s): [ {' '.join(p.name for p in inputs)} ]")

        stage = TranscodeStage(self.config, self.dispatcher, supervisor=self._supervisor())
        report = self._finish(stage.run(inputs))

        if report.inputs:
            message = f"GoPro Videos ({len(report.outputs)}) have been converted"
            if report.failed:
                message += f", {len(report.failed)} failed"
            self.notifier.send(message)
        return report

    @staticmethod
    def _finish(report: StageReport) -> StageReport:
        logger.info(
            f"Stage {report.stage}: {len(report.inputs)} input(s), {len(report.outputs)} output(s), "
            f"{len(report.failed)} failed [elapsed {format_interval(report.elapsed_seconds)}]"
        )
        return report
