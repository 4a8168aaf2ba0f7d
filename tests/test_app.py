from pathlib import Path

import pytest

from gopro_sync import app as app_module
from gopro_sync.app import GoProSyncApp, build_parser, main
from gopro_sync.errors import ToolNotFoundError
from gopro_sync.jobs.models import StageReport


class FakePipeline:
    def __init__(self, error=None, reports=()):
        self.error = error
        self.reports = list(reports)
        self.calls = []

    def run(self, stage, auto=False, files=None):
        self.calls.append((stage, auto, files))
        if self.error:
            raise self.error
        return self.reports


def test_parser_normalizes_case():
    args = build_parser().parse_args(["AUTO", "Join", "a.MP4", "b.MP4"])

    assert args.mode == "auto"
    assert args.stage == "join"
    assert args.files == ["a.MP4", "b.MP4"]


@pytest.mark.parametrize("argv", [
    ["sometimes", "join"],
    ["auto", "upload"],
    ["auto"],
    ["manual", "move", "a.MP4"],
])
def test_main_rejects_bad_arguments(argv):
    with pytest.raises(SystemExit) as excinfo:
        main(argv)

    assert excinfo.value.code == 2


def test_app_passes_mode_and_files(config):
    app = GoProSyncApp(config=config)
    app.pipeline = FakePipeline()

    app.run("manual", "convert", ["20240301.mp4"])

    assert app.pipeline.calls == [("convert", False, ["20240301.mp4"])]


def test_app_without_files_uses_stage_directory(config):
    app = GoProSyncApp(config=config)
    app.pipeline = FakePipeline()

    app.run("auto", "join")

    assert app.pipeline.calls == [("join", True, None)]


def _use_pipeline(monkeypatch, config, pipeline):
    class App(GoProSyncApp):
        def __init__(self, config_path=None):
            super().__init__(config=config)
            self.pipeline = pipeline

        def setup_logging(self, debug=False):
            pass

        def install_signal_handlers(self):
            pass

    monkeypatch.setattr(app_module, "GoProSyncApp", App)


def test_main_returns_error_status(monkeypatch, config):
    pipeline = FakePipeline(error=ToolNotFoundError("Required tool not found on PATH: ffmpeg"))
    _use_pipeline(monkeypatch, config, pipeline)

    assert main(["auto", "convert"]) == 1
    assert pipeline.calls == [("convert", True, None)]


def test_exit_status_reflects_stage_failures(monkeypatch, config):
    clean = StageReport(stage="join", outputs=[Path("20240301.mp4")])
    failed = StageReport(stage="convert", failed=[Path("20240301.mp4")])

    _use_pipeline(monkeypatch, config, FakePipeline(reports=[clean]))
    assert main(["manual", "join"]) == 0

    _use_pipeline(monkeypatch, config, FakePipeline(reports=[clean, failed]))
    assert main(["auto", "join"]) == 1

    _use_pipeline(monkeypatch, config, FakePipeline(reports=[StageReport(stage="move", aborted="no space")]))
    assert main(["auto", "move"]) == 1


def test_invalid_configuration_is_rejected(config):
    config.control.day_reset_hour = 30

    with pytest.raises(ValueError):
        GoProSyncApp(config=config)
