"""Tests for build directory output and the make wrapper."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Any

import pytest

from daisy_graph import (
    BuildError,
    GenerationResult,
    PatchDescriptor,
    TargetDescriptor,
    generate,
    generate_makefile,
    run_make,
    write_project,
)
from daisy_graph.project import filter_dfu_output


@pytest.fixture
def result(target: TargetDescriptor, patch: PatchDescriptor) -> GenerationResult:
    return generate(target, [patch])


# ---------------------------------------------------------------------------
# Makefile
# ---------------------------------------------------------------------------


class TestMakefile:
    def test_contents(self, result: GenerationResult, tmp_path: Path) -> None:
        build = tmp_path / "build"
        text = generate_makefile(result, build, tmp_path / "libdaisy")
        lines = text.splitlines()
        assert "TARGET = synth" in lines
        assert "CPP_SOURCES = synth_testboard.cpp" in lines
        assert "LIBDAISY_DIR = ../libdaisy" in lines
        assert "APP_TYPE = BOOT_SRAM" in lines
        assert "include $(SYSTEM_FILES_DIR)/Makefile" in lines
        assert "USE_FATFS = 1" not in lines
        assert not any(ln.startswith('CFLAGS+=-I"') for ln in lines)

    def test_rnbo_include(self, result: GenerationResult, tmp_path: Path) -> None:
        build = tmp_path / "build"
        text = generate_makefile(result, build, tmp_path / "libdaisy", tmp_path / "rnbo")
        assert 'CFLAGS+=-I"../rnbo"' in text

    def test_spaces_escaped(self, result: GenerationResult, tmp_path: Path) -> None:
        text = generate_makefile(result, tmp_path / "build", tmp_path / "my libs" / "libdaisy")
        assert "LIBDAISY_DIR = ../my\\ libs/libdaisy" in text

    def test_sdmmc_enables_fatfs(
        self, target_data: dict[str, Any], patch: PatchDescriptor, tmp_path: Path
    ) -> None:
        target_data["defines"]["OOPSY_TARGET_USES_SDMMC"] = 1
        result = generate(TargetDescriptor.model_validate(target_data), [patch])
        text = generate_makefile(result, tmp_path, tmp_path / "libdaisy")
        assert "USE_FATFS = 1" in text.splitlines()


class TestWriteProject:
    def test_writes_files(self, result: GenerationResult, tmp_path: Path) -> None:
        build = tmp_path / "out" / "build"
        cpp_path, makefile_path = write_project(result, build, tmp_path / "libdaisy")
        assert cpp_path == build / "synth_testboard.cpp"
        assert cpp_path.read_text() == result.source
        assert makefile_path.name == "Makefile"
        assert "TARGET = synth" in makefile_path.read_text()


# ---------------------------------------------------------------------------
# make
# ---------------------------------------------------------------------------


class _FakeMake:
    """Records make invocations and answers with canned results."""

    def __init__(self, results: dict[str, tuple[int, str, str]]) -> None:
        self.results = results
        self.calls: list[list[str]] = []

    def __call__(self, cmd: list[str], **kwargs: Any) -> subprocess.CompletedProcess[str]:
        self.calls.append(cmd)
        rc, out, err = self.results.get(" ".join(cmd[1:]), (0, "", ""))
        return subprocess.CompletedProcess(cmd, rc, out, err)


@pytest.fixture
def fake_make(monkeypatch: pytest.MonkeyPatch) -> _FakeMake:
    fake = _FakeMake({})
    monkeypatch.setattr("daisy_graph.project.shutil.which", lambda name: "/usr/bin/make")
    monkeypatch.setattr("daisy_graph.project.subprocess.run", fake)
    return fake


class TestRunMake:
    def test_clean_then_build(self, fake_make: _FakeMake, tmp_path: Path) -> None:
        fake_make.results[""] = (0, "linking...\n", "")
        out = run_make(tmp_path)
        assert fake_make.calls == [["make", "clean"], ["make"]]
        assert "linking..." in out

    def test_missing_make(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setattr("daisy_graph.project.shutil.which", lambda name: None)
        with pytest.raises(BuildError, match="make not found"):
            run_make(tmp_path)

    def test_build_failure(self, fake_make: _FakeMake, tmp_path: Path) -> None:
        fake_make.results[""] = (2, "", "synth.cpp:10: error: 'x' was not declared\n")
        with pytest.raises(BuildError, match="'make' failed") as exc_info:
            run_make(tmp_path)
        assert "not declared" in exc_info.value.output

    def test_upload(self, fake_make: _FakeMake, tmp_path: Path) -> None:
        noise = "".join(
            [
                "dfu-util: Warning: Invalid DFU suffix signature\n",
                "dfu-util: A valid DFU suffix will be required in a future dfu-util release\n",
            ]
        )
        fake_make.results["program-dfu"] = (0, "File downloaded successfully\n", noise)
        run_make(tmp_path, upload=True)
        assert fake_make.calls[-1] == ["make", "program-dfu"]

    def test_upload_without_device(self, fake_make: _FakeMake, tmp_path: Path) -> None:
        fake_make.results["program-dfu"] = (74, "", "No DFU capable USB device available\n")
        with pytest.raises(BuildError, match="no DFU device"):
            run_make(tmp_path, upload=True)

    def test_upload_nonzero_but_downloaded(self, fake_make: _FakeMake, tmp_path: Path) -> None:
        # dfu-util exits non-zero when the device resets after a good download
        fake_make.results["program-dfu"] = (74, "File downloaded successfully\n", "")
        run_make(tmp_path, upload=True)

    def test_upload_reports_other_stderr(self, fake_make: _FakeMake, tmp_path: Path) -> None:
        fake_make.results["program-dfu"] = (0, "", "dfu-util: something broke\n")
        with pytest.raises(BuildError, match="reported errors"):
            run_make(tmp_path, upload=True)


class TestFilterDfuOutput:
    def test_strips_known_noise(self) -> None:
        stderr = "dfu-util: Warning: Invalid DFU suffix signature\nreal problem\n"
        assert filter_dfu_output(stderr) == "real problem\n"

    def test_keeps_unknown_lines(self) -> None:
        assert filter_dfu_output("oops\n") == "oops\n"
