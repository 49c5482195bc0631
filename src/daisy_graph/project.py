"""Build directory layout and toolchain invocation.

Writes the generated translation unit next to a libDaisy ``Makefile`` and
drives ``make`` (and ``make program-dfu`` for uploads).
"""

from __future__ import annotations

import os
import shutil
import subprocess
from pathlib import Path
from typing import Optional

from daisy_graph.compile import GenerationResult
from daisy_graph.errors import BuildError

# Harmless dfu-util chatter printed for every upload of an unsuffixed binary.
_DFU_NOISE = (
    "dfu-util: Warning: Invalid DFU suffix signature\n",
    "dfu-util: A valid DFU suffix will be required in a future dfu-util release\n",
)

_WARNING_FLAGS = "-O3 -Wno-unused-but-set-variable -Wno-unused-parameter -Wno-unused-variable"


def _make_path(path: str | Path, start: Path) -> str:
    """Return *path* relative to *start*, posix-formatted with spaces escaped."""
    rel = os.path.relpath(Path(path).resolve(), start.resolve())
    return Path(rel).as_posix().replace(" ", "\\ ")


def generate_makefile(
    result: GenerationResult,
    build_dir: str | Path,
    libdaisy_dir: str | Path,
    rnbo_dir: Optional[str | Path] = None,
) -> str:
    """Return the Makefile text for *result* built in *build_dir*."""
    build_dir = Path(build_dir)
    lines = [
        "# Project Name",
        f"TARGET = {result.build_name}",
        "# Sources",
        f"CPP_SOURCES = {_make_path(build_dir / result.filename, build_dir)}",
        "C_SOURCES = ../tlsf.c",
        "",
        "# Library Locations",
        f"LIBDAISY_DIR = {_make_path(libdaisy_dir, build_dir)}",
        "APP_TYPE = BOOT_SRAM",
        "",
    ]
    if result.hardware.defines.get("OOPSY_TARGET_USES_SDMMC"):
        lines.append("USE_FATFS = 1")
    lines += [
        "# Optimize (i.e. CFLAGS += -O3):",
        "OPT = -O3",
        "# Core location, and generic Makefile.",
        "SYSTEM_FILES_DIR = $(LIBDAISY_DIR)/core",
        "include $(SYSTEM_FILES_DIR)/Makefile",
    ]
    if rnbo_dir is not None:
        lines.append("# Include the rnbo lib")
        lines.append(f'CFLAGS+=-I"{_make_path(rnbo_dir, build_dir)}"')
    lines += [
        "# Silence irritating warnings:",
        f"CFLAGS+={_WARNING_FLAGS}",
        f"CPPFLAGS+={_WARNING_FLAGS}",
    ]
    return "\n".join(lines) + "\n"


def write_project(
    result: GenerationResult,
    build_dir: str | Path,
    libdaisy_dir: str | Path,
    rnbo_dir: Optional[str | Path] = None,
) -> tuple[Path, Path]:
    """Write ``<build>_<target>.cpp`` and ``Makefile`` into *build_dir*.

    Returns ``(cpp_path, makefile_path)``.
    """
    build_dir = Path(build_dir)
    build_dir.mkdir(parents=True, exist_ok=True)
    cpp_path = build_dir / result.filename
    cpp_path.write_text(result.source)
    makefile_path = build_dir / "Makefile"
    makefile_path.write_text(generate_makefile(result, build_dir, libdaisy_dir, rnbo_dir))
    return cpp_path, makefile_path


def filter_dfu_output(stderr: str) -> str:
    """Strip well-known harmless dfu-util warnings from *stderr*."""
    for noise in _DFU_NOISE:
        stderr = stderr.replace(noise, "")
    return stderr


def _make(build_dir: Path, *args: str) -> subprocess.CompletedProcess[str]:
    return subprocess.run(
        ["make", *args],
        cwd=build_dir,
        capture_output=True,
        text=True,
    )


def run_make(build_dir: str | Path, upload: bool = False) -> str:
    """Run ``make clean`` and ``make`` in *build_dir*, then optionally upload.

    Returns the combined stdout of the steps. Raises BuildError with the
    failing step's output when any step fails or ``make`` is missing.
    """
    build_dir = Path(build_dir)
    if shutil.which("make") is None:
        raise BuildError("make not found on PATH")

    output: list[str] = []
    for step in (("clean",), ()):
        proc = _make(build_dir, *step)
        output.append(proc.stdout)
        if proc.returncode != 0:
            cmd = " ".join(("make", *step))
            raise BuildError(f"'{cmd}' failed", proc.stdout + proc.stderr)

    if upload:
        proc = _make(build_dir, "program-dfu")
        output.append(proc.stdout)
        if proc.returncode != 0:
            if "No DFU capable USB device available" in proc.stdout + proc.stderr:
                raise BuildError("Daisy not ready on USB (no DFU device)", proc.stderr)
            if "File downloaded successfully" not in proc.stdout:
                raise BuildError("'make program-dfu' failed", proc.stdout + proc.stderr)
        elif filter_dfu_output(proc.stderr).strip():
            raise BuildError("'make program-dfu' reported errors", proc.stderr)
    return "".join(output)
