from __future__ import annotations

from typing import Any

import pytest

from daisy_graph import (
    Hardware,
    PatchDescriptor,
    PatchGraph,
    TargetDescriptor,
    build_graph,
    normalize_target,
)


@pytest.fixture
def target_data() -> dict[str, Any]:
    """Raw target: two knobs, switch, encoder, LEDs, gate I/O, CV outs, display."""
    return {
        "name": "testboard",
        "som": "seed",
        "defines": {
            "OOPSY_HAS_PARAM_VIEW": 1,
            "OOPSY_TARGET_HAS_MIDI_INPUT": 1,
        },
        "display": {},
        "components": {
            "knob1": {"component": "AnalogControl", "pin": 15},
            "knob2": {"component": "AnalogControl", "pin": 16},
            "sw1": {"component": "Switch", "pin": 27},
            "encoder": {"component": "Encoder", "pin": {"a": 26, "b": 25, "click": 13}},
            "led1": {"component": "RgbLed", "pin": {"r": 20, "g": 19, "b": 18}},
            "led2": {"component": "Led", "pin": 22},
            "gate_in": {"component": "GateIn", "pin": 20},
            "gate_out": {"component": "GateOut", "pin": 17},
            "cv": {"component": "CVOuts"},
        },
        "datahandlers": {
            "scope": {"code": "draw($<data>);", "init": "setup($<data>)", "where": "display"},
        },
        "aliases": {"knob": "knob1"},
        "inserts": [
            {"where": "header", "code": "#include \"extra.h\""},
            {"where": "audio", "code": "hardware.ProcessAllControls();"},
            {"where": "init", "code": "// board ready"},
        ],
    }


@pytest.fixture
def target(target_data: dict[str, Any]) -> TargetDescriptor:
    return TargetDescriptor.model_validate(target_data)


@pytest.fixture
def hardware(target: TargetDescriptor) -> Hardware:
    return normalize_target(target)


@pytest.fixture
def patch_data() -> dict[str, Any]:
    """Patch with one inlet, four signal outlets (two mapped) and five visible params."""
    return {
        "name": "synth",
        "inlets": [{"tag": "in1", "type": "signal"}],
        "outlets": [
            {"tag": "out1", "type": "signal"},
            {"tag": "out2", "type": "signal"},
            {"tag": "led1_bright", "type": "signal"},
            {"tag": "cv1", "type": "signal"},
            {"tag": "midi", "type": "event"},
        ],
        "parameters": [
            {"name": "cutoff", "index": 0, "minimum": 20, "maximum": 20000, "initialValue": 1000},
            {"name": "knob2_res", "index": 1, "minimum": 0, "maximum": 1, "initialValue": 0.5},
            {"name": "sw1_mode_int", "index": 2, "minimum": 0, "maximum": 3, "initialValue": 0},
            {"name": "pitch", "index": 3, "minimum": 0, "maximum": 5, "initialValue": 0},
            {"name": "hidden", "index": 4, "visible": False},
            {"name": "volume", "index": 5, "minimum": 0, "maximum": 127, "initialValue": 0},
        ],
        "datarefs": [
            {"name": "scope_buf"},
            {"name": "sample", "file": "kick.wav"},
        ],
    }


@pytest.fixture
def patch(patch_data: dict[str, Any]) -> PatchDescriptor:
    return PatchDescriptor.model_validate(patch_data)


@pytest.fixture
def graph(hardware: Hardware, patch: PatchDescriptor) -> PatchGraph:
    return build_graph(hardware, patch)


@pytest.fixture
def minimal_target() -> TargetDescriptor:
    """A bare seed: raw audio only, no controls."""
    return TargetDescriptor(name="bare")


@pytest.fixture
def stereo_patch() -> PatchDescriptor:
    return PatchDescriptor(
        name="gain",
        inlets=[{"tag": "in1"}, {"tag": "in2"}],
        outlets=[{"tag": "out1"}, {"tag": "out2"}],
        parameters=[{"name": "gain", "index": 0, "minimum": 0, "maximum": 2, "initialValue": 1}],
    )
