"""Tests for target normalization and hardware struct synthesis."""

from __future__ import annotations

from typing import Any

import pytest

from daisy_graph import (
    ConfigError,
    Hardware,
    TargetDescriptor,
    UnknownComponentKind,
    normalize_target,
)
from daisy_graph.template import has_placeholders

# ---------------------------------------------------------------------------
# Tables
# ---------------------------------------------------------------------------


class TestTables:
    def test_components_sorted_by_kind(self, hardware: Hardware) -> None:
        kinds = [c.component for c in hardware.components]
        assert kinds == sorted(kinds)
        # declaration order is kept within a kind
        assert [c.name for c in hardware.components][:2] == ["knob1", "knob2"]

    def test_adc_channels_in_order(self, hardware: Hardware) -> None:
        knobs = {c.name: c.index for c in hardware.components if c.component == "AnalogControl"}
        assert knobs == {"knob1": 0, "knob2": 1}

    def test_input_table(self, hardware: Hardware) -> None:
        assert list(hardware.inputs)[:2] == ["knob1", "knob2"]
        assert "encoder_press" in hardware.inputs
        assert "sw1_seconds" in hardware.inputs
        assert hardware.inputs["knob2"].code == "(hardware.knob2.Value())"
        assert hardware.inputs["knob1"].range == (0, 1)
        assert hardware.inputs["sw1_seconds"].range is None

    def test_output_table(self, hardware: Hardware) -> None:
        assert hardware.outputs["led2"].code == "hardware.led2.Set($<name>);"
        assert hardware.outputs["cv1"].where == "main"
        assert hardware.outputs["led1_red"].where == "audio"
        assert "gate_out" in hardware.outputs

    def test_only_main_mapping_is_automapped(self, hardware: Hardware) -> None:
        automapped = [name for name, entry in hardware.inputs.items() if entry.automap]
        assert automapped == ["knob1", "knob2"]

    def test_no_residual_instance_templates(self, hardware: Hardware) -> None:
        for name, entry in hardware.inputs.items():
            assert not has_placeholders(name)
            assert "${" not in entry.code
        for name, entry in hardware.outputs.items():
            assert not has_placeholders(name)
            assert "${" not in entry.code

    def test_label_tables(self, hardware: Hardware) -> None:
        assert hardware.labels.params["knob1"] == "knob1"
        assert hardware.labels.outs["led1_green"] == "led1_green"
        assert hardware.labels.datas == {"scope": "scope"}

    def test_alias(self, hardware: Hardware) -> None:
        assert hardware.labels.params["knob"] == "knob1"
        assert "knob" not in hardware.labels.outs

    def test_meta_component_contributes_no_mappings(self) -> None:
        target = TargetDescriptor(
            components={"enc": {"component": "Encoder", "meta": True}},
        )
        hw = normalize_target(target)
        assert hw.inputs == {}


class TestDefines:
    def test_target_flags(self, hardware: Hardware) -> None:
        assert hardware.defines["OOPSY_TARGET_SEED"] == 1
        assert hardware.defines["OOPSY_IO_COUNT"] == 2
        assert hardware.defines["OOPSY_HAS_PARAM_VIEW"] == 1
        assert "OOPSY_TARGET_PATCH_SM" not in hardware.defines

    def test_display_defaults(self, hardware: Hardware) -> None:
        assert hardware.display is not None
        assert hardware.display.driver == "daisy::SSD130x4WireSpi128x64Driver"
        assert hardware.defines["OOPSY_TARGET_HAS_OLED"] == 1
        assert hardware.defines["OOPSY_OLED_DISPLAY_WIDTH"] == 128
        assert hardware.defines["OOPSY_OLED_DISPLAY_HEIGHT"] == 64

    def test_small_display_driver(self, target_data: dict[str, Any]) -> None:
        target_data["display"] = {"driver": "daisy::SSD130xI2c64x32Driver"}
        hw = normalize_target(TargetDescriptor.model_validate(target_data))
        assert hw.defines["OOPSY_OLED_DISPLAY_WIDTH"] == 64
        assert hw.defines["OOPSY_OLED_DISPLAY_HEIGHT"] == 32

    def test_patch_sm(self) -> None:
        hw = normalize_target(TargetDescriptor(som="patch_sm"))
        assert hw.defines["OOPSY_TARGET_PATCH_SM"] == 1
        assert "daisy::patch_sm::DaisyPatchSM som;" in hw.struct

    def test_io_count_override(self) -> None:
        hw = normalize_target(TargetDescriptor(defines={"OOPSY_IO_COUNT": 4}))
        assert hw.defines["OOPSY_IO_COUNT"] == 4


class TestErrors:
    def test_unknown_kind_aborts(self, target_data: dict[str, Any]) -> None:
        target_data["components"]["fader"] = {"component": "Fader", "pin": 3}
        with pytest.raises(UnknownComponentKind, match="Fader"):
            normalize_target(TargetDescriptor.model_validate(target_data))

    def test_duplicate_input_name(self) -> None:
        # "sw" + "1" collides with the plain mapping of "sw1"
        target = TargetDescriptor(
            components={
                "sw1": {"component": "Switch", "pin": 1},
                "sw": {
                    "component": "Switch",
                    "pin": 2,
                    "mapping": [{"name": "${name}1", "get": "0.f"}],
                },
            }
        )
        with pytest.raises(ConfigError, match="Duplicate input mapping 'sw1'") as exc_info:
            normalize_target(target)
        assert exc_info.value.key == "sw1"

    def test_name_shared_by_input_and_output(self) -> None:
        # "sw" provides the input "sw_rise"; the led is also called "sw_rise"
        target = TargetDescriptor(
            components={
                "sw": {"component": "Switch", "pin": 1},
                "sw_rise": {"component": "Led", "pin": 2},
            }
        )
        with pytest.raises(ConfigError, match="sw_rise") as exc_info:
            normalize_target(target)
        assert exc_info.value.key == "sw_rise"

    def test_data_handler_named_like_input(self) -> None:
        target = TargetDescriptor(
            components={"knob1": {"component": "AnalogControl", "pin": 15}},
            datahandlers={"knob1": {"code": "x($<data>);"}},
        )
        with pytest.raises(ConfigError, match="knob1"):
            normalize_target(target)

    def test_unknown_alias_target(self) -> None:
        target = TargetDescriptor(aliases={"knob": "knob9"})
        with pytest.raises(ConfigError, match="knob9"):
            normalize_target(target)

    def test_unresolved_component_template(self) -> None:
        target = TargetDescriptor(
            components={
                "sw1": {"component": "Switch", "pin": 1, "process": "${name}.Tick(${rate});"},
            }
        )
        with pytest.raises(ValueError, match="rate"):
            normalize_target(target)


# ---------------------------------------------------------------------------
# Struct
# ---------------------------------------------------------------------------


class TestStruct:
    def test_members(self, hardware: Hardware) -> None:
        struct = hardware.struct
        assert struct.startswith("struct Daisy {")
        assert "    daisy::DaisySeed som;" in struct
        assert "    daisy::AnalogControl knob1;" in struct
        assert "    dsy_gpio gate_out;" in struct
        assert "    daisy::DacHandle::Config cv;" in struct
        assert "daisy::OledDisplay<daisy::SSD130x4WireSpi128x64Driver> display;" in struct

    def test_adc_config(self, hardware: Hardware) -> None:
        struct = hardware.struct
        assert "daisy::AdcChannelConfig adc_cfg[2];" in struct
        assert "adc_cfg[0].InitSingle(som.GetPin(15));" in struct
        assert "adc_cfg[1].InitSingle(som.GetPin(16));" in struct
        assert "som.adc.Init(adc_cfg, 2);" in struct
        assert struct.index("som.adc.Init(") < struct.index("som.adc.Start();")

    def test_component_code_expanded(self, hardware: Hardware) -> None:
        struct = hardware.struct
        assert (
            "knob2.Init(som.adc.GetPtr(1), som.AudioCallbackRate(), false, false, "
            "1.0/som.AudioCallbackRate());"
        ) in struct
        assert "sw1.Debounce();" in struct
        assert "led1.Update();" in struct
        assert "gate_out.pin = som.GetPin(17);" in struct
        assert "${" not in struct

    def test_sections_in_order(self, hardware: Hardware) -> None:
        struct = hardware.struct
        order = [
            "void Init(bool boost = false)",
            "void ProcessAllControls()",
            "void PostProcess()",
            "void Display()",
            "void SetAudioSampleRate(",
            "void SetAudioBlockSize(",
        ]
        positions = [struct.index(s) for s in order]
        assert positions == sorted(positions)

    def test_updaterate_runs_on_rate_changes(self, hardware: Hardware) -> None:
        struct = hardware.struct
        assert struct.count("knob1.SetSampleRate(som.AudioCallbackRate());") == 2

    def test_meta_instances_have_no_hardware(self) -> None:
        target = TargetDescriptor(
            components={
                "enc": {"component": "Encoder", "meta": True},
                "k": {"component": "AnalogControl", "meta": True},
                "knob1": {"component": "AnalogControl", "pin": 15},
            }
        )
        hw = normalize_target(target)
        assert "daisy::Encoder" not in hw.struct
        assert "daisy::AnalogControl k;" not in hw.struct
        assert "daisy::AdcChannelConfig adc_cfg[1];" in hw.struct
        assert "adc_cfg[0].InitSingle(som.GetPin(15));" in hw.struct
        assert "knob1.Init(som.adc.GetPtr(0)," in hw.struct

    def test_empty_target(self) -> None:
        hw = normalize_target(TargetDescriptor())
        assert "adc_cfg" not in hw.struct
        assert "display" not in hw.struct.replace("Display()", "")
