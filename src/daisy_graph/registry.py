"""Catalog of hardware component kinds.

Each kind is a pydantic model whose field defaults are the registry
defaults: applying defaults to a user-written instance is ordinary model
validation, field by field. Fields left unset by the user take the kind's
default; a field the user does set replaces the default wholesale (a
``mapping`` list given by the user is not merged with the default list).

Code fields (``init``, ``process``, ``postprocess``, ``updaterate`` and the
mapping ``name``/``get``/``set`` entries) are templates. ``${...}``
placeholders are expanded against the instance by
:meth:`Component.template_fields`.
"""

from __future__ import annotations

from typing import Any, ClassVar, Literal, Union

from pydantic import BaseModel, ConfigDict, ValidationError

from daisy_graph.errors import ConfigError, UnknownComponentKind
from daisy_graph.models import Mapping

PinValue = Union[int, str]


class Component(BaseModel):
    """Fields shared by every component kind."""

    model_config = ConfigDict(extra="forbid")

    # Pin roles in the order they are written in templates, e.g. ("a", "b", "click").
    pin_roles: ClassVar[tuple[str, ...]] = ("a",)

    name: str
    component: str
    typename: str
    pin: dict[str, PinValue] = {}
    automap: bool = False
    meta: bool = False
    init: str = ""
    process: str = ""
    postprocess: str = ""
    updaterate: str = ""
    mapping: list[Mapping] = []
    # Position among the instances sharing a converter (ADC channel index).
    index: int = 0

    def template_fields(self) -> dict[str, object]:
        """Return the closed set of ``${...}`` placeholders for this instance."""
        fields: dict[str, object] = {}
        for key, value in self.__dict__.items():
            if key in ("pin", "mapping"):
                continue
            if isinstance(value, (str, int, float, bool)):
                fields[key] = value
        for role, value in self.pin.items():
            fields[f"pin_{role}"] = value
        return fields


class Switch(Component):
    component: Literal["Switch"] = "Switch"
    typename: str = "daisy::Switch"
    type: str = "daisy::Switch::TYPE_MOMENTARY"
    polarity: str = "daisy::Switch::POLARITY_INVERTED"
    pull: str = "daisy::Switch::PULL_UP"
    init: str = (
        "${name}.Init(som.GetPin(${pin_a}), som.AudioCallbackRate(), "
        "${type}, ${polarity}, ${pull});"
    )
    process: str = "${name}.Debounce();"
    updaterate: str = "${name}.SetUpdateRate(som.AudioCallbackRate());"
    mapping: list[Mapping] = [
        Mapping(name="${name}", get="(hardware.${name}.Pressed()?1.f:0.f)", range=(0, 1)),
        Mapping(name="${name}_rise", get="(hardware.${name}.RisingEdge()?1.f:0.f)", range=(0, 1)),
        Mapping(name="${name}_fall", get="(hardware.${name}.FallingEdge()?1.f:0.f)", range=(0, 1)),
        Mapping(name="${name}_seconds", get="(hardware.${name}.TimeHeldMs()*0.001f)"),
    ]


class Switch3(Component):
    pin_roles: ClassVar[tuple[str, ...]] = ("a", "b")

    component: Literal["Switch3"] = "Switch3"
    typename: str = "daisy::Switch3"
    init: str = "${name}.Init(som.GetPin(${pin_a}), som.GetPin(${pin_b}));"
    mapping: list[Mapping] = [
        Mapping(name="${name}", get="(hardware.${name}.Read()*0.5f+0.5f)", range=(0, 2)),
    ]


class Encoder(Component):
    pin_roles: ClassVar[tuple[str, ...]] = ("a", "b", "click")

    component: Literal["Encoder"] = "Encoder"
    typename: str = "daisy::Encoder"
    init: str = (
        "${name}.Init(som.GetPin(${pin_a}), som.GetPin(${pin_b}), som.GetPin(${pin_click}), "
        "som.AudioCallbackRate());"
    )
    process: str = "${name}.Debounce();"
    updaterate: str = "${name}.SetUpdateRate(som.AudioCallbackRate());"
    mapping: list[Mapping] = [
        Mapping(name="${name}", get="hardware.${name}.Increment()", range=(-1, 1)),
        Mapping(name="${name}_press", get="(hardware.${name}.Pressed()?1.f:0.f)", range=(0, 1)),
        Mapping(name="${name}_rise", get="(hardware.${name}.RisingEdge()?1.f:0.f)", range=(0, 1)),
        Mapping(name="${name}_fall", get="(hardware.${name}.FallingEdge()?1.f:0.f)", range=(0, 1)),
        Mapping(name="${name}_seconds", get="(hardware.${name}.TimeHeldMs()*0.001f)"),
    ]


class GateIn(Component):
    component: Literal["GateIn"] = "GateIn"
    typename: str = "daisy::GateIn"
    invert: bool = True
    init: str = "${name}.Init(som.GetPin(${pin_a}), ${invert});"
    mapping: list[Mapping] = [
        Mapping(name="${name}", get="(hardware.${name}.State()?1.f:0.f)", range=(0, 1)),
        Mapping(name="${name}_trig", get="(hardware.${name}.Trig()?1.f:0.f)", range=(0, 1)),
    ]


class AnalogControl(Component):
    component: Literal["AnalogControl"] = "AnalogControl"
    typename: str = "daisy::AnalogControl"
    automap: bool = True
    flip: bool = False
    invert: bool = False
    slew: str = "1.0/som.AudioCallbackRate()"
    init: str = (
        "${name}.Init(som.adc.GetPtr(${index}), som.AudioCallbackRate(), "
        "${flip}, ${invert}, ${slew});"
    )
    process: str = "${name}.Process();"
    updaterate: str = "${name}.SetSampleRate(som.AudioCallbackRate());"
    mapping: list[Mapping] = [
        Mapping(name="${name}", get="(hardware.${name}.Value())", range=(0, 1)),
    ]


class Led(Component):
    component: Literal["Led"] = "Led"
    typename: str = "daisy::Led"
    invert: bool = True
    init: str = "${name}.Init(som.GetPin(${pin_a}), ${invert});"
    postprocess: str = "${name}.Update();"
    mapping: list[Mapping] = [
        Mapping(name="${name}", set="hardware.${name}.Set($<name>);"),
    ]


class RgbLed(Component):
    pin_roles: ClassVar[tuple[str, ...]] = ("r", "g", "b")

    component: Literal["RgbLed"] = "RgbLed"
    typename: str = "daisy::RgbLed"
    invert: bool = True
    init: str = (
        "${name}.Init(som.GetPin(${pin_r}), som.GetPin(${pin_g}), som.GetPin(${pin_b}), ${invert});"
    )
    postprocess: str = "${name}.Update();"
    mapping: list[Mapping] = [
        Mapping(name="${name}_red", set="hardware.${name}.SetRed($<name>);"),
        Mapping(name="${name}_green", set="hardware.${name}.SetGreen($<name>);"),
        Mapping(name="${name}_blue", set="hardware.${name}.SetBlue($<name>);"),
        Mapping(
            name="${name}",
            set="hardware.${name}.Set(clamp(-$<name>, 0.f, 1.f), 0.f, clamp($<name>, 0.f, 1.f));",
        ),
        Mapping(name="${name}_white", set="hardware.${name}.Set($<name>,$<name>,$<name>);"),
    ]


class GateOut(Component):
    component: Literal["GateOut"] = "GateOut"
    typename: str = "dsy_gpio"
    mode: str = "DSY_GPIO_MODE_OUTPUT_PP"
    pull: str = "DSY_GPIO_NOPULL"
    init: str = (
        "${name}.pin = som.GetPin(${pin_a});\n"
        "${name}.mode = ${mode};\n"
        "${name}.pull = ${pull};\n"
        "dsy_gpio_init(&${name});"
    )
    mapping: list[Mapping] = [
        Mapping(name="${name}", set="dsy_gpio_write(&hardware.${name}, $<name> > 0.f);"),
    ]


class CVOuts(Component):
    pin_roles: ClassVar[tuple[str, ...]] = ()

    component: Literal["CVOuts"] = "CVOuts"
    typename: str = "daisy::DacHandle::Config"
    bitdepth: str = "daisy::DacHandle::BitDepth::BITS_12"
    buff_state: str = "daisy::DacHandle::BufferState::ENABLED"
    mode: str = "daisy::DacHandle::Mode::POLLING"
    channel: str = "daisy::DacHandle::Channel::BOTH"
    init: str = (
        "${name}.bitdepth = ${bitdepth};\n"
        "${name}.buff_state = ${buff_state};\n"
        "${name}.mode = ${mode};\n"
        "${name}.chn = ${channel};\n"
        "som.dac.Init(${name});\n"
        "som.dac.WriteValue(daisy::DacHandle::Channel::BOTH, 0);"
    )
    mapping: list[Mapping] = [
        Mapping(
            name="${name}1",
            set="hardware.som.dac.WriteValue(daisy::DacHandle::Channel::ONE, $<name> * 4095);",
            where="main",
        ),
        Mapping(
            name="${name}2",
            set="hardware.som.dac.WriteValue(daisy::DacHandle::Channel::TWO, $<name> * 4095);",
            where="main",
        ),
    ]


COMPONENT_KINDS: dict[str, type[Component]] = {
    cls.model_fields["component"].default: cls
    for cls in (
        Switch,
        Switch3,
        Encoder,
        GateIn,
        AnalogControl,
        Led,
        RgbLed,
        GateOut,
        CVOuts,
    )
}


def lookup(kind: str, *, key: str | None = None) -> type[Component]:
    """Return the component class for *kind*.

    Raises UnknownComponentKind naming the kind (and *key*, if given).
    """
    try:
        return COMPONENT_KINDS[kind]
    except KeyError:
        raise UnknownComponentKind(kind, key=key) from None


def create_component(name: str, raw: dict[str, Any]) -> Component:
    """Validate one raw target-descriptor entry into a component instance.

    A scalar ``pin`` is assigned to the kind's first pin role. Raises
    ConfigError naming *name* if the entry is malformed.
    """
    kind = raw.get("component")
    if not isinstance(kind, str):
        raise ConfigError(f"Component '{name}' has no 'component' kind", key=name)
    cls = lookup(kind, key=name)

    data = dict(raw)
    data["name"] = name
    pin = data.get("pin")
    if pin is not None and not isinstance(pin, dict):
        if not cls.pin_roles:
            raise ConfigError(f"Component '{name}' ({kind}) takes no pins", key=name)
        data["pin"] = {cls.pin_roles[0]: pin}
    try:
        comp = cls.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid component '{name}' ({kind}): {e}", key=name) from e

    missing = [role for role in cls.pin_roles if role not in comp.pin]
    if missing and not comp.meta:
        raise ConfigError(
            f"Component '{name}' ({kind}) is missing pin(s): {', '.join(missing)}", key=name
        )
    return comp
