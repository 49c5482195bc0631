"""Target descriptor normalization.

Expands every component instance of a target against the registry, flattens
their mappings into the global ``inputs`` / ``outputs`` tables and label
tables, and synthesizes the C++ hardware struct.
"""

from __future__ import annotations

from typing import Union

from pydantic import BaseModel

from daisy_graph.errors import ConfigError
from daisy_graph.models import (
    DataHandler,
    Display,
    InputEntry,
    Insert,
    Labels,
    OutputEntry,
    TargetDescriptor,
)
from daisy_graph.registry import AnalogControl, Component, create_component
from daisy_graph.template import expand

_SOM_TYPENAMES: dict[str, str] = {
    "seed": "daisy::DaisySeed",
    "patch_sm": "daisy::patch_sm::DaisyPatchSM",
}

# driver -> (width, height)
DISPLAY_DRIVERS: dict[str, tuple[int, int]] = {
    "daisy::SSD130x4WireSpi128x64Driver": (128, 64),
    "daisy::SSD130x4WireSpi128x32Driver": (128, 32),
    "daisy::SSD130xI2c128x64Driver": (128, 64),
    "daisy::SSD130xI2c128x32Driver": (128, 32),
    "daisy::SSD130xI2c64x32Driver": (64, 32),
}
DEFAULT_DISPLAY_DRIVER = "daisy::SSD130x4WireSpi128x64Driver"


class Hardware(BaseModel):
    """A normalized target: flattened tables plus the synthesized struct."""

    name: str
    som: str
    components: list[Component] = []
    inputs: dict[str, InputEntry] = {}
    outputs: dict[str, OutputEntry] = {}
    datahandlers: dict[str, DataHandler] = {}
    labels: Labels = Labels()
    defines: dict[str, Union[int, float, str]] = {}
    inserts: list[Insert] = []
    display: Display | None = None
    struct: str = ""
    max_apps: int = 1

    def inserts_for(self, where: str) -> list[str]:
        return [ins.code for ins in self.inserts if ins.where == where]


def normalize_target(target: TargetDescriptor) -> Hardware:
    """Normalize *target* into a :class:`Hardware` description.

    Raises UnknownComponentKind for an unregistered kind and ConfigError for
    any other malformed entry (duplicate mapping name, bad alias, ...).
    """
    components = [create_component(name, raw) for name, raw in target.components.items()]
    # stable: instances of one kind keep their declaration order
    components.sort(key=lambda c: c.component)
    components = _assign_adc_channels(components)

    inputs: dict[str, InputEntry] = {}
    outputs: dict[str, OutputEntry] = {}
    labels = Labels()

    for comp in components:
        if comp.meta:
            continue
        fields = comp.template_fields()
        for mapping in comp.mapping:
            name = expand(mapping.name, fields, comp.name)
            where = mapping.where or "audio"
            if mapping.get is not None:
                if name in inputs:
                    raise ConfigError(f"Duplicate input mapping '{name}'", key=name)
                inputs[name] = InputEntry(
                    code=expand(mapping.get, fields, comp.name),
                    range=mapping.range,
                    automap=comp.automap and name == comp.name,
                    where=where,
                )
                labels.params[name] = name
            if mapping.set is not None:
                if name in outputs:
                    raise ConfigError(f"Duplicate output mapping '{name}'", key=name)
                outputs[name] = OutputEntry(
                    code=expand(mapping.set, fields, comp.name),
                    range=mapping.range,
                    where=where,
                )
                labels.outs[name] = name

    for name in target.datahandlers:
        labels.datas[name] = name

    # all three tables become nodes of one graph
    seen: set[str] = set()
    for table in (inputs, outputs, target.datahandlers):
        for name in table:
            if name in seen:
                raise ConfigError(
                    f"Name '{name}' is used by more than one input, output or data handler",
                    key=name,
                )
            seen.add(name)

    for alias, existing in target.aliases.items():
        found = False
        for table in (labels.params, labels.outs, labels.datas):
            if existing in table:
                table[alias] = table[existing]
                found = True
        if not found:
            raise ConfigError(f"Alias '{alias}' refers to unknown label '{existing}'", key=alias)

    defines: dict[str, Union[int, float, str]] = dict(target.defines)
    defines["OOPSY_TARGET_SEED"] = 1
    if target.som == "patch_sm":
        defines["OOPSY_TARGET_PATCH_SM"] = 1
    defines.setdefault("OOPSY_IO_COUNT", 2)

    display = None
    if target.display is not None:
        display = _apply_display_defaults(target.display)
        defines["OOPSY_TARGET_HAS_OLED"] = 1
        defines["OOPSY_OLED_DISPLAY_WIDTH"] = display.width or 128
        defines["OOPSY_OLED_DISPLAY_HEIGHT"] = display.height or 64

    return Hardware(
        name=target.name,
        som=target.som,
        components=components,
        inputs=inputs,
        outputs=outputs,
        datahandlers=dict(target.datahandlers),
        labels=labels,
        defines=defines,
        inserts=list(target.inserts),
        display=display,
        struct=generate_struct(components, target.som, display),
        max_apps=target.max_apps,
    )


def _assign_adc_channels(components: list[Component]) -> list[Component]:
    out: list[Component] = []
    channel = 0
    for comp in components:
        if isinstance(comp, AnalogControl) and not comp.meta:
            comp = comp.model_copy(update={"index": channel})
            channel += 1
        out.append(comp)
    return out


def _apply_display_defaults(display: Display) -> Display:
    driver = display.driver or DEFAULT_DISPLAY_DRIVER
    width, height = DISPLAY_DRIVERS.get(driver, (128, 64))
    return display.model_copy(
        update={
            "driver": driver,
            "width": display.width or width,
            "height": display.height or height,
        }
    )


# ---------------------------------------------------------------------------
# Hardware struct synthesis
# ---------------------------------------------------------------------------


def _expand_lines(comp: Component, field_name: str) -> list[str]:
    text = getattr(comp, field_name)
    if not text:
        return []
    return expand(text, comp.template_fields(), comp.name).splitlines()


def generate_struct(
    components: list[Component], som: str = "seed", display: Display | None = None
) -> str:
    """Return the C++ ``Daisy`` hardware struct for the given instances.

    Meta instances have no hardware of their own and are left out.
    """
    components = [c for c in components if not c.meta]
    lines: list[str] = []
    w = lines.append

    analogs = [c for c in components if isinstance(c, AnalogControl)]
    updaterate = [ln for c in components for ln in _expand_lines(c, "updaterate")]

    w("struct Daisy {")
    w("")
    w("    void Init(bool boost = false) {")
    if som == "patch_sm":
        w("        som.Init();")
    else:
        w("        som.Configure();")
        w("        som.Init(boost);")
    if analogs:
        w(f"        daisy::AdcChannelConfig adc_cfg[{len(analogs)}];")
        for comp in analogs:
            w(f"        adc_cfg[{comp.index}].InitSingle(som.GetPin({comp.pin['a']}));")
        w(f"        som.adc.Init(adc_cfg, {len(analogs)});")
    for comp in components:
        for ln in _expand_lines(comp, "init"):
            w(f"        {ln}")
    if display is not None:
        w(f"        daisy::OledDisplay<{display.driver}>::Config display_config;")
        for ln in display.config:
            w(f"        {ln}")
        w("        display.Init(display_config);")
    if analogs:
        w("        som.adc.Start();")
    w("    }")
    w("")
    w("    void ProcessAllControls() {")
    for comp in components:
        for ln in _expand_lines(comp, "process"):
            w(f"        {ln}")
    w("    }")
    w("")
    w("    void PostProcess() {")
    for comp in components:
        for ln in _expand_lines(comp, "postprocess"):
            w(f"        {ln}")
    w("    }")
    w("")
    w("    void Display() {")
    if display is not None:
        w("        display.Update();")
    w("    }")
    w("")
    w("    void SetAudioSampleRate(daisy::SaiHandle::Config::SampleRate samplerate) {")
    w("        som.SetAudioSampleRate(samplerate);")
    for ln in updaterate:
        w(f"        {ln}")
    w("    }")
    w("")
    w("    void SetAudioBlockSize(size_t size) {")
    w("        som.SetAudioBlockSize(size);")
    for ln in updaterate:
        w(f"        {ln}")
    w("    }")
    w("")
    w(f"    {_SOM_TYPENAMES[som]} som;")
    for comp in components:
        w(f"    {comp.typename} {comp.name};")
    if display is not None:
        w(f"    daisy::OledDisplay<{display.driver}> display;")
    w("};")
    return "\n".join(lines) + "\n"
