"""C++ code generation from patch graphs."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Callable, NamedTuple, Optional, Sequence, Union

from daisy_graph.builder import build_graph
from daisy_graph.models import (
    AudioChannel,
    DataHandlerNode,
    GenerateOptions,
    HardwareInput,
    HardwareOutput,
    Node,
    PatchDataRef,
    PatchDescriptor,
    PatchGraph,
    PatchParam,
    TargetDescriptor,
)
from daisy_graph.normalize import Hardware, normalize_target
from daisy_graph.template import interpolate
from daisy_graph.validate import CapacityError, GraphValidationError

_Writer = Callable[[str], None]

_HEADER = """\
/*

This code was generated by daisy-graph.

Permission is hereby granted, free of charge, to any person obtaining a copy
of this software and associated documentation files (the "Software"), to deal
in the Software without restriction, including without limitation the rights
to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
copies of the Software, and to permit persons to whom the Software is
furnished to do so, subject to the following conditions:

The above copyright notice and this permission notice shall be included in
all copies or substantial portions of the Software.

THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
SOFTWARE.
*/
/*
    For details of the licensing terms of code exported from RNBO see
    https://support.cycling74.com/hc/en-us/articles/10730637742483-RNBO-Export-Licensing-FAQ
*/"""

_RNBO_DEFINES = (
    "#define RNBO_USE_FLOAT32",
    "#define RNBO_NOTHROW",
    "#define RNBO_NOSTL",
    "#define RNBO_FIXEDLISTSIZE 64",
    "#define RNBO_USECUSTOMALLOCATOR",
)

_RUNTIME_HEADER = "../rnbo_daisy.h"


class AppSource(NamedTuple):
    struct: str  # App_<name> struct definition
    union: str  # member line of the app union
    appdef: str  # entry of the appdefs[] table


@dataclass
class GenerationResult:
    """Everything one generation run produces."""

    build_name: str
    target: str
    source: str
    hardware: Hardware
    graphs: list[PatchGraph] = field(default_factory=list)
    diagnostics: list[GraphValidationError] = field(default_factory=list)

    @property
    def filename(self) -> str:
        return f"{self.build_name}_{self.target}.cpp"


# ---------------------------------------------------------------------------
# Literals
# ---------------------------------------------------------------------------


def _num_str(v: float) -> str:
    v = float(v)
    if v.is_integer() and abs(v) < 1e21:
        return str(int(v))
    return repr(v)


def cpp_number(n: float, type_: str = "float") -> str:
    """Format *n* as a C++ literal of the given parameter type.

    ``int``/``bool`` truncate toward zero; floats get an ``f`` suffix
    (``0.5f``, ``1.f``) unless written in exponent form.
    """
    if type_ in ("int", "bool"):
        return str(math.trunc(n))
    s = _num_str(n)
    if "e" in s:
        return s
    if "." in s:
        return s + "f"
    return s + ".f"


def _c_string(s: str) -> str:
    return s.replace("\\", "\\\\").replace('"', '\\"')


def _format_define(value: Union[int, float, str]) -> str:
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, (int, float)):
        return _num_str(value)
    return value


# ---------------------------------------------------------------------------
# Defines
# ---------------------------------------------------------------------------


def configure_defines(
    hardware: Hardware, options: GenerateOptions, n_apps: int = 1
) -> dict[str, Union[int, float, str]]:
    """Return the target's defines extended with the generation options."""
    defines = dict(hardware.defines)
    samplerate = options.samplerate * 1000
    defines["OOPSY_SAMPLERATE"] = samplerate
    defines["OOPSY_BLOCK_SIZE"] = options.blocksize
    rate = samplerate / options.blocksize
    defines["OOPSY_BLOCK_RATE"] = int(rate) if rate.is_integer() else rate

    has_midi = defines.get("OOPSY_TARGET_HAS_MIDI_INPUT") or defines.get(
        "OOPSY_TARGET_HAS_MIDI_OUTPUT"
    )
    if has_midi and options.midi == "usb":
        defines["OOPSY_TARGET_USES_MIDI_USB"] = 1
    elif has_midi and options.midi == "uart":
        defines["OOPSY_TARGET_USES_MIDI_UART"] = 1

    if n_apps > 1:
        defines["OOPSY_MULTI_APP"] = 1

    if options.nooled:
        defines.pop("OOPSY_TARGET_HAS_OLED", None)
        defines.pop("OOPSY_OLED_DISPLAY_WIDTH", None)
        defines.pop("OOPSY_OLED_DISPLAY_HEIGHT", None)

    if defines.get("OOPSY_TARGET_HAS_OLED"):
        if defines.get("OOPSY_HAS_PARAM_VIEW"):
            defines["OOPSY_CAN_PARAM_TWEAK"] = 1
        defines.setdefault("OOPSY_OLED_DISPLAY_WIDTH", 128)
        defines.setdefault("OOPSY_OLED_DISPLAY_HEIGHT", 64)

    if options.fastmath:
        defines["GENLIB_USE_FASTMATH"] = 1
    return defines


# ---------------------------------------------------------------------------
# Per-app struct
# ---------------------------------------------------------------------------


def _fields(node: Node) -> dict[str, object]:
    return node.model_dump()


def _param_domain(graph: PatchGraph, node: PatchParam) -> str:
    """A parameter is updated in the domain its controlling input is read in."""
    if node.src is not None:
        source = graph.nodes.get(node.src)
        if isinstance(source, HardwareInput):
            return source.where
    return "audio"


def compile_app(graph: PatchGraph, hardware: Hardware) -> AppSource:
    """Compile one patch graph to its ``App_<name>`` struct.

    Node fragments are expanded against their node's fields; an undefined
    field raises UnresolvedReferenceError.
    """
    defines = hardware.defines
    name = graph.name
    nodes = list(graph.nodes.values())

    lines: list[str] = []
    w = lines.append

    w(f"struct App_{name} : public oopsy::App<App_{name}> {{")
    for node in nodes:
        _emit_field(node, w)
    w("")

    # -- init ----------------------------------------------------------------
    params = [graph.nodes[p] for p in graph.params]
    selected = next((i for i, p in enumerate(params) if p.src is None), 0)
    w("    void init(oopsy::RNBODaisy& daisy) {")
    w(f"        rnbo = new RNBO::{name}<>();")
    w("        daisy.rnbo = rnbo;")
    w("        rnbo->initialize();")
    w(
        "        rnbo->prepareToProcess(daisy.hardware.som.AudioSampleRate(), "
        "daisy.hardware.som.AudioBlockSize(), true);"
    )
    w(f"        daisy.param_count = {len(params)};")
    if defines.get("OOPSY_HAS_PARAM_VIEW"):
        w(f"        daisy.param_selected = {selected};")
    for node in nodes:
        _emit_init(node, w)
    w("    }")
    w("")

    # -- audio ---------------------------------------------------------------
    w(
        "    void audioCallback(oopsy::RNBODaisy& daisy, "
        "daisy::AudioHandle::InputBuffer hardware_ins, "
        "daisy::AudioHandle::OutputBuffer hardware_outs, size_t size) {"
    )
    w("        Daisy& hardware = daisy.hardware;")
    _emit_inserts(hardware, "audio", w)
    _emit_controls(graph, "audio", w)
    for node in nodes:
        if isinstance(node, AudioChannel):
            _emit_channel(node, w)
    _emit_process(graph, w)
    for node in nodes:
        if isinstance(node, HardwareOutput) and node.active:
            _emit_output_value(node, w)
    _emit_writes(graph, "audio", w)
    for node in nodes:
        if isinstance(node, AudioChannel) and node.direction == "out":
            _emit_echo(node, w)
    _emit_inserts(hardware, "post_audio", w)
    if defines.get("OOPSY_TARGET_SEED"):
        w("        hardware.PostProcess();")
    w("    }")
    w("")

    # -- main loop -----------------------------------------------------------
    w("    void mainloopCallback(oopsy::RNBODaisy& daisy, uint32_t t, uint32_t dt) {")
    w("        Daisy& hardware = daisy.hardware;")
    _emit_inserts(hardware, "main", w)
    _emit_controls(graph, "main", w)
    _emit_writes(graph, "main", w)
    w("    }")
    w("")

    # -- display -------------------------------------------------------------
    w("    void displayCallback(oopsy::RNBODaisy& daisy, uint32_t t, uint32_t dt) {")
    w("        Daisy& hardware = daisy.hardware;")
    _emit_inserts(hardware, "display", w)
    _emit_controls(graph, "display", w)
    _emit_writes(graph, "display", w)
    if defines.get("OOPSY_TARGET_SEED"):
        w("        hardware.Display();")
    w("    }")

    # -- parameter view ------------------------------------------------------
    if defines.get("OOPSY_HAS_PARAM_VIEW"):
        w("")
        _emit_setparam(params, w)
        if defines.get("OOPSY_TARGET_HAS_OLED"):
            w("")
            _emit_param_callback(params, defines, w)
    w("};")

    return AppSource(
        struct="\n".join(lines) + "\n",
        union=f"App_{name} app_{name};",
        appdef=f'{{"{name}", []()->void {{ oopsy::daisy.reset(apps.app_{name}); }} }},',
    )


def _emit_inserts(hardware: Hardware, where: str, w: _Writer) -> None:
    for code in hardware.inserts_for(where):
        for ln in code.splitlines():
            w(f"        {ln}")


def _emit_field(node: Node, w: _Writer) -> None:
    """Emit the struct member a node needs, if any."""
    if isinstance(node, PatchParam):
        w(f"    {node.type} {node.name};")
    elif isinstance(node, HardwareOutput) and node.active:
        w(f"    float {node.name};")
    elif node.kind == "audio_buffer":
        w(f"    float {node.name}[OOPSY_BLOCK_SIZE];")


def _emit_init(node: Node, w: _Writer) -> None:
    """Emit the initialization statement a node contributes, if any."""
    if isinstance(node, DataHandlerNode):
        if node.init and node.data:
            w(f"        {interpolate(node.init, _fields(node), node.name)};")
    elif isinstance(node, HardwareOutput):
        if node.active:
            w(f"        {node.name} = 0.f;")
    elif isinstance(node, PatchParam):
        w(f"        {node.name} = {cpp_number(node.default, node.type)};")
    elif isinstance(node, PatchDataRef):
        if node.wavname:
            w(
                f'        daisy.sdcard_load_wav("{_c_string(node.wavname)}", '
                f"rnbo->{node.cname});"
            )


def _emit_controls(graph: PatchGraph, where: str, w: _Writer) -> None:
    """Read the used inputs of *where*, then push the parameters they control."""
    for node in graph.nodes.values():
        if isinstance(node, HardwareInput) and node.to and node.where == where:
            w(f"        float {node.name} = {node.code};")
    for node in graph.nodes.values():
        if isinstance(node, PatchParam) and node.src and _param_domain(graph, node) == where:
            offset = node.min + (0.5 if node.type in ("int", "bool") else 0.0)
            w(
                f"        {node.name} = setParamIfChanged({node.index}, {node.name}, "
                f"({node.type})({node.src}*{cpp_number(node.range)} + {cpp_number(offset)}));"
            )


def _emit_channel(node: AudioChannel, w: _Writer) -> None:
    if node.direction == "in":
        w(f"        float * {node.name} = (float *)hardware_ins[{node.index}];")
    else:
        w(f"        float * {node.name} = hardware_outs[{node.index}];")


def _emit_process(graph: PatchGraph, w: _Writer) -> None:
    ins = [graph.nodes[n] for n in graph.patch_ins]
    outs = [graph.nodes[n] for n in graph.patch_outs]
    for ports, var in ((ins, "inputs"), (outs, "outputs")):
        w(f"        // {', '.join(p.label for p in ports)}:")
        if ports:
            refs = ", ".join(p.src or "nullptr" for p in ports)
            w(f"        float * {var}[] = {{ {refs} }};")
        else:
            w(f"        float ** {var} = nullptr;")
    w(f"        rnbo->process(inputs, {len(ins)}, outputs, {len(outs)}, size);")


def _emit_output_value(node: HardwareOutput, w: _Writer) -> None:
    if node.src:
        w(f"        {node.name} = {node.src};")
    else:
        total = " + ".join(f"{src}[size-1]" for src in node.from_)
        w(f"        {node.name} = {total}; // device out")


def _emit_writes(graph: PatchGraph, where: str, w: _Writer) -> None:
    """Emit data handler and output code fragments belonging to *where*."""
    for node in graph.nodes.values():
        if isinstance(node, DataHandlerNode):
            if node.data and node.where == where:
                for ln in interpolate(node.code, _fields(node), node.name).splitlines():
                    w(f"        {ln}")
        elif isinstance(node, HardwareOutput):
            if node.active and node.where == where:
                for ln in interpolate(node.code, _fields(node), node.name).splitlines():
                    w(f"        {ln}")


def _emit_echo(node: AudioChannel, w: _Writer) -> None:
    if node.src == node.name:
        return
    if node.src:
        w(f"        memcpy({node.name}, {node.src}, sizeof(float)*size);")
    else:
        w(f"        memset({node.name}, 0, sizeof(float)*size);")


def _emit_setparam(params: Sequence[PatchParam], w: _Writer) -> None:
    w("    float setparam(int idx, float val) {")
    w("        switch(idx) {")
    for i, node in enumerate(params):
        hi = cpp_number(node.max, node.type)
        lo = cpp_number(node.min, node.type)
        w(
            f"        case {i}: return {node.name} = ({node.type})"
            f"((val > {hi}) ? {hi} : (val < {lo}) ? {lo} : val);"
        )
    w("        }")
    w("        return 0.f;")
    w("    }")


def _emit_param_callback(
    params: Sequence[PatchParam], defines: dict[str, Union[int, float, str]], w: _Writer
) -> None:
    narrow = float(defines.get("OOPSY_OLED_DISPLAY_WIDTH", 128)) < 128
    w(
        "    void paramCallback(oopsy::RNBODaisy& daisy, int idx, char * label, int len, "
        "bool tweak) {"
    )
    w("        switch(idx) {")
    for i, node in enumerate(params):
        w(f"        case {i}:")
        if defines.get("OOPSY_CAN_PARAM_TWEAK"):
            incr = "daisy.menu_button_incr"
            if node.type == "float":
                incr += f" * {cpp_number(node.stepsize)}"
            w(f"            if (tweak) setparam({i}, {node.name} + {incr});")
        # truncate, then escape
        short = _c_string(node.label[:5].ljust(5))
        text = _c_string(node.label[:11].ljust(11))
        if narrow:
            w(
                f'            snprintf(label, len, "{short}" FLT_FMT3 "", '
                f"FLT_VAR3({node.name}));"
            )
        elif node.src:
            w(
                f'            snprintf(label, len, "{node.src[:3].ljust(3)} {text}" '
                f'FLT_FMT3 "", FLT_VAR3({node.name}));'
            )
        else:
            w(
                f'            snprintf(label, len, "%s {text}" FLT_FMT3 "", '
                f'(daisy.param_is_tweaking && {i} == daisy.param_selected) ? "enc" : "   ", '
                f"FLT_VAR3({node.name}));"
            )
        w("            break;")
    w("        }")
    w("    }")


# ---------------------------------------------------------------------------
# Whole document
# ---------------------------------------------------------------------------


def compile_source(
    hardware: Hardware,
    graphs: Sequence[PatchGraph],
    includes: Sequence[str],
    boost: bool = False,
) -> str:
    """Assemble the complete C++ translation unit for one or more apps."""
    apps = [compile_app(g, hardware) for g in graphs]
    defines = hardware.defines

    lines: list[str] = [_HEADER, ""]
    w = lines.append

    for key, value in defines.items():
        w(f"#define {key} ({_format_define(value)})")
    w("")
    w(hardware.struct)
    for code in hardware.inserts_for("header"):
        w(code)
    w("")
    for ln in _RNBO_DEFINES:
        w(ln)
    w("")
    w(f'#include "{_RUNTIME_HEADER}"')
    w("")
    for path in includes:
        w(f'#include "{path}"')
    w("")
    for app in apps:
        w(app.struct)

    w("// store apps in a union to re-use memory, since only one app is active at once:")
    w("union {")
    for app in apps:
        w(f"    {app.union}")
    w("} apps;")
    w("")
    w("oopsy::AppDef appdefs[] = {")
    for app in apps:
        w(f"    {app.appdef}")
    w("};")
    w("")

    samplerate = int(defines.get("OOPSY_SAMPLERATE", 48000)) // 1000
    blocksize = defines.get("OOPSY_BLOCK_SIZE", 48)
    w("int main(void) {")
    w(f"    oopsy::daisy.hardware.Init({'true' if boost else 'false'});")
    w(
        "    oopsy::daisy.hardware.SetAudioSampleRate("
        f"daisy::SaiHandle::Config::SampleRate::SAI_{samplerate}KHZ);"
    )
    w(f"    oopsy::daisy.hardware.SetAudioBlockSize({blocksize});")
    for code in hardware.inserts_for("init"):
        for ln in code.splitlines():
            w(f"    {ln}")
    w(f"    return oopsy::daisy.run(appdefs, {len(apps)});")
    w("}")
    return "\n".join(lines) + "\n"


def generate(
    target: TargetDescriptor,
    patches: Sequence[PatchDescriptor],
    options: Optional[GenerateOptions] = None,
    includes: Optional[Sequence[str]] = None,
) -> GenerationResult:
    """Run a whole generation: normalize, build one graph per patch, emit.

    *includes* lists the patch source paths to ``#include``, one per patch,
    relative to the build directory; it defaults to ``<patch name>.cpp``.
    Patches beyond the target's ``max_apps`` are dropped with a capacity
    warning in the result's diagnostics.
    """
    if options is None:
        options = GenerateOptions()
    if not patches:
        raise ValueError("At least one patch is required")
    if includes is None:
        includes = [f"{p.name}.cpp" for p in patches]
    if len(includes) != len(patches):
        raise ValueError(f"Expected {len(patches)} include path(s), got {len(includes)}")

    names = [p.name for p in patches]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise ValueError(f"Duplicate patch name(s): {', '.join(duplicates)}")

    hardware = normalize_target(target)
    diagnostics: list[GraphValidationError] = []

    patches = list(patches)
    includes = list(includes)
    if len(patches) > hardware.max_apps:
        dropped = [p.name for p in patches[hardware.max_apps :]]
        diagnostics.append(CapacityError(len(patches), hardware.max_apps, dropped))
        patches = patches[: hardware.max_apps]
        includes = includes[: hardware.max_apps]

    hardware = hardware.model_copy(
        update={"defines": configure_defines(hardware, options, len(patches))}
    )
    graphs = [build_graph(hardware, patch, diagnostics) for patch in patches]
    source = compile_source(hardware, graphs, includes, boost=options.boost)
    return GenerationResult(
        build_name="_".join(p.name for p in patches),
        target=hardware.name,
        source=source,
        hardware=hardware,
        graphs=graphs,
        diagnostics=diagnostics,
    )
