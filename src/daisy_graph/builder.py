"""Construction of the unified node graph for one patch on one target.

Nodes are kept in a single store keyed by name, in creation order; edges are
name references (``src``, ``to``, ``from``) into that store. The builder
runs its phases in a fixed order, each seeing the nodes added before it:

1. hardware nodes (inputs, data handlers, outputs, raw audio, MIDI)
2. patch audio inlets
3. patch audio outlets
4. patch parameters
5. patch data references
6. automap fill-pass
7. raw audio output fan-in
"""

from __future__ import annotations

import re
from typing import Optional

from daisy_graph.labels import resolve_label, split_type_token
from daisy_graph.models import (
    AudioBuffer,
    AudioChannel,
    DataHandlerNode,
    HardwareInput,
    HardwareOutput,
    MidiPort,
    Node,
    PatchAudioIn,
    PatchAudioOut,
    PatchDataRef,
    PatchDescriptor,
    PatchGraph,
    PatchParam,
)
from daisy_graph.normalize import Hardware
from daisy_graph.policy import derive
from daisy_graph.validate import GraphValidationError

_NON_IDENT_RE = re.compile(r"[^A-Za-z0-9_]")


class GraphBuilder:
    """Accumulates the nodes of one graph; :meth:`finish` returns it frozen."""

    def __init__(self, hardware: Hardware, patch: PatchDescriptor) -> None:
        self.hardware = hardware
        self.patch = patch
        self.nodes: dict[str, Node] = {}
        self.groups: dict[str, list[str]] = {
            "device_inputs": [],
            "datahandlers": [],
            "device_outputs": [],
            "audio_ins": [],
            "audio_outs": [],
            "midi_ins": [],
            "midi_outs": [],
            "patch_ins": [],
            "patch_outs": [],
            "buffers": [],
            "params": [],
            "datas": [],
        }
        self.diagnostics: list[GraphValidationError] = []

    def _add(self, group: str, node: Node) -> None:
        if node.name in self.nodes:
            raise ValueError(f"Duplicate node name '{node.name}'")
        self.nodes[node.name] = node
        self.groups[group].append(node.name)

    def _warn(self, kind: str, message: str, node_id: Optional[str] = None) -> None:
        self.diagnostics.append(
            GraphValidationError(kind, message, node_id=node_id, severity="warning")
        )

    # -- 1. hardware ---------------------------------------------------------

    def add_hardware(self) -> None:
        hw = self.hardware
        for name, entry in hw.inputs.items():
            self._add(
                "device_inputs",
                HardwareInput(
                    name=name,
                    code=entry.code,
                    range=entry.range,
                    automap=entry.automap,
                    where=entry.where,
                ),
            )
        for name, handler in hw.datahandlers.items():
            self._add(
                "datahandlers",
                DataHandlerNode(
                    name=name, code=handler.code, init=handler.init, where=handler.where
                ),
            )
        for name, out in hw.outputs.items():
            self._add(
                "device_outputs",
                HardwareOutput(name=name, code=out.code, range=out.range, where=out.where),
            )

        io_count = int(hw.defines.get("OOPSY_IO_COUNT", 2))
        for i in range(io_count):
            self._add("audio_ins", AudioChannel(name=f"dsy_in{i + 1}", direction="in", index=i))
        for i in range(io_count):
            self._add("audio_outs", AudioChannel(name=f"dsy_out{i + 1}", direction="out", index=i))

        if hw.defines.get("OOPSY_TARGET_HAS_MIDI_INPUT"):
            self._add("midi_ins", MidiPort(name="dsy_midi_in", direction="in"))
        if hw.defines.get("OOPSY_TARGET_HAS_MIDI_OUTPUT"):
            self._add("midi_outs", MidiPort(name="dsy_midi_out", direction="out"))

    # -- 2. patch audio inlets -----------------------------------------------

    def add_audio_inlets(self) -> None:
        raw_ins = self.groups["audio_ins"]
        signals = [p for p in self.patch.inlets if p.type == "signal"]
        for port in self.patch.inlets:
            if port.type != "signal":
                self._warn("unsupported_inlet", f"Non-signal inlet '{port.tag}' ignored")
        for i, port in enumerate(signals):
            name = f"patch_in{i + 1}"
            src = raw_ins[i % len(raw_ins)] if raw_ins else None
            self._add(
                "patch_ins",
                PatchAudioIn(name=name, index=i, label=_clean(port.tag), src=src),
            )
            if src:
                self.nodes[src].to.append(name)

    # -- 3. patch audio outlets ----------------------------------------------

    def add_audio_outlets(self) -> None:
        raw_outs = self.groups["audio_outs"]
        out_labels = self.hardware.labels.outs
        signals = [p for p in self.patch.outlets if p.type == "signal"]
        for port in self.patch.outlets:
            if port.type != "signal":
                self._warn("unsupported_outlet", f"Non-signal outlet '{port.tag}' ignored")
        for i, port in enumerate(signals):
            name = f"patch_out{i + 1}"
            label = _clean(port.tag)
            if i < len(raw_outs):
                src = raw_outs[i]
            else:
                src = f"glue_out{i + 1}"
                self._add("buffers", AudioBuffer(name=src, index=i))

            match = resolve_label(label, out_labels)
            if match is not None:
                label = match.label
                sink = self.nodes[match.target]
                sink.from_.append(src)
                self.nodes[src].to.append(match.target)
            else:
                # plain audio: the buffer is written in place by the patch
                self.nodes[src].src = src

            self._add("patch_outs", PatchAudioOut(name=name, index=i, label=label, src=src))

    # -- 4. parameters -------------------------------------------------------

    def add_params(self) -> None:
        in_labels = self.hardware.labels.params
        for param in self.patch.parameters:
            if not param.visible:
                continue
            minimum = 0.0 if param.min is None else param.min
            maximum = 1.0 if param.max is None else param.max
            default = 0.0 if param.default is None else param.default

            src: Optional[str] = None
            label = param.name
            type_ = "float"
            match = resolve_label(param.name, in_labels)
            if match is not None:
                src = match.target
                type_, label = split_type_token(match.label)

            type_, step = derive(minimum, maximum, default, type_)
            name = f"patch_param_{_ident(param.name)}_{param.index}"
            self._add(
                "params",
                PatchParam(
                    name=name,
                    param=param.name,
                    index=param.index,
                    label=label,
                    type=type_,
                    default=default,
                    min=minimum,
                    max=maximum,
                    range=maximum - minimum,
                    stepsize=step,
                    src=src,
                ),
            )
            if src is not None:
                self.nodes[src].to.append(name)

    # -- 5. data references --------------------------------------------------

    def add_datas(self) -> None:
        data_labels = self.hardware.labels.datas
        for ref in self.patch.datarefs:
            name = f"patch_data_{_ident(ref.name)}"
            cname = ref.cname or ref.name
            match = resolve_label(ref.name, data_labels)
            src = match.target if match is not None else None
            self._add(
                "datas",
                PatchDataRef(
                    name=name,
                    ref=ref.name,
                    label=ref.name,
                    cname=cname,
                    wavname=ref.file,
                    src=src,
                ),
            )
            if src is not None:
                self.nodes[src].data = f"rnbo->{cname}"

    # -- 6. automap ----------------------------------------------------------

    def automap(self) -> None:
        """Give each unused automappable input to the next uncontrolled parameter."""
        params = self.groups["params"]
        upi = 0
        for name in self.groups["device_inputs"]:
            node = self.nodes[name]
            if node.to or not node.automap:
                continue
            while upi < len(params) and self.nodes[params[upi]].src is not None:
                upi += 1
            if upi == len(params):
                break
            self.nodes[params[upi]].src = name
            node.to.append(params[upi])

    # -- 7. raw output fan-in ------------------------------------------------

    def fill_audio_outputs(self) -> None:
        """Let raw outputs without a source echo earlier outputs that have one."""
        available: list[str] = []
        for i, name in enumerate(self.groups["audio_outs"]):
            node = self.nodes[name]
            if node.src:
                available.append(name)
            elif available:
                node.src = available[i % len(available)]

    # -----------------------------------------------------------------------

    def finish(self) -> PatchGraph:
        return PatchGraph(
            name=self.patch.name,
            nodes={name: node.model_copy(deep=True) for name, node in self.nodes.items()},
            **{group: list(names) for group, names in self.groups.items()},
        )


def _clean(tag: str) -> str:
    return tag.replace('"', "").strip()


def _ident(name: str) -> str:
    return _NON_IDENT_RE.sub("_", name)


def build_graph(
    hardware: Hardware,
    patch: PatchDescriptor,
    diagnostics: Optional[list[GraphValidationError]] = None,
) -> PatchGraph:
    """Build the node graph for *patch* on *hardware*.

    Warnings raised while building are appended to *diagnostics*, if given.
    """
    builder = GraphBuilder(hardware, patch)
    builder.add_hardware()
    builder.add_audio_inlets()
    builder.add_audio_outlets()
    builder.add_params()
    builder.add_datas()
    builder.automap()
    builder.fill_audio_outputs()
    if diagnostics is not None:
        diagnostics.extend(builder.diagnostics)
    return builder.finish()
