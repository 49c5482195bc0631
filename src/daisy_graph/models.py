from __future__ import annotations

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Execution domain of a generated code fragment.
Where = Literal["audio", "main", "display"]

# Numeric range of a mapping: [min, max], or None for event-like signals.
Range = Optional[tuple[float, float]]

ParamType = Literal["float", "int", "bool"]


# ---------------------------------------------------------------------------
# Target descriptor
# ---------------------------------------------------------------------------


class Mapping(BaseModel):
    """A named signal endpoint exposed by a component.

    Exactly one of ``get`` (readable input) or ``set`` (writable output) is
    given. ``name``, ``get`` and ``set`` are templates expanded against the
    owning component instance.
    """

    name: str
    get: Optional[str] = None
    set: Optional[str] = None
    range: Range = None
    where: Optional[Where] = None

    @model_validator(mode="after")
    def _check_direction(self) -> Mapping:
        if (self.get is None) == (self.set is None):
            raise ValueError(f"mapping '{self.name}' needs exactly one of 'get' or 'set'")
        return self


class Insert(BaseModel):
    where: Literal["header", "init", "audio", "post_audio", "main", "display"]
    code: str


class DataHandler(BaseModel):
    code: str
    init: Optional[str] = None
    where: Where = "audio"


class Display(BaseModel):
    driver: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    config: list[str] = []


class TargetDescriptor(BaseModel):
    name: str = "seed"
    som: Literal["seed", "patch_sm"] = "seed"
    # Raw instances keyed by name; the kind is read from each "component" key
    # and resolved against the registry during normalization.
    components: dict[str, dict[str, Any]] = {}
    display: Optional[Display] = None
    defines: dict[str, Union[int, float, str]] = {}
    aliases: dict[str, str] = {}
    inserts: list[Insert] = []
    datahandlers: dict[str, DataHandler] = {}
    max_apps: int = 1


# ---------------------------------------------------------------------------
# Normalized target tables
# ---------------------------------------------------------------------------


class InputEntry(BaseModel):
    code: str
    range: Range = None
    automap: bool = False
    where: Where = "audio"


class OutputEntry(BaseModel):
    code: str
    range: Range = None
    where: Where = "audio"


class Labels(BaseModel):
    """Label tables (label -> node name) searched by prefix resolution."""

    params: dict[str, str] = {}
    outs: dict[str, str] = {}
    datas: dict[str, str] = {}


# ---------------------------------------------------------------------------
# Patch descriptor
# ---------------------------------------------------------------------------


class Port(BaseModel):
    tag: str
    type: str = "signal"


class PatchParameter(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    index: int
    visible: bool = True
    default: Optional[float] = Field(default=None, alias="initialValue")
    min: Optional[float] = Field(default=None, alias="minimum")
    max: Optional[float] = Field(default=None, alias="maximum")


class DataRef(BaseModel):
    name: str
    cname: Optional[str] = None
    file: Optional[str] = None


class PatchDescriptor(BaseModel):
    name: str
    inlets: list[Port] = []
    outlets: list[Port] = []
    parameters: list[PatchParameter] = []
    datarefs: list[DataRef] = []

    @classmethod
    def from_description(cls, data: dict[str, Any]) -> PatchDescriptor:
        """Build a descriptor from an exported RNBO ``description.json`` dict."""
        meta = data.get("meta") or {}
        datarefs = [
            DataRef(name=ref["id"], file=ref.get("file") or None)
            for ref in data.get("externalDataRefs", [])
        ]
        return cls(
            name=meta.get("rnboobjname") or "patch",
            inlets=data.get("inlets", []),
            outlets=data.get("outlets", []),
            parameters=data.get("parameters", []),
            datarefs=datarefs,
        )


# ---------------------------------------------------------------------------
# Generation options
# ---------------------------------------------------------------------------

BLOCK_SIZES = (1, 2, 4, 6, 8, 12, 16, 24, 32, 48, 64, 96, 128, 256, 512)


class GenerateOptions(BaseModel):
    samplerate: Literal[32, 48, 96] = 48  # kHz
    blocksize: int = 48
    boost: bool = False
    fastmath: bool = False
    nooled: bool = False
    midi: Literal["none", "usb", "uart"] = "none"

    @field_validator("blocksize")
    @classmethod
    def _check_blocksize(cls, v: int) -> int:
        if v not in BLOCK_SIZES:
            raise ValueError(f"unsupported block size {v} (choose from {list(BLOCK_SIZES)})")
        return v


# ---------------------------------------------------------------------------
# Graph nodes (discriminated union on "kind")
# ---------------------------------------------------------------------------


class HardwareInput(BaseModel):
    kind: Literal["hardware_input"] = "hardware_input"
    name: str
    code: str
    range: Range = None
    automap: bool = False
    where: Where = "audio"
    to: list[str] = []


class HardwareOutput(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    kind: Literal["hardware_output"] = "hardware_output"
    name: str
    code: str
    range: Range = None
    where: Where = "audio"
    src: Optional[str] = None
    from_: list[str] = Field(default=[], alias="from")

    @property
    def active(self) -> bool:
        """True if anything drives this output."""
        return bool(self.src or self.from_)


class DataHandlerNode(BaseModel):
    kind: Literal["data_handler"] = "data_handler"
    name: str
    code: str
    init: Optional[str] = None
    where: Where = "audio"
    data: Optional[str] = None


class AudioChannel(BaseModel):
    kind: Literal["audio_channel"] = "audio_channel"
    name: str
    direction: Literal["in", "out"]
    index: int
    src: Optional[str] = None
    to: list[str] = []


class MidiPort(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    kind: Literal["midi_port"] = "midi_port"
    name: str
    direction: Literal["in", "out"]
    to: list[str] = []
    from_: list[str] = Field(default=[], alias="from")


class AudioBuffer(BaseModel):
    """Block-sized intermediate buffer for a patch outlet without a raw output."""

    kind: Literal["audio_buffer"] = "audio_buffer"
    name: str
    index: int
    src: Optional[str] = None
    to: list[str] = []


class PatchAudioIn(BaseModel):
    kind: Literal["patch_audio_in"] = "patch_audio_in"
    name: str
    index: int
    label: str
    src: Optional[str] = None


class PatchAudioOut(BaseModel):
    kind: Literal["patch_audio_out"] = "patch_audio_out"
    name: str
    index: int
    label: str
    src: str


class PatchParam(BaseModel):
    kind: Literal["patch_parameter"] = "patch_parameter"
    name: str  # generated C++ variable name
    param: str  # parameter name in the patch
    index: int
    label: str
    type: ParamType = "float"
    default: float = 0.0
    min: float = 0.0
    max: float = 1.0
    range: float = 1.0
    stepsize: float = 0.01
    src: Optional[str] = None


class PatchDataRef(BaseModel):
    kind: Literal["patch_data_ref"] = "patch_data_ref"
    name: str
    ref: str
    label: str
    cname: str
    wavname: Optional[str] = None
    src: Optional[str] = None


Node = Annotated[
    Union[
        HardwareInput,
        HardwareOutput,
        DataHandlerNode,
        AudioChannel,
        MidiPort,
        AudioBuffer,
        PatchAudioIn,
        PatchAudioOut,
        PatchParam,
        PatchDataRef,
    ],
    Field(discriminator="kind"),
]


# ---------------------------------------------------------------------------
# Finished graph
# ---------------------------------------------------------------------------


class PatchGraph(BaseModel):
    """The unified node graph for one patch on one target.

    ``nodes`` is the single owned node store, in creation order. The name
    lists group node keys by role, each in creation order.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    nodes: dict[str, Node] = {}
    device_inputs: list[str] = []
    datahandlers: list[str] = []
    device_outputs: list[str] = []
    audio_ins: list[str] = []
    audio_outs: list[str] = []
    midi_ins: list[str] = []
    midi_outs: list[str] = []
    patch_ins: list[str] = []
    patch_outs: list[str] = []
    buffers: list[str] = []
    params: list[str] = []
    datas: list[str] = []

    def __getitem__(self, name: str) -> Node:
        return self.nodes[name]
