"""daisy-graph: wire RNBO patches to Daisy hardware and generate firmware source."""

from daisy_graph.builder import GraphBuilder, build_graph
from daisy_graph.compile import (
    AppSource,
    GenerationResult,
    compile_app,
    compile_source,
    configure_defines,
    cpp_number,
    generate,
)
from daisy_graph.errors import (
    BuildError,
    ConfigError,
    DaisyGraphError,
    UnknownComponentKind,
    UnresolvedReferenceError,
)
from daisy_graph.labels import LabelMatch, resolve_label, split_type_token
from daisy_graph.models import (
    AudioBuffer,
    AudioChannel,
    DataHandler,
    DataHandlerNode,
    DataRef,
    Display,
    GenerateOptions,
    HardwareInput,
    HardwareOutput,
    Insert,
    Mapping,
    MidiPort,
    Node,
    PatchAudioIn,
    PatchAudioOut,
    PatchDataRef,
    PatchDescriptor,
    PatchGraph,
    PatchParam,
    PatchParameter,
    Port,
    TargetDescriptor,
)
from daisy_graph.normalize import Hardware, generate_struct, normalize_target
from daisy_graph.policy import derive, stepsize
from daisy_graph.project import generate_makefile, run_make, write_project
from daisy_graph.registry import COMPONENT_KINDS, Component, create_component, lookup
from daisy_graph.toposort import toposort
from daisy_graph.validate import CapacityError, GraphValidationError, validate_graph
from daisy_graph.visualize import graph_to_dot, graph_to_dot_file

__all__ = [
    "AppSource",
    "AudioBuffer",
    "AudioChannel",
    "BuildError",
    "COMPONENT_KINDS",
    "CapacityError",
    "Component",
    "ConfigError",
    "DaisyGraphError",
    "DataHandler",
    "DataHandlerNode",
    "DataRef",
    "Display",
    "GenerateOptions",
    "GenerationResult",
    "GraphBuilder",
    "GraphValidationError",
    "Hardware",
    "HardwareInput",
    "HardwareOutput",
    "Insert",
    "LabelMatch",
    "Mapping",
    "MidiPort",
    "Node",
    "PatchAudioIn",
    "PatchAudioOut",
    "PatchDataRef",
    "PatchDescriptor",
    "PatchGraph",
    "PatchParam",
    "PatchParameter",
    "Port",
    "TargetDescriptor",
    "UnknownComponentKind",
    "UnresolvedReferenceError",
    "build_graph",
    "compile_app",
    "compile_source",
    "configure_defines",
    "cpp_number",
    "create_component",
    "derive",
    "generate",
    "generate_makefile",
    "generate_struct",
    "graph_to_dot",
    "graph_to_dot_file",
    "lookup",
    "normalize_target",
    "resolve_label",
    "run_make",
    "split_type_token",
    "stepsize",
    "toposort",
    "validate_graph",
    "write_project",
]
