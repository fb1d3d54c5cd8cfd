"""Graph document model: stage nodes, ports and channel edges.

The document is supplied wholesale by the canvas editor. The compiler only
reads it, so every model here is frozen.
"""

from typing import Any

from pydantic import BaseModel, Field, ValidationError, model_validator

from flowcanvas.contracts.enums import PortMultiplicity, StageKind
from flowcanvas.contracts.errors import GraphDocumentError
from flowcanvas.contracts.params import (
    FILTER_MODES,
    OPERATOR_TYPES,
    FastQCParams,
    FileSourceParams,
    FilterParams,
    GenericStageParams,
    MapParams,
    MergeParams,
    OutputParams,
    StageParams,
    TrimmomaticParams,
    UnsupportedParams,
)


class InputPort(BaseModel):
    """Named input of a stage."""

    model_config = {"frozen": True}

    name: str
    label: str | None = None


class OutputPort(BaseModel):
    """Named output of a stage. Each becomes one channel."""

    model_config = {"frozen": True}

    name: str
    label: str | None = None
    multiplicity: PortMultiplicity = PortMultiplicity.MANY


class StageResources(BaseModel):
    """Per-stage resource requests. Unset fields take configured defaults."""

    model_config = {"frozen": True}

    cpus: int | None = Field(default=None, gt=0)
    memory: str | None = None
    time_limit: str | None = None
    container: str | None = None


# Default ports per parameter type, used when a node declares none.
DEFAULT_PORTS: dict[str, tuple[tuple[str, ...], tuple[tuple[str, str], ...]]] = {
    "file_source": ((), (("out", "Files"),)),
    "filter": (("in",), (("out", "Filtered"),)),
    "map": (("in",), (("out", "Mapped"),)),
    "merge": (("in",), (("out", "Merged"),)),
    "generic": (("in",), (("out", "Output"),)),
    "fastqc": (
        ("in",),
        (("reads_out", "FASTQ"), ("zip", "ZIP Archives"), ("html", "HTML Reports")),
    ),
    "trimmomatic": (
        ("reads", "qc_reports"),
        (("trimmed_reads", "Trimmed"), ("unpaired_reads", "Unpaired"), ("trim_log", "Log")),
    ),
    "output": (("in",), ()),
    "unsupported": (("in",), ()),
}

_KIND_BY_TYPE: dict[str, StageKind] = {
    "file_source": StageKind.SOURCE,
    "filter": StageKind.OPERATOR,
    "map": StageKind.OPERATOR,
    "merge": StageKind.OPERATOR,
    "generic": StageKind.STAGE,
    "fastqc": StageKind.STAGE,
    "trimmomatic": StageKind.STAGE,
    "output": StageKind.SINK,
    "unsupported": StageKind.STAGE,
}


class StageNode(BaseModel):
    """One stage of the pipeline graph."""

    model_config = {"frozen": True}

    id: str = Field(min_length=1)
    kind: StageKind
    label: str | None = None
    params: StageParams
    inputs: list[InputPort] = Field(default_factory=list)
    outputs: list[OutputPort] = Field(default_factory=list)
    resources: StageResources = Field(default_factory=StageResources)

    @model_validator(mode="before")
    @classmethod
    def fill_catalog_defaults(cls, data: Any) -> Any:
        """Supply kind and ports from the built-in catalog when absent."""
        if not isinstance(data, dict):
            return data
        params = data.get("params")
        if isinstance(params, BaseModel):
            param_type = getattr(params, "type", None)
        elif isinstance(params, dict):
            param_type = params.get("type")
        else:
            return data
        if param_type not in DEFAULT_PORTS:
            return data

        data = dict(data)
        data.setdefault("kind", _KIND_BY_TYPE[param_type])
        input_names, outputs = DEFAULT_PORTS[param_type]
        if not data.get("inputs") and not data.get("outputs"):
            data["inputs"] = [{"name": name} for name in input_names]
            data["outputs"] = [{"name": name, "label": label} for name, label in outputs]
        return data

    @property
    def param_type(self) -> str:
        return self.params.type

    @property
    def display_label(self) -> str:
        return self.label or f"{self.param_type}_{self.id}"


class ChannelEdge(BaseModel):
    """A data connection from one node's output port to another's input port."""

    model_config = {"frozen": True}

    source: str
    source_port: str | None = None
    target: str
    target_port: str | None = None

    def describe(self) -> str:
        return f"{self.source}.{self.source_port} -> {self.target}.{self.target_port}"


class GraphDocument(BaseModel):
    """The complete graph handed over by the editor for one compilation."""

    model_config = {"frozen": True}

    nodes: list[StageNode] = Field(default_factory=list)
    edges: list[ChannelEdge] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_unique_node_ids(self) -> "GraphDocument":
        seen: set[str] = set()
        for node in self.nodes:
            if node.id in seen:
                raise ValueError(f"Duplicate node id '{node.id}'")
            seen.add(node.id)
        return self

    @classmethod
    def from_editor_payload(cls, payload: Any) -> "GraphDocument":
        """Convert the canvas editor's native document into the typed model.

        Node and operator types the compiler does not know become
        ``unsupported`` parameter records so they surface in the script.

        Raises:
            GraphDocumentError: If the payload is not a node/edge mapping.
        """
        if not isinstance(payload, dict):
            raise GraphDocumentError("Editor payload must be a mapping with 'nodes' and 'edges'")
        raw_nodes = payload.get("nodes", [])
        raw_edges = payload.get("edges", [])
        if not isinstance(raw_nodes, list) or not isinstance(raw_edges, list):
            raise GraphDocumentError("Editor payload 'nodes' and 'edges' must be lists")

        nodes = [_convert_editor_node(raw) for raw in raw_nodes]
        edges = [
            ChannelEdge(
                source=str(raw["source"]),
                source_port=raw.get("sourceHandle"),
                target=str(raw["target"]),
                target_port=raw.get("targetHandle"),
            )
            for raw in raw_edges
            if isinstance(raw, dict) and "source" in raw and "target" in raw
        ]
        return cls(nodes=nodes, edges=edges)


def _convert_editor_node(raw: Any) -> StageNode:
    if not isinstance(raw, dict) or "id" not in raw:
        raise GraphDocumentError(f"Editor node must be a mapping with an 'id': {raw!r}")
    data: dict[str, Any] = raw.get("data") or {}
    node_type = raw.get("type")
    try:
        params = _convert_editor_params(node_type, data)
    except ValidationError as exc:
        # Malformed editor values degrade to a placeholder stage
        invalid = sorted({str(error["loc"][0]) for error in exc.errors() if error["loc"]})
        params = UnsupportedParams(
            requested=f"{node_type} with invalid {', '.join(invalid) or 'parameters'}"
        )

    resources = StageResources(
        cpus=data.get("cpus") or None,
        memory=data.get("memory") or None,
        time_limit=data.get("timeLimit") or None,
        container=data.get("containerImage") or None,
    )
    fields: dict[str, Any] = {
        "id": str(raw["id"]),
        "label": data.get("label"),
        "params": params,
        "resources": resources,
    }
    if data.get("inputs") or data.get("outputs"):
        fields["inputs"] = [
            {"name": port["name"], "label": port.get("label")}
            for port in data.get("inputs") or []
            if isinstance(port, dict) and port.get("name")
        ]
        fields["outputs"] = [
            {"name": port["name"], "label": port.get("label")}
            for port in data.get("outputs") or []
            if isinstance(port, dict) and port.get("name")
        ]
    if node_type == "fileInput" or params.type != "unsupported":
        return StageNode(**fields)
    kind = StageKind.OPERATOR if node_type == "operator" else StageKind.STAGE
    return StageNode(kind=kind, **fields)


def _file_names(entries: Any) -> list[str]:
    names = []
    for entry in entries or []:
        if isinstance(entry, dict):
            names.append(entry.get("name") or entry.get("originalName") or "unknown_file")
        else:
            names.append(str(entry))
    return names


def _convert_editor_params(node_type: Any, data: dict[str, Any]) -> BaseModel:
    if node_type == "fileInput":
        return FileSourceParams(files=_file_names(data.get("files")))

    if node_type in ("operator", "filter"):
        # Legacy documents used a bare "filter" node type
        operator_type = "filter" if node_type == "filter" else data.get("operatorType")
        if operator_type not in OPERATOR_TYPES:
            return UnsupportedParams(requested=f"operator:{operator_type}")
        if operator_type == "filter":
            mode = data.get("filterMode") or "contains"
            if not isinstance(mode, str) or mode not in FILTER_MODES:
                # Unknown conditions copy the input through unfiltered
                return FilterParams(selected_files=_file_names(data.get("selectedFilterFiles")))
            return FilterParams(
                text=data.get("filterText") or "",
                mode=mode,
                negate=bool(data.get("filterNegate")),
                selected_files=_file_names(data.get("selectedFilterFiles")),
            )
        if operator_type == "map":
            operation = data.get("mapOperation") or "changeCase"
            return MapParams(
                operation="replace_text" if operation == "replaceText" else "change_case",
                case="lower" if data.get("mapChangeCase") == "toLowerCase" else "upper",
                find=data.get("mapReplaceFind") or "",
                replace=data.get("mapReplaceWith") or "",
            )
        separator = data.get("mergeJoinSeparator") or ""
        return MergeParams(
            extension=data.get("joinType") or "txt",
            separator=separator.replace("\\n", "\n").replace("\\t", "\t"),
            output_type="fastq" if data.get("outputType") == "fastq" else "txt",
        )

    if node_type == "process":
        process_type = data.get("processType") or "generic"
        if process_type == "fastqc":
            return FastQCParams(options=data.get("fastqcOptions") or "")
        if process_type == "trimmomatic":
            return TrimmomaticParams(
                leading=data.get("leading", 3),
                trailing=data.get("trailing", 3),
                sliding_window=data.get("slidingwindow") or "4:15",
                min_len=data.get("minlen", 36),
                adapter_file=data.get("adapter_file") or "",
                custom_steps=data.get("custom_steps") or "",
            )
        if process_type != "generic":
            return UnsupportedParams(requested=f"process:{process_type}")
        script = data.get("script")
        return GenericStageParams(script=script) if script else GenericStageParams()

    if node_type == "outputDisplay":
        return OutputParams(
            label=data.get("label") or "Output",
            download_format=data.get("downloadFormat") or "txt",
            selected_file=data.get("selectedFileName") or "all",
        )

    return UnsupportedParams(requested=str(node_type))
