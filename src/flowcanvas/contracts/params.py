"""Per-stage parameter records.

Each stage type carries only its own parameters. The records form a tagged
union discriminated by ``type``; the stage emitter dispatches on that tag.

Example YAML:
    params:
      type: filter
      text: PASS
      mode: contains
      negate: false
"""

from typing import Annotated, Literal

from pydantic import BaseModel, Field


class FileSourceParams(BaseModel):
    """Files staged into the run's input directory."""

    model_config = {"frozen": True}

    type: Literal["file_source"] = "file_source"
    files: list[str] = Field(
        default_factory=list,
        description="File names, relative to the input directory",
    )


class FilterParams(BaseModel):
    """Keep lines matching a condition."""

    model_config = {"frozen": True}

    type: Literal["filter"] = "filter"
    text: str = Field(default="", description="Text or pattern to match")
    mode: Literal["contains", "startsWith", "endsWith", "regex"] = "contains"
    negate: bool = Field(default=False, description="Keep non-matching lines instead")
    selected_files: list[str] = Field(
        default_factory=list,
        description="Restrict the operator to these upstream file names",
    )


class MapParams(BaseModel):
    """Transform every line of each file."""

    model_config = {"frozen": True}

    type: Literal["map"] = "map"
    operation: Literal["change_case", "replace_text"] = "change_case"
    case: Literal["upper", "lower"] = "upper"
    find: str = ""
    replace: str = ""
    selected_files: list[str] = Field(default_factory=list)


class MergeParams(BaseModel):
    """Concatenate every file produced upstream into one."""

    model_config = {"frozen": True}

    type: Literal["merge"] = "merge"
    operation: Literal["join"] = "join"
    extension: str = Field(default="txt", description="Extension of the merged file")
    separator: str = Field(
        default="",
        description="Text written between consecutive files (empty = plain concatenation)",
    )
    output_type: Literal["txt", "fastq"] = Field(
        default="txt",
        description="fastq enables record-structure validation before and after merging",
    )
    selected_files: list[str] = Field(default_factory=list)


class GenericStageParams(BaseModel):
    """User-written script body, emitted verbatim."""

    model_config = {"frozen": True}

    type: Literal["generic"] = "generic"
    script: str = '"""\necho "Hello World"\n"""'


class FastQCParams(BaseModel):
    """Quality-control preset: pass-through reads plus zip and html reports."""

    model_config = {"frozen": True}

    type: Literal["fastqc"] = "fastqc"
    options: str = Field(default="", description="Extra command-line options")


class TrimmomaticParams(BaseModel):
    """Read-trimming preset. Rejects non-FASTQ input at run time."""

    model_config = {"frozen": True}

    type: Literal["trimmomatic"] = "trimmomatic"
    leading: int = Field(default=3, ge=0)
    trailing: int = Field(default=3, ge=0)
    sliding_window: str = "4:15"
    min_len: int = Field(default=36, ge=0)
    adapter_file: str = ""
    custom_steps: str = Field(default="", description="Extra steps, one per line")

    def step_arguments(self) -> str:
        """Trimming steps as passed on the command line."""
        steps = [
            f"LEADING:{self.leading}",
            f"TRAILING:{self.trailing}",
            f"SLIDINGWINDOW:{self.sliding_window}",
            f"MINLEN:{self.min_len}",
        ]
        if self.adapter_file.strip():
            steps.append(f"ILLUMINACLIP:{self.adapter_file}")
        steps.extend(line.strip() for line in self.custom_steps.splitlines() if line.strip())
        return " ".join(steps)


class OutputParams(BaseModel):
    """Publish upstream files into the results directory."""

    model_config = {"frozen": True}

    type: Literal["output"] = "output"
    label: str = "Output"
    download_format: str = "txt"
    selected_file: str = Field(
        default="all",
        description="'all' combines every file; otherwise publish only this file",
    )


class UnsupportedParams(BaseModel):
    """Placeholder for a stage type this compiler does not know."""

    model_config = {"frozen": True}

    type: Literal["unsupported"] = "unsupported"
    requested: str = Field(description="The stage type the editor asked for")


StageParams = Annotated[
    FileSourceParams
    | FilterParams
    | MapParams
    | MergeParams
    | GenericStageParams
    | FastQCParams
    | TrimmomaticParams
    | OutputParams
    | UnsupportedParams,
    Field(discriminator="type"),
]

OPERATOR_TYPES = frozenset({"filter", "map", "merge"})
FILTER_MODES = frozenset({"contains", "startsWith", "endsWith", "regex"})
