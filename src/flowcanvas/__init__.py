"""FlowCanvas: compile visual stage graphs to Nextflow and track their runs."""

__version__ = "0.1.0"
