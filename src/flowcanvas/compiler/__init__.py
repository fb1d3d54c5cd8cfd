"""Graph compiler: stage graph to dependency-ordered Nextflow script."""

from flowcanvas.compiler.assembler import assemble_script
from flowcanvas.compiler.binder import ChannelBinder, ChannelTable, InputBinding, SourceChannel
from flowcanvas.compiler.compiler import GraphCompiler, compile_graph
from flowcanvas.compiler.emitter import StageEmitter
from flowcanvas.compiler.naming import NameAllocator, resolve_output_name, sanitize_identifier
from flowcanvas.compiler.orderer import InvocationOrderer, SortContext

__all__ = [
    "ChannelBinder",
    "ChannelTable",
    "GraphCompiler",
    "InputBinding",
    "InvocationOrderer",
    "NameAllocator",
    "SortContext",
    "SourceChannel",
    "StageEmitter",
    "assemble_script",
    "compile_graph",
    "resolve_output_name",
    "sanitize_identifier",
]
