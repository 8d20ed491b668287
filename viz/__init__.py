"""
REASONFLOW VISUALIZATION - The Flow Diagram Model

This package turns a session into renderer-ready data:
- flow: FlowGraph assembly, thresholds, Arrow IPC export
"""

from viz.flow import (
    FlowNode,
    FlowLink,
    FlowGraph,
    FlowMetadata,
    HiddenCounts,
    node_magnitude,
    assemble_flow_graph,
    apply_thresholds,
    serialize_to_arrow,
)

__all__ = [
    "FlowNode",
    "FlowLink",
    "FlowGraph",
    "FlowMetadata",
    "HiddenCounts",
    "node_magnitude",
    "assemble_flow_graph",
    "apply_thresholds",
    "serialize_to_arrow",
]
