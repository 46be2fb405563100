"""Versioned calculation context, dependency-ordered calculations, a project tree service and message links."""

__version__ = "0.1.0"
__all__ = [
    "calculation_graph",
    "calculations",
    "conf",
    "context",
    "hub",
    "link",
    "project_node",
    "project_nodes",
    "project_tree",
    "request",
    "snapshot",
]