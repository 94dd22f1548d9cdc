"""Compiler pieces for PolySubML: spans, syntax tree, bound pairs, reachability graph, JavaScript generation and execution."""

__version__ = "0.1.0"