"""Command-tree compiler: turns a :class:`~apictl.parser.SpecDocument` into a namespace of commands."""

from apictl.generator.command_tree import build_command_tree, find_operation, iter_operations
from apictl.generator.naming import infer_command_name

__all__ = ["build_command_tree", "find_operation", "infer_command_name", "iter_operations"]
