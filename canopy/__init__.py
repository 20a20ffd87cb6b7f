"""Canopy -- scheduled sessions and sandbox environments for worktrees."""

__version__ = "0.1.0"
