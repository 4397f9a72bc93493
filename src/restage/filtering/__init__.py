"""Glob filtering over repository-relative paths."""

from .glob import CompiledGlob, FilterError, compile_glob, matches, normalize_path

__all__ = ["CompiledGlob", "FilterError", "compile_glob", "matches", "normalize_path"]
