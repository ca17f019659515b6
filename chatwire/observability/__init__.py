"""Observability helpers."""

from chatwire.observability.dumper import DumpFiles, DumpHandles, DumpPathGenerator, DumpType, Dumper

__all__ = ['DumpFiles', 'DumpHandles', 'DumpPathGenerator', 'DumpType', 'Dumper']
