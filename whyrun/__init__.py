"""
whyrun — explain why a process is running and flag what looks risky about it.

Provenance detection over a process's ancestry, rule-based warnings over
a process snapshot, and a psutil-backed collector + CLI around them.

CLI entry: whyrun (see pyproject.toml)
"""

from .models import Process, SourceInfo, SourceType
from .source import SourceDetector, detect
from .network import is_public_bind
from .heuristics import WarningGenerator, warnings
from .config import load_config

__all__ = [
    "Process",
    "SourceInfo",
    "SourceType",
    "SourceDetector",
    "detect",
    "is_public_bind",
    "WarningGenerator",
    "warnings",
    "load_config",
]

__version__ = "0.1.0"
