import os
from typing import Dict, FrozenSet, Iterable, Optional, Sequence, Tuple

from .models import Process, SourceInfo, SourceType

# Ordered by priority: a supervisor anywhere in the lineage beats cron, which beats a shell.
DEFAULT_SOURCE_PATTERNS: Tuple[Tuple[SourceType, FrozenSet[str]], ...] = (
    (SourceType.SUPERVISOR, frozenset({
        "pm2", "supervisord", "supervisor", "runsv", "runsvdir", "s6-supervise",
        "forever", "circusd", "monit", "god", "supervise",
    })),
    (SourceType.CRON, frozenset({"cron", "crond", "anacron", "atd", "fcron", "cronie"})),
    (SourceType.SHELL, frozenset({"bash", "sh", "zsh", "fish", "dash", "ksh", "tcsh", "csh", "ash"})),
)


def command_key(command: str) -> str:
    """Normalize a command for lookup: basename of a path, login-shell dash dropped."""
    name = os.path.basename(command.strip())
    return name[1:] if name.startswith("-") else name


def extend_patterns(extra: Optional[Dict[str, Iterable[str]]]) -> Tuple[Tuple[SourceType, FrozenSet[str]], ...]:
    if not extra:
        return DEFAULT_SOURCE_PATTERNS
    out = []
    for stype, names in DEFAULT_SOURCE_PATTERNS:
        added = extra.get(stype.value) or []
        if isinstance(added, str):
            added = [added]
        out.append((stype, names | frozenset(command_key(str(n)) for n in added)))
    return tuple(out)


class SourceDetector:
    def __init__(self, patterns: Tuple[Tuple[SourceType, FrozenSet[str]], ...] = DEFAULT_SOURCE_PATTERNS):
        self.patterns = patterns

    def detect(self, ancestry: Optional[Sequence[Process]]) -> SourceInfo:
        procs = list(ancestry or [])
        for stype, names in self.patterns:
            for proc in procs:
                if proc.command and command_key(proc.command) in names:
                    return SourceInfo(stype, proc.command)
        return SourceInfo.unknown()


_default_detector = SourceDetector()


def detect(ancestry: Optional[Sequence[Process]]) -> SourceInfo:
    return _default_detector.detect(ancestry)
