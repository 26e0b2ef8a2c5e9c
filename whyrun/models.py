from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple
import datetime as dt


class SourceType(str, Enum):
    SUPERVISOR = "supervisor"
    CRON = "cron"
    SHELL = "shell"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class SourceInfo:
    type: SourceType
    name: str = ""

    @classmethod
    def unknown(cls) -> "SourceInfo":
        return cls(SourceType.UNKNOWN, "")


@dataclass(frozen=True)
class Process:
    pid: int = 0
    ppid: int = 0
    command: str = ""
    health: str = ""               # zombie | stopped | high-cpu | high-mem | ""
    user: str = ""
    bind_addresses: Tuple[str, ...] = ()
    working_dir: str = ""
    started_at: Optional[dt.datetime] = None
    container: str = ""
    service: str = ""
    healthcheck: str = ""          # container healthcheck status, "" when none reported

    @property
    def label(self) -> str:
        return self.command or f"pid {self.pid}"
