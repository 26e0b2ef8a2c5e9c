from collections import Counter
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence
import datetime as dt
import posixpath

from .models import Process
from .network import is_public_bind
from .source import command_key

TMP_DIRS = ("/tmp", "/var/tmp", "/dev/shm")
STALE_DAYS = 90
RESTART_THRESHOLD = 5
SERVICE_MATCH_MODES = ("fuzzy", "exact")


@dataclass(frozen=True)
class WarningRule:
    name: str
    predicate: Callable[["WarningGenerator", Process, dt.datetime], bool]
    template: str


def _under(path: str, dirs: Iterable[str]) -> bool:
    if not path:
        return False
    path = posixpath.normpath(path)
    for d in dirs:
        d = posixpath.normpath(d)
        if path == d or path.startswith(d.rstrip("/") + "/"):
            return True
    return False


def _strip_unit(name: str) -> str:
    name = name.strip()
    return name[: -len(".service")] if name.endswith(".service") else name


def service_matches(service: str, command: str, mode: str = "fuzzy") -> bool:
    svc = _strip_unit(service)
    cmd = command_key(command)
    if mode == "exact":
        return svc == cmd
    svc, cmd = svc.lower(), cmd.lower()
    return svc in cmd or cmd in svc


def process_age(started_at: dt.datetime, now: dt.datetime) -> dt.timedelta:
    # naive timestamps are local time
    if started_at.tzinfo is None and now.tzinfo is not None:
        now = now.astimezone().replace(tzinfo=None)
    elif started_at.tzinfo is not None and now.tzinfo is None:
        now = now.astimezone(dt.timezone.utc)
    return now - started_at


def _health_is(value: str) -> Callable[["WarningGenerator", Process, dt.datetime], bool]:
    return lambda gen, p, now: p.health == value


def _is_stale(gen: "WarningGenerator", p: Process, now: dt.datetime) -> bool:
    if p.started_at is None:
        return False
    return process_age(p.started_at, now) > dt.timedelta(days=gen.stale_days)


def _service_mismatch(gen: "WarningGenerator", p: Process, now: dt.datetime) -> bool:
    if not p.service or not p.command:
        return False
    return not service_matches(p.service, p.command, gen.service_match)


RULES: Sequence[WarningRule] = (
    WarningRule("zombie", _health_is("zombie"),
                "Process {p.label} is a zombie (exited but not reaped by its parent)"),
    WarningRule("root", lambda gen, p, now: p.user == "root",
                "Process {p.label} is running as root"),
    WarningRule("public_bind", lambda gen, p, now: is_public_bind(p.bind_addresses),
                "Process {p.label} is listening on a public address ({addrs})"),
    WarningRule("suspicious_dir", lambda gen, p, now: _under(p.working_dir, gen.suspicious_dirs),
                "Process {p.label} is running from a suspicious location ({p.working_dir})"),
    WarningRule("stopped", _health_is("stopped"),
                "Process {p.label} is stopped"),
    WarningRule("high_cpu", _health_is("high-cpu"),
                "Process {p.label} is using high CPU"),
    WarningRule("high_mem", _health_is("high-mem"),
                "Process {p.label} is using high memory"),
    WarningRule("no_healthcheck", lambda gen, p, now: bool(p.container) and not p.healthcheck,
                "Process {p.label} runs in container {p.container} without a healthcheck"),
    WarningRule("service_mismatch", _service_mismatch,
                "Process {p.label} does not match its declared service {p.service}"),
    WarningRule("stale", _is_stale,
                "Process {p.label} has been running for more than {days} days"),
)

RESTART_TEMPLATE = "Process {command} appears {count} times, it may be restarting frequently"


class WarningGenerator:
    def __init__(
        self,
        stale_days: int = STALE_DAYS,
        restart_threshold: int = RESTART_THRESHOLD,
        suspicious_dirs: Iterable[str] = TMP_DIRS,
        service_match: str = "fuzzy",
        rules: Sequence[WarningRule] = RULES,
    ):
        if service_match not in SERVICE_MATCH_MODES:
            raise ValueError(f"service_match must be one of {SERVICE_MATCH_MODES}, got {service_match!r}")
        self.stale_days = stale_days
        self.restart_threshold = restart_threshold
        self.suspicious_dirs = tuple(suspicious_dirs)
        self.service_match = service_match
        self.rules = rules

    @classmethod
    def from_config(cls, cfg: Dict[str, Any]) -> "WarningGenerator":
        return cls(
            stale_days=int(cfg.get("stale_days", STALE_DAYS)),
            restart_threshold=int(cfg.get("restart_threshold", RESTART_THRESHOLD)),
            suspicious_dirs=cfg.get("suspicious_dirs", TMP_DIRS),
            service_match=cfg.get("service_match", "fuzzy"),
        )

    def warnings(self, processes: Optional[Sequence[Process]], now: Optional[dt.datetime] = None) -> List[str]:
        procs = list(processes or [])
        if not procs:
            return []
        now = now or dt.datetime.now().astimezone()

        out: List[str] = []
        for rule in self.rules:
            for p in procs:
                if rule.predicate(self, p, now):
                    out.append(rule.template.format(
                        p=p, addrs=", ".join(p.bind_addresses), days=self.stale_days))
        out.extend(self._restart_warnings(procs))
        return out

    def _restart_warnings(self, procs: Sequence[Process]) -> List[str]:
        # Counter keeps first-occurrence order
        counts = Counter(p.command for p in procs if p.command)
        return [
            RESTART_TEMPLATE.format(command=command, count=count)
            for command, count in counts.items()
            if count >= self.restart_threshold
        ]


def warnings(
    processes: Optional[Sequence[Process]],
    now: Optional[dt.datetime] = None,
    config: Optional[Dict[str, Any]] = None,
) -> List[str]:
    gen = WarningGenerator.from_config(config) if config else WarningGenerator()
    return gen.warnings(processes, now)
