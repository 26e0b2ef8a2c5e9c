from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
import datetime as dt
import re

import psutil

from .models import Process
from .network import get_listen_addresses_by_pid
from .source import command_key
from .utils import read_text

CONTAINER_ID_RE = re.compile(r"(?:docker|containerd|libpod|cri-containerd|crio)[-/]([0-9a-f]{64})")
KUBEPODS_ID_RE = re.compile(r"kubepods.*?([0-9a-f]{64})")
CPU_SAMPLE_INTERVAL = 0.1


def classify_health(status: str, cpu_pct: float, mem_pct: float,
                    cpu_high: float = 90.0, mem_high: float = 80.0) -> str:
    if status == psutil.STATUS_ZOMBIE:
        return "zombie"
    if status in (psutil.STATUS_STOPPED, psutil.STATUS_TRACING_STOP):
        return "stopped"
    if cpu_pct > cpu_high:
        return "high-cpu"
    if mem_pct > mem_high:
        return "high-mem"
    return ""


def parse_cgroup(text: str) -> Tuple[str, str]:
    """Return (container id, service unit name) found in /proc/<pid>/cgroup content."""
    container = ""
    service = ""
    for line in text.splitlines():
        path = line.split(":", 2)[-1]
        if not container:
            m = CONTAINER_ID_RE.search(path) or KUBEPODS_ID_RE.search(path)
            if m:
                container = m.group(1)[:12]
        for segment in path.split("/"):
            # user@1000.service is the session manager, not the process's own unit
            if segment.endswith(".service") and not segment.startswith("user@"):
                service = segment[: -len(".service")]
    return container, service


def _safe(proc: psutil.Process, attr: str, default: Any, *args: Any, **kwargs: Any) -> Any:
    try:
        return getattr(proc, attr)(*args, **kwargs)
    except (psutil.AccessDenied, psutil.ZombieProcess):
        return default


def snapshot_process(pid: int, cfg: Dict[str, Any],
                     listen_map: Optional[Dict[int, List[str]]] = None) -> Process:
    """Build an immutable Process record for pid. Raises psutil.NoSuchProcess if it is gone."""
    p = psutil.Process(pid)
    if listen_map is None:
        listen_map = get_listen_addresses_by_pid()

    status = _safe(p, "status", "")
    # first cpu_percent() call on a new Process is always 0.0 without an interval
    cpu_pct = _safe(p, "cpu_percent", 0.0, interval=float(cfg.get("cpu_sample", CPU_SAMPLE_INTERVAL)))
    mem_pct = _safe(p, "memory_percent", 0.0)
    create_time = _safe(p, "create_time", None)
    container, service = parse_cgroup(read_text(Path(f"/proc/{pid}/cgroup")))

    return Process(
        pid=pid,
        ppid=_safe(p, "ppid", 0),
        command=_safe(p, "name", ""),
        health=classify_health(status, cpu_pct, mem_pct,
                               float(cfg.get("cpu_high", 90.0)), float(cfg.get("mem_high", 80.0))),
        user=_safe(p, "username", ""),
        bind_addresses=tuple(listen_map.get(pid, [])),
        working_dir=_safe(p, "cwd", ""),
        started_at=dt.datetime.fromtimestamp(create_time, dt.timezone.utc) if create_time else None,
        container=container,
        service=service,
    )


def get_ancestry(pid: int, cfg: Dict[str, Any],
                 listen_map: Optional[Dict[int, List[str]]] = None) -> List[Process]:
    """Outermost ancestor first, target last."""
    if listen_map is None:
        listen_map = get_listen_addresses_by_pid()
    target = psutil.Process(pid)
    lineage: List[Process] = []
    for parent in reversed(_safe(target, "parents", [])):
        try:
            lineage.append(snapshot_process(parent.pid, cfg, listen_map))
        except psutil.NoSuchProcess:
            continue
    lineage.append(snapshot_process(pid, cfg, listen_map))
    return lineage


def get_siblings(pid: int, cfg: Dict[str, Any],
                 listen_map: Optional[Dict[int, List[str]]] = None) -> List[Process]:
    if listen_map is None:
        listen_map = get_listen_addresses_by_pid()
    parent = _safe(psutil.Process(pid), "parent", None)
    if parent is None:
        return []
    siblings: List[Process] = []
    for child in _safe(parent, "children", []):
        if child.pid == pid:
            continue
        try:
            siblings.append(snapshot_process(child.pid, cfg, listen_map))
        except psutil.NoSuchProcess:
            continue
    return siblings


def find_pids_by_name(name: str) -> List[int]:
    wanted = command_key(name)
    pids: List[int] = []
    for p in psutil.process_iter(["name", "cmdline"]):
        # comm names are truncated to 15 chars on Linux, so also try argv[0]
        cmdline = p.info.get("cmdline") or []
        argv0 = command_key(cmdline[0]) if cmdline else ""
        if p.info.get("name") == wanted or argv0 == wanted:
            pids.append(p.pid)
    return sorted(pids)
