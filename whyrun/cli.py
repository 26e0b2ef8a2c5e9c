from __future__ import annotations
import argparse
import json
import sys
from typing import Any, Dict, List

import psutil

from .config import load_config
from .heuristics import WarningGenerator
from .models import Process, SourceInfo, SourceType
from .network import get_listen_addresses_by_pid
from .proc import find_pids_by_name, get_ancestry, get_siblings
from .source import SourceDetector, extend_patterns
from .utils import C


def describe_source(info: SourceInfo) -> str:
    if info.type == SourceType.UNKNOWN:
        return "unknown launcher"
    return f"{info.type.value} ({info.name})"


def format_chain(ancestry: List[Process]) -> str:
    return " -> ".join(f"{p.label} ({p.pid})" for p in ancestry)


def render_text(target: Process, ancestry: List[Process], info: SourceInfo, warns: List[str]) -> str:
    color = C.GREEN if info.type != SourceType.UNKNOWN else C.GRAY
    lines = [
        f"Target      : {C.CYAN}{target.label}{C.RESET} (pid {target.pid})",
        f"Ancestry    : {format_chain(ancestry)}",
        f"Launched by : {color}{describe_source(info)}{C.RESET}",
    ]
    if warns:
        lines.append("Warnings    :")
        lines.extend(f"  {C.YELLOW}- {w}{C.RESET}" for w in warns)
    else:
        lines.append(f"Warnings    : {C.GRAY}none{C.RESET}")
    return "\n".join(lines)


def render_json(target: Process, ancestry: List[Process], info: SourceInfo, warns: List[str]) -> str:
    def proc_dict(p: Process) -> Dict[str, Any]:
        return {"pid": p.pid, "ppid": p.ppid, "command": p.command, "user": p.user}

    return json.dumps({
        "target": proc_dict(target),
        "ancestry": [proc_dict(p) for p in ancestry],
        "source": {"type": info.type.value, "name": info.name},
        "warnings": warns,
    }, indent=2)


def explain(pid: int, cfg: Dict[str, Any], include_siblings: bool = True) -> tuple:
    listen_map = get_listen_addresses_by_pid()
    ancestry = get_ancestry(pid, cfg, listen_map)
    target = ancestry[-1]
    detector = SourceDetector(extend_patterns(cfg.get("sources")))
    info = detector.detect(ancestry)

    inspected = list(ancestry)
    if include_siblings:
        inspected.extend(get_siblings(pid, cfg, listen_map))
    warns = WarningGenerator.from_config(cfg).warnings(inspected)
    return target, ancestry, info, warns


def cmd_explain(args: argparse.Namespace) -> int:
    cfg = load_config(args.config)

    if args.name:
        pids = find_pids_by_name(args.name)
        if not pids:
            print(f"No process named {args.name}", file=sys.stderr)
            return 1
        if len(pids) > 1:
            print(f"{len(pids)} processes named {args.name}, using pid {pids[0]}", file=sys.stderr)
        pid = pids[0]
    else:
        pid = args.pid

    try:
        target, ancestry, info, warns = explain(pid, cfg, include_siblings=not args.no_siblings)
    except psutil.NoSuchProcess:
        print(f"Process {pid} not found", file=sys.stderr)
        return 1
    except psutil.AccessDenied:
        print(f"Access denied to process {pid}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 1

    if args.json:
        print(render_json(target, ancestry, info, warns))
    else:
        print(render_text(target, ancestry, info, warns))
    return 0


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="whyrun - explain why a process is running")
    target = ap.add_mutually_exclusive_group(required=True)
    target.add_argument("pid", type=int, nargs="?", help="Process ID to explain")
    target.add_argument("--name", type=str, help="Explain the first process with this name")
    ap.add_argument("--config", type=str, help="Config YAML")
    ap.add_argument("--json", action="store_true", help="Emit JSON instead of text")
    ap.add_argument("--no-siblings", action="store_true", help="Only inspect the ancestry for warnings")
    ap.set_defaults(func=cmd_explain)
    return ap


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    sys.exit(args.func(args))
