from typing import Dict, Iterable, List, Optional

import psutil

WILDCARD_ADDRESSES = frozenset({"0.0.0.0", "::"})


def is_public_bind(addresses: Optional[Iterable[str]]) -> bool:
    """True if any address is the IPv4 or IPv6 unspecified (all-interfaces) address.

    Exact string match only; callers are expected to pass canonical forms.
    """
    if not addresses:
        return False
    return any(addr in WILDCARD_ADDRESSES for addr in addresses)


def get_listen_addresses_by_pid() -> Dict[int, List[str]]:
    addr_map: Dict[int, List[str]] = {}
    try:
        conns = psutil.net_connections(kind="inet")
    except psutil.AccessDenied:
        return addr_map

    for conn in conns:
        if conn.status != psutil.CONN_LISTEN or conn.pid is None or not conn.laddr:
            continue
        ip = conn.laddr.ip
        addrs = addr_map.setdefault(conn.pid, [])
        if ip not in addrs:
            addrs.append(ip)
    return addr_map
