from __future__ import annotations

import logging
import os
import platform
import socket
import sys
import time
from email.utils import format_datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from .storage import DocumentStore
from .timeutils import format_clock, now_utc

_logger = logging.getLogger(__name__)

_PROCESS_STARTED = time.monotonic()

_STORAGE_STATES = frozenset({"connected", "pending", "failed"})


def _os_uptime() -> Optional[float]:
    proc_uptime = Path("/proc/uptime")
    try:
        return float(proc_uptime.read_text().split()[0])
    except (OSError, ValueError, IndexError):
        return None


def _cpu_info() -> Dict[str, Any]:
    return {"count": os.cpu_count(), "model": platform.processor() or None}


def _memory() -> Dict[str, Optional[int]]:
    try:
        page_size = os.sysconf("SC_PAGE_SIZE")
        total = os.sysconf("SC_PHYS_PAGES") * page_size
        free = os.sysconf("SC_AVPHYS_PAGES") * page_size
    except (AttributeError, ValueError, OSError):
        return {"total": None, "free": None}
    return {"total": total, "free": free}


def _process_memory() -> Optional[Dict[str, int]]:
    try:
        import resource
    except ImportError:
        return None
    usage = resource.getrusage(resource.RUSAGE_SELF)
    return {"maxRss": usage.ru_maxrss}


def _load_average() -> Optional[List[float]]:
    try:
        return [round(value, 2) for value in os.getloadavg()]
    except (AttributeError, OSError):
        return None


def _network_interfaces() -> Optional[List[str]]:
    try:
        return [name for _, name in socket.if_nameindex()]
    except (AttributeError, OSError):
        return None


def storage_status(store: DocumentStore) -> Dict[str, Any]:
    try:
        status = store.status()
    except Exception:
        _logger.warning("Storage status probe failed", exc_info=True)
        return {"databaseStatus": "failed"}
    state = status.get("status")
    payload: Dict[str, Any] = {"databaseStatus": state if state in _STORAGE_STATES else "pending"}
    if state == "connected":
        payload["databaseName"] = status.get("name")
        payload["databaseHost"] = status.get("host")
    return payload


def snapshot(store: DocumentStore, client_ip: Optional[str] = None) -> Dict[str, Any]:
    """Collect process, host and storage diagnostics. Never raises for a missing probe."""

    os_uptime = _os_uptime()
    memory = _memory()
    payload: Dict[str, Any] = {
        "message": "Sleep Tracker API v1 working!",
        "serverUptime": format_clock(time.monotonic() - _PROCESS_STARTED),
        "osUptime": format_clock(os_uptime) if os_uptime is not None else None,
        "timestamp": format_datetime(now_utc(), usegmt=True),
        "cpus": _cpu_info(),
        "architecture": platform.machine() or None,
        "networkInterfaces": _network_interfaces(),
        "totalMemory": memory["total"],
        "freeMemory": memory["free"],
        "platform": sys.platform,
        "osType": platform.system() or None,
        "osRelease": platform.release() or None,
        "osVersion": platform.version() or None,
        "hostname": socket.gethostname(),
        "reqIP": client_ip,
        "pythonVersion": platform.python_version(),
        "memoryUsage": _process_memory(),
        "loadAverage": _load_average(),
    }
    payload.update(storage_status(store))
    return payload
