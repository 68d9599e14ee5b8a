from __future__ import annotations

import os
import threading
import time
from typing import Dict, Tuple

# (name, sorted label pairs) -> value
_Key = Tuple[str, Tuple[Tuple[str, str], ...]]

_lock = threading.Lock()
_counters: Dict[_Key, int] = {}
_gauges: Dict[_Key, int] = {}
_started_ms = int(time.time() * 1000)


def metrics_enabled() -> bool:
    return (os.environ.get("ASSETEX_METRICS_ENABLED") or "").strip().lower() in {"1", "true", "yes", "on"}


def _key(name: str, labels: Dict[str, str]) -> _Key:
    return str(name), tuple(sorted((str(k), str(v)) for k, v in labels.items()))


def inc_counter(name: str, value: int = 1, **labels: str) -> None:
    k = _key(name, labels)
    with _lock:
        _counters[k] = _counters.get(k, 0) + int(value)


def set_gauge(name: str, value: int, **labels: str) -> None:
    with _lock:
        _gauges[_key(name, labels)] = int(value)


def record_applied(tx_type: str) -> None:
    inc_counter("tx_applied_total")
    inc_counter("tx_applied_by_type", tx_type=tx_type)


def record_rejected(tx_type: str, code: str) -> None:
    inc_counter("tx_rejected_total")
    inc_counter("tx_rejected_by_code", tx_type=tx_type, code=code)


def record_sale(price: int) -> None:
    inc_counter("sales_total")
    inc_counter("sales_volume", int(price))


def counter_value(name: str, **labels: str) -> int:
    with _lock:
        return _counters.get(_key(name, labels), 0)


def snapshot() -> dict:
    now = int(time.time() * 1000)
    with _lock:
        return {
            "ts_ms": now,
            "uptime_ms": now - _started_ms,
            "counters": dict(_counters),
            "gauges": dict(_gauges),
        }


def reset() -> None:
    with _lock:
        _counters.clear()
        _gauges.clear()


def _series(prefix: str, key: _Key) -> str:
    name, labels = key
    if not labels:
        return f"{prefix}{name}"
    inner = ",".join(f'{k}="{v}"' for k, v in labels)
    return f"{prefix}{name}{{{inner}}}"


def format_prometheus(prefix: str = "assetex_") -> str:
    """Prometheus text exposition of every counter and gauge."""
    snap = snapshot()
    lines = [f"# TYPE {prefix}uptime_ms gauge", f"{prefix}uptime_ms {snap['uptime_ms']}"]
    for kind, table in (("counter", snap["counters"]), ("gauge", snap["gauges"])):
        typed = set()
        for key in sorted(table):
            if key[0] not in typed:
                lines.append(f"# TYPE {prefix}{key[0]} {kind}")
                typed.add(key[0])
            lines.append(f"{_series(prefix, key)} {table[key]}")
    return "\n".join(lines) + "\n"
