"""Benchmark: follow-up linking and chain reconstruction latency.

Measures the per-call latency of ``SessionChainService.create_session``
with a parent (the atomic link) and of ``reconstruct_chain`` over a pool
of many short chains.
"""
from __future__ import annotations

import json
import time
from pathlib import Path

from session_chain import InMemoryStore, SessionChainService

_CHAINS: int = 500
_CHAIN_LENGTH: int = 5
_OWNER: str = "bench-user"


def _percentile(sorted_values: list[float], fraction: float) -> float:
    n = len(sorted_values)
    return sorted_values[min(int(n * fraction), n - 1)]


def bench_link_and_reconstruct() -> dict[str, object]:
    """Benchmark linked creation, then reconstruction from every head.

    Returns
    -------
    dict with keys: operation, iterations, link_p50_ms, link_p99_ms,
    reconstruct_p50_ms, reconstruct_p99_ms.
    """
    service = SessionChainService(InMemoryStore())

    link_ms: list[float] = []
    heads: list[str] = []
    for _ in range(_CHAINS):
        current = service.create_session({}, _OWNER).session_id
        for _ in range(_CHAIN_LENGTH - 1):
            t0 = time.perf_counter()
            current = service.create_session({}, _OWNER, parent_id=current).session_id
            link_ms.append((time.perf_counter() - t0) * 1000)
        heads.append(current)

    pool = service.list_sessions_for_owner(_OWNER)
    reconstruct_ms: list[float] = []
    for head in heads:
        t0 = time.perf_counter()
        service.reconstruct_chain(head, pool)
        reconstruct_ms.append((time.perf_counter() - t0) * 1000)

    link_ms.sort()
    reconstruct_ms.sort()
    result: dict[str, object] = {
        "operation": "link_and_reconstruct",
        "iterations": len(link_ms),
        "link_p50_ms": round(_percentile(link_ms, 0.50), 4),
        "link_p99_ms": round(_percentile(link_ms, 0.99), 4),
        "reconstruct_p50_ms": round(_percentile(reconstruct_ms, 0.50), 4),
        "reconstruct_p99_ms": round(_percentile(reconstruct_ms, 0.99), 4),
    }
    print(
        f"[bench_session_latency] link p99={result['link_p99_ms']:.4f}ms  "
        f"reconstruct p99={result['reconstruct_p99_ms']:.4f}ms"
    )
    return result


def run_benchmark() -> dict[str, object]:
    """Entry point returning the benchmark result dict."""
    return bench_link_and_reconstruct()


if __name__ == "__main__":
    result = run_benchmark()
    results_dir = Path(__file__).parent / "results"
    results_dir.mkdir(exist_ok=True)
    output_path = results_dir / "latency_baseline.json"
    with open(output_path, "w", encoding="utf-8") as fh:
        json.dump(result, fh, indent=2)
    print(f"Results saved to {output_path}")
