"""Structured results and per-rank bookkeeping for a render."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np


@dataclass(frozen=True)
class RenderReport:
    """Container for outputs produced by a coordinator/worker run.

    ``image`` is only populated on the coordinator. ``merges`` lists the
    completed chunks in the order the coordinator merged them.
    """

    image: Optional[np.ndarray]
    timing: Dict[str, Any]
    chunks: Optional[List[Dict[str, Any]]]
    merges: List[Dict[str, int]] = field(default_factory=list)

    def copy_chunks(self) -> Optional[List[Dict[str, Any]]]:
        if self.chunks is None:
            return None
        return [record.copy() for record in self.chunks]

    def rank_stats(self, rank: int) -> Dict[str, Any]:
        for record in self.timing.get("rank_stats", []):
            if record["rank"] == rank:
                return record
        raise KeyError(f"No stats recorded for rank {rank}")


def rank_log(rank: int, message: str) -> None:
    """Emit a progress message from a given rank."""
    print(f"[Rank {rank}] {message}", flush=True)


def init_rank_stats() -> Dict[str, float]:
    return {
        "comp": 0.0,
        "comm_send": 0.0,
        "comm_recv": 0.0,
        "chunks": 0.0,
        "terminated_early": 0.0,
    }


def chunk_record(rank: int, chunk_id: int, start: int, end: int, comp_time: float) -> Dict[str, Any]:
    return {
        "rank": rank,
        "chunk_id": int(chunk_id),
        "start_row": int(start),
        "end_row": int(end),
        "comp_time": comp_time,
    }


def aggregate_timing(all_stats: List[Dict[str, float]], wall_time: float) -> Dict[str, Any]:
    """Combine per-rank statistics (indexed by rank) with the wall-clock time."""
    rank_stats: List[Dict[str, Any]] = []
    comp_total = 0.0
    comm_send_total = 0.0
    comm_recv_total = 0.0
    total_chunks = 0

    for rank, stats in enumerate(all_stats):
        comp = float(stats.get("comp", 0.0))
        comm_send = float(stats.get("comm_send", 0.0))
        comm_recv = float(stats.get("comm_recv", 0.0))
        chunks = int(stats.get("chunks", 0))

        rank_stats.append(
            {
                "rank": rank,
                "comp_time": comp,
                "comm_time": comm_send + comm_recv,
                "comm_send_time": comm_send,
                "comm_recv_time": comm_recv,
                "chunks": chunks,
                "terminated_early": bool(stats.get("terminated_early", 0.0)),
            }
        )

        comp_total += comp
        comm_send_total += comm_send
        comm_recv_total += comm_recv
        total_chunks += chunks

    return {
        "wall_time": float(wall_time),
        "comp_total": comp_total,
        "comm_send_total": comm_send_total,
        "comm_recv_total": comm_recv_total,
        "comm_total": comm_send_total + comm_recv_total,
        "total_chunks": total_chunks,
        "rank_stats": rank_stats,
    }
