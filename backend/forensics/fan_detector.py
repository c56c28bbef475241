"""
fan_detector.py – Detect hub-and-spoke fan patterns.

  Fan-in  : FAN_THRESHOLD+ unique senders → 1 receiver.
  Fan-out : 1 sender → FAN_THRESHOLD+ unique receivers.

Window selection
----------------
The window is anchored on the latest activity in the dataset, not on the
wall clock, so a historical upload is judged against its own timeline.

For every hub the peers seen inside the window are compared with its
all-time peers.  The windowed set is used when it holds at least
FAN_WINDOW_MIN_SHARE of the all-time set; otherwise the all-time set is.
This tuned heuristic is kept exactly as is.
"""
from __future__ import annotations

import logging
from typing import List, NamedTuple, Optional, Set

from .config import FAN_THRESHOLD, FAN_WINDOW_HOURS, FAN_WINDOW_MIN_SHARE
from .graph_builder import GraphStore, PeerRef
from .models import FanInstance
from .utils import MS_PER_HOUR, unique_in_order

log = logging.getLogger(__name__)


class FanResult(NamedTuple):
    fan_in: Set[str]
    fan_out: Set[str]
    instances: List[FanInstance]


def _effective_peers(
    refs: List[PeerRef],
    window_start: Optional[int],
    min_share: float,
) -> List[str]:
    all_peers = unique_in_order(peer for peer, _ in refs)
    if window_start is None:
        return all_peers
    windowed = unique_in_order(peer for peer, ts in refs if ts >= window_start)
    return windowed if len(windowed) >= len(all_peers) * min_share else all_peers


def detect_fan_patterns(
    store: GraphStore,
    *,
    threshold: int = FAN_THRESHOLD,
    window_hours: float = FAN_WINDOW_HOURS,
    min_share: float = FAN_WINDOW_MIN_SHARE,
) -> FanResult:
    """
    Flag fan-in and fan-out hubs.  An account may be both.

    Instances are emitted per node in node order, fan-in before fan-out;
    ``peers`` keeps first-appearance order.
    """
    fan_in: Set[str] = set()
    fan_out: Set[str] = set()
    instances: List[FanInstance] = []

    anchor = store.latest_timestamp()
    window_start = anchor - int(window_hours * MS_PER_HOUR) if anchor is not None else None

    for node_id in store.nodes:
        senders = _effective_peers(store.incoming(node_id), window_start, min_share)
        if len(senders) >= threshold:
            fan_in.add(node_id)
            instances.append(FanInstance(hub=node_id, direction="in", peers=senders))

        receivers = _effective_peers(store.outgoing(node_id), window_start, min_share)
        if len(receivers) >= threshold:
            fan_out.add(node_id)
            instances.append(FanInstance(hub=node_id, direction="out", peers=receivers))

    log.info(
        "Fan detection: %d fan-in hubs, %d fan-out hubs (threshold %d unique peers)",
        len(fan_in), len(fan_out), threshold,
    )
    return FanResult(fan_in, fan_out, instances)
