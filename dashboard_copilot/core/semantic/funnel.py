from __future__ import annotations

from typing import List, Sequence

from .models import Funnel, FunnelStage
from .vocabulary import ENTRY_STAGE_ORDER, TERMINAL_STAGE_ORDER


def funnel_confidence(stage_count: int) -> float:
    if stage_count >= 4:
        return 0.95
    if stage_count == 3:
        return 0.85
    if stage_count == 2:
        return 0.7
    return 0.0


def order_stages(stages: Sequence[FunnelStage]) -> List[FunnelStage]:
    return sorted(stages, key=lambda s: (s.order, -s.prevalence))


def pick_base_stage(stages: Sequence[FunnelStage]) -> str | None:
    """Most prevalent stage after entry and before the terminal outcomes."""
    middle = [s for s in stages if ENTRY_STAGE_ORDER < s.order < TERMINAL_STAGE_ORDER]
    if not middle:
        return None
    best = max(middle, key=lambda s: s.prevalence)
    return best.column


def assemble_funnel(stages: Sequence[FunnelStage]) -> Funnel:
    ordered = order_stages(stages)
    detected = len(ordered) >= 2
    return Funnel(
        detected=detected,
        stages=ordered,
        confidence=funnel_confidence(len(ordered)),
        base_stage=pick_base_stage(ordered) if detected else None,
    )
