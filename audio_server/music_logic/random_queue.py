"""
Random queue generation.

Builds play sequences by sampling asset names uniformly with replacement,
optionally separated by fixed pauses. Used by /play/random and
/playlist/create.
"""

import logging
import random
from typing import List, Optional, Sequence

from audio_server.broadcast_core.play_item import AudioRef, Pause, PlayItem, ToneRef
from audio_server.errors import NoAssetsAvailable
from audio_server.music_logic.asset_store import AssetStore

logger = logging.getLogger(__name__)


def generate(
    asset_names: Sequence[str],
    file_count: int,
    break_ms: int = 0,
    rng: Optional[random.Random] = None,
) -> List[PlayItem]:
    """
    Generate a random play sequence.

    Pauses only ever sit between two audio items, never first or last.

    Args:
        asset_names: Names to sample from (the asset store's keys)
        file_count: Number of audio items to pick (<= 0 yields an empty list)
        break_ms: Pause between audio items in ms (0 disables pauses)
        rng: Optional Random instance for reproducible sequences

    Returns:
        file_count AudioRefs, interleaved with file_count - 1 Pauses when break_ms > 0

    Raises:
        NoAssetsAvailable: If asset_names is empty
    """
    names = list(asset_names)
    if not names:
        raise NoAssetsAvailable()
    if file_count <= 0:
        return []

    rng = rng or random.Random()
    picks = [rng.choice(names) for _ in range(file_count)]

    items: List[PlayItem] = []
    for i, name in enumerate(picks):
        if i > 0 and break_ms > 0:
            items.append(Pause(break_ms))
        items.append(AudioRef(name))

    logger.debug(
        f"[QUEUE] Generated {file_count} random files from {len(names)} assets "
        f"(break={break_ms}ms, {len(items)} items)"
    )
    return items


def total_duration_ms(items: Sequence[PlayItem], assets: AssetStore) -> int:
    """Sum asset durations and pause lengths. Unknown assets count as zero."""
    total = 0
    for item in items:
        if isinstance(item, Pause):
            total += item.duration_ms
        elif isinstance(item, AudioRef):
            asset = assets.lookup(item.name)
            if asset is not None:
                total += asset.duration_ms
        elif isinstance(item, ToneRef):
            total += item.spec.duration_ms
    return total
