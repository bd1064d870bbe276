"""
Swap a block's primary for one of its alternates.

Works only on data already in the itinerary; never calls a provider.
"""

import logging
from typing import Iterable, Optional, Set

from app.models.itinerary import GeneratedItinerary, ItineraryBlock, PlaceCandidate

logger = logging.getLogger(__name__)


def get_used_place_ids(blocks: Iterable[ItineraryBlock]) -> Set[str]:
    """Place ids currently used as a primary anywhere in the plan."""
    return {b.primary.placeId for b in blocks if b.primary}


def pick_next_swap(block: ItineraryBlock, used: Set[str]) -> Optional[PlaceCandidate]:
    """
    First alternate not already a primary elsewhere, or the first alternate
    when every one of them is taken. None only when there are no alternates.
    """
    if not block.alternates:
        return None

    # the block's own primary is being swapped away, so it does not count
    in_use = set(used)
    if block.primary:
        in_use.discard(block.primary.placeId)

    for alt in block.alternates:
        if alt.placeId not in in_use:
            return alt
    return block.alternates[0]


def swap_block(itinerary: GeneratedItinerary, block_id: str) -> GeneratedItinerary:
    """
    Return a new itinerary with block_id's primary replaced by its next alternate.

    The previous primary goes to the end of the alternates so repeated swaps
    cycle through every alternate once before any repeats.
    """
    index = next((i for i, b in enumerate(itinerary.blocks) if b.id == block_id), None)
    if index is None:
        raise ValueError(f"Unknown block id: {block_id}")

    block = itinerary.blocks[index]
    choice = pick_next_swap(block, get_used_place_ids(itinerary.blocks))
    if choice is None:
        logger.info(f"Block {block_id} has no alternates; nothing to swap")
        return itinerary

    taken = next(i for i, alt in enumerate(block.alternates) if alt is choice)
    alternates = block.alternates[:taken] + block.alternates[taken + 1:]
    if block.primary:
        alternates.append(block.primary)

    swapped = itinerary.model_copy(deep=True)
    # update values are not deep-copied by model_copy
    swapped.blocks[index] = block.model_copy(update={
        "primary": choice.model_copy(deep=True),
        "alternates": [a.model_copy(deep=True) for a in alternates],
    }, deep=True)
    logger.info(f"Swapped block {block_id} to {choice.name}")
    return swapped
