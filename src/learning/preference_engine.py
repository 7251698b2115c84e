# src/learning/preference_engine.py
"""Preference learning from swipe feedback.

A profile is an additive weight model over tags, breed, size class and
energy class. ``update_preferences`` and ``undo_swipe`` are exact inverses:
each applies the same deltas with the opposite multiplier. Profiles are
immutable; every operation returns a new one.

Weights that land on exactly 0.0 are dropped. An absent weight scores as
zero, so this changes no ranking, and undoing a swipe on a fresh profile
gives back an equal profile.
"""

from __future__ import annotations

import logging
from typing import Iterable

from pawmatch.core.models import Item, SwipeAction, UserPreferenceProfile

logger = logging.getLogger(__name__)

LIKE_MULTIPLIER = 1.0
NOPE_MULTIPLIER = -0.3
TAG_WEIGHT_FACTOR = 2.0
LIKED_PENALTY = 1000.0
DISLIKED_PENALTY = 500.0


def score_item(item: Item, profile: UserPreferenceProfile) -> float:
    """Higher is a better match. Already-rated items sink to the bottom."""
    score = sum(TAG_WEIGHT_FACTOR * profile.tag_weights.get(tag, 0.0) for tag in item.tags)
    score += profile.breed_weights.get(item.breed, 0.0)
    if item.size:
        score += profile.size_weights.get(item.size, 0.0)
    if item.energy_level:
        score += profile.energy_weights.get(item.energy_level, 0.0)

    if item.id in profile.liked_item_ids:
        score -= LIKED_PENALTY
    if item.id in profile.disliked_item_ids:
        score -= DISLIKED_PENALTY
    return score


def _bump(weights: dict[str, float], key: str, delta: float) -> None:
    value = weights.get(key, 0.0) + delta
    if value == 0.0:
        weights.pop(key, None)
    else:
        weights[key] = value


def _apply(profile: UserPreferenceProfile, item: Item, multiplier: float) -> dict:
    tag_weights = dict(profile.tag_weights)
    breed_weights = dict(profile.breed_weights)
    size_weights = dict(profile.size_weights)
    energy_weights = dict(profile.energy_weights)

    for tag in item.tags:
        _bump(tag_weights, tag, multiplier)
    _bump(breed_weights, item.breed, multiplier)
    if item.size:
        _bump(size_weights, item.size, 0.5 * multiplier)
    if item.energy_level:
        _bump(energy_weights, item.energy_level, 0.5 * multiplier)

    return {
        "tag_weights": tag_weights,
        "breed_weights": breed_weights,
        "size_weights": size_weights,
        "energy_weights": energy_weights,
    }


def update_preferences(
    profile: UserPreferenceProfile, item: Item, action: SwipeAction
) -> UserPreferenceProfile:
    """Learn from one swipe.

    A like adds 1 to each of the item's tag weights and to its breed weight,
    and 0.5 to its size and energy weights; a nope applies the same deltas
    scaled by -0.3. The item id is recorded once in the liked or disliked
    list.
    """
    multiplier = LIKE_MULTIPLIER if action == "like" else NOPE_MULTIPLIER
    update = _apply(profile, item, multiplier)

    liked = list(profile.liked_item_ids)
    disliked = list(profile.disliked_item_ids)
    target = liked if action == "like" else disliked
    if item.id not in target:
        target.append(item.id)

    return profile.model_copy(update={
        **update,
        "liked_item_ids": liked,
        "disliked_item_ids": disliked,
        "total_interactions": profile.total_interactions + 1,
    })


def undo_swipe(
    profile: UserPreferenceProfile, item: Item, was_like: bool
) -> UserPreferenceProfile:
    """Exact inverse of ``update_preferences`` for the same item and action."""
    multiplier = -LIKE_MULTIPLIER if was_like else -NOPE_MULTIPLIER
    update = _apply(profile, item, multiplier)

    liked = list(profile.liked_item_ids)
    disliked = list(profile.disliked_item_ids)
    if was_like:
        liked = [i for i in liked if i != item.id]
    else:
        disliked = [i for i in disliked if i != item.id]

    return profile.model_copy(update={
        **update,
        "liked_item_ids": liked,
        "disliked_item_ids": disliked,
        "total_interactions": max(0, profile.total_interactions - 1),
    })


def remove_from_shortlist(profile: UserPreferenceProfile, item_id: str) -> UserPreferenceProfile:
    """Drop an item from the liked list without touching any weight."""
    return profile.model_copy(update={
        "liked_item_ids": [i for i in profile.liked_item_ids if i != item_id],
    })


def rank_items(items: Iterable[Item], profile: UserPreferenceProfile) -> list[Item]:
    """Items sorted by ``score_item``, best first; ties keep input order."""
    scored = [(score_item(item, profile), item) for item in items]
    scored.sort(key=lambda pair: pair[0], reverse=True)
    return [item for _, item in scored]
