"""Tier table lookups and reward draws.

Everything here reads BOX_ODDS; nothing else in the codebase may carry its
own copy of the odds. Clients fetch them from GET /loot-boxes/odds.
"""

import hashlib
import secrets
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from anithing.errors import EmptyPoolError
from anithing.models.reward import BOX_ODDS, TIER_ORDER, BoxType, RewardName, RewardTier

_system_random = secrets.SystemRandom()


def secure_random() -> float:
    """Uniform draw in [0, 1) from the OS CSPRNG."""
    return _system_random.random()


def cumulative_bands(box_type: BoxType) -> list[tuple[RewardTier, float, float]]:
    """Return (tier, lower, upper) half-open bands for a box type."""
    bands = []
    lower = 0.0
    for tier, upper in BOX_ODDS[BoxType(box_type)]:
        bands.append((tier, lower, upper))
        lower = upper
    return bands


def band_widths(box_type: BoxType) -> dict[RewardTier, float]:
    """Probability mass assigned to each tier."""
    return {tier: upper - lower for tier, lower, upper in cumulative_bands(box_type)}


def odds_table() -> dict[str, list[dict]]:
    """Serializable odds for every box type (client previews)."""
    return {
        box_type.value: [
            {
                "tier": tier.value,
                "lower": lower,
                "upper": upper,
                "probability": upper - lower,
            }
            for tier, lower, upper in cumulative_bands(box_type)
        ]
        for box_type in BoxType
    }


def resolve_reward(box_type: BoxType, rng: Callable[[], float]) -> RewardTier:
    """
    Map one draw from `rng` to a tier.

    Walks the bands in rarity order and returns the first tier whose
    upper bound exceeds the draw. Pure: the only input besides the box
    type is the single value returned by `rng()`.

    Raises:
        ValueError: if the draw is outside [0, 1).
    """
    draw = rng()
    if not 0.0 <= draw < 1.0:
        raise ValueError(f"Draw must be in [0, 1), got {draw!r}")

    for tier, upper in BOX_ODDS[BoxType(box_type)]:
        if draw < upper:
            return tier

    # Unreachable while the last bound is 1.0
    return TIER_ORDER[-1]


@dataclass(frozen=True)
class ProvablyFairDraw:
    """
    Draw derived from a server seed, a client seed and a nonce.

    Publishing the seeds and nonce lets a user recompute the hash and
    confirm the tier was not chosen after the fact. Instances are callable
    so they can be passed straight to resolve_reward.
    """

    server_seed: str
    client_seed: str | None
    nonce: int
    hash: str
    value: float

    def __call__(self) -> float:
        return self.value

    def to_dict(self) -> dict:
        """Audit data safe to return to the user."""
        return {
            "server_seed": self.server_seed,
            "client_seed": self.client_seed,
            "nonce": self.nonce,
            "hash": self.hash[:16],
            "value": self.value,
        }


def provably_fair_draw(
    server_seed: str, client_seed: str | None, nonce: int
) -> ProvablyFairDraw:
    """Hash the seeds and map the first 32 bits of the digest onto [0, 1)."""
    combined = f"{server_seed}-{client_seed or 'default'}-{nonce}"
    digest = hashlib.sha256(combined.encode("utf-8")).hexdigest()
    value = int(digest[:8], 16) / 2**32
    return ProvablyFairDraw(
        server_seed=server_seed,
        client_seed=client_seed,
        nonce=nonce,
        hash=digest,
        value=value,
    )


def new_server_seed() -> str:
    """Fresh 32-byte server seed as hex."""
    return secrets.token_hex(32)


def pick_reward_name(
    tier: RewardTier,
    choice: Callable[[Sequence[RewardName]], RewardName] = secrets.choice,
) -> RewardName:
    """
    Pick a name uniformly among the active pool entries for `tier`.

    Raises:
        EmptyPoolError: if the tier has no active names.
    """
    tier = RewardTier(tier)
    candidates = (
        RewardName.query.filter_by(tier=tier.value, is_active=True)
        .order_by(RewardName.id)
        .all()
    )
    if not candidates:
        raise EmptyPoolError(f"No active names for tier {tier.value}", tier=tier.value)
    return choice(candidates)
