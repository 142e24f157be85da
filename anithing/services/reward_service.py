"""Loot box opening, name collection and the name pool."""

import logging
import secrets
import time
from dataclasses import dataclass, field

from sqlalchemy import update

from anithing import db
from anithing.alerts import alert_operators
from anithing.errors import EmptyPoolError, InsufficientInventoryError, NameNotOwnedError
from anithing.models.activity import ActivityType, PointActivity
from anithing.models.reward import (
    DEFAULT_STARTING_NAME,
    AcquisitionHistory,
    BoxInventory,
    BoxType,
    RewardName,
    RewardState,
    RewardTier,
)
from anithing.models.user import User
from anithing.schemas import reward_name_records
from anithing.services.reward_resolver import (
    ProvablyFairDraw,
    new_server_seed,
    pick_reward_name,
    provably_fair_draw,
    resolve_reward,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RewardResult:
    """Outcome of one box opening."""

    name: str
    tier: RewardTier
    is_first_time_acquisition: bool
    box_type: BoxType
    source_attribution: str | None = None
    description: str | None = None
    personality: str | None = None
    draw: ProvablyFairDraw | None = field(default=None, compare=False)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "tier": self.tier.value,
            "source_attribution": self.source_attribution,
            "description": self.description,
            "personality": self.personality,
            "is_first_time_acquisition": self.is_first_time_acquisition,
            "box_type": self.box_type.value,
            "draw": self.draw.to_dict() if self.draw else None,
        }


class RewardService:
    """Service for loot boxes and the name collection."""

    def _make_nonce(self) -> int:
        return time.time_ns() // 1000 + secrets.randbelow(1000)

    def open_box(
        self, user_id: int, box_type: BoxType | str, client_seed: str | None = None
    ) -> RewardResult:
        """
        Consume one box and draw a name from it.

        The inventory decrement, history row and audit row commit as one
        unit. The decrement is conditional (``quantity >= 1``), so two
        concurrent opens against a single remaining box cannot both win.

        Raises:
            InsufficientInventoryError: no box of this type; nothing changed.
            EmptyPoolError: the drawn tier has no names; the box is restored
                and operators are alerted.
        """
        box_type = BoxType(box_type)

        consumed = db.session.execute(
            update(BoxInventory)
            .where(BoxInventory.user_id == user_id)
            .where(BoxInventory.box_type == box_type.value)
            .where(BoxInventory.quantity >= 1)
            .values(quantity=BoxInventory.quantity - 1)
            .execution_options(synchronize_session=False)
        )
        if consumed.rowcount != 1:
            db.session.rollback()
            raise InsufficientInventoryError(
                f"No {box_type.value} loot boxes available", box_type=box_type.value
            )

        draw = provably_fair_draw(new_server_seed(), client_seed, self._make_nonce())
        tier = resolve_reward(box_type, draw)

        try:
            reward = pick_reward_name(tier)
        except EmptyPoolError:
            db.session.rollback()
            alert_operators(
                f"empty_pool:{tier.value}",
                f"Reward pool for tier {tier.value} is empty",
                [f"user={user_id}", f"box_type={box_type.value}"],
            )
            raise

        already_owned = (
            db.session.query(AcquisitionHistory.id)
            .filter_by(user_id=user_id, name=reward.name)
            .first()
            is not None
        )

        db.session.add(
            AcquisitionHistory(
                user_id=user_id,
                name=reward.name,
                tier=tier.value,
                acquired_method="loot_box",
                box_type=box_type.value,
                server_seed=draw.server_seed,
                client_seed=draw.client_seed,
                nonce=draw.nonce,
                draw_hash=draw.hash,
                draw_value=draw.value,
            )
        )

        state = db.session.get(RewardState, user_id)
        if state is None:
            state = RewardState(user_id=user_id)
            db.session.add(state)
        first_box = not state.first_box_opened
        state.first_box_opened = True

        db.session.add(
            PointActivity(
                user_id=user_id,
                activity_type=ActivityType.LOOT_BOX_OPENED.value,
                points_earned=0,
                details={
                    "box_type": box_type.value,
                    "name": reward.name,
                    "tier": tier.value,
                    "hash": draw.hash[:16],
                    "value": draw.value,
                    "first_box": first_box,
                },
            )
        )
        db.session.commit()

        logger.info(
            f"User {user_id} opened {box_type.value} box: {reward.name} "
            f"({tier.value}, new={not already_owned})"
        )

        return RewardResult(
            name=reward.name,
            tier=tier,
            is_first_time_acquisition=not already_owned,
            box_type=box_type,
            source_attribution=reward.source_anime,
            description=reward.description,
            personality=reward.personality,
            draw=draw,
        )

    def assign_starting_name(self, user: User) -> RewardState:
        """Give a new user a random COMMON name. Does not commit."""
        try:
            reward = pick_reward_name(RewardTier.COMMON)
            name = reward.name
        except EmptyPoolError:
            alert_operators(
                "empty_pool:COMMON",
                "Reward pool for tier COMMON is empty, signup used default name",
                [f"user={user.id}"],
            )
            name = DEFAULT_STARTING_NAME

        state = db.session.get(RewardState, user.id)
        if state is None:
            state = RewardState(user_id=user.id)
            db.session.add(state)
        state.current_name = name
        state.current_tier = RewardTier.COMMON.value

        db.session.add(
            AcquisitionHistory(
                user_id=user.id,
                name=name,
                tier=RewardTier.COMMON.value,
                acquired_method="signup",
            )
        )
        return state

    def get_collection(self, user_id: int) -> list[dict]:
        """Acquisition history, newest first."""
        rows = (
            AcquisitionHistory.query.filter_by(user_id=user_id)
            .order_by(AcquisitionHistory.acquired_at.desc(), AcquisitionHistory.id.desc())
            .all()
        )
        return [row.to_dict() for row in rows]

    def set_active_name(self, user_id: int, name: str) -> RewardState:
        """Make a previously acquired name the user's active one."""
        owned = (
            AcquisitionHistory.query.filter_by(user_id=user_id, name=name)
            .order_by(AcquisitionHistory.acquired_at.desc())
            .first()
        )
        if not owned:
            raise NameNotOwnedError(name=name)

        state = db.session.get(RewardState, user_id)
        if state is None:
            state = RewardState(user_id=user_id)
            db.session.add(state)
        state.current_name = owned.name
        state.current_tier = owned.tier
        db.session.commit()

        logger.info(f"User {user_id} switched active name to {name}")
        return state

    def load_reward_names(self, records: list[dict]) -> dict[str, int]:
        """
        Validate and upsert pool rows.

        Rows without a generation_method are treated as catalog entries.

        Raises:
            pydantic.ValidationError: if any row is invalid; nothing is written.
        """
        prepared = [{"generation_method": "catalog", **record} for record in records]
        validated = reward_name_records.validate_python(prepared)

        created = updated = 0
        for record in validated:
            existing = RewardName.query.filter_by(name=record.name).first()
            fields = record.model_dump()
            fields["tier"] = record.tier.value
            if existing:
                for key, value in fields.items():
                    setattr(existing, key, value)
                existing.is_active = True
                updated += 1
            else:
                db.session.add(RewardName(**fields))
                created += 1

        db.session.commit()
        logger.info(f"Reward pool import: {created} created, {updated} updated")
        return {"created": created, "updated": updated}
