"""Point ledger: awards, spending, daily login streaks."""

import logging
from datetime import date, timedelta
from typing import Any

from flask import current_app
from sqlalchemy import case, or_, select, update
from sqlalchemy.exc import IntegrityError

from anithing import db
from anithing.errors import InsufficientFundsError
from anithing.models.activity import ActivityType, PointActivity
from anithing.models.reward import (
    BOX_COSTS,
    BoxInventory,
    BoxType,
    RewardState,
)

logger = logging.getLogger(__name__)


class LedgerService:
    """
    Service for all point and box-inventory mutations.

    Balances are changed with guarded UPDATE statements
    (``... WHERE total_points + delta >= 0``) so concurrent requests can
    never drive a counter negative. Callers own idempotency: the ledger
    does not deduplicate retried awards.
    """

    def get_state(self, user_id: int) -> RewardState:
        """Get or create the user's reward state row."""
        state = db.session.get(RewardState, user_id)
        if state is None:
            state = RewardState(user_id=user_id)
            db.session.add(state)
            db.session.flush()
        return state

    def _apply_delta(self, user_id: int, delta: int, today: date) -> bool:
        """Apply a signed point delta without committing. False if it would go negative."""
        values: dict[str, Any] = {"total_points": RewardState.total_points + delta}
        if delta > 0:
            values["daily_points"] = case(
                (RewardState.daily_points_date == today, RewardState.daily_points + delta),
                else_=delta,
            )
            values["daily_points_date"] = today

        stmt = (
            update(RewardState)
            .where(RewardState.user_id == user_id)
            .where(RewardState.total_points + delta >= 0)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = db.session.execute(stmt)
        return result.rowcount == 1

    def _log_activity(
        self,
        user_id: int,
        activity_type: str | ActivityType,
        points: int,
        metadata: dict | None = None,
    ) -> PointActivity:
        if isinstance(activity_type, ActivityType):
            activity_type = activity_type.value
        activity = PointActivity(
            user_id=user_id,
            activity_type=activity_type,
            points_earned=points,
            details=metadata or {},
        )
        db.session.add(activity)
        return activity

    def _ensure_inventory_row(self, user_id: int, box_type: BoxType) -> None:
        exists = BoxInventory.query.filter_by(
            user_id=user_id, box_type=box_type.value
        ).first()
        if exists:
            return
        try:
            with db.session.begin_nested():
                db.session.add(
                    BoxInventory(user_id=user_id, box_type=box_type.value, quantity=0)
                )
        except IntegrityError:
            # Created concurrently; the increment below still applies
            logger.debug(f"Inventory row for {user_id}/{box_type.value} already exists")

    def award_points(
        self,
        user_id: int,
        activity_type: str | ActivityType,
        points: int,
        metadata: dict | None = None,
    ) -> bool:
        """
        Record an activity and add `points` (may be negative) to the total.

        Returns False without mutating anything if a negative amount would
        take the total below zero.
        """
        if not isinstance(points, int) or isinstance(points, bool):
            raise ValueError("points must be an integer")

        self.get_state(user_id)
        if not self._apply_delta(user_id, points, date.today()):
            db.session.rollback()
            logger.info(
                f"Rejected {points} point adjustment for user {user_id}: "
                f"balance would go negative"
            )
            return False

        self._log_activity(user_id, activity_type, points, metadata)
        db.session.commit()

        logger.info(f"Awarded {points} points to user {user_id} for {activity_type}")
        return True

    def spend_points(self, user_id: int, amount: int, box_type: BoxType | str) -> bool:
        """
        Spend points on a box: debit and inventory credit commit together.

        Raises:
            ValueError: if amount is not a positive integer.
            InsufficientFundsError: if the balance is below `amount`.
        """
        if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
            raise ValueError("amount must be a positive integer")
        box_type = BoxType(box_type)

        self.get_state(user_id)
        if not self._apply_delta(user_id, -amount, date.today()):
            # The loaded state may predate earlier unsynchronized updates
            available = db.session.scalar(
                select(RewardState.total_points).where(RewardState.user_id == user_id)
            )
            db.session.rollback()
            raise InsufficientFundsError(
                f"Not enough points. Need {amount}, have {available}",
                required=amount,
                available=available,
            )

        self._ensure_inventory_row(user_id, box_type)
        db.session.execute(
            update(BoxInventory)
            .where(BoxInventory.user_id == user_id)
            .where(BoxInventory.box_type == box_type.value)
            .values(quantity=BoxInventory.quantity + 1)
            .execution_options(synchronize_session=False)
        )
        self._log_activity(
            user_id,
            ActivityType.BOX_PURCHASE,
            -amount,
            {"box_type": box_type.value},
        )
        db.session.commit()

        logger.info(f"User {user_id} bought a {box_type.value} box for {amount} points")
        return True

    def purchase_box(self, user_id: int, box_type: BoxType | str) -> bool:
        """Buy one box at its list price."""
        box_type = BoxType(box_type)
        return self.spend_points(user_id, BOX_COSTS[box_type], box_type)

    def process_daily_login(self, user_id: int) -> dict:
        """
        Claim the once-per-day login bonus.

        Consecutive days extend the streak, any gap resets it to 1.
        Bonus = base + streak_bonus * (streak - 1), bonus part capped.
        """
        today = date.today()
        state = self.get_state(user_id)

        if state.last_login_date == today:
            return {"claimed": False, "points": 0, "streak": state.login_streak}

        if state.last_login_date == today - timedelta(days=1):
            streak = state.login_streak + 1
        else:
            streak = 1
        longest = max(state.longest_streak, streak)

        # Guard against a concurrent claim for the same day
        result = db.session.execute(
            update(RewardState)
            .where(RewardState.user_id == user_id)
            .where(
                or_(
                    RewardState.last_login_date.is_(None),
                    RewardState.last_login_date != today,
                )
            )
            .values(last_login_date=today, login_streak=streak, longest_streak=longest)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            db.session.rollback()
            state = self.get_state(user_id)
            return {"claimed": False, "points": 0, "streak": state.login_streak}

        cfg = current_app.config
        bonus = min(
            cfg["DAILY_LOGIN_STREAK_BONUS"] * (streak - 1), cfg["DAILY_LOGIN_MAX_BONUS"]
        )
        points = cfg["DAILY_LOGIN_BASE_POINTS"] + bonus

        self._apply_delta(user_id, points, today)
        self._log_activity(
            user_id, ActivityType.DAILY_LOGIN, points, {"streak": streak}
        )
        db.session.commit()

        logger.info(f"Daily login for user {user_id}: +{points} points, streak {streak}")
        return {"claimed": True, "points": points, "streak": streak}

    def get_inventory(self, user_id: int) -> dict[str, int]:
        """Box quantities for every box type (zero when never owned)."""
        owned = {
            row.box_type: row.quantity
            for row in BoxInventory.query.filter_by(user_id=user_id).all()
        }
        return {box_type.value: owned.get(box_type.value, 0) for box_type in BoxType}

    def get_user_summary(self, user_id: int) -> dict:
        """Points, streak, inventory and active name in one payload."""
        state = self.get_state(user_id)
        db.session.commit()
        db.session.refresh(state)

        summary = state.to_dict(date.today())
        summary["owned_boxes"] = self.get_inventory(user_id)
        return summary

    def get_activities(self, user_id: int, limit: int = 20) -> list[dict]:
        """Most recent ledger entries."""
        activities = (
            PointActivity.query.filter_by(user_id=user_id)
            .order_by(PointActivity.created_at.desc(), PointActivity.id.desc())
            .limit(limit)
            .all()
        )
        return [a.to_dict() for a in activities]
