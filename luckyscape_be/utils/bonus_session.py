"""
Free-spin bonus session bookkeeping.

A session is a plain value; the functions here return updated copies and
never touch engine state directly.
"""
import logging
from dataclasses import dataclass, replace
from typing import Optional

logger = logging.getLogger(__name__)

RETRIGGER_EXTRA_SPINS_SMALL = 2
RETRIGGER_EXTRA_SPINS = 4


@dataclass(frozen=True)
class BonusSession:
    tier_id: str
    name: str
    level: int
    spins_remaining: int
    spins_completed: int = 0
    total_won: float = 0.0
    persist_golden_squares: bool = False
    guaranteed_trigger: bool = False
    force_trigger_on_final_spin: bool = False
    saw_trigger_this_session: bool = False

    @property
    def is_complete(self) -> bool:
        return self.spins_remaining <= 0

    @property
    def is_final_spin(self) -> bool:
        return self.spins_remaining == 1

    def to_display(self) -> dict:
        return {
            'id': self.tier_id,
            'name': self.name,
            'level': self.level,
            'remaining': self.spins_remaining,
            'spins_completed': self.spins_completed,
            'total_won': self.total_won,
            'persist_golden_squares': self.persist_golden_squares,
            'guaranteed_trigger_every_spin': self.guaranteed_trigger,
        }


@dataclass(frozen=True)
class RetriggerDecision:
    extra_spins: int = 0
    upgrade_to_level: Optional[int] = None

    @property
    def changes_session(self) -> bool:
        return self.extra_spins > 0 or self.upgrade_to_level is not None


def open_session(tier, spins=None) -> BonusSession:
    return BonusSession(
        tier_id=tier.tier_id,
        name=tier.name,
        level=tier.level,
        spins_remaining=tier.spins if spins is None else spins,
        persist_golden_squares=tier.persist_golden_squares,
        guaranteed_trigger=tier.guaranteed_trigger,
        force_trigger_on_final_spin=tier.force_trigger_on_final_spin,
    )


def on_spin_complete(session, spin_win) -> BonusSession:
    """Counts one finished free spin and adds its winnings."""
    return replace(
        session,
        spins_remaining=session.spins_remaining - 1,
        spins_completed=session.spins_completed + 1,
        total_won=round(session.total_won + spin_win, 2),
    )


def mark_trigger_seen(session) -> BonusSession:
    if session.saw_trigger_this_session:
        return session
    return replace(session, saw_trigger_this_session=True)


def retrigger_decision(scatter_count, current_level, top_level=3, second_level=2) -> RetriggerDecision:
    """
    Maps scatters landed during free spins to extra spins or a tier upgrade.

    5+ scatters below the top tier upgrades to the top tier; 4+ from tier 1
    upgrades to tier 2; both add 4 spins. Otherwise 3+ adds 4 spins, exactly 2
    adds 2 spins and fewer does nothing.
    """
    if scatter_count < 2:
        return RetriggerDecision()
    if scatter_count >= 5 and current_level < top_level:
        return RetriggerDecision(extra_spins=RETRIGGER_EXTRA_SPINS, upgrade_to_level=top_level)
    if scatter_count >= 4 and current_level < second_level:
        return RetriggerDecision(extra_spins=RETRIGGER_EXTRA_SPINS, upgrade_to_level=second_level)
    if scatter_count >= 3:
        return RetriggerDecision(extra_spins=RETRIGGER_EXTRA_SPINS)
    return RetriggerDecision(extra_spins=RETRIGGER_EXTRA_SPINS_SMALL)


def apply_retrigger(session, scatter_count, tiers) -> BonusSession:
    """
    Applies a retrigger to a live session.

    Upgrades swap in the new tier's flags but carry the remaining spin count
    (plus the award), completed spins, winnings and trigger history forward.
    """
    levels = sorted(tier.level for tier in tiers)
    top_level = levels[-1]
    second_level = levels[1] if len(levels) > 1 else top_level
    decision = retrigger_decision(scatter_count, session.level, top_level, second_level)
    if not decision.changes_session:
        return session

    if decision.upgrade_to_level is None:
        return replace(session, spins_remaining=session.spins_remaining + decision.extra_spins)

    new_tier = next(tier for tier in tiers if tier.level == decision.upgrade_to_level)
    logger.info(f"Bonus upgraded from {session.tier_id} to {new_tier.tier_id} on {scatter_count} scatters")
    return replace(
        session,
        tier_id=new_tier.tier_id,
        name=new_tier.name,
        level=new_tier.level,
        spins_remaining=session.spins_remaining + decision.extra_spins,
        persist_golden_squares=new_tier.persist_golden_squares,
        guaranteed_trigger=new_tier.guaranteed_trigger,
        force_trigger_on_final_spin=new_tier.force_trigger_on_final_spin,
    )
