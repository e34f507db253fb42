"""
Epoch Reward Ledger.

Tallies accepted proposals per rolling epoch and mints participation
rewards once epochs close. Rollover is lazy: it happens whenever a
mutating call observes that the open epoch's window has elapsed.
"""

from typing import Dict, List

from fund_ledger.core import InvalidAmountError, get_logger, mul_div

from ..models.config import REWARD_RATE_SCALE
from ..models.records import EpochRecord, PayoutResult, RewardRole, RolloverResult
from .shares import ShareLedger
from .state import FundState

logger = get_logger(__name__)


def rollover(epoch: EpochRecord, now: int, duration: int) -> RolloverResult:
    """
    Close every epoch window that has elapsed by ``now``.

    Pure: the given record is not modified. The open epoch closes at its
    recorded ``end_time``, which already reflects any duration change made
    while it was open; later windows use ``duration``. Windows that elapsed
    with the fund idle hold no acceptances and are only counted.

    Args:
        epoch: The currently open epoch
        now: Clock reading
        duration: Duration of epochs opened from here on

    Returns:
        RolloverResult with the new open epoch and the closed records
    """
    if duration <= 0:
        raise InvalidAmountError("Epoch duration must be positive", details={"duration": duration})

    if now < epoch.end_time:
        return RolloverResult(current=epoch.copy())

    closed = epoch.copy()
    closed.closed = True

    next_start = closed.end_time
    skipped = (now - next_start) // duration
    current = EpochRecord(
        index=closed.index + 1 + skipped,
        start_time=next_start + skipped * duration,
        duration=duration,
    )
    return RolloverResult(current=current, closed=[closed], skipped_empty=skipped)


class EpochRewardLedger:
    """
    Epoch tallies, settlement and reward payout.

    Rates are fixed-point fractions of ``REWARD_RATE_SCALE``. A closed
    epoch is settled by the first payout that reaches it: both pools are
    sized from the share supply plus rewards already settled for earlier
    epochs but not minted yet, so proposer and approver payouts see the
    same supply figure regardless of call order.

    Example:
        >>> ledger = EpochRewardLedger(share_ledger)
        >>> ledger.check_rollover(state, now)
        >>> result = ledger.payout(state, RewardRole.PROPOSER, now)
    """

    def __init__(self, shares: ShareLedger):
        self._shares = shares

    def check_rollover(self, state: FundState, now: int) -> RolloverResult:
        """Apply a rollover to the state, queueing closed epochs."""
        result = rollover(state.current_epoch, now, state.parameters.epoch_duration)
        if result.rolled_over:
            state.pending_epochs.extend(result.closed)
            state.current_epoch = result.current
            logger.info(
                f"Epoch rollover: closed {[e.index for e in result.closed]}, "
                f"skipped {result.skipped_empty} idle window(s), "
                f"now in epoch {result.current.index}"
            )
        return result

    def record_acceptance(self, state: FundState, proposer: str, approver: str) -> None:
        """Tally an accepted proposal in the open epoch."""
        state.current_epoch.record_acceptance(proposer, approver)

    # =========================================================================
    # Settlement
    # =========================================================================

    def _split(self, pool: int, counts: Dict[str, int], total: int) -> Dict[str, int]:
        return {
            participant: mul_div(pool, count, total)
            for participant, count in counts.items()
            if count > 0
        }

    def settle(self, state: FundState, epoch: EpochRecord) -> None:
        """
        Fix both reward pools of a closed epoch.

        ``pool = effective_supply * rate // REWARD_RATE_SCALE`` and each
        participant receives ``pool * count // total_accepted``.
        """
        if epoch.is_settled or epoch.is_empty:
            return

        outstanding = 0
        for earlier in state.pending_epochs:
            if earlier is epoch:
                break
            outstanding += earlier.outstanding_rewards
        effective_supply = state.share_supply + outstanding

        params = state.parameters
        proposer_pool = mul_div(effective_supply, params.proposer_reward_rate, REWARD_RATE_SCALE)
        approver_pool = mul_div(effective_supply, params.approver_reward_rate, REWARD_RATE_SCALE)

        epoch.settled_supply = effective_supply
        epoch.proposer_rewards = self._split(proposer_pool, epoch.proposer_counts, epoch.total_accepted)
        epoch.approver_rewards = self._split(approver_pool, epoch.approver_counts, epoch.total_accepted)

        logger.debug(
            f"Epoch {epoch.index} settled on supply {effective_supply}: "
            f"proposer pool {proposer_pool}, approver pool {approver_pool}"
        )

    # =========================================================================
    # Payout
    # =========================================================================

    def payout(self, state: FundState, role: RewardRole, now: int) -> PayoutResult:
        """
        Drain closed epochs for one role, oldest first.

        Epochs with no acceptances are discarded. A record leaves the
        pending queue once both roles have been paid. Calling before any
        epoch has closed is a no-op.
        """
        self.check_rollover(state, now)
        result = PayoutResult(role=role, timestamp=now)
        remaining: List[EpochRecord] = []

        for epoch in list(state.pending_epochs):
            if epoch.is_empty:
                result.epochs_discarded.append(epoch.index)
                continue

            self.settle(state, epoch)

            if role == RewardRole.PROPOSER and not epoch.proposers_paid:
                self._mint_rewards(state, epoch.proposer_rewards, result)
                epoch.proposers_paid = True
                result.epochs_paid.append(epoch.index)
            elif role == RewardRole.APPROVER and not epoch.approvers_paid:
                self._mint_rewards(state, epoch.approver_rewards, result)
                epoch.approvers_paid = True
                result.epochs_paid.append(epoch.index)

            if not epoch.paid:
                remaining.append(epoch)

        state.pending_epochs = remaining

        if not result.is_noop:
            logger.info(
                f"{role.value.capitalize()} payout: epochs {result.epochs_paid}, "
                f"discarded {result.epochs_discarded}, minted {result.total_minted}"
            )
        return result

    def _mint_rewards(
        self,
        state: FundState,
        rewards: Dict[str, int],
        result: PayoutResult,
    ) -> None:
        for participant, amount in rewards.items():
            if amount <= 0:
                continue
            self._shares.mint(state, participant, amount)
            result.add_reward(participant, amount)
