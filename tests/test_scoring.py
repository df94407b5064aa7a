"""Tests for the wallet risk scorer."""

import pytest

from wallet_protection.models import LabelType, Severity, SuspicionLabel, ZERO_ADDRESS

WALLET = "0xAbC0000000000000000000000000000000000001"


def label(label_type: LabelType) -> SuspicionLabel:
    return SuspicionLabel(type=label_type, severity=Severity.LOW)


class TestWeights:
    """Test label weights on a fresh wallet."""

    def test_no_labels_fresh_wallet(self, scorer):
        """Empty label set on a fresh wallet scores 0."""
        assert scorer.calculate_risk_score(WALLET, []) == 0

    @pytest.mark.parametrize("label_type,expected", [
        (LabelType.HIGH_FREQUENCY, 20),
        (LabelType.LARGE_TRANSACTION, 15),
        (LabelType.NEW_RECIPIENT, 5),
        (LabelType.DRAIN_PATTERN, 30),
        (LabelType.UNLIMITED_APPROVAL, 25),
        (LabelType.BLACKLIST_INTERACTION, 40),
    ])
    def test_single_label_weight(self, scorer, label_type, expected):
        """Each label contributes its fixed weight."""
        assert scorer.calculate_risk_score(WALLET, [label(label_type)]) == expected

    def test_weights_sum(self, scorer):
        """Multiple labels in one call add up."""
        labels = [label(LabelType.HIGH_FREQUENCY), label(LabelType.DRAIN_PATTERN)]
        assert scorer.calculate_risk_score(WALLET, labels) == 50

    def test_clamped_to_100(self, scorer):
        """Four high-weight labels clamp at 100."""
        labels = [
            label(LabelType.BLACKLIST_INTERACTION),
            label(LabelType.DRAIN_PATTERN),
            label(LabelType.UNLIMITED_APPROVAL),
            label(LabelType.HIGH_FREQUENCY),
        ]
        assert scorer.calculate_risk_score(WALLET, labels) == 100
        assert scorer.calculate_risk_score(WALLET, labels) == 100

    def test_accumulates_on_current_score(self, scorer):
        """A second call builds on the stored score."""
        scorer.calculate_risk_score(WALLET, [label(LabelType.DRAIN_PATTERN)])
        assert scorer.calculate_risk_score(WALLET, [label(LabelType.NEW_RECIPIENT)]) == 35

    def test_address_case_insensitive(self, scorer):
        """Profiles are keyed by lowercase address."""
        scorer.calculate_risk_score(WALLET, [label(LabelType.DRAIN_PATTERN)])
        assert scorer.get_score(WALLET.lower()) == 30
        assert scorer.get_profile(WALLET.upper().replace("0X", "0x")).current_score == 30


class TestDecay:
    """Test time decay between scoring calls."""

    def test_decay_never_increases(self, scorer, clock):
        """A day of quiet fully erodes a 20 point score."""
        assert scorer.calculate_risk_score(WALLET, [label(LabelType.HIGH_FREQUENCY)]) == 20
        clock.advance(hours=24)
        assert scorer.calculate_risk_score(WALLET, []) <= 20
        assert scorer.get_score(WALLET) == 0

    def test_one_point_per_full_hour(self, scorer, clock):
        """Partial hours do not decay."""
        scorer.calculate_risk_score(WALLET, [label(LabelType.HIGH_FREQUENCY)])
        clock.advance(hours=3, minutes=59)
        assert scorer.calculate_risk_score(WALLET, []) == 17

    def test_decay_applies_to_combined_score(self, scorer, clock):
        """Decay is taken from base plus the new labels."""
        scorer.calculate_risk_score(WALLET, [label(LabelType.DRAIN_PATTERN)])
        clock.advance(hours=2)
        assert scorer.calculate_risk_score(WALLET, [label(LabelType.HIGH_FREQUENCY)]) == 48

    def test_decay_anchor_is_previous_call(self, scorer, clock):
        """Each call moves the decay anchor to now."""
        scorer.calculate_risk_score(WALLET, [label(LabelType.DRAIN_PATTERN)])
        clock.advance(hours=5)
        assert scorer.calculate_risk_score(WALLET, []) == 25
        assert scorer.calculate_risk_score(WALLET, []) == 25

    def test_no_decay_for_new_profile(self, scorer, clock):
        """A fresh wallet has nothing to decay from."""
        clock.advance(hours=100)
        assert scorer.calculate_risk_score(WALLET, [label(LabelType.NEW_RECIPIENT)]) == 5


class TestProfile:
    """Test risk profile bookkeeping."""

    def test_profile_created_lazily(self, scorer):
        assert scorer.get_profile(WALLET) is None
        scorer.calculate_risk_score(WALLET, [])
        assert scorer.get_profile(WALLET) is not None

    def test_highest_score_watermark(self, scorer, clock):
        """Highest score never goes down."""
        scorer.calculate_risk_score(WALLET, [label(LabelType.BLACKLIST_INTERACTION)])
        clock.advance(hours=10)
        scorer.calculate_risk_score(WALLET, [])
        profile = scorer.get_profile(WALLET)
        assert profile.current_score == 30
        assert profile.highest_score == 40

    def test_flag_count_only_with_labels(self, scorer):
        scorer.calculate_risk_score(WALLET, [label(LabelType.NEW_RECIPIENT)])
        scorer.calculate_risk_score(WALLET, [])
        scorer.calculate_risk_score(WALLET, [label(LabelType.NEW_RECIPIENT), label(LabelType.DRAIN_PATTERN)])
        assert scorer.get_profile(WALLET).flag_count == 2

    def test_recent_labels_replaced(self, scorer):
        scorer.calculate_risk_score(WALLET, [label(LabelType.DRAIN_PATTERN)])
        scorer.calculate_risk_score(WALLET, [label(LabelType.NEW_RECIPIENT)])
        assert scorer.get_profile(WALLET).recent_labels == ["new_recipient"]

    def test_last_updated_is_clock(self, scorer, clock):
        scorer.calculate_risk_score(WALLET, [])
        assert scorer.get_profile(WALLET).last_updated == clock.now


class TestAutoLock:
    """Test the auto-lock threshold."""

    def test_unknown_wallet(self, scorer):
        assert scorer.should_auto_lock(WALLET) is False

    def test_below_threshold(self, scorer):
        scorer.calculate_risk_score(WALLET, [label(LabelType.BLACKLIST_INTERACTION), label(LabelType.DRAIN_PATTERN)])
        assert scorer.get_score(WALLET) == 70
        assert scorer.should_auto_lock(WALLET) is False

    def test_at_threshold(self, scorer):
        scorer.calculate_risk_score(WALLET, [label(LabelType.BLACKLIST_INTERACTION), label(LabelType.BLACKLIST_INTERACTION)])
        assert scorer.get_score(WALLET) == 80
        assert scorer.should_auto_lock(WALLET) is True


class TestReset:
    """Test administrative score reset."""

    def test_reset_keeps_watermark_and_flags(self, scorer, clock):
        scorer.calculate_risk_score(WALLET, [label(LabelType.DRAIN_PATTERN)])
        updated = scorer.get_profile(WALLET).last_updated
        clock.advance(minutes=10)

        scorer.reset_score(WALLET)

        profile = scorer.get_profile(WALLET)
        assert profile.current_score == 0
        assert profile.recent_labels == []
        assert profile.highest_score == 30
        assert profile.flag_count == 1
        assert profile.last_updated == updated

    def test_reset_unknown_wallet_is_noop(self, scorer):
        scorer.reset_score(WALLET)
        assert scorer.get_profile(WALLET) is None


class TestLists:
    """Test blacklist and whitelist membership."""

    def test_zero_address_blacklisted(self, scorer):
        assert scorer.is_blacklisted(ZERO_ADDRESS) is True
        assert scorer.is_blacklisted(WALLET) is False

    def test_blacklist_idempotent(self, scorer):
        scorer.add_to_blacklist(WALLET, "phishing")
        scorer.add_to_blacklist(WALLET.lower(), "phishing again")
        assert scorer.is_blacklisted(WALLET) is True
        assert scorer.get_stats()["blacklist_size"] == 2

    def test_whitelist_idempotent(self, scorer):
        scorer.add_to_whitelist(WALLET)
        scorer.add_to_whitelist(WALLET)
        assert scorer.is_whitelisted(WALLET) is True
        assert scorer.get_stats()["whitelist_size"] == 1

    def test_lists_are_independent(self, scorer):
        scorer.add_to_whitelist(WALLET)
        assert scorer.is_blacklisted(WALLET) is False


class TestHighRisk:
    """Test high-risk listing and stats."""

    def test_sorted_descending(self, scorer):
        scorer.calculate_risk_score("0x01", [label(LabelType.DRAIN_PATTERN), label(LabelType.HIGH_FREQUENCY)])
        scorer.calculate_risk_score("0x02", [label(LabelType.BLACKLIST_INTERACTION), label(LabelType.BLACKLIST_INTERACTION)])
        scorer.calculate_risk_score("0x03", [label(LabelType.NEW_RECIPIENT)])

        wallets = scorer.get_high_risk_wallets(50)

        assert [p.address for p in wallets] == ["0x02", "0x01"]

    def test_stats_buckets(self, scorer):
        scorer.calculate_risk_score("0x01", [label(LabelType.BLACKLIST_INTERACTION), label(LabelType.DRAIN_PATTERN)])
        scorer.calculate_risk_score("0x02", [label(LabelType.BLACKLIST_INTERACTION)])
        scorer.calculate_risk_score("0x03", [label(LabelType.NEW_RECIPIENT)])

        stats = scorer.get_stats()

        assert stats["total_profiles"] == 3
        assert stats["high_risk"] == 1
        assert stats["medium_risk"] == 1
        assert stats["low_risk"] == 1
