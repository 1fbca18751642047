"""Tests for the difficulty predicate."""

import pytest

from scavenger.services.difficulty import decode_difficulty, meets_difficulty, meets_target


class TestDecodeDifficulty:
    def test_valid_hex(self):
        assert decode_difficulty("00FFab") == b"\x00\xff\xab"

    @pytest.mark.parametrize("value", ["zz", "0", "00 ff", "00ff\n", "0x00ff"])
    def test_invalid_hex_returns_none(self, value):
        assert decode_difficulty(value) is None


class TestMeetsDifficulty:
    def test_smaller_first_byte_succeeds_immediately(self):
        assert meets_difficulty(b"\x00\xff\xff\xff", "01000000") is True

    def test_larger_first_byte_fails_immediately(self):
        assert meets_difficulty(b"\x02\x00\x00\x00", "01ffffff") is False

    def test_equal_bytes_move_to_next(self):
        assert meets_difficulty(b"\x01\x02\x03\x03", "01020304") is True
        assert meets_difficulty(b"\x01\x02\x03\x05", "01020304") is False

    def test_equal_prefix_succeeds(self):
        assert meets_difficulty(b"\x01\x02\x03\x04" + b"\xff" * 60, "01020304") is True

    def test_only_four_bytes_compared(self):
        """Bytes past the 4-byte window never affect the outcome."""
        assert meets_difficulty(b"\x00\x00\x00\x00\xff", "0000000000") is True

    def test_zero_digest_meets_worked_example(self):
        assert meets_difficulty(b"\x00" * 64, "00ffffffff") is True

    def test_not_a_leading_zero_bits_rule(self):
        """0x7f... has one leading zero bit but is above target 0x10..."""
        assert meets_difficulty(b"\x7f\x00\x00\x00", "10ffffff") is False

    def test_short_target_compares_only_present_bytes(self):
        assert meets_difficulty(b"\x00\xff\xff\xff", "00ff") is True
        assert meets_difficulty(b"\x01\x00", "00ff") is False

    def test_digest_shorter_than_window_fails(self):
        assert meets_difficulty(b"\x00", "00ff") is False
        assert meets_difficulty(b"", "00") is False

    @pytest.mark.parametrize("difficulty", ["zz", "abc", "00 ff ff ff", "not-hex"])
    def test_malformed_difficulty_never_matches(self, difficulty):
        assert meets_difficulty(b"\x00" * 64, difficulty) is False

    def test_empty_target_compares_nothing(self):
        assert meets_target(b"\xff", b"") is True

    def test_undecodable_target_is_none(self):
        assert meets_target(b"\x00" * 64, None) is False

    @pytest.mark.parametrize(
        ("lower", "higher"),
        [
            (b"\x00\x00\x00\x00", b"\x00\x00\x00\x01"),
            (b"\x00\x10\xff\xff", b"\x00\x11\x00\x00"),
            (b"\x0f\xff\xff\xff", b"\x10\x00\x00\x00"),
            (b"\x00\xff\xff\xfe", b"\x00\xff\xff\xff"),
        ],
    )
    def test_monotonic(self, lower, higher):
        """If a digest meets a target, every smaller digest does too."""
        for difficulty in ["00000001", "0011ffff", "10000000", "00ffffff", "ffffffff"]:
            if meets_difficulty(higher, difficulty):
                assert meets_difficulty(lower, difficulty)
