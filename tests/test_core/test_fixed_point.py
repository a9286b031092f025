"""Tests for lending_monitor/core/fixed_point.py."""

from __future__ import annotations

from decimal import Decimal

from lending_monitor.core.fixed_point import WAD_DECIMALS, scale, to_float

WAD = 10**WAD_DECIMALS


class TestScale:
    def test_wad_health_factor(self) -> None:
        assert scale(1_050_000_000_000_000_000) == Decimal("1.05")

    def test_exact_at_boundary(self) -> None:
        assert scale(WAD) == Decimal("1")
        assert scale(WAD - 1) < Decimal("1")

    def test_custom_decimals(self) -> None:
        assert scale(250_000_000_000, 8) == Decimal("2500")

    def test_zero(self) -> None:
        assert scale(0) == 0

    def test_max_uint256_does_not_overflow(self) -> None:
        raw = 2**256 - 1
        assert scale(raw) > Decimal(10) ** 58

    def test_negative_answer(self) -> None:
        assert scale(-150_000_000, 8) == Decimal("-1.5")


class TestToFloat:
    def test_display_conversion(self) -> None:
        assert to_float(Decimal("1.05")) == 1.05
