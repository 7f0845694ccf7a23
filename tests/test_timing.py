#!/usr/bin/env python3
"""
Tests for Gen2 protocol timing derivation

Covers the FrT band table, input validation order, the derived durations for
the reference link settings, and the per-field Tx rounding.
"""

import dataclasses

import numpy as np
import pytest

from gen2_phy import (
    derive, determine_frt,
    InvalidTariRange, InvalidBLFRange, InvalidTariRatio, InvalidTRCALBound,
    BLFOutOfBandLookup, InvalidSampleRate, Gen2ConfigError,
)
from gen2_phy import gen2_constants as c
from gen2_phy.timing import round_half_away

CLOCK = 122.88e6


class TestFrTLookup:
    """FrT band table, including the exact-equality rows"""

    @pytest.mark.parametrize("blf, expected", [
        (40e3, 0.04),
        (106999, 0.04),
        (107e3, 0.07),
        (160e3, 0.07),
        (160001, 0.10),
        (256e3, 0.10),
        (256001, 0.12),
        (319999, 0.12),
        (320e3, 0.10),
        (320001, 0.22),
        (639999, 0.22),
        (640e3, 0.15),
    ])
    def test_bands(self, blf, expected):
        assert determine_frt(blf) == expected

    def test_below_table(self):
        with pytest.raises(BLFOutOfBandLookup):
            determine_frt(39999)

    def test_above_table(self):
        with pytest.raises(BLFOutOfBandLookup):
            determine_frt(640001)

    def test_nan_rejected(self):
        with pytest.raises(BLFOutOfBandLookup):
            determine_frt(float('nan'))


class TestReferenceSettings:
    """Worked values for the slowest and fastest supported links"""

    def test_40khz(self):
        cfg = derive(40e3, 23.75, 2.0, CLOCK)
        d = cfg.durations

        assert cfg.div_ratio == 8
        assert cfg.pilot_enabled is False
        assert cfg.frt == 0.04
        assert d.pilot == 0
        assert d.pilot_min == 0
        assert d.pilot_max == 0
        assert d.rtcal == pytest.approx(71.25)
        assert d.trcal == pytest.approx(200.0)
        assert d.tpri == pytest.approx(25.0)
        assert d.pw == pytest.approx(9.5)
        assert d.delim == 12.5
        assert d.cw_start == 50
        assert d.t1 == pytest.approx(250.0)
        assert d.t1_min == pytest.approx(238.0)
        assert d.t1_max == pytest.approx(262.0)
        assert d.t2_min == pytest.approx(75.0)
        assert d.t2_max == pytest.approx(500.0)

    def test_640khz(self):
        cfg = derive(640e3, 6.25, 2.0, CLOCK)
        d = cfg.durations

        assert cfg.div_ratio == pytest.approx(64 / 3)
        assert cfg.pilot_enabled is True
        assert cfg.frt == 0.15
        assert d.pilot == pytest.approx(18.75)
        assert d.pilot_min == pytest.approx(18.75 * 0.85)
        assert d.pilot_max == pytest.approx(18.75 * 1.15)
        assert d.pw == 2.0
        assert d.rtcal == pytest.approx(18.75)
        assert d.t1 == pytest.approx(18.75)

    def test_320khz_keeps_dr8(self):
        cfg = derive(320e3, 7.0, 2.0, CLOCK)
        assert cfg.div_ratio == 8
        assert cfg.pilot_enabled is False
        assert cfg.frt == 0.10
        assert cfg.tx.query_dr == 0
        assert cfg.tx.trext is False

    def test_query_fields_above_320khz(self):
        cfg = derive(640e3, 6.25, 2.0, CLOCK)
        assert cfg.tx.query_dr == 1
        assert cfg.tx.trext is True

    @pytest.mark.parametrize("blf, tari", c.SUPPORTED_LINK_PROFILES)
    def test_supported_profiles_derive(self, blf, tari):
        cfg = derive(blf, tari, 2.0, CLOCK)
        assert cfg.tag_blf == blf


class TestValidation:
    """Fail-fast validation, one error kind per check"""

    def test_blf_boundaries(self):
        with pytest.raises(InvalidBLFRange):
            derive(39999, 23.75, 2.0, CLOCK)
        with pytest.raises(InvalidBLFRange):
            derive(640001, 6.25, 2.0, CLOCK)

    def test_tari_boundaries(self):
        with pytest.raises(InvalidTariRange):
            derive(40e3, 6.24, 2.0, CLOCK)
        with pytest.raises(InvalidTariRange):
            derive(40e3, 25.01, 2.0, CLOCK)

    def test_tari_ratio(self):
        with pytest.raises(InvalidTariRatio):
            derive(40e3, 23.75, 1.49, CLOCK)
        with pytest.raises(InvalidTariRatio):
            derive(40e3, 23.75, 2.01, CLOCK)

    def test_trcal_bound(self):
        # RTCAL = 15.625us, TRCAL = 200us > 3 * RTCAL
        with pytest.raises(InvalidTRCALBound):
            derive(40e3, 6.25, 1.5, CLOCK)

    def test_trcal_lower_bound(self):
        # RTCAL = 75us, TRCAL = 33.3us < 1.1 * RTCAL
        with pytest.raises(InvalidTRCALBound):
            derive(640e3, 25.0, 2.0, CLOCK)

    def test_order_tari_before_blf(self):
        with pytest.raises(InvalidTariRange):
            derive(10e3, 1.0, 5.0, CLOCK)

    def test_order_blf_before_ratio(self):
        with pytest.raises(InvalidBLFRange):
            derive(10e3, 23.75, 5.0, CLOCK)

    def test_nan_rejected(self):
        with pytest.raises(InvalidTariRange):
            derive(40e3, float('nan'), 2.0, CLOCK)

    def test_sample_rate(self):
        with pytest.raises(InvalidSampleRate):
            derive(40e3, 23.75, 2.0, 0)

    def test_errors_are_value_errors(self):
        with pytest.raises(ValueError):
            derive(39999, 23.75, 2.0, CLOCK)
        assert issubclass(InvalidTRCALBound, Gen2ConfigError)


class TestInvariants:
    """Properties that hold for every accepted configuration"""

    def test_grid(self):
        accepted = 0
        for blf in np.linspace(40e3, 640e3, 25):
            for tari in np.linspace(6.25, 25, 16):
                for ratio in (1.5, 1.75, 2.0):
                    try:
                        cfg = derive(float(blf), float(tari), ratio, CLOCK)
                    except InvalidTRCALBound:
                        continue
                    accepted += 1
                    d = cfg.durations

                    assert d.t1_min <= d.t1 <= d.t1_max
                    assert d.t1 == max(d.rtcal, 10 * d.tpri)
                    assert d.pw == max(0.4 * tari, 2)
                    assert 1.1 * d.rtcal <= d.trcal <= 3 * d.rtcal
                    if cfg.pilot_enabled:
                        assert d.pilot == pytest.approx(12 * d.tpri)
                    else:
                        assert d.pilot == 0
                    for value in dataclasses.asdict(d).values():
                        assert value >= 0
                    for value in dataclasses.asdict(cfg.tx).values():
                        if isinstance(value, int) and not isinstance(value, bool):
                            assert value >= 0
        assert accepted > 0

    def test_idempotent(self):
        a = derive(200e3, 11.0, 2.0, CLOCK)
        b = derive(200e3, 11.0, 2.0, CLOCK)
        assert a == b
        assert a.to_dict() == b.to_dict()

    def test_frozen(self):
        cfg = derive(40e3, 23.75, 2.0, CLOCK)
        with pytest.raises(dataclasses.FrozenInstanceError):
            cfg.tag_blf = 80e3
        with pytest.raises(dataclasses.FrozenInstanceError):
            cfg.durations.t1 = 0.0


class TestTxSamples:
    """Per-field Tx rounding"""

    def test_40khz_counts(self):
        tx = derive(40e3, 23.75, 2.0, CLOCK).tx

        assert tx.sample_per_us == pytest.approx(122.88)
        assert tx.pw_sample == 1167            # round(1167.36)
        assert tx.data0_hi_sample == 1752      # ceil(2918.4 - 1167)
        assert tx.data1_hi_sample == 4670      # ceil(5836.8 - 1167)
        assert tx.rtcal_hi_sample == 7589      # ceil(8755.2 - 1167)
        assert tx.trcal_hi_sample == 23409     # round(24576) - 1167
        assert tx.delim_sample == 1536
        assert tx.cw_start_sample == 6144

    def test_counts_are_ints(self):
        tx = derive(160e3, 13.5, 2.0, CLOCK).tx
        for name in ('delim_sample', 'cw_start_sample', 'pw_sample', 'data0_hi_sample',
                     'data1_hi_sample', 'rtcal_hi_sample', 'trcal_hi_sample'):
            assert type(getattr(tx, name)) is int

    def test_pw_rounds_half_away(self):
        # PW = 2.5us at 1 sample/us; banker's rounding would give 2
        tx = derive(640e3, 6.25, 2.0, 1e6).tx
        assert tx.pw_sample == 3
        assert tx.data0_hi_sample == 4   # ceil(6.25 - 3)

    def test_round_half_away(self):
        assert round_half_away(2.5) == 3
        assert round_half_away(-2.5) == -3
        assert round_half_away(2.4999) == 2
        assert round_half_away(0.0) == 0
