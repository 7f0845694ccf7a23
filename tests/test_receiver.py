#!/usr/bin/env python3
"""
Tests for receive-chain constants derived from the link timing
"""

import logging

import numpy as np
import pytest

from gen2_phy import build_link_config, configure, derive, InvalidBLFRange, InvalidSampleRate
from gen2_phy import gen2_constants as c

CLOCK = 122.88e6


@pytest.fixture
def rx_40k():
    return build_link_config(40e3, 23.75, 2.0, CLOCK).rx


@pytest.fixture
def rx_640k():
    return build_link_config(640e3, 6.25, 2.0, CLOCK).rx


class TestSearchWindow:
    """Sample-domain T1/pilot windows"""

    def test_40khz(self, rx_40k):
        assert rx_40k.sample_rate == 320e3
        assert rx_40k.sample_per_us == pytest.approx(0.32)
        assert rx_40k.t1_min_sample == 76     # floor(238 * 0.32)
        assert rx_40k.t1_max_sample == 84     # ceil(262 * 0.32)
        assert rx_40k.pilot_sample == 0
        assert rx_40k.pilot_min_sample == 0
        assert rx_40k.pilot_max_sample == 0
        assert rx_40k.search_sample == 13
        assert rx_40k.dc_window_samples == 38
        assert rx_40k.dc_window_us == pytest.approx(119.0)
        assert rx_40k.dc_window_gain == pytest.approx(1 / 38)

    def test_640khz(self, rx_640k):
        assert rx_640k.sample_rate == 5.12e6
        assert rx_640k.t1_min_sample == 71
        assert rx_640k.t1_max_sample == 121
        assert rx_640k.pilot_sample == 96
        assert rx_640k.pilot_min_sample == 81
        assert rx_640k.pilot_max_sample == 111
        assert rx_640k.search_sample == 85
        assert rx_640k.dc_window_samples == 35

    @pytest.mark.parametrize("blf, tari", c.SUPPORTED_LINK_PROFILES)
    def test_search_covers_t1_and_pilot(self, blf, tari):
        rx = build_link_config(blf, tari, 2.0, CLOCK).rx
        expected = ((rx.t1_max_sample - rx.t1_min_sample) +
                    (rx.pilot_max_sample - rx.pilot_min_sample) + 5)
        assert rx.search_sample == expected
        assert rx.t1_min_sample <= rx.t1_max_sample
        assert rx.dc_window_samples > 0


class TestTemplates:
    """Matched filter, preamble template, equalizer mask and fine-sync kernel"""

    @pytest.mark.parametrize("blf, tari", c.SUPPORTED_LINK_PROFILES)
    def test_matched_filter(self, blf, tari):
        rx = build_link_config(blf, tari, 2.0, CLOCK).rx
        assert len(rx.fir_match_coeff) == rx.sample_per_symbol == 4
        assert np.sum(rx.fir_match_coeff) == pytest.approx(1.0)
        np.testing.assert_allclose(rx.fir_match_coeff, 0.25)

    def test_preamble(self, rx_40k):
        np.testing.assert_array_equal(rx_40k.fm0_preamble, c.FM0_PREAMBLE)
        assert rx_40k.preamble_sample == 48
        assert len(rx_40k.preamble_sig) == 48
        np.testing.assert_array_equal(rx_40k.preamble_sig[:8], np.ones(8))
        np.testing.assert_array_equal(rx_40k.preamble_sig[8:12], -np.ones(4))
        assert rx_40k.preamble_norm_factor == pytest.approx(1 / 48)

    def test_equalizer_mask(self, rx_40k):
        assert len(rx_40k.equalizer) == 48
        np.testing.assert_array_equal(np.flatnonzero(rx_40k.equalizer), np.arange(1, 7))
        assert rx_40k.equalizer_norm_factor == pytest.approx(1 / 6)

    def test_fine_sync(self, rx_40k):
        assert rx_40k.fine_ts_left_peek == 2
        assert rx_40k.fine_ts_peek_len == 6
        np.testing.assert_array_equal(rx_40k.fine_ts_xcorr, np.ones(8))
        assert rx_40k.fine_ts_norm_factor == pytest.approx(1 / 8)

    def test_templates_independent_of_blf(self, rx_40k, rx_640k):
        np.testing.assert_array_equal(rx_40k.preamble_sig, rx_640k.preamble_sig)
        np.testing.assert_array_equal(rx_40k.equalizer, rx_640k.equalizer)
        np.testing.assert_array_equal(rx_40k.fine_ts_xcorr, rx_640k.fine_ts_xcorr)


class TestReceiverConfig:
    """Immutability, overrides and error propagation"""

    def test_arrays_read_only(self, rx_40k):
        for array in (rx_40k.fir_match_coeff, rx_40k.preamble_sig,
                      rx_40k.equalizer, rx_40k.fine_ts_xcorr, rx_40k.fm0_preamble):
            with pytest.raises(ValueError):
                array[0] = 5.0

    def test_deterministic(self):
        a = build_link_config(200e3, 11.0, 2.0, CLOCK)
        b = build_link_config(200e3, 11.0, 2.0, CLOCK)
        assert a.rfid == b.rfid
        assert a.to_dict() == b.to_dict()

    def test_to_dict_lists(self, rx_40k):
        out = rx_40k.to_dict()
        assert isinstance(out['preamble_sig'], list)
        assert out['search_sample'] == 13

    def test_rate_override_warns(self, caplog):
        rfid = derive(40e3, 23.75, 2.0, CLOCK)
        with caplog.at_level(logging.WARNING, logger='gen2_phy.receiver'):
            rx = configure(rfid, rx_sample_rate=640e3)
        assert rx.sample_rate == 640e3
        assert rx.sample_per_symbol == 4
        assert rx.t1_min_sample == 152   # floor(238 * 0.64)
        assert "differs from 8*BLF" in caplog.text

    def test_nominal_rate_no_warning(self, caplog):
        rfid = derive(40e3, 23.75, 2.0, CLOCK)
        with caplog.at_level(logging.WARNING, logger='gen2_phy.receiver'):
            configure(rfid, rx_sample_rate=320e3)
        assert caplog.records == []

    def test_invalid_link_propagates(self):
        with pytest.raises(InvalidBLFRange):
            build_link_config(30e3, 23.75, 2.0, CLOCK)

    def test_rate_override_rejected(self):
        """Override rates that cannot hold the DC estimation window"""
        rfid = derive(40e3, 23.75, 2.0, CLOCK)
        for rate in (0.0, -320e3, float('nan')):
            with pytest.raises(InvalidSampleRate):
                configure(rfid, rx_sample_rate=rate)
        # 119us DC window at 5kHz is under one sample
        with pytest.raises(InvalidSampleRate):
            configure(rfid, rx_sample_rate=5e3)
