#!/usr/bin/env python3
"""
Tag Burst Synchronizer

Applies a ReceiverConfig to one capture window of receive samples (index 0 is
the end of the reader's last transmission) and locates the tag burst:

1. DC removal: carrier level averaged over the window ending at T1_min
2. Matched filter: causal box filter over one FM0 half symbol
3. Coarse sync: preamble template correlation over SEARCH_SAMPLE offsets,
   starting at T1_min + Pilot_min
4. Fine sync: "11" kernel over the peek window around the coarse peak
5. Equalization: channel gain from the masked preamble samples

Indices reported are in the matched-filter output domain, which lags the raw
samples by the filter's group delay.

Design:
- Phase-invariant: peak search on correlation magnitude, so the complex
  channel rotation does not matter
- Stateless: one call per capture, safe to share across threads
"""

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np
from scipy.signal import correlate, lfilter

from .commands import ReaderReceive
from .receiver import ReceiverConfig

logger = logging.getLogger(__name__)


@dataclass
class BurstSync:
    """Result of synchronizing one tag burst"""
    coarse_index: int
    preamble_start: int
    correlation_peak: float
    dc_offset: complex
    channel_gain: complex
    equalized: np.ndarray


class BurstSynchronizer:
    """
    Locate and equalize FM0 tag bursts using a ReceiverConfig
    """

    def __init__(self, rx: ReceiverConfig, min_correlation: float = 0.0):
        """
        Args:
            rx: Receive-chain constants
            min_correlation: Minimum normalized coarse peak magnitude to
                accept a burst (0 accepts any peak)
        """
        self.rx = rx
        self.min_correlation = min_correlation
        self.search_start = rx.t1_min_sample + rx.pilot_min_sample

    def required_samples(self, response: ReaderReceive = ReaderReceive.RN16) -> int:
        """
        Capture length covering the preamble search and a whole burst
        starting at the latest possible fine-sync index
        """
        rx = self.rx
        return (self.search_start + rx.search_sample + rx.fine_ts_peek_len +
                response.burst_samples(rx))

    def remove_dc(self, samples: np.ndarray):
        """
        Estimate the unmodulated carrier level and subtract it

        Returns:
            (dc_removed_samples, dc_offset)
        """
        rx = self.rx
        start = rx.t1_min_sample - rx.dc_window_samples
        dc_offset = np.sum(samples[start:rx.t1_min_sample]) * rx.dc_window_gain
        return samples - dc_offset, dc_offset

    def matched_filter(self, samples: np.ndarray) -> np.ndarray:
        return lfilter(self.rx.fir_match_coeff, 1.0, samples)

    def coarse_sync(self, filtered: np.ndarray):
        """
        Returns:
            (coarse_index, normalized peak magnitude)
        """
        rx = self.rx
        stop = self.search_start + rx.search_sample + rx.preamble_sample - 1
        segment = filtered[self.search_start:stop]

        corr = correlate(segment, rx.preamble_sig, mode='valid') * rx.preamble_norm_factor
        magnitude = np.abs(corr)
        peak_idx = int(np.argmax(magnitude))

        return self.search_start + peak_idx, float(magnitude[peak_idx])

    def fine_sync(self, filtered: np.ndarray, coarse_index: int) -> int:
        """Refine the burst start inside the peek window around coarse_index"""
        rx = self.rx
        peek_start = max(0, coarse_index - rx.fine_ts_left_peek)
        stop = peek_start + rx.fine_ts_peek_len + len(rx.fine_ts_xcorr) - 1
        window = filtered[peek_start:stop]

        corr = correlate(window, rx.fine_ts_xcorr, mode='valid') * rx.fine_ts_norm_factor
        return peek_start + int(np.argmax(np.abs(corr)))

    def estimate_channel(self, filtered: np.ndarray, preamble_start: int) -> complex:
        """Channel gain from the equalizer-masked preamble samples"""
        rx = self.rx
        region = filtered[preamble_start:preamble_start + rx.preamble_sample]
        weighted = region * rx.equalizer * rx.preamble_sig
        return complex(np.sum(weighted) * rx.equalizer_norm_factor)

    def synchronize(
        self,
        samples: np.ndarray,
        response: ReaderReceive = ReaderReceive.RN16
    ) -> Optional[BurstSync]:
        """
        Synchronize one capture window

        Args:
            samples: Baseband samples at rx.sample_rate (complex or real)
            response: Expected response type, sets the equalized length

        Returns:
            BurstSync, or None if the capture is too short, the peak is
            below min_correlation, or the channel gain is zero
        """
        samples = np.asarray(samples)
        required = self.required_samples(response)
        if len(samples) < required:
            logger.warning(f"Capture too short for {response.name} burst: {len(samples)} < "
                           f"{required} samples")
            return None

        baseband, dc_offset = self.remove_dc(samples)
        filtered = self.matched_filter(baseband)

        coarse_index, peak = self.coarse_sync(filtered)
        if peak < self.min_correlation:
            logger.debug(f"No burst: peak={peak:.4f} < threshold={self.min_correlation:.4f}")
            return None

        preamble_start = self.fine_sync(filtered, coarse_index)
        gain = self.estimate_channel(filtered, preamble_start)
        if gain == 0:
            logger.warning(f"Zero channel gain at sample {preamble_start}, dropping burst")
            return None

        burst_len = response.burst_samples(self.rx)
        equalized = filtered[preamble_start:preamble_start + burst_len] / gain

        logger.debug(f"{response.name} burst: coarse={coarse_index}, fine={preamble_start}, "
                     f"peak={peak:.4f}, |h|={abs(gain):.4f}")

        return BurstSync(
            coarse_index=coarse_index,
            preamble_start=preamble_start,
            correlation_peak=peak,
            dc_offset=complex(dc_offset),
            channel_gain=gain,
            equalized=equalized,
        )
