#!/usr/bin/env python3
"""
Receiver Front-End Configuration

Derives the discrete-sample constants of the tag-to-reader receive chain from
an RFIDConfig. The receive rate is 8 * BLF: 4 samples per FM0 half symbol,
2 half symbols per bit.

Receive chain these constants feed:
1. DC removal - running mean of the unmodulated carrier over a window that
   ends at T1_min, subtracted before demodulation
2. Matched filter - box filter over one FM0 half symbol
3. Coarse sync - preamble template correlation over SEARCH_SAMPLE offsets
4. Fine sync - two-chip "11" kernel over a narrow peek window around the
   coarse peak, locating the rising edge of the first preamble chip
5. Equalization - channel gain from the masked mid-burst samples only,
   limiting the effect of tag clock drift across the 12-chip preamble
"""

import logging
from dataclasses import dataclass
from typing import Optional, Dict, Any

import numpy as np

from . import gen2_constants as c
from .errors import InvalidSampleRate
from .timing import RFIDConfig, derive, round_half_away

logger = logging.getLogger(__name__)


def _frozen(array: np.ndarray) -> np.ndarray:
    array.setflags(write=False)
    return array


@dataclass(frozen=True, eq=False)
class ReceiverConfig:
    """Sample-domain receive constants. Array fields are read-only."""
    sample_per_symbol: int
    sample_rate: float
    sample_per_us: float

    # Matched filter
    fir_match_coeff: np.ndarray

    # DC removal CW estimation window (before each RN16 and EPC)
    dc_window_us: float
    dc_window_samples: int
    dc_window_gain: float

    # Preamble search
    t1_min_sample: int
    t1_max_sample: int
    pilot_sample: int
    pilot_min_sample: int
    pilot_max_sample: int
    search_sample: int

    # Preamble template
    fm0_preamble: np.ndarray
    preamble_sig: np.ndarray
    preamble_sample: int
    preamble_norm_factor: float

    # Channel equalizer
    equalizer: np.ndarray
    equalizer_norm_factor: float

    # Fine time synchronization
    fine_ts_left_peek: int
    fine_ts_peek_len: int
    fine_ts_xcorr: np.ndarray
    fine_ts_norm_factor: float

    def to_dict(self) -> Dict[str, Any]:
        out = {}
        for name, value in self.__dict__.items():
            out[name] = value.tolist() if isinstance(value, np.ndarray) else value
        return out


def configure(rfid: RFIDConfig, rx_sample_rate: Optional[float] = None) -> ReceiverConfig:
    """
    Derive receive-chain constants

    Args:
        rfid: Validated link configuration
        rx_sample_rate: Receive rate (Hz), defaults to 8 * BLF

    Returns:
        ReceiverConfig

    Raises:
        InvalidSampleRate: non-positive rate, or one too low to fill the
            DC estimation window
    """
    sps = c.RX_SAMPLE_PER_SYMBOL
    nominal_rate = rfid.tag_blf * sps * c.RX_SYMBOLS_PER_BIT
    if rx_sample_rate is None:
        rx_sample_rate = nominal_rate
    elif not rx_sample_rate > 0:
        raise InvalidSampleRate(f"Rx sample rate must be positive (got {rx_sample_rate})")
    elif rx_sample_rate != nominal_rate:
        logger.warning(f"Rx sample rate {rx_sample_rate:.1f}Hz differs from 8*BLF={nominal_rate:.1f}Hz; "
                       f"keeping {sps} samples per symbol")
    spu = rx_sample_rate / 1e6
    d = rfid.durations

    fir_match_coeff = np.ones(sps) / sps

    dc_window_us = d.t1_min / 2
    dc_window_samples = int(np.floor(dc_window_us * spu))
    if dc_window_samples < 1:
        raise InvalidSampleRate(f"Rx sample rate {rx_sample_rate:.1f}Hz leaves no samples in the "
                                f"{dc_window_us:.2f}us DC estimation window")

    t1_min_sample = int(np.floor(d.t1_min * spu))
    t1_max_sample = int(np.ceil(d.t1_max * spu))
    pilot_sample = round_half_away(d.pilot * spu)
    pilot_min_sample = int(np.floor(d.pilot_min * spu))
    pilot_max_sample = int(np.ceil(d.pilot_max * spu))
    # Extra slack for FIR group delay and tolerance
    search_sample = ((t1_max_sample - t1_min_sample) +
                     (pilot_max_sample - pilot_min_sample) + c.SEARCH_SLACK_SAMPLES)

    fm0_preamble = np.array(c.FM0_PREAMBLE, dtype=float)
    preamble_sig = np.repeat(fm0_preamble, sps)
    preamble_sample = len(preamble_sig)

    # Hard set mask, considering tag clock variation within the preamble
    equalizer = np.zeros(preamble_sample)
    equalizer[c.EQUALIZER_FIRST - 1:c.EQUALIZER_LAST] = 1.0

    # Left peek 2, right peek 3 around the coarse index
    fine_ts_xcorr = np.repeat(np.array([1.0, 1.0]), sps)

    rx = ReceiverConfig(
        sample_per_symbol=sps,
        sample_rate=rx_sample_rate,
        sample_per_us=spu,
        fir_match_coeff=_frozen(fir_match_coeff),
        dc_window_us=dc_window_us,
        dc_window_samples=dc_window_samples,
        dc_window_gain=1.0 / dc_window_samples,
        t1_min_sample=t1_min_sample,
        t1_max_sample=t1_max_sample,
        pilot_sample=pilot_sample,
        pilot_min_sample=pilot_min_sample,
        pilot_max_sample=pilot_max_sample,
        search_sample=search_sample,
        fm0_preamble=_frozen(fm0_preamble),
        preamble_sig=_frozen(preamble_sig),
        preamble_sample=preamble_sample,
        preamble_norm_factor=1.0 / preamble_sample,
        equalizer=_frozen(equalizer),
        equalizer_norm_factor=1.0 / np.sum(equalizer),
        fine_ts_left_peek=sps - 2,
        fine_ts_peek_len=2 * sps - 2,
        fine_ts_xcorr=_frozen(fine_ts_xcorr),
        fine_ts_norm_factor=1.0 / np.sum(fine_ts_xcorr),
    )

    logger.debug(f"Rx config: rate={rx_sample_rate/1e3:.1f}kHz, DC window={dc_window_samples} samples, "
                 f"search=[{t1_min_sample + pilot_min_sample}, +{search_sample}) samples")
    return rx


@dataclass(frozen=True)
class LinkConfig:
    """Combined configuration handed to the hardware/model layer"""
    rfid: RFIDConfig
    rx: ReceiverConfig

    def to_dict(self) -> Dict[str, Any]:
        return {'rfid': self.rfid.to_dict(), 'rx': self.rx.to_dict()}


def build_link_config(tag_blf: float, tari: float, tari_ratio: float,
                      tx_sample_rate: float,
                      rx_sample_rate: Optional[float] = None) -> LinkConfig:
    """Derive timing, then the receiver constants from it"""
    rfid = derive(tag_blf, tari, tari_ratio, tx_sample_rate)
    return LinkConfig(rfid=rfid, rx=configure(rfid, rx_sample_rate))
