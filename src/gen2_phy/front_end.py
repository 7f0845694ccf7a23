#!/usr/bin/env python3
"""
Reader Front-End Filter and NCO Design

Design-time helpers for the pieces around the timing core:

1. NCO: phase increments that shift each operating channel to baseband
   relative to the RF center frequency
2. Rx resampler: clock rate → 8 * BLF (4 samples per FM0 half symbol),
   passband 6 * BLF, Kaiser-window polyphase FIR
3. Tx shaping: Kaiser-windowed raised-cosine low-pass at the clock rate

Only coefficients and integers are produced here; loading them into the
DDC/NCO and FIR blocks is the hardware layer's job.
"""

import logging
from dataclasses import dataclass
from fractions import Fraction
from typing import Sequence

import numpy as np
from scipy import signal

from . import gen2_constants as c
from .timing import round_half_away

logger = logging.getLogger(__name__)


# =============================================================================
# NCO
# =============================================================================

@dataclass(frozen=True, eq=False)
class NCOConfig:
    """Numerically controlled oscillator parameters"""
    accumulator_bits: int
    quantizer_bits: int
    dither_bits: int
    phase_increments: np.ndarray

    def to_dict(self) -> dict:
        return {
            'accumulator_bits': self.accumulator_bits,
            'quantizer_bits': self.quantizer_bits,
            'dither_bits': self.dither_bits,
            'phase_increments': self.phase_increments.tolist(),
        }


def design_nco(sample_rate: float, offsets_hz: Sequence[float],
               resolution_hz: float = 20.0, sfdr_db: float = 110.0) -> NCOConfig:
    """
    Design NCO accumulator/quantizer widths and per-channel phase increments

    Args:
        sample_rate: NCO clock rate (Hz)
        offsets_hz: Channel offsets from the RF center (Hz), may be negative
        resolution_hz: Required frequency resolution (Hz)
        sfdr_db: Spurious free dynamic range (dB)

    Returns:
        NCOConfig
    """
    if not sample_rate > 0:
        raise ValueError(f"NCO sample rate must be positive (got {sample_rate})")
    offsets = np.atleast_1d(np.asarray(offsets_hz, dtype=float))
    if offsets.size == 0:
        raise ValueError("At least one channel offset is required")

    accumulator_bits = int(np.ceil(np.log2(sample_rate / resolution_hz)))
    quantizer_bits = int(np.ceil((sfdr_db - 12) / 6))

    scale = 2.0 ** accumulator_bits / sample_rate
    increments = np.array([round_half_away(f * scale) for f in offsets], dtype=np.int64)
    increments.setflags(write=False)

    logger.debug(f"NCO: N={accumulator_bits}, Q={quantizer_bits}, "
                 f"{len(increments)} channels")
    return NCOConfig(
        accumulator_bits=accumulator_bits,
        quantizer_bits=quantizer_bits,
        dither_bits=accumulator_bits - quantizer_bits,
        phase_increments=increments,
    )


# =============================================================================
# RX RESAMPLER
# =============================================================================

@dataclass(frozen=True, eq=False)
class RxResampler:
    """Rational polyphase resampler from the clock rate to 8 * BLF"""
    input_rate: float
    output_rate: float
    bandwidth_hz: float
    up: int
    down: int
    taps: np.ndarray

    @property
    def num_taps(self) -> int:
        return len(self.taps)

    def apply(self, samples: np.ndarray) -> np.ndarray:
        """Resample a block of input-rate samples to the output rate"""
        return signal.resample_poly(samples, self.up, self.down, window=self.taps)


def design_rx_resampler(input_rate: float, tag_blf: float,
                        stopband_attenuation_db: float = 60.0) -> RxResampler:
    """
    Design the receive sample-rate converter

    Output rate is 8 * BLF, with a 6 * BLF (two-sided) band of interest.
    The low-pass is designed at the upsampled rate with its transition band
    between 3 * BLF and the output Nyquist, 4 * BLF.

    The decimation factor is capped at RX_RESAMPLER_MAX_DOWN. BLFs sharing
    few factors with the input rate get the closest ratio under that cap,
    so output_rate may differ from 8 * BLF by up to RX_RATE_TOLERANCE.

    Args:
        input_rate: Input sample rate (Hz), whole Hz
        tag_blf: Backscatter link frequency (Hz)
        stopband_attenuation_db: Stopband rejection (dB)

    Returns:
        RxResampler

    Raises:
        ValueError: non-positive rates, no ratio within tolerance, or a
            filter longer than RX_RESAMPLER_MAX_TAPS
    """
    if not input_rate > 0 or not tag_blf > 0:
        raise ValueError(f"Rates must be positive (input={input_rate}, BLF={tag_blf})")

    target_rate = tag_blf * c.RX_SAMPLE_PER_SYMBOL * c.RX_SYMBOLS_PER_BIT
    bandwidth = 6 * tag_blf

    ratio = Fraction(round_half_away(target_rate), round_half_away(input_rate))
    if ratio.denominator > c.RX_RESAMPLER_MAX_DOWN:
        ratio = ratio.limit_denominator(c.RX_RESAMPLER_MAX_DOWN)
    up, down = ratio.numerator, ratio.denominator

    output_rate = input_rate * up / down
    rate_error = abs(output_rate - target_rate) / target_rate
    if not rate_error <= c.RX_RATE_TOLERANCE:
        raise ValueError(f"No resampling ratio with down <= {c.RX_RESAMPLER_MAX_DOWN} "
                         f"reaches {target_rate:.1f}Hz from {input_rate:.1f}Hz")
    if output_rate != target_rate:
        logger.debug(f"Rx resampler rate {output_rate:.3f}Hz approximates "
                     f"{target_rate:.1f}Hz (error {rate_error:.2e})")
    design_rate = input_rate * up

    passband_edge = bandwidth / 2
    stopband_edge = output_rate / 2
    transition = stopband_edge - passband_edge
    cutoff = (passband_edge + stopband_edge) / 2

    # Kaiser order estimate for the required attenuation
    num_taps, beta = signal.kaiserord(stopband_attenuation_db, transition / (design_rate / 2))
    if num_taps % 2 == 0:
        num_taps += 1
    if num_taps > c.RX_RESAMPLER_MAX_TAPS:
        raise ValueError(f"Rx resampler needs {num_taps} taps (up={up}, down={down}), "
                         f"limit is {c.RX_RESAMPLER_MAX_TAPS}")
    taps = signal.firwin(num_taps, cutoff, window=('kaiser', beta), fs=design_rate, scale=True)
    taps.setflags(write=False)

    logger.debug(f"Rx resampler: {input_rate/1e6:.3f}MHz → {output_rate/1e3:.1f}kHz "
                 f"(up={up}, down={down}), {num_taps} taps, cutoff={cutoff/1e3:.1f}kHz")
    return RxResampler(
        input_rate=input_rate,
        output_rate=output_rate,
        bandwidth_hz=bandwidth,
        up=up,
        down=down,
        taps=taps,
    )


# =============================================================================
# TX SHAPING
# =============================================================================

def design_tx_shaping_filter(sample_rate: float, bandwidth_hz: float = 500e3,
                             order: int = 110, rolloff: float = 1.0,
                             kaiser_beta: float = 0.5) -> np.ndarray:
    """
    Kaiser-windowed raised-cosine low-pass for the reader's PIE waveform

    Args:
        sample_rate: Tx model rate (Hz)
        bandwidth_hz: 6 dB cutoff (Hz)
        order: Filter order, order + 1 taps
        rolloff: Raised-cosine rolloff, 0 < rolloff <= 1
        kaiser_beta: Kaiser window parameter

    Returns:
        Symmetric taps with unit DC gain
    """
    if not 0 < rolloff <= 1:
        raise ValueError(f"Rolloff must be in (0, 1] (got {rolloff})")
    if not 0 < bandwidth_hz < sample_rate / 2:
        raise ValueError(f"Cutoff {bandwidth_hz}Hz must be inside (0, {sample_rate/2}Hz)")

    # Time in units of the raised-cosine symbol period T = 1 / (2 * Fc)
    n = np.arange(order + 1) - order / 2
    x = n / sample_rate * (2 * bandwidth_hz)

    denom = 1 - (2 * rolloff * x) ** 2
    singular = np.isclose(denom, 0.0)
    safe_denom = np.where(singular, 1.0, denom)
    taps = np.sinc(x) * np.cos(np.pi * rolloff * x) / safe_denom
    taps[singular] = np.pi / 4 * np.sinc(1 / (2 * rolloff))

    taps *= signal.windows.kaiser(order + 1, kaiser_beta)
    taps /= np.sum(taps)

    logger.debug(f"Tx RC filter: {order + 1} taps, Fc={bandwidth_hz/1e3:.1f}kHz, "
                 f"delay={order // 2} samples")
    return taps
