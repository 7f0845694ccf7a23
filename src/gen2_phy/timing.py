#!/usr/bin/env python3
"""
Gen2 Protocol Timing Derivation

Converts the four user inputs (BLF, Tari, Tari ratio, Tx sample rate) into
every duration the air interface needs, and the transmit sample counts the
waveform generator uses.

================================================================================
DERIVATION ORDER
================================================================================
    DR, pilot enable, FrT                      (from BLF)
    PW, DATA0, DATA1, Tpri                     (from Tari, ratio, BLF)
    DELIM, RTCAL, TRCAL                        (TRCAL bound checked here)
    CW_START, T1 (+min/max), T2 min/max
    Pilot (+min/max)
    Tx sample counts

All durations are in microseconds. Each step only uses earlier results.

================================================================================
TX ROUNDING
================================================================================
Hi/lo sample counts are rounded per field:

    PW_SAMPLE        = round(PW * spu)
    DATA0/DATA1/RTCAL_HI_SAMPLE = ceil(D * spu - PW_SAMPLE)
    TRCAL_HI_SAMPLE  = round(TRCAL * spu) - PW_SAMPLE

"round" is half away from zero. Do not unify these.
"""

import logging
from dataclasses import dataclass, asdict
from typing import Dict, Any

import numpy as np

from . import gen2_constants as c
from .errors import (
    InvalidTariRange, InvalidBLFRange, InvalidTariRatio,
    InvalidTRCALBound, BLFOutOfBandLookup, InvalidSampleRate,
)

logger = logging.getLogger(__name__)


def round_half_away(value: float) -> int:
    """Round to nearest int, ties away from zero"""
    return int(np.sign(value) * np.floor(np.abs(value) + 0.5))


def determine_frt(tag_blf: float) -> float:
    """
    Look up the fractional timing tolerance for a BLF

    Args:
        tag_blf: Backscatter link frequency (Hz)

    Returns:
        FrT for the band containing tag_blf

    Raises:
        BLFOutOfBandLookup: BLF below 40 kHz or above 640 kHz
    """
    if not tag_blf >= c.BLF_MIN_HZ:
        raise BLFOutOfBandLookup(f"BLF too small, at least 40kHz (got {tag_blf} Hz)")

    for upper, inclusive, frt in c.FRT_BANDS:
        if tag_blf < upper or (inclusive and tag_blf == upper):
            return frt

    raise BLFOutOfBandLookup(f"BLF too large, at most 640kHz (got {tag_blf} Hz)")


@dataclass(frozen=True)
class Durations:
    """Protocol durations in microseconds"""
    tari: float
    pw: float
    data0: float
    data1: float
    tpri: float
    delim: float
    rtcal: float
    trcal: float
    cw_start: float
    t1: float
    t1_min: float
    t1_max: float
    t2_min: float
    t2_max: float
    pilot: float
    pilot_min: float
    pilot_max: float


@dataclass(frozen=True)
class TxConfig:
    """Reader transmit sample counts at the Tx sample rate"""
    sample_rate: float
    sample_per_us: float
    query_dr: int
    trext: bool
    delim_sample: int
    cw_start_sample: int
    pw_sample: int
    data0_hi_sample: int
    data1_hi_sample: int
    rtcal_hi_sample: int
    trcal_hi_sample: int


@dataclass(frozen=True)
class RFIDConfig:
    """
    Immutable link configuration for one reader session.

    Reconfiguring (e.g. a new BLF) means deriving a new instance.
    """
    tag_blf: float
    tari: float
    tari_ratio: float
    div_ratio: float
    pilot_enabled: bool
    frt: float
    durations: Durations
    tx: TxConfig

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _check_range(value: float, low: float, high: float, error, message: str):
    # Written as a negated inclusive test so NaN is rejected too
    if not (low <= value <= high):
        raise error(f"{message} (got {value})")


def _tx_config(d: Durations, tx_sample_rate: float, div_ratio: float,
               pilot_enabled: bool) -> TxConfig:
    spu = tx_sample_rate / 1e6
    pw_sample = round_half_away(d.pw * spu)

    return TxConfig(
        sample_rate=tx_sample_rate,
        sample_per_us=spu,
        query_dr=int(div_ratio != c.DIV_RATIO_LOW),
        trext=pilot_enabled,
        delim_sample=round_half_away(d.delim * spu),
        cw_start_sample=round_half_away(d.cw_start * spu),
        pw_sample=pw_sample,
        data0_hi_sample=int(np.ceil(d.data0 * spu - pw_sample)),
        data1_hi_sample=int(np.ceil(d.data1 * spu - pw_sample)),
        rtcal_hi_sample=int(np.ceil(d.rtcal * spu - pw_sample)),
        trcal_hi_sample=round_half_away(d.trcal * spu) - pw_sample,
    )


def derive(tag_blf: float, tari: float, tari_ratio: float,
           tx_sample_rate: float) -> RFIDConfig:
    """
    Derive the full protocol timing for one link setting

    Args:
        tag_blf: Backscatter link frequency (Hz), 40e3 to 640e3
        tari: Data-0 interval (us), 6.25 to 25
        tari_ratio: DATA1 / DATA0, 1.5 to 2.0
        tx_sample_rate: Reader transmit sample rate (Hz)

    Returns:
        RFIDConfig

    Raises:
        InvalidTariRange, InvalidBLFRange, InvalidTariRatio,
        InvalidTRCALBound (checked in that order), InvalidSampleRate
    """
    _check_range(tari, c.TARI_MIN_US, c.TARI_MAX_US, InvalidTariRange,
                 "Tari should be in range [6.25, 25] us")
    _check_range(tag_blf, c.BLF_MIN_HZ, c.BLF_MAX_HZ, InvalidBLFRange,
                 "BLF should be in range [40e3, 640e3] Hz")
    _check_range(tari_ratio, c.TARI_RATIO_MIN, c.TARI_RATIO_MAX, InvalidTariRatio,
                 "Tx data 1 must be 1.5~2.0 times Tari (data 0)")
    if not tx_sample_rate > 0:
        raise InvalidSampleRate(f"Tx sample rate must be positive (got {tx_sample_rate})")

    div_ratio = c.DIV_RATIO_LOW if tag_blf <= c.DR_THRESHOLD_HZ else c.DIV_RATIO_HIGH
    pilot_enabled = tag_blf > c.DR_THRESHOLD_HZ
    frt = determine_frt(tag_blf)

    # Reader to tag basic durations
    pw = max(c.PW_TARI_FACTOR * tari, c.PW_MIN_US)
    data0 = tari
    data1 = tari * tari_ratio
    tpri = 1e6 / tag_blf  # FM0 symbol period, BLF = 1 / Tpri

    # Reader to tag preamble and sync
    delim = c.DELIM_US
    rtcal = data0 + data1
    trcal = div_ratio * 1e6 / tag_blf  # BLF = DR / TRCAL
    if not (c.TRCAL_RTCAL_MIN * rtcal <= trcal <= c.TRCAL_RTCAL_MAX * rtcal):
        raise InvalidTRCALBound(
            f"TRCAL {trcal:.3f}us not in [1.1*RTCAL, 3*RTCAL] = "
            f"[{c.TRCAL_RTCAL_MIN * rtcal:.3f}, {c.TRCAL_RTCAL_MAX * rtcal:.3f}]us, check input Tari"
        )

    # Link timing
    t1 = max(rtcal, c.T1_TPRI_FACTOR * tpri)
    t1_min = t1 * (1 - frt) - c.T1_MARGIN_US
    t1_max = t1 * (1 + frt) + c.T1_MARGIN_US
    t2_min = c.T2_MIN_TPRI * tpri
    t2_max = c.T2_MAX_TPRI * tpri

    pilot = tpri * c.PILOT_NUM if pilot_enabled else 0.0

    durations = Durations(
        tari=tari, pw=pw, data0=data0, data1=data1, tpri=tpri,
        delim=delim, rtcal=rtcal, trcal=trcal, cw_start=c.CW_START_US,
        t1=t1, t1_min=t1_min, t1_max=t1_max, t2_min=t2_min, t2_max=t2_max,
        pilot=pilot, pilot_min=pilot * (1 - frt), pilot_max=pilot * (1 + frt),
    )

    config = RFIDConfig(
        tag_blf=tag_blf,
        tari=tari,
        tari_ratio=tari_ratio,
        div_ratio=div_ratio,
        pilot_enabled=pilot_enabled,
        frt=frt,
        durations=durations,
        tx=_tx_config(durations, tx_sample_rate, div_ratio, pilot_enabled),
    )

    logger.debug(f"Derived timing: BLF={tag_blf/1e3:.1f}kHz, Tari={tari}us, DR={div_ratio:.3f}, "
                 f"FrT={frt}, T1=[{t1_min:.2f}, {t1_max:.2f}]us, pilot={pilot:.2f}us")
    return config
