#!/usr/bin/env python3
"""
EPC Gen2 Air-Interface Constants

Centralizes the numeric ranges, fixed durations, bit counts and lookup tables
used by the timing deriver and the receiver front-end configuration.

Link assumptions:
- Tag to reader uses FM0 coding; a pilot tone is prepended when BLF > 320 kHz
- RTCAL is DATA0 + DATA1, data-1 is 1.5 ~ 2 times Tari
- DR is 8 up to 320 kHz and 64/3 above
- PW is max(0.4 * Tari, 2) us

Reference: EPCglobal UHF Class 1 Gen 2 air interface protocol
"""

from typing import List, Tuple

# =============================================================================
# INPUT DOMAINS
# =============================================================================

TARI_MIN_US = 6.25
TARI_MAX_US = 25.0

BLF_MIN_HZ = 40e3
BLF_MAX_HZ = 640e3

TARI_RATIO_MIN = 1.5
TARI_RATIO_MAX = 2.0

# TRCAL must fall in [1.1 * RTCAL, 3 * RTCAL]
TRCAL_RTCAL_MIN = 1.1
TRCAL_RTCAL_MAX = 3.0

# =============================================================================
# DIVIDE RATIO AND PILOT
# =============================================================================

DR_THRESHOLD_HZ = 320e3  # DR=8 at or below, DR=64/3 (and pilot) above
DIV_RATIO_LOW = 8.0
DIV_RATIO_HIGH = 64.0 / 3.0

PILOT_NUM = 12  # 12 FM0 zeros, half symbols [1 0]

# =============================================================================
# FIXED DURATIONS (us)
# =============================================================================

DELIM_US = 12.5      # start delimiter, 12.5us +/-5%
CW_START_US = 50.0   # carrier wave before the first command
PW_MIN_US = 2.0
PW_TARI_FACTOR = 0.4

T1_TPRI_FACTOR = 10   # T1 nominal is max(RTCAL, 10 * Tpri)
T1_MARGIN_US = 2.0    # T1 min/max widen by 2us beyond FrT
T2_MIN_TPRI = 3
T2_MAX_TPRI = 20

# =============================================================================
# BIT COUNTS
# =============================================================================

TAG_PREAMBLE_BITNUM = 6
DUMMY_BITNUM = 1
RN16_BITNUM = 16
PC_BITNUM = 16
EPC_ID_BITNUM = 96
CRC16_BITNUM = 16
EPC_BITNUM = PC_BITNUM + EPC_ID_BITNUM + CRC16_BITNUM  # 128, without preamble and dummy

# =============================================================================
# FRT BAND TABLE
# =============================================================================

# Ordered (upper_bound_hz, upper_inclusive, frt). The first row whose upper
# bound admits the BLF wins. 320k and 640k are exact-equality rows whose
# values differ from both neighbouring open intervals.
FRT_BANDS: List[Tuple[float, bool, float]] = [
    (107e3, False, 0.04),
    (160e3, True, 0.07),
    (256e3, True, 0.10),
    (320e3, False, 0.12),
    (320e3, True, 0.10),
    (640e3, False, 0.22),
    (640e3, True, 0.15),
]

# =============================================================================
# RECEIVER
# =============================================================================

RX_SAMPLE_PER_SYMBOL = 4   # 4 samples per FM0 half symbol
RX_SYMBOLS_PER_BIT = 2     # so 8 samples per bit, rx rate = 8 * BLF

# Tag to reader preamble in half bits. "-1" is the tag's non-backscatter
# state, close to zero once DC is removed.
FM0_PREAMBLE: Tuple[int, ...] = (1, 1, -1, 1, -1, -1, 1, -1, -1, -1, 1, 1)

SEARCH_SLACK_SAMPLES = 5   # matched filter group delay plus jitter

# Equalizer unity run, 1-based inclusive positions within the preamble template
EQUALIZER_FIRST = 2
EQUALIZER_LAST = 7

# =============================================================================
# SUPPORTED LINK PROFILES
# =============================================================================

# (BLF Hz, Tari us) pairs used with Tari ratio 2
SUPPORTED_LINK_PROFILES: List[Tuple[float, float]] = [
    (40e3, 23.75),
    (80e3, 23.75),
    (120e3, 18.0),
    (160e3, 13.5),
    (200e3, 11.0),
    (320e3, 7.0),
    (640e3, 6.25),
]

# =============================================================================
# READER HARDWARE DEFAULTS
# =============================================================================

CLOCK_RATE_HZ = 122.88e6   # AD937x clock rate; Tx model runs at this rate
CENTER_FREQUENCY_HZ = 915e6
OPERATING_FREQUENCIES_HZ: List[float] = [902.875e6, 908.42e6, 916.5e6, 921.42e6, 926e6]

# Rx resampler limits: polyphase decimation factor, tap count and the allowed
# deviation of the realized output rate from 8 * BLF
RX_RESAMPLER_MAX_DOWN = 4096
RX_RESAMPLER_MAX_TAPS = 2 ** 18
RX_RATE_TOLERANCE = 1e-3
