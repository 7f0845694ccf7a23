"""
gen2-phy - Gen2 RFID reader timing and receiver front-end configuration

Derives every air-interface duration from (BLF, Tari, Tari ratio, Tx sample
rate) and the sample-domain constants of the FM0 receive chain: DC removal
window, preamble search window, preamble template, matched filter, equalizer
mask and fine-sync kernel.

Quick Start:
    from gen2_phy import build_link_config, BurstSynchronizer

    link = build_link_config(tag_blf=40e3, tari=23.75, tari_ratio=2.0,
                             tx_sample_rate=122.88e6)
    print(link.rfid.durations.t1_min, link.rx.search_sample)

    sync = BurstSynchronizer(link.rx).synchronize(capture)
"""

__version__ = "1.0.0"

from .errors import (
    Gen2ConfigError, InvalidTariRange, InvalidBLFRange, InvalidTariRatio,
    InvalidTRCALBound, BLFOutOfBandLookup, InvalidSampleRate,
)
from .commands import ReaderCommand, ReaderReceive
from .timing import Durations, TxConfig, RFIDConfig, derive, determine_frt
from .receiver import ReceiverConfig, LinkConfig, configure, build_link_config
from .burst_sync import BurstSync, BurstSynchronizer
from .front_end import (
    NCOConfig, RxResampler, design_nco, design_rx_resampler, design_tx_shaping_filter,
)
from .config_utils import SessionConfig, ReaderSession, load_session_config, build_session

__all__ = [
    # Errors
    "Gen2ConfigError",
    "InvalidTariRange",
    "InvalidBLFRange",
    "InvalidTariRatio",
    "InvalidTRCALBound",
    "BLFOutOfBandLookup",
    "InvalidSampleRate",
    # Commands
    "ReaderCommand",
    "ReaderReceive",
    # Timing
    "Durations",
    "TxConfig",
    "RFIDConfig",
    "derive",
    "determine_frt",
    # Receiver
    "ReceiverConfig",
    "LinkConfig",
    "configure",
    "build_link_config",
    "BurstSync",
    "BurstSynchronizer",
    # Front end
    "NCOConfig",
    "RxResampler",
    "design_nco",
    "design_rx_resampler",
    "design_tx_shaping_filter",
    # Session
    "SessionConfig",
    "ReaderSession",
    "load_session_config",
    "build_session",
]
