"""
Reader session configuration

Loads a TOML session file and assembles everything one reader session needs:
link timing, receive constants, NCO increments, Rx resampler and Tx shaping
filter. Missing sections or keys fall back to the reader defaults.

Example file:

    [reader]
    sample_rate = 122.88e6
    center_frequency_hz = 915e6
    operating_frequencies_hz = [902.875e6, 908.42e6, 916.5e6, 921.42e6, 926e6]

    [link]
    blf_hz = 40e3
    tari_us = 23.75
    tari_ratio = 2.0

    [rx_filter]
    stopband_attenuation_db = 60

    [tx_filter]
    order = 110
    bandwidth_hz = 500e3

    [nco]
    resolution_hz = 20
    sfdr_db = 110
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Any, Union

import numpy as np
import toml

from . import gen2_constants as c
from .front_end import (
    NCOConfig, RxResampler, design_nco, design_rx_resampler, design_tx_shaping_filter,
)
from .receiver import LinkConfig, build_link_config

logger = logging.getLogger(__name__)


@dataclass
class SessionConfig:
    """User-facing session parameters (as read from TOML)"""
    sample_rate: float = c.CLOCK_RATE_HZ
    center_frequency_hz: float = c.CENTER_FREQUENCY_HZ
    operating_frequencies_hz: List[float] = field(
        default_factory=lambda: list(c.OPERATING_FREQUENCIES_HZ))

    blf_hz: float = 40e3
    tari_us: float = 23.75
    tari_ratio: float = 2.0

    rx_stopband_attenuation_db: float = 60.0

    tx_filter_order: int = 110
    tx_filter_bandwidth_hz: float = 500e3

    nco_resolution_hz: float = 20.0
    nco_sfdr_db: float = 110.0

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> 'SessionConfig':
        """Build from a parsed TOML mapping, keeping defaults for missing keys"""
        defaults = cls()
        reader = config.get('reader', {})
        link = config.get('link', {})
        rx_filter = config.get('rx_filter', {})
        tx_filter = config.get('tx_filter', {})
        nco = config.get('nco', {})

        return cls(
            sample_rate=float(reader.get('sample_rate', defaults.sample_rate)),
            center_frequency_hz=float(reader.get('center_frequency_hz',
                                                 defaults.center_frequency_hz)),
            operating_frequencies_hz=[float(f) for f in reader.get(
                'operating_frequencies_hz', defaults.operating_frequencies_hz)],
            blf_hz=float(link.get('blf_hz', defaults.blf_hz)),
            tari_us=float(link.get('tari_us', defaults.tari_us)),
            tari_ratio=float(link.get('tari_ratio', defaults.tari_ratio)),
            rx_stopband_attenuation_db=float(rx_filter.get(
                'stopband_attenuation_db', defaults.rx_stopband_attenuation_db)),
            tx_filter_order=int(tx_filter.get('order', defaults.tx_filter_order)),
            tx_filter_bandwidth_hz=float(tx_filter.get('bandwidth_hz',
                                                       defaults.tx_filter_bandwidth_hz)),
            nco_resolution_hz=float(nco.get('resolution_hz', defaults.nco_resolution_hz)),
            nco_sfdr_db=float(nco.get('sfdr_db', defaults.nco_sfdr_db)),
        )


def load_session_config(config_file: Union[str, Path]) -> SessionConfig:
    """
    Load a session configuration from TOML

    Args:
        config_file: Path to TOML file

    Returns:
        SessionConfig
    """
    with open(config_file, 'r') as f:
        config = toml.load(f)

    logger.debug(f"Loaded session config from {config_file}")
    return SessionConfig.from_dict(config)


@dataclass(frozen=True, eq=False)
class ReaderSession:
    """Everything derived for one reader configuration session"""
    config: SessionConfig
    link: LinkConfig
    nco: NCOConfig
    rx_resampler: RxResampler
    tx_filter: np.ndarray

    def summary_lines(self) -> List[str]:
        rfid = self.link.rfid
        d = rfid.durations
        return [
            f"AD937x clock rate: {self.config.sample_rate/1e6:.2f}Msps",
            f"RFID BLF setting: {rfid.tag_blf/1e3:g}kHz, Tari {rfid.tari:g}us",
            f"RFID DivRatio: {rfid.div_ratio:.4g}, pilot {'on' if rfid.pilot_enabled else 'off'}",
            f"Rx resampler: up={self.rx_resampler.up}, down={self.rx_resampler.down}, "
            f"{self.rx_resampler.num_taps} taps → {self.rx_resampler.output_rate/1e3:g}kHz",
            f"Tx filter output delay: {(len(self.tx_filter) - 1) // 2} samples",
            f"NCO: N={self.nco.accumulator_bits}, {len(self.nco.phase_increments)} channels",
            f"Decoding should finish between {d.t2_min:.2f} to {d.t2_max:.2f} us",
        ]


def build_session(config: SessionConfig) -> ReaderSession:
    """
    Derive the full reader session from a SessionConfig

    Raises:
        Gen2ConfigError: link parameters rejected by timing derivation
        ValueError: invalid filter or NCO parameters
    """
    link = build_link_config(config.blf_hz, config.tari_us, config.tari_ratio,
                             config.sample_rate)

    offsets = np.asarray(config.operating_frequencies_hz) - config.center_frequency_hz
    nco = design_nco(config.sample_rate, offsets,
                     resolution_hz=config.nco_resolution_hz, sfdr_db=config.nco_sfdr_db)

    rx_resampler = design_rx_resampler(config.sample_rate, config.blf_hz,
                                       config.rx_stopband_attenuation_db)
    tx_filter = design_tx_shaping_filter(config.sample_rate,
                                         bandwidth_hz=config.tx_filter_bandwidth_hz,
                                         order=config.tx_filter_order)

    session = ReaderSession(config=config, link=link, nco=nco,
                            rx_resampler=rx_resampler, tx_filter=tx_filter)
    for line in session.summary_lines():
        logger.info(line)
    return session
