#!/usr/bin/env python3
"""
Reader command and tag response types

Plain value enums consumed by the transmit/receive layers. Command bit layouts:

    Query    = 1000 + DR + M(2) + TRext + Sel(2) + Session(2) + Target + Q(4) + CRC5
    QueryRep = 00 + Session(2)
    ACK      = 01 + RN16 (echoed)

DR: 0 -> DR=8, 1 -> DR=64/3. M: 00 for FM0. TRext: pilot tone on/off.
"""

from enum import IntEnum

from . import gen2_constants as c


class ReaderCommand(IntEnum):
    """Commands the reader transmits"""
    QUERY = 0
    QUERY_REP = 1
    ACK = 2

    @property
    def code(self) -> str:
        """Command code prefix bits"""
        return _COMMAND_CODES[self]


_COMMAND_CODES = {
    ReaderCommand.QUERY: '1000',
    ReaderCommand.QUERY_REP: '00',
    ReaderCommand.ACK: '01',
}


class ReaderReceive(IntEnum):
    """Backscatter packets the reader receives"""
    RN16 = 0
    EPC = 1

    @property
    def payload_bits(self) -> int:
        """Bits after the preamble, excluding the dummy bit"""
        if self is ReaderReceive.RN16:
            return c.RN16_BITNUM
        return c.EPC_BITNUM

    @property
    def burst_bits(self) -> int:
        """Preamble + payload + dummy (23 for RN16, 135 for PC/EPC/CRC16)"""
        return c.TAG_PREAMBLE_BITNUM + self.payload_bits + c.DUMMY_BITNUM

    def burst_samples(self, rx) -> int:
        """Burst length in receive samples for a ReceiverConfig"""
        return self.burst_bits * c.RX_SYMBOLS_PER_BIT * rx.sample_per_symbol
