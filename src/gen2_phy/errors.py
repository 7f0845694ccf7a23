"""
Configuration validation errors

All are raised while a configuration is being constructed; no partially
derived configuration is ever returned.
"""


class Gen2ConfigError(ValueError):
    """Base class for rejected link parameters"""


class InvalidTariRange(Gen2ConfigError):
    pass


class InvalidBLFRange(Gen2ConfigError):
    pass


class InvalidTariRatio(Gen2ConfigError):
    pass


class InvalidTRCALBound(Gen2ConfigError):
    pass


class BLFOutOfBandLookup(Gen2ConfigError):
    """BLF falls outside every row of the FrT band table"""


class InvalidSampleRate(Gen2ConfigError):
    pass
