"""
Error taxonomy for the SOM package
"""


class SOMError(Exception):
    """Base class for all errors raised by ndsom"""


class ConfigurationError(SOMError, ValueError):
    """Invalid dimensions, sizes, operators or mismatched vector lengths"""


class InputFormatError(SOMError, ValueError):
    """Malformed or undecodable external input (raised by the data loaders)"""
