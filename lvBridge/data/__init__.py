"""
Conversion of LibreView report data into Nightscout entries
"""

from .transformer import GlucoseTransformer, to_mgdl, flatten, MMOL_TO_MGDL

__all__ = ['GlucoseTransformer', 'to_mgdl', 'flatten', 'MMOL_TO_MGDL']
