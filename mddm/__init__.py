"""md-dm-api: bridge to the DM-MD8x8 AV routing matrix text protocol."""

__version__ = "1.0.0"
