"""
pvsync-agent: telemetry edge agent that samples a sensor readout file,
buffers readings in memory and uploads them in batches.
"""

__version__ = "0.3.0"
