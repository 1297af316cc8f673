"""Command line interface for exoscope."""
