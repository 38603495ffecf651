"""Post-alert price watch engine: market calendar, budgeted bar client, watch scheduler and sweeps."""

__version__ = "0.1.0"
