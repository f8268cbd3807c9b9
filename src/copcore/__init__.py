"""copcore — access control, workflow and fusion core for an intelligence
common operating picture."""

__version__ = "0.1.0"
