"""Configuration, metadatabase management, import settings and report output
for network traffic analysis of Zeek logs stored in MongoDB."""

__version__ = "0.1.0"