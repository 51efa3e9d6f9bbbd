"""Lightweight system monitoring: a node agent that probes the system and a collector that stores and charts the readings."""

__version__ = "0.5.0"