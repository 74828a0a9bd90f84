"""Medication reminder API: sessions, linking codes and real-time push."""

__version__ = "0.1.0"
