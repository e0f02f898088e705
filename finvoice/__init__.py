"""
FinVoice - Source Package

Core of a voice-driven personal finance assistant.
Spoken or typed text becomes a structured expense, and every write is
routed to the remote store or a local-only session cache depending on
who is signed in.

DESIGN PRINCIPLES:
1. Parsing is deterministic and never fails
2. Every write is gated by the session kind
3. Remote failures are surfaced, never faked into success
4. Local-only sessions are never silently promoted
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "FinVoice Team"
