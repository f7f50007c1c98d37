"""Core services of the locale engine.

This package contains the locale detector, the preference store, the message bundle cache, and the engine that
wires them together.
"""

from core.engine import LocaleEngine, NegotiationResult

__all__: list[str] = ["LocaleEngine", "NegotiationResult"]
