"""Unit tests for the locale engine.

This package contains test modules for detection, preference storage, the translation cache and the engine facade.
Tests use pytest with asyncio support and replace network and platform sources with static fakes.
"""
