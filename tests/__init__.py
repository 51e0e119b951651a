"""Test package for Colour Rush.

Core tests drive time through a ``FakeClock`` and never touch pygame. The
smoke tests run the pygame shell headlessly using the SDL dummy drivers. To
run these tests, execute ``pytest`` from the project root.
"""
