"""
Test suite for cdp-engine

Contains:
- tests/unit/          : Unit tests for individual components and flows
"""
