"""Routing — URL matchers and location-change dispatch.

Matchers are compiled once when a state is registered. The URL router maps
location changes back onto state transitions.
"""
