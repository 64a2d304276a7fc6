"""Outcome domain services: lifecycle, finalization, challenges, quorum.

This package contains the event / outcome / challenge state machine. It is
imported by HTTP routes, CLI commands and the deadline sweeper, keeping
transport concerns separated from the dispute protocol itself.
"""
