"""
Utility modules for elktail.

This subpackage contains shared utilities used across elktail:

Modules:
    - paths: Location of the saved configuration and session cookie
    - log: Leveled logger passed explicitly to every component

Purpose:
    These utilities are separated from the tailing engine so that the
    engine never reaches for process-wide state. Everything it needs is
    handed to it at construction time.
"""
