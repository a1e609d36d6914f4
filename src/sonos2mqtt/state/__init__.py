"""State layer.

Single source of truth for how device events are merged into a per-device
state record and when that record is published.
"""
