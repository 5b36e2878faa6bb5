"""Apply stage — per-change applicator and post-implementation verification.

Writes pre-checked changes to disk and runs whole-project tools once a
batch has been written.
"""
