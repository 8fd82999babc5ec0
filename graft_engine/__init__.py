"""
graft_engine: idempotent, format-preserving patching of Python source files.
"""
