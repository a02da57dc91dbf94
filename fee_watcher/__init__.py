"""
Priority fee watcher.
Keeps a locally cached, periodically refreshed view of per-market priority fees.
"""
