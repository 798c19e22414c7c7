#!/usr/bin/env python3
"""
Snapchat Memories Processor Module

Matches memories_history.json records to the exported media files, writes
dates and locations back into them, composites overlays and places the
results in a deduplicated output directory.
"""

from processors.snapchat_memories.processor import RunSummary, run_pipeline

__all__ = ["RunSummary", "run_pipeline"]
