#!/usr/bin/env python3
"""
Video Comparison Script
=======================

Standalone script to fingerprint local video files and compare them.

This script:
    1. Fingerprints every given file through the concurrency queue
    2. Blocks the first file (the reference)
    3. Checks every other file against it
    4. Reports pairwise Hamming distances

Usage:
    python scripts/compare_videos.py reference.mp4 reencoded.mp4 other.mp4
    python scripts/compare_videos.py a.mp4 b.mp4 --threshold 8 --frames 5
"""

import argparse
import asyncio
import itertools
import logging
import os
import sys

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from clipguard.blocker import VideoBlocker
from clipguard.config import load_config
from clipguard.matching.similarity import hamming_distance
from clipguard.sampling.source import VideoFileFrameSource


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)
logger = logging.getLogger(__name__)


async def run_comparison(paths: list, threshold: int, frames: int) -> dict:
    """
    Fingerprint and compare video files.
    
    Args:
        paths: Video file paths; the first is blocked as reference
        threshold: Hamming threshold for matching
        frames: Frames averaged per fingerprint
        
    Returns:
        Dict mapping path -> decision dict
    """
    settings = load_config()
    settings.hashing.hamming_threshold = threshold
    settings.sampling.frames_to_capture = frames
    settings.sampling.auto_scan_frames = frames
    
    blocker = VideoBlocker.from_settings(settings)
    await blocker.start()
    
    sources = [await VideoFileFrameSource.open(p) for p in paths]
    results = {}
    try:
        reference = await blocker.block(sources[0])
        results[paths[0]] = reference.to_dict()
        logger.info(f"Reference {paths[0]}: {reference.status.value}")
        
        decisions = await asyncio.gather(*(blocker.check(s) for s in sources[1:]))
        for path, decision in zip(paths[1:], decisions):
            results[path] = decision.to_dict()
            logger.info(f"Checked {path}: {decision.status.value}")
    finally:
        await blocker.queue.wait_for_completion()
        await blocker.shutdown()
        for source in sources:
            await asyncio.to_thread(source.close)
    
    fingerprints = {
        path: (r["fingerprint"] or {}).get("fingerprint")
        for path, r in results.items()
    }
    
    logger.info("=" * 60)
    logger.info("PAIRWISE DISTANCES")
    logger.info("=" * 60)
    for (a, fa), (b, fb) in itertools.combinations(fingerprints.items(), 2):
        if fa and fb:
            logger.info(f"{a} <-> {b}: {hamming_distance(fa, fb)}")
        else:
            logger.info(f"{a} <-> {b}: n/a (missing fingerprint)")
    logger.info("=" * 60)
    
    return results


def main():
    parser = argparse.ArgumentParser(
        description="Fingerprint video files and compare them against the first one"
    )
    parser.add_argument("paths", nargs="+", help="Video files; the first is the reference")
    parser.add_argument(
        "--threshold",
        type=int,
        default=12,
        help="Maximum Hamming distance for a match (default: 12)",
    )
    parser.add_argument(
        "--frames",
        type=int,
        default=3,
        help="Frames averaged per fingerprint (default: 3)",
    )
    
    args = parser.parse_args()
    
    results = asyncio.run(run_comparison(args.paths, args.threshold, args.frames))
    
    # Exit non-zero when the reference could not be fingerprinted
    sys.exit(0 if results[args.paths[0]]["status"] == "BLOCKED" else 1)


if __name__ == "__main__":
    main()
