#!/usr/bin/env python3
"""
Rewrite stale download links on dataset instances.

Finds download links (href, public) in the instances collection that still
use old domains or buckets and replaces them with the current ones. At most
``--limit`` documents are rewritten per format and rule on each run, so run it
several times (or pass ``--repeat``) until ``count_done: 0`` is printed.

Usage:
    python scripts/fix_download_links.py [--apply] [--limit N]

Environment Variables:
    MONGODB_BIND_ADDR: MongoDB URI (default: mongodb://localhost:27017)
    MONGODB_DATABASE: Database name (default: datasets)
    MONGODB_USERNAME / MONGODB_PASSWORD: Optional credentials
"""

import os
import sys

# Add the parent directory to the path for imports
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from link_fixer.cli import main  # noqa: E402

if __name__ == "__main__":
    main()
