"""
Entry point for the listing harvester.
Reads the crawl input (INPUT.json by default), crawls the listing's pagination and
writes accepted records to data/dataset.jsonl.
"""

import sys

from harvester.cli import main

if __name__ == "__main__":
    sys.exit(main())
