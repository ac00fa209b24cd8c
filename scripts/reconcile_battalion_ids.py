#!/usr/bin/env python3
"""Make sure every unit document has a correct `battalionId` field.

Rules:
  - battalion units: battalionId = their own document id
  - company/platoon: battalionId = id of the ancestor battalion (parentId chain)

Usage:
  python scripts/reconcile_battalion_ids.py [--dry-run] [--backend firestore]

Same as the `unitsync` console script.
"""
import sys

from unitsync.cli import main


if __name__ == "__main__":
    sys.exit(main())
