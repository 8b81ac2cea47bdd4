#!/usr/bin/env python3
"""git-shrine CLI, runnable from a checkout: ``python main.py AUTHOR ORIGINAL REF SHRINE``."""

from shrine.cli import main


if __name__ == "__main__":
    raise SystemExit(main())
