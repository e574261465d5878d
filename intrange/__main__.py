#!/usr/bin/env python3
from intrange.cli import intrange_main

if __name__ == "__main__":
    intrange_main._parse_cli_args()
