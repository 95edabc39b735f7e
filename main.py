#!/usr/bin/env python3
"""
DR Analyzer CLI - Dynamic Range log analyzer and library cleanup tool.

Scans a music library for DR meter logs written by foobar2000's DR meter or
the TT DR Offline Meter, in English or Russian, rates every album on the
DR health scale and optionally cleans up superseded or low DR material.
"""

from dr_analyzer.interface.cli import app

if __name__ == "__main__":
    app()
