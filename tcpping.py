#!/usr/bin/env python3
"""
tcpping - TCP connect latency service

Measures TCP connect latency to an IPv4 address over several candidate
ports and serves the result behind bearer-token authentication.

Usage:
    python tcpping.py serve --port 8080
    python tcpping.py probe 8.8.8.8 -p 443,80,22
    python tcpping.py keygen
"""

from tcpping.main import main

if __name__ == "__main__":
    main()
