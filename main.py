#!/usr/bin/env python3
"""
Entry point for the Sahayak scan & translate CLI.

Usage:
    python main.py                                  # Interactive mode
    python main.py photo.jpg                        # Scan and translate to Hindi
    python main.py photo.jpg --target ta --rotate 90
    python main.py photo.jpg --crop 40,120,600,200 --speak out.mp3
    python main.py --serve                          # Run the HTTP API
"""

from sahayak.cli import main

if __name__ == "__main__":
    main()
