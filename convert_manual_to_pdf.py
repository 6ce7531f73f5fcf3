#!/usr/bin/env python3
"""
Render a web-based user manual into a single PDF.

Usage: python convert_manual_to_pdf.py <toc-url> [options]
"""

from manual_to_pdf.cli import main


if __name__ == "__main__":
    main()
