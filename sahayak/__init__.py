"""
Sahayak document scanning and translation assistant.

This package coordinates image capture and cropping, OCR extraction,
translation with a local cache, speech synthesis and sharing.
"""

__version__ = "0.1.0"
