"""
Document Capture Pipeline
=========================

Client-side enhancement and ordering core for multi-page document capture.
Turns raw camera photos or selected files into an ordered set of encoded
pages ready for upload.

Main components:
- Image enhancement (grayscale, auto-adjust, sharpen)
- Document likelihood heuristic (edge density)
- Capture session (ordered pages, preview lifecycle, finalize/cancel)
"""

__version__ = "1.0.0"
__author__ = "Document Capture Team"
