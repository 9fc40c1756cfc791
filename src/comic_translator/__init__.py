"""
Comic Translator - group and annotation storage for translating comic pages.

Images are organized into named groups; each image carries rectangular
areas pairing the original text with its translation. Annotations are kept
in memory and persisted to one JSON sidecar file per group.
"""

__version__ = "1.0.0"
__author__ = "Comic Translator Team"
