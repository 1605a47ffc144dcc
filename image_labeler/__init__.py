"""
Image Labeler

Review images stored in a Google Drive folder, score them against a fixed
rubric, and append each score as a row to a CSV ledger kept in the same folder.
"""

__version__ = "1.0.0"
