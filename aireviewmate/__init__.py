"""
AIReviewMate

Sends submitted source code to Google Gemini for review and, on request,
opens a GitHub pull request carrying the suggested fix.
"""

__version__ = "1.0.0"
__author__ = "AIReviewMate Team"
