"""
Clinical Topics - LDA topic modeling over free-text clinical progress notes
"""

__version__ = "0.1.0"
