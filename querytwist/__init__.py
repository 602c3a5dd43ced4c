"""QueryTwist: ask questions of a CSV in plain English, get SQL and answers back."""

__version__ = "0.1.0"
