"""PhishGuard - URL phishing risk scoring engine."""

__version__ = "1.0.0"
