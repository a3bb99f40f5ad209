# src/session_sweeper/__init__.py

"""Session-termination scheduler: graduated logoff of remote user sessions."""

__version__ = "0.1.0"
