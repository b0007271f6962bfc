"""
Core modules for imgstudio.

This package contains the session logic shared by the web UI and the CLI:
- Configuration management
- Generation gateways
- Session state and viewer navigation
- The generation controller
"""
