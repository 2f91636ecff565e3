"""Books App - Utilities Package

This package contains helpers shared by the CLI and the web UI:
- Form validation (validators.py)
- Output rendering (ui_helpers.py)
"""
