"""Test package for settingsvault.

Unit suites live in ``tests/unit`` and build the storage stack directly;
``tests/e2e`` drives the Typer CLI against a real configuration file. Shared
path and environment setup is in ``tests/conftest.py``.
"""
