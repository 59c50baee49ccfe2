"""Infer page objects, components and methods from Playwright test scripts."""

__version__ = "0.1.0"
