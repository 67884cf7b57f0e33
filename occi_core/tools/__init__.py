"""
Tools for the OCCI category model.
"""

from .catalogue_cli import CatalogueCLI, main

__all__ = ["CatalogueCLI", "main"]
