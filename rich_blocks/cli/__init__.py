# Copyright (c) 2023-2025 Datalayer, Inc.
# Distributed under the terms of the MIT License.

"""
Command line interface for rich_blocks.
"""

from .main import main

__all__ = ["main"]
