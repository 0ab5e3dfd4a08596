# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Protocol definitions for pluggable components.

Available protocols:
- DocumentAnalyzer: Interface for the analysis passes run by the orchestrator
"""

from .analyzer import DocumentAnalyzer

__all__ = ["DocumentAnalyzer"]
