"""Shared components for the Agent Orchestrator

This package contains:
- prompts: Local intent-classification prompt
- schemas: Canonical intent payload models
- utils: Canned intent responses
"""

__version__ = "1.0.0"
