"""
Cogs Package - Discord Bot Feature Modules
=========================================

Each cog is a self-contained package with its own commands, core,
models, services and storage layers.

Available Cogs:
- autoreply: Channel-watching auto-reply with multiple LLM backends
"""

__all__ = [
    'autoreply',
]

__version__ = '3.0.0'
