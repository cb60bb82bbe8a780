"""tradodesk: resilient LLM client core for the trading desk assistant.

The package hosts the pieces the desktop shell talks to: the streaming LLM
client, error normalization, configuration and structured logging.
"""

from __future__ import annotations

__all__ = [
    "__version__",
]

__version__ = "0.1.0"
