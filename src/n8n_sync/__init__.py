"""n8n workflow sync.

Mirrors a tree of interdependent n8n workflows into local JSON files and back:
- recursive pull that follows execute-workflow references
- a manifest recording the discovered dependency graph
- push in dependency order, optionally creating copies with rewritten references
"""

__version__ = "0.1.0"

from n8n_sync.config import SyncSettings

__all__ = ["__version__", "SyncSettings"]
