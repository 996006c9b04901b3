"""
Registry Kernel

Persistence and domain core of the tourism registration workflow:
- Closed status, kind and action vocabularies with one transition table
- Collision-safe application and certificate numbering
- Append-only action history
- One active application per owner, kind and parent
"""

__version__ = "0.1.0"
