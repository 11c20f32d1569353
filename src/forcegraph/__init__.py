"""
forcegraph: streaming graph ingestion and force-directed layout.

Receives a graph as framed batches over a persistent connection, rebuilds
complete snapshots, and positions the nodes with an approximate N-body
simulation that is cheap enough to tick at interactive frame rates.

Core concepts:
- Frames arrive in begin/batch/end sessions; each session is one snapshot
- Snapshots replace each other wholesale
- All nodes repel (Barnes-Hut over a quadtree, O(n log n))
- Edges pull their endpoints together like springs beyond a rest length
- Damping bleeds energy until total velocity drops below a threshold
"""

__version__ = "0.1.0"
