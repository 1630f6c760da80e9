"""Rank fusion algorithms.

- ``fusion``: ``ReciprocalRankFusion``, ``RelativeScoreFusion``,
  ``DistributionBasedScoreFusion`` and the ``create_reranker`` factory.
"""
