"""ETL module: results feed clients, reconciliation, and the sync pipeline.

The pipeline and reconciler are imported from their modules directly
(quiniela.etl.pipeline, quiniela.etl.reconciler) to keep this package
import-light for the team resolver.
"""

from quiniela.etl.base import FeedEvent, FeedFetchResult, FeedProvider
from quiniela.etl.thesportsdb import TheSportsDBProvider

__all__ = [
    "FeedEvent",
    "FeedFetchResult",
    "FeedProvider",
    "TheSportsDBProvider",
]
