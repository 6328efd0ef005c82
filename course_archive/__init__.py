"""Course Archive: deduplicating course-resource catalog with an origin-hiding proxy"""

__version__ = "1.0.0"
