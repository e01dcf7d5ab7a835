"""
SERPTrack Rank Tracker

Keyword rank tracking service that:
1. Submits keyword/domain lookups to the DataForSEO SERP API
2. Stores ranking results and raw SERPs
3. Serves analytics (visibility, trends, SERP features, comparisons)
"""

__version__ = "0.1.0"
