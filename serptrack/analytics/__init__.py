"""
Ranking Analytics

Read models over stored rankings and searches, scoped to one user.

Usage:
    from serptrack.analytics import get_visibility, get_dashboard

    data = get_visibility(db, user.id, days=30)
    dashboard = await get_dashboard(db, user.id)
"""

from serptrack.analytics.scoring import visibility_score, classify_intent
from serptrack.analytics.visibility import get_visibility
from serptrack.analytics.trends import get_rank_trends
from serptrack.analytics.features import get_serp_features
from serptrack.analytics.keywords import keyword_detail, list_keywords
from serptrack.analytics.domains import domain_detail, list_domains
from serptrack.analytics.overview import get_dashboard, get_overview
from serptrack.analytics.report import get_report

__all__ = [
    # Scoring
    "visibility_score",
    "classify_intent",
    # Views
    "get_visibility",
    "get_rank_trends",
    "get_serp_features",
    "list_keywords",
    "keyword_detail",
    "list_domains",
    "domain_detail",
    "get_overview",
    "get_dashboard",
    "get_report",
]
