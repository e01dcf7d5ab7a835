"""
Ranking Result Export

CSV and JSON renderings of a finished rank check.
"""

import csv
import io
import json
from typing import Any, Dict, List

CSV_HEADERS = ["Keyword", "Rank", "URL", "Title", "Competitor 1", "Competitor 2", "Competitor 3"]


def prepare_export_data(results: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Keyword, rank, url, title and the top three competitor domains."""
    rows = []
    for result in results:
        rankers = result.get("top_rankers") or []
        row = {
            "keyword": result.get("keyword"),
            "rank": result.get("rank"),
            "url": result.get("url"),
            "title": result.get("title"),
        }
        for index in range(3):
            domain = rankers[index].get("domain") if index < len(rankers) else None
            if domain:
                row[f"competitor{index + 1}"] = domain
        rows.append(row)
    return rows


def export_as_csv(rows: List[Dict[str, Any]]) -> str:
    """CSV text; missing values render as '-'."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n", quoting=csv.QUOTE_MINIMAL)
    writer.writerow(CSV_HEADERS)
    for row in rows:
        writer.writerow([
            row.get("keyword") or "",
            row.get("rank") or "-",
            row.get("url") or "-",
            row.get("title") or "-",
            row.get("competitor1") or "-",
            row.get("competitor2") or "-",
            row.get("competitor3") or "-",
        ])
    return buffer.getvalue().rstrip("\n")


def export_as_json(rows: List[Dict[str, Any]]) -> str:
    return json.dumps(rows, indent=2, default=str)
