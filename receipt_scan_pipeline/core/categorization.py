"""
Categorization of receipts by keywords.
"""

import json
from pathlib import Path
from typing import Dict, List, Optional

from ..logging import get_logger
from .models import ExpenseCategory
from .patterns import CATEGORY_KEYWORDS

log = get_logger(__name__)


def load_rules(path: Path) -> List[Dict]:
    """
    Load user category matchers from a JSON file.

    Format:
        {
          "matchers": [
            {"name": "Corner shop", "keywords": ["дастархан"], "category": "food"},
            {"name": "Gym", "keywords": ["fitness", "фитнес"], "category": "entertainment"}
          ]
        }

    A missing file means no user rules. Matchers naming an unknown category
    or without keywords are skipped.
    """
    if not path.exists():
        return []
    with path.open("r", encoding="utf-8") as f:
        data = json.load(f)

    matchers = []
    for m in data.get("matchers", []):
        try:
            category = ExpenseCategory(str(m.get("category", "")).lower())
        except ValueError:
            log.warning(f"Ignoring matcher {m.get('name')!r}: unknown category {m.get('category')!r}")
            continue
        keywords = [str(k).lower() for k in m.get("keywords", []) if str(k).strip()]
        if not keywords:
            log.warning(f"Ignoring matcher {m.get('name')!r}: no keywords")
            continue
        matchers.append({"name": m.get("name"), "keywords": keywords, "category": category})
    return matchers


def suggest_category(text: str, rules: Optional[List[Dict]] = None) -> ExpenseCategory:
    """
    Suggest an expense category for receipt text.

    User matchers (from load_rules) are checked first, then the built-in
    keyword table top-down. The first category with any keyword present in
    the lowercased text wins; with no match the result is OTHER.
    """
    t = (text or "").lower()

    for m in rules or []:
        if any(k in t for k in m["keywords"]):
            log.debug(f"Category {m['category'].value} from matcher {m.get('name')!r}")
            return m["category"]

    for category, keywords in CATEGORY_KEYWORDS:
        if any(k in t for k in keywords):
            return category

    # fallback
    return ExpenseCategory.OTHER
