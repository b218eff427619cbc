import json
import os
from functools import lru_cache
from typing import Dict, List

BANK_PATH = os.path.join(os.path.dirname(os.path.dirname(os.path.dirname(__file__))), 'data', 'scenarios.json')


@lru_cache(maxsize=1)
def load_bank(path: str = BANK_PATH) -> Dict[str, List[str]]:
    """Map each category name to its pre-written scenarios."""
    with open(path, encoding='utf-8') as fh:
        data = json.load(fh)
    return {c['name']: list(c['scenarios']) for c in data.get('categories', [])}


def categories() -> List[str]:
    return list(load_bank().keys())


def scenarios_for(category: str) -> List[str]:
    return load_bank().get(category, [])
