"""
Weight extraction from label text.
"""

import math
import re
from typing import Optional

from labelscan.ocr.text_normalizer import normalize_text


KG_PATTERN = re.compile(r"(\d+(?:\.\d+)?)\s*KG\b")


def extract_kg(raw_text: str) -> Optional[float]:
    """
    Parse the first "<number> KG" in the text.

    Comma decimal separators are accepted ("2,350 KG" -> 2.35).

    Returns:
        Weight in kilograms, or None when absent or not finite
    """
    text = normalize_text(raw_text).replace(",", ".")
    match = KG_PATTERN.search(text)
    if not match:
        return None

    value = float(match.group(1))
    return value if math.isfinite(value) else None
