"""
Astrology Service - derived attributes from birth details.

Sun sign and element only. Moon and rising signs need an ephemeris and
are carried as None.
"""

import logging
from typing import Any, Dict, Optional

from app.fsm.states import SunSign
from app.schemas import BirthDetails

logger = logging.getLogger(__name__)


def calculate_astrology(birth_details: Optional[BirthDetails]) -> Dict[str, Any]:
    """Build the astrology block stored on an artifact."""
    if birth_details is None:
        return {
            "sunSign": None,
            "element": None,
            "moonSign": None,
            "risingSign": None,
            "birthDate": None,
            "birthTime": None,
            "birthCity": None,
        }

    sun_sign: Optional[SunSign] = None
    try:
        sun_sign = SunSign.for_date(birth_details.birth_date)
    except ValueError as e:
        logger.warning(f"Could not derive sun sign: {e}")

    return {
        "sunSign": sun_sign.value if sun_sign else None,
        "element": sun_sign.element.value if sun_sign else None,
        "moonSign": None,
        "risingSign": None,
        "birthDate": birth_details.date,
        "birthTime": birth_details.time,
        "birthCity": birth_details.city,
    }
