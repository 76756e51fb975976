"""Domain verification of observation headers.

Problems never stop an observation: offending values are logged and set
to ``None`` before the rows are built.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Mapping, MutableMapping, Pattern

from .errors import HeaderValidationError

LOGGER = logging.getLogger("jsa.ingestor.verify")

UNDEFINED_RE = re.compile(r"^UNDEF")
DOES_NOT_MATCH_RE = re.compile(r"does not match", re.IGNORECASE)
SHOULD_NOT_RE = re.compile(r"should not", re.IGNORECASE)

VALUE_RULES: Mapping[str, Pattern[str]] = {
    "TELESCOP": re.compile(r"^JCMT$"),
    "DATE-OBS": re.compile(r"^\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}:\d{2}(?:\.\d+)?$"),
    "DATE-END": re.compile(r"^\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}:\d{2}(?:\.\d+)?$"),
    "UTDATE": re.compile(r"^\d{8}$"),
    "OBSNUM": re.compile(r"^\d+$"),
    "TRACKSYS": re.compile(r"^(?:APP|AZEL|B1950|FK4|FK5|GAPPT|GALACTIC|GALACTIC-II|ICRS|J2000)$", re.IGNORECASE),
}

DEFINED_HEADERS = ("PROJECT", "OBJECT", "MSBID", "OBS_TYPE", "SAM_MODE", "SW_MODE")


def verify_headers(header: Mapping[str, Any]) -> List[HeaderValidationError]:
    """Return one error per header failing verification."""
    problems: List[HeaderValidationError] = []

    for name, pattern in VALUE_RULES.items():
        value = header.get(name)
        if value is None or isinstance(value, list):
            continue
        if not pattern.search(str(value)):
            problems.append(
                HeaderValidationError(name, f"value {value!r} does not match {pattern.pattern}")
            )

    for name in DEFINED_HEADERS:
        value = header.get(name)
        if isinstance(value, str) and UNDEFINED_RE.search(value):
            problems.append(HeaderValidationError(name, f"value {value!r} should not be undefined"))

    return problems


def apply_verification(header: MutableMapping[str, Any]) -> Dict[str, str]:
    """Null offending header values in place; return header -> problem."""
    nulled: Dict[str, str] = {}
    for problem in verify_headers(header):
        name = problem.header
        if DOES_NOT_MATCH_RE.search(problem.message):
            LOGGER.debug("%s : %s", name, problem.message)
            header[name] = None
            nulled[name] = problem.message
        elif SHOULD_NOT_RE.search(problem.message):
            LOGGER.debug("%s : %s", name, problem.message)
            value = header.get(name)
            if isinstance(value, str) and UNDEFINED_RE.search(value):
                header[name] = None
                nulled[name] = problem.message
    return nulled
