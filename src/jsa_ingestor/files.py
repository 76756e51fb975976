"""Raw data file names."""

from __future__ import annotations

import os
import re
from typing import Iterable, List, Optional, Union

from .errors import HeaderValidationError

RAW_FILE_PATTERNS = (
    # ACSIS and DAS
    re.compile(r"^[ah]\d{8}_\d{5}_\d\d_\d{4}\.sdf$"),
    # SCUBA-2
    re.compile(r"^s[48][abcd]\d{8}_\d{5}_\d{4}\.sdf$"),
    # SCUBA
    re.compile(r"^\d{8}_dem_\d{4}(_\d)?\.sdf$"),
)


def looks_like_rawfile(filename: str) -> bool:
    name = os.path.basename(filename)
    return any(pattern.search(name) for pattern in RAW_FILE_PATTERNS)


def verify_file_names(names: Optional[Union[str, Iterable[Optional[str]]]]) -> None:
    """Raise :class:`HeaderValidationError` listing names not in raw format."""
    if names is None:
        return
    if isinstance(names, str):
        names = [names]

    bad: List[str] = [str(name) for name in names if name is None or not looks_like_rawfile(name)]
    if bad:
        suffix = "s" if len(bad) > 1 else ""
        raise HeaderValidationError("file_id", f"Bad file name{suffix}: {', '.join(bad)}")
