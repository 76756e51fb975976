"""Header alias dictionary.

The dictionary file maps canonical table columns onto the header names
which may carry their values::

    # comment
    date_obs: date-obs dateobs
    lststart: lst_st

Every alias (and the column itself) is stored lowercased.  A later line
binding an alias already seen wins.
"""

from __future__ import annotations

import logging
import re
from importlib import resources
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional, Union

from .errors import ConfigurationError
from .models import DEFAULT_DICTIONARY_RESOURCE

LOGGER = logging.getLogger("jsa.ingestor.dictionary")

DEFINITION_RE = re.compile(r"(.*?):\s(.*)")
SKIP_RE = re.compile(r"^\s*(?:#|$)")

AliasDictionary = Mapping[str, str]


def parse_dictionary(lines: Iterable[str]) -> AliasDictionary:
    aliases: Dict[str, str] = {}
    for line in lines:
        if SKIP_RE.match(line):
            continue
        definition = line.rstrip()
        match = DEFINITION_RE.match(definition)
        if not match:
            LOGGER.debug("Ignoring dictionary line without separator: %r", definition)
            continue
        column = match.group(1).strip().lower()
        for alias in match.group(2).split():
            aliases[alias.lower()] = column
    return MappingProxyType(aliases)


def load_dictionary(path: Optional[Union[str, Path]] = None) -> AliasDictionary:
    """Read the data dictionary at ``path``, or the packaged default."""
    try:
        if path is None:
            with (
                resources.files("jsa_ingestor")
                .joinpath(DEFAULT_DICTIONARY_RESOURCE)
                .open("r", encoding="utf-8") as fh
            ):
                lines = fh.readlines()
        else:
            with open(path, "r", encoding="utf-8") as fh:
                lines = fh.readlines()
    except OSError as exc:
        raise ConfigurationError(
            f"Could not read data dictionary '{path or DEFAULT_DICTIONARY_RESOURCE}': {exc}"
        ) from exc

    dictionary = parse_dictionary(lines)
    LOGGER.debug("Loaded %s dictionary aliases", len(dictionary))
    return dictionary
