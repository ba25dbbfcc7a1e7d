"""Extraction of Azure DevOps test case ids from test titles."""

import re

CASE_IDS_PATTERN = re.compile(r"\[([0-9,]+)\]")


def extract_case_ids(title: str) -> str:
    """Return the bracketed case ids of a title, or an empty string.

    >>> extract_case_ids("login works [1234] - ok")
    '1234'
    >>> extract_case_ids("checkout [12,34]")
    '12,34'
    """
    if (match := CASE_IDS_PATTERN.search(title)) is None:
        return ""
    return match.group(1)


def parse_case_id(case_ids: str) -> int:
    """Return the leading case id of a comma separated list."""
    leading, _, _ = case_ids.lstrip(",").partition(",")
    return int(leading)
