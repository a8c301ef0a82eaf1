"""Pre-compiled regex patterns for the homestead budget tools.

Usage:
    from utils.patterns import REMOTE_SOURCE, SECTION_FILE_STEM

    if REMOTE_SOURCE.match(path):
        ...
"""

import re

# Whitespace normalization: multiple spaces/tabs/newlines
WHITESPACE = re.compile(r'\s+')

# Phase sources fetched over HTTP rather than read from disk
REMOTE_SOURCE = re.compile(r'^https?://', re.IGNORECASE)

# Section file stems listed in project.json: "water", "chickens", "schedule_review"
SECTION_FILE_STEM = re.compile(r'^[A-Za-z0-9][A-Za-z0-9_\-]*$')

# Characters that are not safe inside a download filename
UNSAFE_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*\s]+')
