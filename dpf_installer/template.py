# /*
# Copyright 2026 The DPF Installer Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# */

"""Placeholder substitution for YAML manifest templates."""

from __future__ import annotations

import re
from collections.abc import Sequence
from pathlib import Path

from dpf_installer.errors import TemplateError

PLACEHOLDER_PATTERN = re.compile(r"<[A-Z][A-Z0-9_]*>")

Pairs = Sequence[tuple[str, str]]


def render(template_text: str, pairs: Pairs) -> str:
    """Replace every occurrence of each placeholder, pair by pair in order.

    A later pair may match text introduced by an earlier substitution.

    Args:
        template_text: Raw template content.
        pairs: Ordered ``(placeholder, value)`` pairs.

    Returns:
        The rendered text.
    """
    rendered = template_text
    for placeholder, value in pairs:
        rendered = rendered.replace(placeholder, str(value))
    return rendered


def find_placeholders(text: str) -> list[str]:
    """Return the unique ``<UPPER_CASE>`` tokens left in *text*, in order of appearance."""
    return list(dict.fromkeys(PLACEHOLDER_PATTERN.findall(text)))


def render_file(src: Path, dest: Path, pairs: Pairs, strict: bool = True) -> Path:
    """Render a template file and write the result.

    Args:
        src: Template file to read.
        dest: Output path; parent directories are created.
        pairs: Ordered ``(placeholder, value)`` pairs.
        strict: Fail when placeholders remain after rendering.

    Returns:
        The path of the written file.

    Raises:
        TemplateError: If *src* is missing or, with *strict*, placeholders remain.
    """
    if not src.is_file():
        raise TemplateError(f"Template not found: {src}")
    rendered = render(src.read_text(), pairs)
    if strict:
        leftover = find_placeholders(rendered)
        if leftover:
            raise TemplateError(f"Unresolved placeholders in {src}: {', '.join(leftover)}")
    dest.parent.mkdir(parents=True, exist_ok=True)
    dest.write_text(rendered)
    return dest
