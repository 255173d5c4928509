"""Tag inference from filenames and content."""

from __future__ import annotations

from typing import List, Tuple

# (keyword, tag) in output order.
KEYWORD_TAGS: Tuple[Tuple[str, str], ...] = (
    ("pricing", "pricing"),
    ("retention", "retention"),
    ("offer", "offers"),
    ("conversion", "conversion"),
    ("playbook", "playbook"),
    ("strategy", "strategy"),
    ("marketing", "marketing"),
    ("sales", "sales"),
)

TYPE_TAGS = {
    ".pdf": "pdf",
    ".txt": "text",
    ".md": "markdown",
}

FALLBACK_TAGS = ["business", "document"]


def infer_tags(content: str, filename: str) -> List[str]:
    """Keyword tags found in the content or filename, then a document type tag."""
    lower_content = content.lower()
    lower_name = filename.lower()

    tags = [tag for keyword, tag in KEYWORD_TAGS if keyword in lower_content or keyword in lower_name]
    for suffix, tag in TYPE_TAGS.items():
        if lower_name.endswith(suffix):
            tags.append(tag)

    return tags or list(FALLBACK_TAGS)
