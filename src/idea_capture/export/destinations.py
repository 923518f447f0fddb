"""Export destinations and their size budgets"""

from dataclasses import dataclass
from datetime import date
from enum import Enum
from pathlib import Path
from typing import Optional
from urllib.parse import quote

MAX_URI_LENGTH = 2000
SAFETY_MARGIN = 100

# Characters encodeURIComponent leaves alone besides letters and digits
_URI_COMPONENT_SAFE = "-_.!~*'()"


def encode_uri_component(text: str) -> str:
    """Percent-encode text the way browsers' encodeURIComponent does"""
    return quote(text, safe=_URI_COMPONENT_SAFE)


def dated_file_name(prefix: str, today: Optional[date] = None) -> str:
    """'idea' -> 'idea-2024-01-15.md'"""
    today = today or date.today()
    return f"{prefix}-{today.isoformat()}.md"


def markdown_file_name(file_name: str) -> str:
    return file_name if file_name.endswith('.md') else f"{file_name}.md"


class DestinationKind(Enum):
    LINKED_APP = "linked-app"
    FILE = "file"


@dataclass(frozen=True)
class LinkedAppDestination:
    """
    A note opened through the Obsidian Advanced URI plugin.

    The whole URI must stay under max_uri_length, so the budget for the
    encoded note body depends on the vault and file name.
    """
    vault: str
    file_name: str
    max_uri_length: int = MAX_URI_LENGTH
    safety_margin: int = SAFETY_MARGIN

    kind = DestinationKind.LINKED_APP

    @property
    def base_uri(self) -> str:
        return (
            "obsidian://advanced-uri"
            f"?vault={encode_uri_component(self.vault)}"
            f"&filepath={encode_uri_component(self.file_name)}"
            "&mode=new&data="
        )

    @property
    def budget(self) -> Optional[int]:
        return self.max_uri_length - len(self.base_uri) - self.safety_margin

    def encoded_length(self, content: str) -> int:
        return len(encode_uri_component(content))

    def fits(self, content: str) -> bool:
        return self.encoded_length(content) <= self.budget

    def build_uri(self, content: str) -> str:
        return self.base_uri + encode_uri_component(content)


@dataclass(frozen=True)
class FileDestination:
    """A Markdown file on local disk; no size limit"""
    directory: Path
    file_name: str

    kind = DestinationKind.FILE

    @property
    def budget(self) -> Optional[int]:
        return None

    @property
    def path(self) -> Path:
        return Path(self.directory) / markdown_file_name(self.file_name)

    def encoded_length(self, content: str) -> int:
        return len(content.encode('utf-8'))

    def fits(self, content: str) -> bool:
        return True
