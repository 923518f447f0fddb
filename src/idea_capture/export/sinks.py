"""Destination sinks: open the note app or write a Markdown file"""

import logging
import webbrowser
from pathlib import Path
from typing import Callable, Optional

from .destinations import DestinationKind, FileDestination, LinkedAppDestination
from ..exceptions import DeliveryFailed

logger = logging.getLogger(__name__)


class LinkedAppSink:
    """Opens an obsidian:// URI with the platform URL handler"""

    def __init__(self, opener: Callable[[str], bool] = webbrowser.open):
        self._opener = opener

    def deliver(self, artifact, destination: LinkedAppDestination) -> str:
        uri = destination.build_uri(artifact.content)
        # Returns False only when no handler at all could be launched; a
        # missing note app is not visible from here.
        if self._opener(uri) is False:
            raise DeliveryFailed("No application is registered for obsidian:// links")
        logger.info(f"Opened {destination.file_name} in vault '{destination.vault}'")
        return uri


class FileSink:
    """Writes the artifact as a UTF-8 Markdown file"""

    def deliver(self, artifact, destination: FileDestination) -> Path:
        path = destination.path
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, 'w', encoding='utf-8') as f:
                f.write(artifact.content)
        except OSError as e:
            raise DeliveryFailed(f"Could not write {path}: {e}") from e
        logger.info(f"Saved {path}")
        return path


class DestinationSink:
    """Routes an artifact to the sink for its destination kind"""

    def __init__(self, linked_app: Optional[LinkedAppSink] = None, file: Optional[FileSink] = None):
        self._sinks = {
            DestinationKind.LINKED_APP: linked_app or LinkedAppSink(),
            DestinationKind.FILE: file or FileSink(),
        }

    def deliver(self, artifact, destination):
        return self._sinks[destination.kind].deliver(artifact, destination)
