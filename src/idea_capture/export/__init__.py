from .destinations import (
    DestinationKind,
    FileDestination,
    LinkedAppDestination,
    dated_file_name,
    encode_uri_component,
)
from .pipeline import ExportArtifact, ExportPipeline
from .sinks import DestinationSink, FileSink, LinkedAppSink

__all__ = [
    'DestinationKind',
    'FileDestination',
    'LinkedAppDestination',
    'dated_file_name',
    'encode_uri_component',
    'ExportArtifact',
    'ExportPipeline',
    'DestinationSink',
    'FileSink',
    'LinkedAppSink',
]
