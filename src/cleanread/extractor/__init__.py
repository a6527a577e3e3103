"""
Extraction strategies and the manager that chains them.
"""

from .document_extractor import LiveDocumentExtractor
from .dom_pipeline import DomPipeline
from .manager import ExtractionManager
from .remote_extractor import RemoteReaderExtractor
from .scoring import build_metadata
from .structural_extractor import StructuralExtractor

__all__ = [
    "DomPipeline",
    "ExtractionManager",
    "LiveDocumentExtractor",
    "RemoteReaderExtractor",
    "StructuralExtractor",
    "build_metadata",
]
