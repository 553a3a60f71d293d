"""Text generation: backend fallback gateway and header metadata extraction."""

from script_studio.generation.gateway import GenerationOutcome, ModelGateway
from script_studio.generation.metadata import ExtractedScript, ScriptMetadata, extract_metadata

__all__ = [
    "ExtractedScript",
    "GenerationOutcome",
    "ModelGateway",
    "ScriptMetadata",
    "extract_metadata",
]
