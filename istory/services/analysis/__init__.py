"""Story analysis: prompt, model call, sanitization and storage."""

from istory.services.analysis.pipeline import AnalysisPipeline
from istory.services.analysis.sanitizer import SanitizedMetadata, sanitize
from istory.services.analysis.story_analyzer import StoryAnalyzer

__all__ = ["AnalysisPipeline", "SanitizedMetadata", "StoryAnalyzer", "sanitize"]
