"""iStory story-verification pipeline service."""
