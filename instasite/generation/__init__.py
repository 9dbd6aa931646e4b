"""Client side of the generation backend transport."""

from instasite.generation.client import GenerationClient, GenerationError

__all__ = ["GenerationClient", "GenerationError"]
