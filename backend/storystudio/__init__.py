"""StoryStudio - AI-generated story scripts, narration and scene artwork.

Turns a story configuration into a structured script, then fills each
scene's audio, image and video slots through independent, retryable jobs
against the Gemini API.
"""

__version__ = "0.1.0"
