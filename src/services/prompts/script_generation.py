"""Script generation prompt templates.

Contains prompts for:
- SHORTS_SCRIPT_SYSTEM: Role instruction for the script writer
- SHORTS_SCRIPT_V1: Generate a segmented vertical-video script from a prompt
"""

SHORTS_SCRIPT_SYSTEM = (
    "You are a YouTube Shorts script writer. Create engaging, concise scripts "
    "optimized for vertical video format."
)

# Shorts Script v1 prompt
# Template placeholders: {prompt}, {duration}
SHORTS_SCRIPT_V1 = """Create a {duration}-second YouTube Shorts script about: {prompt}.

Format the response as JSON with an array of segments. Each segment should have:
- text: The script text for that segment (2-3 sentences max)
- duration: How long this segment should last in seconds
- keywords: Array of 2-3 keywords to find relevant video footage

Return either a bare JSON array or an object of the form {{"segments": [...]}}.
No markdown, no commentary.

Make it engaging, dynamic, and perfect for short-form video.
Total duration should be exactly {duration} seconds."""
