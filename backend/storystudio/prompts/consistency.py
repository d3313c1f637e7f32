"""Prompt assembly for cross-scene character and style consistency.

Image calls are stateless: the generator has no memory of earlier scenes.
Consistency therefore comes entirely from the prompt. Every image prompt is
assembled in a fixed priority order:

1. Global style block (art style, lighting, color grade, camera, look, clothing)
2. One labeled block per active character with its full visual signature
3. Scene action text

Script prompts enforce the opposite separation: narration carries no static
visual description and image prompts name characters without describing
them, because signatures are injected here at image time.
"""

from typing import Iterable, Sequence

from storystudio.schemas.story import (
    Character,
    ImageStyleConfig,
    StoryConfig,
    VoiceConfig,
)

LANGUAGE_NAMES = {
    "ar": "Arabic",
    "en": "English",
    "fr": "French",
    "es": "Spanish",
    "de": "German",
}

ACCENT_NAMES = {
    "fusha": "Modern Standard Arabic (Fusha)",
    "egyptian": "Egyptian Arabic",
    "khaleeji": "Gulf (Khaleeji) Arabic",
    "shami": "Levantine (Shami) Arabic",
    "maghrebi": "Maghrebi Arabic",
    "neutral": "a neutral, widely understood register",
}


def language_name(code: str) -> str:
    return LANGUAGE_NAMES.get(code, code)


# ---------------------------------------------------------------------------
# Active character resolution
# ---------------------------------------------------------------------------
def names_match(scene_name: str, character_name: str) -> bool:
    """Case-insensitive substring match in either direction.

    "Voss" matches "Dr. Voss" and "Dr. Voss" matches "Voss". Blank names
    never match.
    """
    a = scene_name.strip().lower()
    b = character_name.strip().lower()
    if not a or not b:
        return False
    return a in b or b in a


def match_active_characters(
    character_names: Iterable[str],
    characters: Sequence[Character],
) -> list[Character]:
    """Return the stored characters referenced by a scene, in stored order."""
    names = [n for n in character_names if n and n.strip()]
    return [
        c for c in characters
        if any(names_match(n, c.name) for n in names)
    ]


# ---------------------------------------------------------------------------
# Image prompts
# ---------------------------------------------------------------------------
def build_style_block(style: ImageStyleConfig) -> str:
    return (
        "*** GLOBAL ART STYLE & TECHNICAL SPECS ***\n"
        f"- Art Style: {style.art_style}\n"
        f"- Lighting: {style.lighting}\n"
        f"- Color Palette: {style.color_grade}\n"
        f"- Camera Angle: {style.camera_angle}\n"
        f"- Character Look: {style.character_look}\n"
        f"- Clothing Style: {style.clothing_style}\n"
        "- Quality: highly detailed, cinematic composition."
    )


def build_character_block(characters: Sequence[Character]) -> str:
    """Labeled, verbatim visual signatures; empty string when no one is present."""
    if not characters:
        return ""
    lines = [
        "*** CHARACTER VISUAL REQUIREMENTS (STRICT ADHERENCE REQUIRED) ***",
        "The following characters are present in the scene. You MUST render them "
        "EXACTLY as described.",
    ]
    if len(characters) > 1:
        lines.append("All listed characters must appear.")
    for c in characters:
        lines.append("")
        lines.append(f"--- CHARACTER: {c.name} ---")
        lines.append(c.visual_signature)
    return "\n".join(lines)


def build_image_prompt(
    scene_prompt: str,
    style: ImageStyleConfig,
    characters: Sequence[Character] = (),
) -> str:
    """Assemble the consistency-anchored prompt for one scene image.

    Args:
        scene_prompt: Scene action text from the script (names only).
        style: Global style vector shared by every scene.
        characters: Active characters, usually from match_active_characters().

    Returns:
        Prompt with style first, character signatures second, action last.
    """
    blocks = [
        "You are an expert image generation prompt engineer.\n"
        "Generate an image based on the following rigid requirements.",
        build_style_block(style),
    ]
    character_block = build_character_block(characters)
    if character_block:
        blocks.append(character_block)
    blocks.append(f"*** SCENE CONTENT ***\n{scene_prompt.strip()}")

    steps = [
        f'Prioritize the GLOBAL ART STYLE. The entire image must unify under "{style.art_style}".',
    ]
    if characters:
        render = "Render characters EXACTLY as defined in the CHARACTER VISUAL REQUIREMENTS."
        if len(characters) > 1:
            render += " Do not blend their features."
        steps.append(render)
    steps.append("Ensure the scene content actions are depicted clearly.")
    instructions = ["INSTRUCTION:"] + [f"{n}. {step}" for n, step in enumerate(steps, start=1)]
    blocks.append("\n".join(instructions))
    return "\n\n".join(blocks)


# ---------------------------------------------------------------------------
# Script prompts
# ---------------------------------------------------------------------------
def build_script_system_instruction(config: StoryConfig, voice: VoiceConfig) -> str:
    lang = language_name(config.language)
    accent = ACCENT_NAMES.get(voice.accent, voice.accent)
    if config.language == "ar":
        head = (
            "You are an expert Arabic storyteller. Write every narrative in "
            f"{accent}."
        )
    else:
        head = f"You are an expert storyteller. Write every narrative in {lang}."
    return f"{head} Keep the narration {voice.tone} in tone."


def _character_profiles(characters: Sequence[Character]) -> str:
    if not characters:
        return "(none provided; invent a small cast that fits the premise)"
    return "\n".join(
        f"- Name: {c.name} ({c.role})\n  Visual Signature: {c.visual_signature}"
        for c in characters
    )


def build_script_prompt(
    config: StoryConfig,
    voice: VoiceConfig,
    style: ImageStyleConfig,
) -> str:
    """Build the script request with separation-of-concerns rules."""
    twist = {
        "none": "No plot twist.",
        "mild": "Include a mild, foreshadowed plot twist.",
        "shocking": "Build toward a shocking plot twist near the end.",
    }[config.plot_twist]
    return f"""
STORY SETTINGS:
- Genre: {config.category}
- Title idea: {config.title}
- Premise: {config.premise}
- Setting: {config.setting}
- Pacing: {config.pacing}
- Plot twist: {twist}
- Narration tone: {voice.tone}

VISUAL STYLE PREFERENCES:
- Art Style: {style.art_style}
- Preferred Camera Angle: {style.camera_angle}
- Lighting: {style.lighting}
- Color Palette: {style.color_grade}

CHARACTER PROFILES (reference these for context):
{_character_profiles(config.characters)}

INSTRUCTIONS:
1. SEPARATION OF CONCERNS:
   - narrative: story text for audio narration in {language_name(config.language)}.
     Conversational and dialect-aware. Do NOT describe static appearance
     (faces, hair, clothing); it is read aloud.
   - imagePrompt: ENGLISH ONLY.
     - Start every image prompt with "{style.art_style} style, {style.lighting} lighting".
     - Describe the scene's action and composition.
     - Refer to characters by NAME only (e.g., "John is running").
     - DO NOT paste visual descriptions of characters. The system injects them later.
   - motionPrompt: ENGLISH ONLY. Detailed camera movement instructions for AI video
     generators, independent of the narrative text.
     - Must align with pacing '{config.pacing}'.
     - Must consider the preferred angle '{style.camera_angle}'.
     - Examples: "Slow pan right", "Tracking shot", "Push in", "Static camera with moving elements".
   - characterNames: names of the characters present, exactly as listed above.
2. Number scenes sequentially starting at 1.

Generate exactly {config.scene_count} scenes.
""".strip()


# ---------------------------------------------------------------------------
# Story setup prompts
# ---------------------------------------------------------------------------
def build_ideas_prompt(category: str, language: str) -> str:
    return (
        f"Generate creative story details for a '{category}' story. "
        f"Language: {language_name(language)}. Make the setting vivid."
    )


def build_characters_prompt(premise: str, setting: str, count: int, language: str) -> str:
    lang = language_name(language)
    return f"""
Create {count} unique characters for a story with Premise: "{premise}" and Setting: "{setting}".

REQUIREMENTS:
- Create 1 protagonist, 1 antagonist, and make the others supporting.
- For each character, provide a highly detailed 'description' usable as a stable image
  generation prompt: hair, eyes, facial features and signature clothing.

LANGUAGE INSTRUCTION:
- Names and descriptions MUST be in {lang}.
""".strip()


def build_analysis_prompt(language: str) -> str:
    return (
        "Analyze this character image. Create a concise but highly descriptive prompt "
        "that captures their key visual signature. Include: gender, age, hair style and "
        "color, eye color, distinctive facial features, clothing style, and any unique "
        f"accessories.\nOutput the description in {language_name(language)}.\n"
        "Output ONLY the descriptive prompt text."
    )
