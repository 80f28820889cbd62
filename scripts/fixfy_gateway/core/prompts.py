"""Prompt templates for generation, analysis and cost estimation."""

from __future__ import annotations

from typing import Any, List, Mapping, Optional, Sequence


ANALYSIS_PROMPT = """Analyze this room image and provide a detailed JSON response with detected objects and renovation suggestions. Focus on identifying furniture, lighting, flooring, walls, and potential improvements.

Return ONLY a valid JSON object in this exact format:
{
  "detectedObjects": [
    {
      "name": "object_name",
      "confidence": 0.95,
      "location": "location_in_room",
      "projectTitle": "specific_renovation_project",
      "roomArea": "area_type",
      "projectType": "DIY|Professional",
      "issueSolved": "what_problem_this_solves",
      "estimatedCost": 15000,
      "timelineDays": 3,
      "shoppingLinks": [
        {
          "store": "store_name",
          "url": "product_url",
          "price": "₹X,XXX"
        }
      ]
    }
  ]
}

Provide 3-7 realistic objects with Indian pricing in Rupees. Make suggestions practical and cost-effective."""

ESTIMATE_SYSTEM_PROMPT = (
    "You are an expert Indian home renovation cost estimator. Always respond with valid JSON only."
)

_ESTIMATE_TEMPLATE = """You are an expert Indian home renovation cost estimator. Analyze the following renovation request and provide detailed cost estimates in Indian Rupees (₹).

Renovation Request: "{prompt}"

Provide a JSON response with:
1. estimatedCost: Total estimated cost in INR
2. estimatedTime: Number of days needed
3. materials: Array of materials with name, quantity, and estimatedPrice
4. breakdown: Brief explanation of the cost breakdown

Consider:
- Indian market prices for materials
- Labor costs in India
- Quality materials at reasonable prices
- Typical contractor rates

Return ONLY valid JSON in this format:
{{
  "estimatedCost": 15000,
  "estimatedTime": 3,
  "materials": [
    {{"name": "LED Strip Lights", "quantity": "5 meters", "estimatedPrice": 2500}},
    {{"name": "Power Adapter", "quantity": "1 unit", "estimatedPrice": 500}}
  ],
  "breakdown": "Materials: ₹3,000 + Labor: ₹2,000 + Installation: ₹10,000"
}}"""

_FOLDED_EDIT_TEMPLATE = """Create a photorealistic room renovation based on this description: {prompt}.

Style: Modern interior design, high-quality architectural photography
Requirements:
- Professional lighting and shadows
- Realistic textures and materials
- Proper perspective and depth
- Attention to detail in furniture and decor
- Clean, well-composed shot
- Transformation intensity: {intensity}%"""

_CHAT_EDIT_TEMPLATE = (
    "EDIT this image to {prompt}. IMPORTANT: Keep the original room structure, layout, "
    "furniture positions, and camera perspective. Only modify the specified elements like "
    "colors, materials, or decor. Strength of changes: {intensity}%."
)

_DEFAULT_WALL = "#FFFFFF"


def intensity_percent(strength: float) -> int:
    return int(round(strength * 100))


def estimate_prompt(prompt: str) -> str:
    return _ESTIMATE_TEMPLATE.format(prompt=prompt.strip())


def fold_edit_prompt(prompt: str, strength: float) -> str:
    """Describe an edit in words for providers that cannot take a source image."""
    return _FOLDED_EDIT_TEMPLATE.format(prompt=prompt.strip(), intensity=intensity_percent(strength))


def chat_edit_prompt(prompt: str, strength: float) -> str:
    return _CHAT_EDIT_TEMPLATE.format(prompt=prompt.strip(), intensity=intensity_percent(strength))


def chat_create_prompt(prompt: str) -> str:
    return f"Generate a room renovation image: {prompt.strip()}"


def _wall_instruction(wall_colors: Optional[Mapping[str, Any]]) -> str:
    if not wall_colors:
        return ""
    walls = []
    for key, label in (("left", "Left wall"), ("right", "Right wall"), ("front", "Front/Back wall")):
        entry = wall_colors.get(key) or {}
        if isinstance(entry, Mapping):
            walls.append((label, str(entry.get("name") or "White"), str(entry.get("color") or _DEFAULT_WALL)))
    if not any(color.upper() != _DEFAULT_WALL for _, _, color in walls):
        return ""
    lines = ["", "", "WALL COLOR CUSTOMIZATION (HIGHEST PRIORITY):"]
    lines.extend(f"- {label}: Paint in {name} ({color})" for label, name, color in walls)
    lines.extend(
        [
            "- Apply these EXACT colors to their respective walls with realistic paint finish",
            "- Make wall colors the MOST PROMINENT and VISIBLE change in the image",
            "- Use proper lighting, shadows, and texture to show realistic painted walls",
        ]
    )
    return "\n".join(lines)


def _surface(selection: Optional[Mapping[str, Any]]) -> Optional[Mapping[str, Any]]:
    if not isinstance(selection, Mapping):
        return None
    if not selection.get("type") or selection.get("type") == "none":
        return None
    return selection


def _flooring_instruction(flooring: Optional[Mapping[str, Any]]) -> str:
    if flooring is None:
        return ""
    kind = flooring.get("type")
    return "\n".join(
        [
            "",
            "",
            "FLOORING CUSTOMIZATION (HIGH PRIORITY):",
            f"- Replace existing flooring with: {flooring.get('name')} ({kind} type)",
            f"- Apply realistic {kind} texture and finish throughout the floor",
            "- Maintain proper reflections, shadows, and lighting on the new flooring",
            "- Ensure the flooring complements the room's overall aesthetic",
        ]
    )


def _tile_instruction(tile: Optional[Mapping[str, Any]]) -> str:
    if tile is None:
        return ""
    kind = tile.get("type")
    return "\n".join(
        [
            "",
            "",
            "TILE CUSTOMIZATION (HIGH PRIORITY):",
            f"- Replace wall/bathroom tiles with: {tile.get('name')} ({kind} type)",
            f"- Apply realistic {kind} tile pattern, grout lines, and finish",
            "- Use appropriate lighting and reflections for tile surfaces",
            "- Ensure tiles blend naturally with the room design",
        ]
    )


def compose_renovation_prompt(
    selected_suggestions: Sequence[str],
    *,
    room_type: Optional[str] = None,
    budget: Any = None,
    wall_colors: Optional[Mapping[str, Any]] = None,
    flooring: Optional[Mapping[str, Any]] = None,
    tile: Optional[Mapping[str, Any]] = None,
) -> str:
    """Build a preservation-first edit prompt from the user's chosen upgrades."""
    flooring = _surface(flooring)
    tile = _surface(tile)
    wall_text = _wall_instruction(wall_colors)
    floor_text = _flooring_instruction(flooring)
    tile_text = _tile_instruction(tile)
    suggestions = ", ".join(str(item).strip() for item in selected_suggestions if str(item).strip())

    changes: List[str] = []
    if wall_text:
        changes.append("- Wall colors: Apply the specified colors to respective walls with realistic paint finish")
    if flooring is not None:
        changes.append(f"- Flooring: Replace with {flooring.get('name')} ({flooring.get('type')})")
    if tile is not None:
        changes.append(f"- Tiles: Replace with {tile.get('name')} ({tile.get('type')})")
    changes.extend(
        [
            "- Apply ONLY the specific changes mentioned in the suggestions list above",
            "- For lighting changes: Update fixtures and light quality without moving them",
            "- For furniture changes: Only modify/replace the specific items mentioned",
            "- For decor changes: Add or update only what's specified in the suggestions",
        ]
    )

    sections = [
        f"Transform this {room_type or 'room'} image by applying ONLY these specific renovation changes: {suggestions}."
        f"{wall_text}{floor_text}{tile_text}",
        "",
        "CRITICAL PRESERVATION RULES (MOST IMPORTANT):",
        "- PRESERVE the exact position, layout, and arrangement of ALL furniture and objects",
        "- PRESERVE the room dimensions, floor plan, and architectural elements",
        "- PRESERVE the perspective, camera angle, and viewing position",
        "- PRESERVE any furniture, decor, or objects NOT mentioned in the suggestions",
        "- DO NOT move, remove, or relocate any existing items unless explicitly stated",
        "- DO NOT change the overall room layout or spatial arrangement",
        "",
        "WHAT TO CHANGE (ONLY THESE):",
        *changes,
        "",
        "REALISM REQUIREMENTS:",
        "- Make changes look professionally completed and realistic",
        "- Use proper lighting, shadows, and textures",
        "- Ensure new elements match the room's existing style and scale",
        f"- Budget context: ₹{budget or 'flexible'} - adjust quality and scope accordingly",
        "",
        "Remember: Transform ONLY what's mentioned in the suggestions. Keep everything else EXACTLY as it is in the original image.",
    ]
    return "\n".join(sections)
