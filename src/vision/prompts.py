"""
Prompts sent to the vision model with each image pair.
"""

BEFORE_PROMPT = """You verify waste collection claims by comparing two photos.

IMAGE 1 is the photo attached to the original waste report.
IMAGE 2 was taken by the collector on arrival, before collecting anything.

Decide whether both photos show the SAME LOCATION and the SAME WASTE:
- Landmarks and surroundings (buildings, trees, walls, roads, ground texture)
- Waste type, size, colour, shape and position relative to the surroundings

Rules:
- Differences in lighting, angle or time of day are acceptable.
- Waste moved slightly (wind, animals) at a matching location is still valid.
- Different places or different waste are INVALID.

Reply with one JSON object and nothing else:
{
  "isValid": true or false,
  "confidence": number between 0.0 and 1.0,
  "message": "short explanation",
  "locationMatch": true or false,
  "wasteMatch": true or false,
  "landmarksMatch": true or false
}"""

AFTER_PROMPT = """You verify waste collection claims by comparing two photos.

IMAGE 1 was taken by the collector BEFORE collection.
IMAGE 2 was taken by the collector AFTER collection is claimed complete.

Decide whether the waste was genuinely collected:
- The waste visible in image 1 is gone from image 2 (removed, not moved)
- The ground is clean (minor natural dirt is acceptable)
- Landmarks are identical, proving the same location
- Image 2 is a fresh photo, not a reused one, with plausible lighting

Rules:
- Waste still present, a different location or a reused image is INVALID.
- Small lighting changes are acceptable; collection takes time.

Reply with one JSON object and nothing else:
{
  "isValid": true or false,
  "confidence": number between 0.0 and 1.0,
  "message": "short explanation",
  "wasteRemoved": true or false,
  "groundClean": true or false,
  "landmarksSame": true or false,
  "sameLocation": true or false,
  "imageFresh": true or false,
  "lightingConsistent": true or false
}"""
