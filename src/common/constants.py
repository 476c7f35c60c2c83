"""Shared constants for marginalia.

For environment-based configuration (database path, save delays), use the env
module:
    from common.env import env
    db_path = env.database_path()
"""

# Card geometry used when the canvas has no stored placement
DEFAULT_CARD_WIDTH = 200
DEFAULT_CARD_HEIGHT = 120
DEFAULT_CARD_ORIGIN = (50, 50)
CARD_STAGGER_X = 200
CARD_STAGGER_Y = 150

# Highlight color used for annotations stored before colors existed
DEFAULT_COLOR_RGBA = "rgba(255, 255, 0, 0.4)"
DEFAULT_COLOR_CATEGORY = "default"

# Prefix the canvas UI puts in front of card ids to form node keys
NODE_KEY_PREFIX = "card-"
