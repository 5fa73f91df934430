# ===== SERVER CONFIGURATION =====
class ServerConfig:
    """WebSocket front-end server configuration."""
    HOST = "localhost"
    PORT = 8765

    # Directory holding all-graphs.json and the graph files it lists (None = built-in example only)
    GRAPH_DIR = None

    LOG_LEVEL = "INFO"
    LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'


# ===== GAME DEFAULTS =====
class GameDefaults:
    """Default settings for new sessions."""

    # First lion id handed out after a reset is LION_ID_START + 1
    LION_ID_START = 0

    # Catalogue entry loaded for a fresh connection (None = empty session)
    INITIAL_GRAPH = None

    # Name of the built-in graph
    EXAMPLE_GRAPH_NAME = "example"


# ===== RENDERING =====
class RenderConfig:
    """Cosmetic constants forwarded to the browser; the engine never reads them."""

    NODE_RADIUS = 18
    NODE_STROKE_WIDTH = 2
    EDGE_STROKE_WIDTH = 2
    ARROW_STROKE_WIDTH = 3
    ARROW_HEAD_LENGTH = 5
    ARROW_HEAD_WIDTH = 3
    EMOJI_FONT_SIZE = "24px"
    LION_COUNT_FONT_SIZE = "10px"

    # Seconds between turn_processed and the following game_state
    ANIMATION_DURATION = 0.6

    @classmethod
    def to_dict(cls) -> dict:
        return {
            "node_radius": cls.NODE_RADIUS,
            "node_stroke_width": cls.NODE_STROKE_WIDTH,
            "edge_stroke_width": cls.EDGE_STROKE_WIDTH,
            "arrow_stroke_width": cls.ARROW_STROKE_WIDTH,
            "arrow_head_length": cls.ARROW_HEAD_LENGTH,
            "arrow_head_width": cls.ARROW_HEAD_WIDTH,
            "emoji_font_size": cls.EMOJI_FONT_SIZE,
            "lion_count_font_size": cls.LION_COUNT_FONT_SIZE,
            "animation_duration": cls.ANIMATION_DURATION,
        }
