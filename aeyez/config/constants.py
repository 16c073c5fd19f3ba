"""
Configuration constants for Aeyez.

Global constants used across modules to avoid tight coupling.
"""

# Maximum prompt length accepted by the gateways (~25k tokens at 4 chars/token)
MAX_PROMPT_LENGTH = 100_000

# Character-per-token ratio used when a backend does not report usage
CHARS_PER_TOKEN = 4

# Environment variables read by the default configuration
DEFAULT_OPENAI_ENV_KEY = "OPENAI_API_KEY"
DEFAULT_GOOGLE_ENV_KEY = "GOOGLE_API_KEY"

# Default database path for the SQLite run store
DEFAULT_DATABASE_PATH = "./output/aeyez.db"
