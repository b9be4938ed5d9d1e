"""
Project-wide constants for the Gemini REST client
"""  # noqa: D200, D212, D415

# ==============================================================================
# Endpoints
# ==============================================================================

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com"
API_VERSION = "v1beta"
UPLOAD_PATH = "/upload/v1beta/files"

OAUTH_TOKEN_URL = "https://oauth2.googleapis.com/token"
CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"
JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"
DEFAULT_REGION = "us-central1"

# ==============================================================================
# Request defaults
# ==============================================================================

DEFAULT_MODEL = "gemini-2.5-flash"
DEFAULT_TIMEOUT = 60.0  # seconds
TOKEN_LIFETIME = 3600  # seconds

DEFAULT_TEMPERATURE = 1
DEFAULT_MAX_OUTPUT_TOKENS = 8192
DEFAULT_TOP_K = 40
DEFAULT_TOP_P = 0.95
DEFAULT_SEED = 1234

# Parameter bounds (inclusive)
TEMPERATURE_RANGE = (0, 2)
TOP_P_RANGE = (0, 1)
TOP_K_RANGE = (0, 100)

# ==============================================================================
# Models
# ==============================================================================

IMAGE_GENERATION_MODELS = frozenset(
    {
        "gemini-2.0-flash-exp-image-generation",
        "gemini-2.5-flash-image-preview",
    }
)
IMAGE_GENERATION_MODEL = "gemini-2.0-flash-exp-image-generation"
IMAGE_EDIT_MODEL = "gemini-2.5-flash-image-preview"
SEARCH_MODEL = "gemini-2.0-flash"
SEARCH_RETRIEVAL_MODELS = frozenset({"gemini-1.5-flash", "gemini-1.5-pro"})
AUDIO_MODELS = frozenset(
    {"gemini-2.0-flash", "gemini-2.0-flash-lite", "gemini-2.5-pro-exp-03-25"}
)
AUDIO_MODEL = "gemini-2.0-flash"
DOCUMENT_MODEL = "gemini-2.0-flash"

RESPONSE_MODALITIES = ("Text", "Image")
JSON_MIME_TYPE = "application/json"

# ==============================================================================
# File handling
# ==============================================================================

_MB = 1024 * 1024
_GB = 1024 * _MB

FILES_API_THRESHOLD = 20 * _MB  # Inline payloads above this go through uploads
MAX_FILES_API_SIZE = 2 * _GB  # Files API upload limit
DEFAULT_UPLOAD_DISPLAY_NAME = "upload"

# ==============================================================================
# Upload protocol headers
# ==============================================================================

HEADER_UPLOAD_PROTOCOL = "X-Goog-Upload-Protocol"
HEADER_UPLOAD_COMMAND = "X-Goog-Upload-Command"
HEADER_UPLOAD_LENGTH = "X-Goog-Upload-Header-Content-Length"
HEADER_UPLOAD_TYPE = "X-Goog-Upload-Header-Content-Type"
HEADER_UPLOAD_URL = "X-Goog-Upload-URL"
HEADER_UPLOAD_OFFSET = "X-Goog-Upload-Offset"
HEADER_API_KEY = "x-goog-api-key"
