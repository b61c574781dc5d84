# Configuration for the TM Leverage Engine

# Supported languages - codes used by the TM backends and the AI prompts
# Format: 'language_code': 'Language Name'
SUPPORTED_LANGUAGES = {
    # EU Languages
    'bg': 'Bulgarian',
    'hr': 'Croatian',
    'cs': 'Czech',
    'da': 'Danish',
    'nl': 'Dutch',
    'en': 'English',
    'et': 'Estonian',
    'fi': 'Finnish',
    'fr': 'French',
    'de': 'German',
    'el': 'Greek',
    'hu': 'Hungarian',
    'it': 'Italian',
    'lv': 'Latvian',
    'lt': 'Lithuanian',
    'pl': 'Polish',
    'pt': 'Portuguese',
    'ro': 'Romanian',
    'sk': 'Slovak',
    'sl': 'Slovenian',
    'es': 'Spanish',
    'sv': 'Swedish',

    # Major World Languages
    'ar': 'Arabic',
    'zh': 'Chinese (Simplified)',
    'ja': 'Japanese',
    'ko': 'Korean',
    'ru': 'Russian',
    'tr': 'Turkish',
    'hi': 'Hindi',
    'vi': 'Vietnamese',
    'th': 'Thai',
    'he': 'Hebrew',
    'uk': 'Ukrainian',
    'no': 'Norwegian',
}

# AI providers and models
AI_PROVIDERS = ['OpenAI', 'Anthropic']
OPENAI_MODELS = [
    'gpt-4o',
    'gpt-4-turbo',
]
ANTHROPIC_MODELS = [
    'claude-3-5-sonnet-latest',
    'claude-3-5-haiku-latest',
]

# Default values
DEFAULT_SOURCE_LANGUAGE = 'en'
DEFAULT_TARGET_LANGUAGE = 'es'
DEFAULT_PROVIDER = 'OpenAI'
DEFAULT_MODEL = 'gpt-4o'
DEFAULT_SEGMENT_TYPE = 'body'
SEGMENT_TYPES = ['subject', 'greeting', 'body', 'cta', 'regulatory', 'closing']

# Match classification (fixed thresholds)
EXACT_MATCH_THRESHOLD = 95   # % - exact match at this score or higher
FUZZY_MATCH_THRESHOLD = 75   # % - fuzzy match from here up to exact
TM_LOOKUP_THRESHOLD = 70     # % - minimum score a TM backend returns
MAX_TM_CANDIDATES = 10       # candidates kept per lookup

# Leverage weighting
FUZZY_WEIGHT = 0.7           # partial credit for reused-but-unverified words

# Document analytics
RATE_PER_WORD = 0.15                  # currency units per translated word
THERAPEUTIC_MATCH_THRESHOLD = 85      # % - domain-relevant TM match
CULTURAL_ADAPTATION_THRESHOLD = 0.8   # cultural fit score counted as adapted

# Source splitting
MIN_SEGMENT_CHARS = 20       # lines this short are not standalone segments
DRAFT_DIVIDER_WIDTH = 60

# Bulk processing
MAX_CONCURRENT_TRANSLATIONS = 4

# Auto-save
AUTOSAVE_DEBOUNCE_SECONDS = 2.0

# LLM settings
TEMPERATURE = 0.1
MAX_TOKENS = 4000
RETRY_ATTEMPTS = 3
REQUEST_TIMEOUT = 30         # seconds, TM server requests
