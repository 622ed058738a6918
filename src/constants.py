"""Application-wide constants.

This module centralizes all magic numbers and tunable heuristics so the
scraping, chunking and throttling code reads its limits from a single
source of truth.

Extraction heuristics (selector lists, keyword lists) are kept here as
plain data so they can be tuned and tested independently of the code that
applies them.
"""

# =============================================================================
# HTTP / Browser Configuration
# =============================================================================

# Default timeout for direct fetch HTTP requests (seconds)
DEFAULT_HTTP_TIMEOUT_SECONDS = 30.0

# Navigation timeout for headless browser rendering (seconds)
BROWSER_PAGE_LOAD_TIMEOUT_SECONDS = 30.0

# How long to wait for client-rendered content to appear (seconds)
BROWSER_CONTENT_WAIT_TIMEOUT_SECONDS = 10.0

# Render attempts before giving up, and the fixed pause between them
RENDER_MAX_ATTEMPTS = 3
RENDER_RETRY_DELAY_SECONDS = 2.0

BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

BROWSER_HEADERS = {
    "User-Agent": BROWSER_USER_AGENT,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}

# Sent by the headless browser on top of its own defaults
BROWSER_EXTRA_HEADERS = {
    "Accept": BROWSER_HEADERS["Accept"],
    "Accept-Language": BROWSER_HEADERS["Accept-Language"],
    "Sec-Fetch-Dest": "document",
}

BROWSER_WINDOW_SIZE = (1920, 1080)

# =============================================================================
# Extraction Heuristics
# =============================================================================

# Likely content containers for direct fetch, in priority order
CONTENT_SELECTORS = (
    "main",
    "article",
    '[role="main"]',
    "#main-content",
    ".main-content",
    ".content",
    "[data-testid]",
    '[class*="container"]',
    '[class*="wrapper"]',
)

# Wider list for rendered pages (SPA roots and product-page sections)
RENDER_CONTENT_SELECTORS = (
    "main",
    '[role="main"]',
    "#root",
    "#app",
    "#__next",
    '[class*="content"]',
    '[class*="container"]',
    '[class*="wrapper"]',
    "[data-testid]",
    "[data-component]",
    "[data-section]",
    "article",
    ".post",
    ".article",
    '[class*="download"]',
    '[class*="docs"]',
    '[class*="documentation"]',
    '[class*="pricing"]',
    '[class*="features"]',
)

# Anchor text that marks a tool/software "get it here" section
SECTION_KEYWORDS = ("Download", "Install")

# Elements whose class names mark the same kind of section
SECTION_CLASS_SELECTORS = ('[class*="download"]', '[class*="install"]')

# Ancestor that bounds a keyword section
SECTION_CONTAINER_SELECTOR = 'section, div[class*="section"], div[class*="container"]'

# Interactive elements inspected on rendered pages
INTERACTIVE_SELECTORS = (
    "button",
    "a",
    "input",
    "select",
    '[role="button"]',
    '[role="link"]',
    '[class*="button"]',
    '[class*="link"]',
)

# ARIA roles treated as page chrome
EXCLUDED_ROLES = ("navigation", "banner", "footer")

# Tags removed before direct-fetch text extraction
NON_CONTENT_TAGS = ("script", "style", "noscript", "template", "nav", "footer")

# A matched container must carry more text than this to count
MIN_CONTENT_BLOCK_CHARS = 50

# A selector must reach this much text before a rendered page counts as ready
MIN_READY_CONTENT_CHARS = 100

# Text-node fallback thresholds on rendered pages
MIN_TEXT_NODE_CHARS = 20
MIN_TEXT_NODE_WORDS = 4

# =============================================================================
# Cache Configuration
# =============================================================================

# TTL for scraped URL content (seconds) - 5 minutes
URL_CACHE_TTL_SECONDS = 300

# =============================================================================
# Normalization / Prompt Budgets
# =============================================================================

TRUNCATION_MARKER = "... (additional content truncated)"

# Sections starting with one of these are always preserved by summarize()
HEADER_SECTION_PREFIXES = (
    "Title:",
    "Description:",
    "Type:",
    "Image:",
    "Source:",
    "Status:",
    "Attachment:",
    "Main Content:",
)

# Short lines carrying one of these markers are kept by summarize()
INTERACTIVE_LINE_MARKERS = ("Button:", "Input:", "Link:", "Style:")

# Shorter body lines are dropped by summarize()
MIN_INFORMATIVE_LINE_CHARS = 10

# Character budget per scraped source and for all sources together
PER_SOURCE_MAX_CHARS = 10000
TOTAL_SOURCE_MAX_CHARS = 15000

# =============================================================================
# Chunking
# =============================================================================

DEFAULT_CHUNK_MAX_TOKENS = 2000

# Approximate characters per model token
CHARS_PER_TOKEN_ESTIMATE = 4

CONTINUATION_NOTE = (
    "Note: This is part of a larger content. Please focus on extracting "
    "and analyzing the information from this part."
)

# =============================================================================
# Completion API
# =============================================================================

DEFAULT_COMPLETION_MODEL = "groq:llama-3.3-70b-versatile"
COMPLETION_TEMPERATURE = 0.5
COMPLETION_MAX_TOKENS = 2000

# Only the tail of the conversation is forwarded upstream
HISTORY_MESSAGE_LIMIT = 3
HISTORY_MESSAGE_MAX_CHARS = 1000

# =============================================================================
# Chat Pipeline
# =============================================================================

MAX_URLS_PER_REQUEST = 5
MAX_SCRAPE_CONCURRENCY = 5

# Pause before handling each request, and before each chunk completion call
REQUEST_DELAY_SECONDS = 1.0
CHUNK_DELAY_SECONDS = 1.0

# Prompt assembly
SOURCES_HEADER = "Sources:"
FAILED_URLS_NOTE = "Note: The following URLs could not be accessed: "
DEFAULT_QUESTION = "Please summarize the content above."
URL_TRAILING_PUNCTUATION = ".,;:!?)]}>\"'"

# =============================================================================
# Rate Limiting
# =============================================================================

# In-process throttle: requests per client per window
THROTTLE_MAX_REQUESTS = 20
THROTTLE_WINDOW_SECONDS = 60

# External-store gate in front of /api/chat
RATE_LIMIT_GATE_MAX_REQUESTS = 10
RATE_LIMIT_GATE_WINDOW_SECONDS = 10
RATE_LIMIT_GATE_KEY_PREFIX = "ratelimit"

# Paths guarded by the external-store gate
RATE_LIMITED_PATHS = ("/api/chat",)

# Timeout for Upstash REST calls (seconds)
UPSTASH_TIMEOUT_SECONDS = 5.0

# =============================================================================
# User-Facing Messages
# =============================================================================

RATE_LIMITED_ERROR = "Too many requests. Please wait a moment before trying again."
RATE_LIMITED_CONTENT = (
    "I'm receiving too many requests. Please wait a brief moment before "
    "sending another message."
)
UPSTREAM_RATE_LIMITED_ERROR = "Please wait a moment before sending another message."
UPSTREAM_RATE_LIMITED_CONTENT = (
    "I need a brief moment to process your request. Please try again shortly."
)
PAYLOAD_TOO_LARGE_ERROR = (
    "Content too large to process. Please try with less content or fewer URLs."
)
PAYLOAD_TOO_LARGE_CONTENT = (
    "I apologize, but that's a bit too much for me to process at once. "
    "Could you try with less content or fewer URLs?"
)
SERVER_ERROR = "Failed to process request"
SERVER_ERROR_CONTENT = "Sorry, I encountered an error processing your request."
VALIDATION_ERROR_CONTENT = "Please include a message or at least one URL."
ATTACHMENT_ERROR_CONTENT = (
    "Sorry, I couldn't read that file. Please upload a PDF, Word or plain text document."
)
UPSTREAM_RETRY_AFTER_SECONDS = 60
GATE_REJECTION_TEXT = "Too many requests. Please wait a minute before trying again."
