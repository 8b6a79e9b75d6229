"""Centralized constants for the cssport asset and fixture caches."""

# ---- Static assets ----
FALLBACK_LOGO_PATH = "/assets/fallback-logo.svg"
FALLBACK_MARKER = "fallback"
BAD_URL_MARKERS = ("fallback", "placeholder.com")
LOCAL_ASSET_PREFIX = "/assets/"

# ---- Image/logo hosts ----
API_SPORTS_MEDIA_BASE = "https://media.api-sports.io"
CIRCLE_FLAGS_BASE = "https://hatscripts.github.io/circle-flags/flags"
FLAG_CDN_BASE = "https://flagcdn.com/w40"

# ---- ImageCache ----
IMAGE_CACHE_MAX_AGE = 24 * 60 * 60  # seconds
IMAGE_CACHE_MAX_SIZE = 2000
IMAGE_CACHE_TARGET_FRACTION = 0.8
IMAGE_CACHE_FRESH_WINDOW = 60 * 60  # "fresh" bucket in stats
IMAGE_VALIDATION_TIMEOUT = 2.0

# ---- LogoCache ----
LOGO_CACHE_MAX_AGE = 30 * 24 * 60 * 60  # verified / real assets
LOGO_CACHE_FALLBACK_MAX_AGE = 7 * 24 * 60 * 60  # fallback assets
LOGO_CACHE_CLEANUP_INTERVAL = 60 * 60
LOGO_CACHE_MAX_RETRIES = 3
TEAM_LOGO_CACHE_SIZE = 500
LEAGUE_LOGO_CACHE_SIZE = 100
FLAG_CACHE_SIZE = 200

# ---- LogoManager ----
LEAGUE_LOGO_VALIDATION_TIMEOUT = 5.0
LEAGUE_FALLBACK_RETRY_WINDOW = 30 * 60
LOGO_VALIDATION_WORKERS = 4

# League IDs whose API-Sports CDN logo is trusted without a HEAD check.
DEFAULT_WELL_KNOWN_LEAGUE_IDS = (
    39,   # Premier League
    140,  # La Liga
    135,  # Serie A
    78,   # Bundesliga
    61,   # Ligue 1
    2,    # Champions League
    3,    # Europa League
    848,  # Conference League
)

# ---- ApiWrapper cache durations (seconds) ----
API_DEFAULT_CACHE_DURATION = 5 * 60
API_LIVE_FIXTURES_CACHE_DURATION = 30
API_LEAGUE_CACHE_DURATION = 60 * 60
API_POPULAR_LEAGUES_CACHE_DURATION = 30 * 60

# ---- Debug cache ----
DEBUG_LOG_CAPACITY = 1000

# ---- Server fixture cache ----
PAST_DATE_MAX_AGE = 7 * 24 * 60 * 60
TODAY_MAX_AGE = 2 * 60 * 60
FUTURE_DATE_MAX_AGE = 12 * 60 * 60
LEAGUE_RECORD_MAX_AGE = 24 * 60 * 60

ALL_COUNTRIES_BUCKET = "all-countries-fixtures"
LIVE_BUCKET = "live"
# Oldest live snapshot served while the upstream feed is down.
LIVE_OUTAGE_MAX_AGE = 15 * 60

# Competitions kept by the non-`all` date route.
POPULAR_FIXTURE_LEAGUE_IDS = (2, 3, 15, 39, 140, 135, 78, 848)

# (league_id, priority) for /api/leagues/popular
POPULAR_LEAGUE_PRIORITIES = (
    (2, 1),    # Champions League
    (39, 2),   # Premier League
    (140, 3),  # La Liga
    (135, 4),  # Serie A
    (78, 5),   # Bundesliga
    (3, 6),    # Europa League
    (137, 7),  # Coppa Italia
    (45, 8),   # FA Cup
    (40, 9),   # Community Shield
    (48, 10),  # EFL Cup
)

LIVE_STATUS_CODES = ("LIVE", "1H", "HT", "2H", "ET", "BT", "P", "INT")

DEFAULT_ESPORTS_TERMS = (
    "esoccer",
    "ebet",
    "cyber",
    "esports",
    "e-sports",
    "virtual",
    "fifa",
    "pro evolution soccer",
    "pes",
    "efootball",
    "e-football",
)

# ---- Country name -> ISO 3166 (circle-flags naming) ----
COUNTRY_CODES = {
    "England": "gb-eng",
    "Scotland": "gb-sct",
    "Wales": "gb-wls",
    "Northern Ireland": "gb-nir",
    "Spain": "es",
    "Italy": "it",
    "Germany": "de",
    "France": "fr",
    "Brazil": "br",
    "Argentina": "ar",
    "Netherlands": "nl",
    "Portugal": "pt",
    "Belgium": "be",
    "Croatia": "hr",
    "Poland": "pl",
    "Ukraine": "ua",
    "Turkey": "tr",
    "Switzerland": "ch",
    "Austria": "at",
    "Denmark": "dk",
    "Sweden": "se",
    "Norway": "no",
    "Finland": "fi",
    "Russia": "ru",
    "Czech Republic": "cz",
    "Slovakia": "sk",
    "Hungary": "hu",
    "Romania": "ro",
    "Bulgaria": "bg",
    "Greece": "gr",
    "Serbia": "rs",
    "Slovenia": "si",
    "Ireland": "ie",
    "Iceland": "is",
    "USA": "us",
    "Mexico": "mx",
    "Japan": "jp",
    "South Korea": "kr",
    "Australia": "au",
    "Saudi Arabia": "sa",
}

SPECIAL_FLAGS = {
    "World": f"{CIRCLE_FLAGS_BASE}/un.svg",
    "Europe": f"{CIRCLE_FLAGS_BASE}/eu.svg",
}

# Football nations without a flag mapping above that still field national teams.
EXTRA_NATIONAL_TEAMS = (
    "Uruguay",
    "Colombia",
    "Chile",
    "Peru",
    "Ecuador",
    "Paraguay",
    "Morocco",
    "Senegal",
    "Nigeria",
    "Egypt",
    "Cameroon",
    "Ghana",
    "Canada",
    "Costa Rica",
    "Iran",
    "Qatar",
)

NATIONAL_NAME_MARKERS = ("national", " u17", " u19", " u20", " u21", " u23")
INTERNATIONAL_COMPETITION_MARKERS = (
    "international",
    "world cup",
    "euro",
    "copa america",
    "uefa",
    "conmebol",
    "nations league",
)
INTERNATIONAL_COUNTRIES = ("world", "europe")

# API Timeouts (seconds)
API_TIMEOUT_UPSTREAM = 15
LOGO_PROXY_TIMEOUT = 10

# Retry Configuration
MAX_RETRIES = 3
RETRY_BACKOFF_FACTOR = 0.5

# Cross-border club competitions; their teams are clubs despite the "World" country.
CLUB_COMPETITION_MARKERS = (
    "champions league",
    "europa league",
    "conference league",
    "libertadores",
    "sudamericana",
    "club",
)
