"""SimplePass defaults and environment variable names."""

DEFAULT_COOKIE_NAME = 'simplepass'
FLASH_COOKIE_NAME = 'simplepass.flash'
FLASH_LOGGED_OUT = 'unpassed'
FLASH_MAX_AGE = 10
DEFAULT_TTL = 12 * 60 * 60
DEFAULT_ROOTPATH = '/simplepass'
DEFAULT_REDIRECT = '/'
LOGOUT_SUFFIX = '/_logout'

# Sealed tokens
TOKEN_VERSION = 1
TOKEN_PREFIX = 'sp1'
MIN_SECRET_LENGTH = 32
TIMESTAMP_SKEW = 60  # seconds a token may be issued "in the future"

# Environment
SECRET_ENV = 'SIMPLEPASS_SECRET'
SECRET_ENV_PREFIX = 'SIMPLEPASS_SECRET_v'
