STATE_DIR_NAME = ".knot"
CONFIG_FILE = "config.yaml"
STATE_FILE = "state.yaml"
LOCK_FILE = "state.lock"
STATE_VERSION = 1
LOCK_TIMEOUT = 30  # seconds

DEFAULT_MAX_TASKS_PER_DEPTH = 100
DEFAULT_MAX_DEPTH = 5
DEFAULT_COMPLEXITY_THRESHOLD = 8
DEFAULT_MAX_DESCRIPTION_LENGTH = 2000
DEFAULT_MAX_TITLE_LENGTH = 200
MAX_ACTOR_LENGTH = 100

MIN_COMPLEXITY = 1
MAX_COMPLEXITY = 10
DEFAULT_COMPLEXITY = 5
