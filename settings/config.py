NAME = "BarcodeReveal"
VERSION = "0.1.0"
#  local settings, edit before running run_core.py or setup/setup.py

"""
|   Identity Settings
"""
# your own battle tag as shown in the lobby, '_' may be used in place of '#'
USER_BATTLE_TAG = "MyName#123"
# other display names you play under, used to find you inside replay files
SC2_PLAYER_ACCOUNTS = ['MyName']

"""
|   SC2 Settings
"""
REPLAYS_FOLDER = r"C:\Users\WHATEVER\OneDrive\Documents\StarCraft II\Accounts"
REPLAYS_RECURSIVE = True
REPLAYS_FILE_EXTENSION = "SC2Replay"
# written by the client while a match is being set up
LOBBY_FILE_PATH = r"C:\Users\WHATEVER\AppData\Local\Temp\Starcraft II\TempWriteReplayP1\replay.server.battlelobby"
REPLAY_PARSE_TIMEOUT_SECONDS = 30

"""
|   DB Settings
"""
DB_HOST = "localhost"
DB_PORT = 3306
DB_USER = ""
DB_PASSWORD = ""
DB_NAME = "barcode_reveal"
DB_POOL_SIZE = 5
DB_CONNECT_TIMEOUT_SECONDS = 10
DB_RETRIES = 3
DB_RETRY_DELAY_SECONDS = 2
# max wait for another write on the same opponent before giving up
OPPONENT_LOCK_TIMEOUT_SECONDS = 10

"""
|   Analysis Settings
"""
MATCH_HISTORY_LIMIT = 100
RECENT_MATCHES_COUNT = 5
BUILD_ORDER_STEP_LIMIT = 20
PATTERN_REPLAYS_TO_COMPARE = 10
FAVORITE_MAPS_COUNT = 3
BUILD_ORDER_EARLY_GAME_SECONDS = 360
PATTERN_SIMILARITY_THRESHOLD = 0.7
LADDER_STATS_TIMEOUT_SECONDS = 5

"""
|   Logging Settings
"""
LOG_DIR = "logs"
LOG_LEVEL = "INFO"
# same message repeated within this window is logged once
LOG_DEDUP_INTERVAL_SECONDS = 120
