import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///unanimo.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    # 'sql' keeps sessions in the game_session table, 'memory' in-process only
    SESSION_STORE = os.environ.get('SESSION_STORE', 'sql')
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    # Game defaults (seconds); sessions may override them within range
    TOTAL_ROUNDS = int(os.environ.get('TOTAL_ROUNDS', '3'))
    ROUND_DURATION_SEC = int(os.environ.get('ROUND_DURATION_SEC', '120'))
    COUNTDOWN_SEC = int(os.environ.get('COUNTDOWN_SEC', '3'))
    MIN_PLAYERS = int(os.environ.get('MIN_PLAYERS', '2'))
    MAX_PLAYERS = int(os.environ.get('MAX_PLAYERS', '12'))
    MAX_WORDS_PER_PLAYER = int(os.environ.get('MAX_WORDS_PER_PLAYER', '6'))
    MAX_WORD_LENGTH = int(os.environ.get('MAX_WORD_LENGTH', '30'))
    HURRY_UP_SEC = int(os.environ.get('HURRY_UP_SEC', '10'))
    # Server-side round expiry; clients normally end rounds themselves
    AUTO_END_ROUNDS = os.environ.get('AUTO_END_ROUNDS', '1') not in ('0', 'false', 'False')
    AUTO_END_GRACE_SEC = float(os.environ.get('AUTO_END_GRACE_SEC', '2'))
    # Optional: heartbeat interval for timer worker logs (sec). 0 disables.
    TIMER_HEARTBEAT_SEC = int(os.environ.get('TIMER_HEARTBEAT_SEC', '0'))
    # Seconds a game survives without a connected session owner
    OWNER_GRACE_SEC = float(os.environ.get('OWNER_GRACE_SEC', '2'))
    SESSION_MAX_AGE_SEC = int(os.environ.get('SESSION_MAX_AGE_SEC', '86400'))
