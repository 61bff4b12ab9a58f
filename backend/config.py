import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///triviaroom.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = [o for o in os.environ.get('CORS_ORIGINS', 'http://localhost:5173,http://127.0.0.1:5173').split(',') if o]
    # Question defaults applied when a catalog row leaves them empty
    QUESTION_TIME_LIMIT_SEC = int(os.environ.get('QUESTION_TIME_LIMIT_SEC', '15'))
    QUESTION_BASE_POINTS = int(os.environ.get('QUESTION_BASE_POINTS', '1000'))
    # Pause between a reveal and the next question (ms)
    REVEAL_PAUSE_MS = int(os.environ.get('REVEAL_PAUSE_MS', '700'))
    # Join codes
    ROOM_CODE_LENGTH = int(os.environ.get('ROOM_CODE_LENGTH', '6'))
    ROOM_CODE_MAX_ATTEMPTS = int(os.environ.get('ROOM_CODE_MAX_ATTEMPTS', '100'))
    # Drop a room from the registry once its last question is done
    DESTROY_FINISHED_ROOMS = os.environ.get('DESTROY_FINISHED_ROOMS', '1') == '1'
    DEFAULT_SET_NAME = os.environ.get('DEFAULT_SET_NAME', 'Default Set')
    # Mirror writes run as background tasks. 0 writes inline.
    PERSIST_IN_BACKGROUND = os.environ.get('PERSIST_IN_BACKGROUND', '1') == '1'
