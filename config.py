import os
from dotenv import load_dotenv

load_dotenv()  # loads .env if present


def _flag(name, default):
    return os.getenv(name, default).lower() in ('1', 'true', 'yes')


class Config:
    # --- Database ---
    # Prefer an explicit DATABASE_URL (useful for deploys like Heroku)
    DATABASE_URL = os.getenv('DATABASE_URL')

    # Piecewise settings for local setups. Defaults to SQLite.
    DB_DIALECT = os.getenv('DB_DIALECT', 'sqlite')  # 'postgres', 'mysql' or 'sqlite'
    DB_USER = os.getenv('DB_USER', 'postgres')
    DB_PASS = os.getenv('DB_PASS', '')
    DB_HOST = os.getenv('DB_HOST', 'localhost')
    DB_PORT = os.getenv('DB_PORT', '5432')
    DB_NAME = os.getenv('DB_NAME', 'exam_prep')

    SECRET_KEY = os.getenv('FLASK_SECRET', 'dev-secret-please-change')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    TESTING = False

    # --- Exam taking ---
    EXAM_TICKER_ENABLED = _flag('EXAM_TICKER_ENABLED', '1')
    EXAM_TICK_SECONDS = float(os.getenv('EXAM_TICK_SECONDS', '1'))

    # --- Accounts ---
    MIN_PASSWORD_LENGTH = int(os.getenv('MIN_PASSWORD_LENGTH', '6'))

    @classmethod
    def get_database_uri(cls):
        """Build and return the database URI"""
        if cls.DATABASE_URL:
            return cls.DATABASE_URL
        dialect = cls.DB_DIALECT.lower()
        if dialect == 'mysql':
            # use pymysql (install pymysql if you choose mysql)
            return f'mysql+pymysql://{cls.DB_USER}:{cls.DB_PASS}@{cls.DB_HOST}:{cls.DB_PORT}/{cls.DB_NAME}'
        if dialect in ('postgres', 'postgresql'):
            return f'postgresql+psycopg2://{cls.DB_USER}:{cls.DB_PASS}@{cls.DB_HOST}:{cls.DB_PORT}/{cls.DB_NAME}'
        # default: file-based SQLite database in project folder
        db_path = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'data.sqlite')
        return f'sqlite:///{db_path}'


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret'
    EXAM_TICKER_ENABLED = False

    @classmethod
    def get_database_uri(cls):
        return 'sqlite://'
