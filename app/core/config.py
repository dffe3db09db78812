import os
from enum import Enum

from dotenv import load_dotenv

load_dotenv()


class Environment(str, Enum):
    TEST = 'test'
    PRODUCTION = 'production'
    DEVELOP = 'develop'


class Settings:
    ENVIRONMENT: Environment = Environment(os.getenv('ENVIRONMENT') or Environment.TEST)
    DB_USERNAME: str = os.getenv('DB_USERNAME')
    DB_PASSWORD: str = os.getenv('DB_PASSWORD')
    DB_HOST: str = os.getenv('DB_HOST')
    DB_PORT: str = os.getenv('DB_PORT')
    DB_NAME: str = os.getenv('DB_NAME')

    SQLALCHEMY_TEST_DATABASE_URL = 'sqlite:///:memory:'
    DATABASE_URL: str = (
        f'postgresql://{DB_USERNAME}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}'
        if ENVIRONMENT != Environment.TEST
        else SQLALCHEMY_TEST_DATABASE_URL
    )

    SECRET_KEY: str = os.getenv('SECRET_KEY', '')
    FRONTEND_URL: str = os.getenv('FRONTEND_URL')

    # Attendance tokens and codes
    CHECK_IN_TOKEN_TTL_MINUTES: int = int(os.getenv('CHECK_IN_TOKEN_TTL_MINUTES', '120'))
    CHECK_OUT_TOKEN_TTL_MINUTES: int = int(
        os.getenv('CHECK_OUT_TOKEN_TTL_MINUTES', '120')
    )
    ATTENDANCE_CODE_TTL_MINUTES: int = int(os.getenv('ATTENDANCE_CODE_TTL_MINUTES', '10'))
    CODE_ISSUE_MAX_ATTEMPTS: int = int(os.getenv('CODE_ISSUE_MAX_ATTEMPTS', '10'))
    ACTION_TIME_MAX_SKEW_SECONDS: int = int(
        os.getenv('ACTION_TIME_MAX_SKEW_SECONDS', '300')
    )


settings = Settings()
