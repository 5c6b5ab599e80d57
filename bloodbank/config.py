"""
config.py
Settings for the blood bank service, read from environment variables.
Any key can be overridden by passing a mapping to create_app().
"""
import os


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY', 'bloodbank-dev-key')

    # Which document store to use: 'json' (files under DATA_DIR) or 'dynamodb'
    STORE_BACKEND = os.environ.get('BLOODBANK_STORE', 'json')
    DATA_DIR = os.environ.get('BLOODBANK_DATA_DIR', os.path.join(os.getcwd(), 'data'))

    # AWS Configuration
    AWS_REGION = os.environ.get('AWS_REGION', 'us-east-1')
    DYNAMODB_TABLE_PREFIX = os.environ.get('BLOODBANK_TABLE_PREFIX', '')
    DYNAMODB_ENDPOINT_URL = os.environ.get('DYNAMODB_ENDPOINT_URL')

    CORS_ORIGINS = os.environ.get('BLOODBANK_CORS_ORIGINS', '*')
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
