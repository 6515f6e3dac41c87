"""
Configuration module for the Teachers Hub engine and its Lambda handlers.
Loads all environment variables needed by the platform.
"""
import os


class Config:
    """Centralized configuration from environment variables."""

    # AWS Region
    AWS_REGION = os.environ.get('AWS_REGION', 'us-east-1')

    # DynamoDB Tables
    TASKS_TABLE = os.environ.get('TASKS_TABLE', '')
    TIME_LOGS_TABLE = os.environ.get('TIME_LOGS_TABLE', '')
    USERS_TABLE = os.environ.get('USERS_TABLE', '')
    ACTIVE_TIMERS_TABLE = os.environ.get('ACTIVE_TIMERS_TABLE', '')  # One guard item per active timer owner

    # DynamoDB Indexes
    TIME_LOGS_TEACHER_INDEX = os.environ.get('TIME_LOGS_TEACHER_INDEX', 'TeacherStartIndex')

    # Store backend: 'dynamodb' in deployed stacks, 'memory' for local runs
    STORE_BACKEND = os.environ.get('STORE_BACKEND', 'dynamodb').lower()

    # Logging
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()


config = Config()
