# config.py
# 應用程式配置

import os
import tempfile

basedir = os.path.abspath(os.path.dirname(__file__))


class Config:
    """基礎配置"""
    # Flask
    SECRET_KEY = os.environ.get('SECRET_KEY', 'dev-secret-key-change-in-production')

    # 資料庫
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL')
    if not SQLALCHEMY_DATABASE_URI:
        # 建構資料庫 URL
        db_user = os.environ.get('DB_USER', 'taxfiling')
        db_password = os.environ.get('DB_PASSWORD', 'taxfiling_password')
        db_host = os.environ.get('DB_HOST', 'localhost')
        db_port = os.environ.get('DB_PORT', '5432')
        db_name = os.environ.get('DB_NAME', 'taxfiling')

        SQLALCHEMY_DATABASE_URI = f'postgresql://{db_user}:{db_password}@{db_host}:{db_port}/{db_name}'

    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_pre_ping': True,
        'pool_size': 5,
        'max_overflow': 10,
        'pool_recycle': 1800,
    }

    # 日誌
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    # 申報檔
    REPORT_OUTPUT_FOLDER = os.environ.get('REPORT_OUTPUT_FOLDER', os.path.join(basedir, 'reports'))
    REPORT_FILE_ENCODING = os.environ.get('REPORT_FILE_ENCODING', 'utf-8')
    # C 型欄位長度以 Big5 計算
    REPORT_LEGACY_ENCODING = os.environ.get('REPORT_LEGACY_ENCODING', 'cp950')


class DevelopmentConfig(Config):
    """開發環境配置"""
    DEBUG = True
    SQLALCHEMY_ECHO = True


class ProductionConfig(Config):
    """生產環境配置"""
    DEBUG = False
    SQLALCHEMY_ECHO = False


class TestingConfig(Config):
    """測試環境配置"""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SQLALCHEMY_ENGINE_OPTIONS = {}
    LOG_LEVEL = 'WARNING'
    REPORT_OUTPUT_FOLDER = os.path.join(tempfile.gettempdir(), 'tax_filing_reports_test')


config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
