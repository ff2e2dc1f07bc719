# app/__init__.py
# Flask 應用程式工廠

import logging
import os
from flask import Flask
from flask_migrate import Migrate

from app.models import db
from config import config

# 導出 db 讓其他模組可以 from app import db
__all__ = ['db', 'create_app']


migrate = Migrate()


def create_app(config_name=None):
    """應用程式工廠函數"""
    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'development')

    app = Flask(__name__)

    # 載入配置
    app.config.from_object(config[config_name])

    # 日誌等級
    log_level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    logging.basicConfig(level=log_level, format='%(asctime)s %(levelname)s [%(name)s] %(message)s')
    app.logger.setLevel(log_level)

    # 初始化擴展
    db.init_app(app)
    migrate.init_app(app, db)

    # 確保申報檔輸出目錄存在
    os.makedirs(app.config['REPORT_OUTPUT_FOLDER'], exist_ok=True)

    # 註冊藍圖
    from app.routes import api_bp
    app.register_blueprint(api_bp, url_prefix='/api')

    # 建立資料庫表格（開發用）
    with app.app_context():
        db.create_all()

    return app
