# config.py
import os


class Config:
    # 数据库连接，默认使用本地 SQLite 文件
    # 也可以指向 MySQL，格式: mysql+pymysql://用户名:密码@主机/数据库名
    SQLALCHEMY_DATABASE_URI = os.getenv('DB_URL', 'sqlite:///vocabmaster.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # 中文原样返回，不转义成 \uXXXX
    JSON_AS_ASCII = False

    # 错词连续答对多少次后移出错词本
    MISTAKE_PROMOTION_THRESHOLD = int(os.getenv('MISTAKE_PROMOTION_THRESHOLD', '2'))
    # 答对次数达到该值视为"已熟悉"
    FAMILIAR_THRESHOLD = int(os.getenv('FAMILIAR_THRESHOLD', '3'))
    # 学习日历默认统计的天数
    ACTIVITY_DAYS = 100

    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
    PORT = int(os.getenv('PORT', '3003'))


class TestConfig(Config):
    # 测试环境：内存数据库，允许跨线程访问
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SQLALCHEMY_ENGINE_OPTIONS = {
        'connect_args': {'check_same_thread': False}
    }
    LOG_LEVEL = 'WARNING'
