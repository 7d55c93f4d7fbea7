"""
tests/conftest.py
测试环境：内存 SQLite，每个测试前清空所有表
"""
import os

import pytest

# ========== 关键：在导入app之前设置环境变量 ==========
os.environ['DB_URL'] = 'sqlite:///:memory:'
os.environ['TESTING'] = 'true'

# ========== 导入app ==========
from app import app
from models import db, Word, Mistake, TestResult, ReadingPassage, ReadingQuestion
from store import get_store


SAMPLE_BLOCK = (
    "阅读文本\n"
    "My Cat\n"
    "Tom has a small cat. The cat likes fish.\n"
    "It sleeps on the sofa every afternoon.\n"
    "选择题\n"
    "1. What does the cat like? A. fish B. milk C. rice\n"
    "2、Where does the cat sleep? A、on the bed B、on the sofa C、in the box\n"
    "答案\n"
    "1. A\n"
    "2、B"
)


def _clear_tables():
    db.session.query(ReadingQuestion).delete()
    db.session.query(ReadingPassage).delete()
    db.session.query(Mistake).delete()
    db.session.query(TestResult).delete()
    db.session.query(Word).delete()
    db.session.commit()


@pytest.fixture(autouse=True)
def clean_database():
    """每个测试前后清空数据库"""
    with app.app_context():
        db.create_all()
        _clear_tables()
    yield
    with app.app_context():
        db.session.rollback()
        _clear_tables()
        db.session.remove()


@pytest.fixture
def test_client():
    with app.test_client() as client:
        yield client


@pytest.fixture
def store():
    """在应用上下文中直接使用服务对象"""
    with app.app_context():
        yield get_store()
        db.session.remove()


@pytest.fixture
def sample_words(store):
    words_data = [
        ('apple', '苹果', 'I eat an apple every day.'),
        ('banana', '香蕉', None),
        ('cat', '猫', 'The cat is sleeping.'),
    ]
    return [store.words.create(eng, cn, ex) for eng, cn, ex in words_data]


@pytest.fixture
def sample_block():
    return SAMPLE_BLOCK


# ========== 注册pytest标记 ==========

def pytest_configure(config):
    config.addinivalue_line("markers", "unit: 单元测试")
    config.addinivalue_line("markers", "integration: 标记为集成测试")
    config.addinivalue_line("markers", "e2e: 端到端流程测试")
