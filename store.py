# store.py
"""
VocabStore：持有数据库句柄和全部服务的对象

create_app 里构造一次，挂到 app.extensions 上，路由通过 get_store() 取用；
进程收到终止信号时调用 close() 释放连接。
"""
import logging

from flask import current_app

from errors import NotFoundError
from reading import ReadingService
from services import MistakeTracker, QuizGenerator, ResultRecorder, WordStore, atomic

logger = logging.getLogger(__name__)

EXTENSION_KEY = 'vocab_store'


class VocabStore:

    def __init__(self, db, promotion_threshold=2, familiar_threshold=3,
                 activity_days=100, rng=None):
        self.db = db
        session = db.session
        self.words = WordStore(session, familiar_threshold=familiar_threshold)
        self.mistakes = MistakeTracker(session, promotion_threshold=promotion_threshold)
        self.quiz = QuizGenerator(session, rng=rng)
        self.results = ResultRecorder(session, activity_days=activity_days)
        self.reading = ReadingService(session, self.results)
        self.closed = False

    @classmethod
    def from_config(cls, db, config):
        return cls(
            db,
            promotion_threshold=config.get('MISTAKE_PROMOTION_THRESHOLD', 2),
            familiar_threshold=config.get('FAMILIAR_THRESHOLD', 3),
            activity_days=config.get('ACTIVITY_DAYS', 100)
        )

    def init_app(self, app):
        app.extensions[EXTENSION_KEY] = self

    def record_answer(self, word_id, is_correct):
        """
        一次答题：更新曝光度/熟悉度，并推动错词本状态机，两步在同一个事务里完成。

        答对一个不在错词本里的单词不算错误，状态保持 normal。
        """
        session = self.db.session
        with atomic(session):
            word = self.words.update_stats(word_id, is_correct)
            if is_correct:
                try:
                    mistake = self.mistakes.record_correct(word_id)
                except NotFoundError:
                    mistake = None
            else:
                mistake = self.mistakes.record_wrong(word_id)
        return {
            'word': word.to_dict(),
            'state': 'flagged' if mistake is not None else 'normal',
            'mistake': mistake.to_dict() if mistake is not None else None
        }

    def close(self):
        if self.closed:
            return
        self.db.session.remove()
        self.db.engine.dispose()
        self.closed = True
        logger.info("数据库连接已关闭")


def get_store():
    return current_app.extensions[EXTENSION_KEY]
