# models.py
from datetime import datetime

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

DEFAULT_TEST_TYPE = 'english-to-chinese-multiple'
READING_TEST_TYPE = 'reading-comprehension'


def _iso(value):
    return value.isoformat() if value else None


class Word(db.Model):
    __tablename__ = 'words'
    id = db.Column(db.Integer, primary_key=True)
    english = db.Column(db.String(100), unique=True, nullable=False)
    chinese = db.Column(db.String(255), nullable=False)
    example = db.Column(db.Text, nullable=True)
    # 曝光度：被测试次数
    exposure = db.Column(db.Integer, nullable=False, default=0)
    # 熟悉度：答对次数
    familiarity = db.Column(db.Integer, nullable=False, default=0)
    added_date = db.Column(db.DateTime, nullable=False, default=datetime.now)

    mistake = db.relationship(
        'Mistake', back_populates='word', uselist=False,
        cascade='all, delete-orphan'
    )

    def to_dict(self):
        return {
            'id': self.id,
            'english': self.english,
            'chinese': self.chinese,
            'example': self.example,
            'exposure': self.exposure,
            'familiarity': self.familiarity,
            'added_date': _iso(self.added_date)
        }


# 英文不区分大小写唯一
db.Index('uq_words_english_lower', db.func.lower(Word.english), unique=True)


class Mistake(db.Model):
    __tablename__ = 'mistakes'
    id = db.Column(db.Integer, primary_key=True)
    word_id = db.Column(
        db.Integer, db.ForeignKey('words.id', ondelete='CASCADE'),
        unique=True, nullable=False
    )
    mistake_count = db.Column(db.Integer, nullable=False, default=1)
    # 进入错词本之后的连续答对次数
    correct_streak = db.Column(db.Integer, nullable=False, default=0)
    added_date = db.Column(db.DateTime, nullable=False, default=datetime.now)
    last_update = db.Column(db.DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)

    word = db.relationship('Word', back_populates='mistake')

    def to_dict(self, with_word=False):
        data = {
            'id': self.id,
            'word_id': self.word_id,
            'mistake_count': self.mistake_count,
            'correct_streak': self.correct_streak,
            'added_date': _iso(self.added_date),
            'last_update': _iso(self.last_update)
        }
        if with_word and self.word is not None:
            data.update({
                'english': self.word.english,
                'chinese': self.word.chinese,
                'example': self.word.example
            })
        return data


class TestResult(db.Model):
    __tablename__ = 'test_results'
    # 防止 pytest 把这个模型当成测试类收集
    __test__ = False

    id = db.Column(db.Integer, primary_key=True)
    score = db.Column(db.Integer, nullable=False)
    total_items = db.Column(db.Integer, nullable=False)
    correct_count = db.Column(db.Integer, nullable=False)
    incorrect_count = db.Column(db.Integer, nullable=False)
    type = db.Column(db.String(50), nullable=False, default=DEFAULT_TEST_TYPE)
    test_date = db.Column(db.DateTime, nullable=False, default=datetime.now, index=True)

    def to_dict(self):
        return {
            'id': self.id,
            'score': self.score,
            'total_items': self.total_items,
            'correct_count': self.correct_count,
            'incorrect_count': self.incorrect_count,
            'type': self.type,
            'test_date': _iso(self.test_date)
        }


class ReadingPassage(db.Model):
    __tablename__ = 'reading_passages'
    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    content = db.Column(db.Text, nullable=False)
    exposure = db.Column(db.Integer, nullable=False, default=0)
    added_date = db.Column(db.DateTime, nullable=False, default=datetime.now)

    questions = db.relationship(
        'ReadingQuestion', back_populates='passage',
        cascade='all, delete-orphan',
        order_by='ReadingQuestion.id'
    )

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'content': self.content,
            'exposure': self.exposure,
            'added_date': _iso(self.added_date)
        }


class ReadingQuestion(db.Model):
    __tablename__ = 'reading_questions'
    id = db.Column(db.Integer, primary_key=True)
    passage_id = db.Column(
        db.Integer, db.ForeignKey('reading_passages.id', ondelete='CASCADE'),
        nullable=False, index=True
    )
    question_text = db.Column(db.Text, nullable=False)
    option_a = db.Column(db.Text, nullable=False)
    option_b = db.Column(db.Text, nullable=False)
    option_c = db.Column(db.Text, nullable=False)
    correct_answer = db.Column(db.String(1), nullable=False)

    passage = db.relationship('ReadingPassage', back_populates='questions')

    def to_dict(self):
        return {
            'id': self.id,
            'passage_id': self.passage_id,
            'question_text': self.question_text,
            'option_a': self.option_a,
            'option_b': self.option_b,
            'option_c': self.option_c,
            'correct_answer': self.correct_answer
        }
